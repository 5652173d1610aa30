"""Pydantic schemas for request/response validation."""

from app.schemas.analysis import (
    AnalysisRead,
    AnalysisStatusRead,
    BatchAnalysisRead,
    ComprehensiveAnalysisRead,
)
from app.schemas.participant import (
    ParticipantEnter,
    ParticipantEntryResponse,
    ParticipantRead,
)
from app.schemas.results import (
    PageUpdate,
    QuestionResultRead,
    ResultsRead,
    SectionResultRead,
)
from app.schemas.survey import (
    AnswerSubmit,
    QuestionRead,
    SurveyInfoRead,
    SurveyStateRead,
)

__all__ = [
    "AnalysisRead",
    "AnalysisStatusRead",
    "BatchAnalysisRead",
    "ComprehensiveAnalysisRead",
    "ParticipantEnter",
    "ParticipantEntryResponse",
    "ParticipantRead",
    "PageUpdate",
    "QuestionResultRead",
    "ResultsRead",
    "SectionResultRead",
    "AnswerSubmit",
    "QuestionRead",
    "SurveyInfoRead",
    "SurveyStateRead",
]
