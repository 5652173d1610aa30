"""Business logic services."""

from app.services.aggregation import ResultsDashboard, aggregate_question, aggregate_survey
from app.services.analysis import AnalysisService
from app.services.llm_client import TextGenerationClient, extract_output_text
from app.services.markdown import render_html, render_markdown
from app.services.participants import ParticipantService
from app.services.responses import ResponseService
from app.services.survey_session import SurveySession, SurveySessionRegistry

__all__ = [
    "ResultsDashboard",
    "aggregate_question",
    "aggregate_survey",
    "AnalysisService",
    "TextGenerationClient",
    "extract_output_text",
    "render_html",
    "render_markdown",
    "ParticipantService",
    "ResponseService",
    "SurveySession",
    "SurveySessionRegistry",
]
