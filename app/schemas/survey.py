"""Pydantic schemas for the survey flow."""

from typing import Any

from pydantic import BaseModel, Field

from app.catalog.questions import Question, QuestionCatalog
from app.services.survey_session import SurveySession


class QuestionRead(BaseModel):
    """Schema for reading a question definition."""

    id: str
    type: str
    section: str
    section_number: int
    title: str
    prompt: str
    reason: str | None = None
    options: list[str] = Field(default_factory=list)
    is_optional: bool

    @classmethod
    def from_question(cls, question: Question) -> "QuestionRead":
        return cls(
            id=question.id,
            type=question.type.value,
            section=question.section,
            section_number=question.section_number,
            title=question.title,
            prompt=question.prompt,
            reason=question.reason,
            options=list(question.options),
            is_optional=question.is_optional,
        )


class SurveyInfoRead(BaseModel):
    """Survey metadata plus the full question list."""

    title: str
    description: str
    audience: str
    estimated_minutes: str
    scale_labels: list[str]
    total_questions: int
    questions: list[QuestionRead]

    @classmethod
    def from_catalog(cls, catalog: QuestionCatalog) -> "SurveyInfoRead":
        return cls(
            title=catalog.info.title,
            description=catalog.info.description,
            audience=catalog.info.audience,
            estimated_minutes=catalog.info.estimated_minutes,
            scale_labels=list(catalog.scale_labels),
            total_questions=catalog.total,
            questions=[QuestionRead.from_question(q) for q in catalog.questions],
        )


class AnswerSubmit(BaseModel):
    """Schema for answering the current question."""

    value: Any = Field(..., description="Scale value 1-5, a choice option, or text")


class SurveyStateRead(BaseModel):
    """Current view of a participant's survey session."""

    participant_id: str
    question_number: int
    total_questions: int
    question: QuestionRead
    value: Any = None
    text_draft: str = ""
    saving: bool
    completed: bool
    can_go_prev: bool
    can_go_next: bool
    can_submit: bool
    auto_advance_pending: bool

    @classmethod
    def from_session(cls, session: SurveySession) -> "SurveyStateRead":
        return cls(
            participant_id=session.participant_id,
            question_number=session.current_index + 1,
            total_questions=session.total,
            question=QuestionRead.from_question(session.current_question),
            value=session.current_value,
            text_draft=session.text_draft,
            saving=session.saving,
            completed=session.completed,
            can_go_prev=session.can_go_prev,
            can_go_next=session.can_go_next,
            can_submit=session.can_submit,
            auto_advance_pending=session.pending_auto_advance is not None,
        )
