"""Pydantic schemas for participant entry and progress."""

from typing import Literal

from pydantic import BaseModel, Field


class ParticipantEnter(BaseModel):
    """Schema for entering the survey with a participant id."""

    participant_id: str = Field(
        ..., description="Self-chosen id; whitespace is removed before validation"
    )


class ParticipantRead(BaseModel):
    """Schema for reading a participant's progress record."""

    id: str
    current_question: int
    completed: bool
    started_at: int | None = None
    last_updated_at: int | None = None
    completed_at: int | None = None

    model_config = {"from_attributes": True}


class ParticipantEntryResponse(BaseModel):
    """Result of entering an id: where the participant should go next."""

    participant: ParticipantRead
    created: bool
    next: Literal["survey", "complete"]
