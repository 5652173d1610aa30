"""Participant entry endpoints."""

from fastapi import APIRouter, HTTPException, status

from app.api.deps import ParticipantId, Participants
from app.schemas.participant import (
    ParticipantEnter,
    ParticipantEntryResponse,
    ParticipantRead,
)
from app.services.participants import InvalidParticipantIdError, normalize_participant_id
from app.store.base import DocumentStoreError

router = APIRouter(prefix="/participants", tags=["participants"])


@router.post("", response_model=ParticipantEntryResponse)
async def enter_participant(
    body: ParticipantEnter,
    participants: Participants,
) -> ParticipantEntryResponse:
    """Enter the survey with a participant id.

    Creates the record on first contact. Re-entering an existing id keeps
    its progress; completed participants are sent to the completion view.
    """
    try:
        participant_id = normalize_participant_id(body.participant_id)
    except InvalidParticipantIdError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        )

    try:
        participant, created = await participants.get_or_create(participant_id)
    except DocumentStoreError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Could not start the survey, please try again",
        )

    return ParticipantEntryResponse(
        participant=ParticipantRead.model_validate(participant),
        created=created,
        next="complete" if participant.completed else "survey",
    )


@router.get("/{participant_id}", response_model=ParticipantRead)
async def get_participant(
    participant_id: ParticipantId,
    participants: Participants,
) -> ParticipantRead:
    """Get a participant's progress record."""
    try:
        participant = await participants.get(participant_id)
    except DocumentStoreError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Document store unavailable",
        )

    if not participant:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Participant '{participant_id}' not found",
        )
    return ParticipantRead.model_validate(participant)
