"""Survey flow endpoints: one question at a time."""

from fastapi import APIRouter, HTTPException, status

from app.api.deps import Catalog, ParticipantId, Participants, Sessions
from app.catalog.answers import AnswerValidationError
from app.schemas.survey import AnswerSubmit, SurveyInfoRead, SurveyStateRead
from app.services.survey_session import (
    SubmissionBlockedError,
    SubmissionError,
    SurveyAlreadyCompletedError,
    SurveySession,
    SurveySessionRegistry,
)
from app.store.base import DocumentStoreError

router = APIRouter(prefix="/survey", tags=["survey"])


def _completed(participant_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail=f"Participant '{participant_id}' has already completed the survey",
        headers={"Location": "/complete"},
    )


def _get_session(sessions: SurveySessionRegistry, participant_id: str) -> SurveySession:
    session = sessions.get(participant_id)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Survey not started for this participant",
        )
    if session.completed:
        raise _completed(participant_id)
    return session


def _require_idle(session: SurveySession) -> None:
    if session.saving:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="An answer is still being saved",
        )


@router.get("/questions", response_model=SurveyInfoRead)
async def get_questions(catalog: Catalog) -> SurveyInfoRead:
    """Get survey metadata and every question in presentation order."""
    return SurveyInfoRead.from_catalog(catalog)


@router.post("/{participant_id}/start", response_model=SurveyStateRead)
async def start_survey(
    participant_id: ParticipantId,
    participants: Participants,
    sessions: Sessions,
) -> SurveyStateRead:
    """Open the survey at the participant's saved progress marker."""
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

    try:
        session = await sessions.open(
            participant_id, participant.current_question, participant.completed
        )
    except SurveyAlreadyCompletedError:
        raise _completed(participant_id)

    return SurveyStateRead.from_session(session)


@router.get("/{participant_id}", response_model=SurveyStateRead)
async def get_survey_state(
    participant_id: ParticipantId,
    sessions: Sessions,
) -> SurveyStateRead:
    """Get the current question and navigation state."""
    return SurveyStateRead.from_session(_get_session(sessions, participant_id))


@router.post("/{participant_id}/answer", response_model=SurveyStateRead)
async def answer_question(
    participant_id: ParticipantId,
    body: AnswerSubmit,
    sessions: Sessions,
) -> SurveyStateRead:
    """Answer the current question.

    Scale and choice answers are saved immediately and auto-advance shortly
    after. Text answers are kept as a draft until the next navigation.
    """
    session = _get_session(sessions, participant_id)
    try:
        await session.answer(body.value)
    except AnswerValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        )
    except SurveyAlreadyCompletedError:
        raise _completed(participant_id)

    return SurveyStateRead.from_session(session)


@router.post("/{participant_id}/next", response_model=SurveyStateRead)
async def next_question(
    participant_id: ParticipantId,
    sessions: Sessions,
) -> SurveyStateRead:
    """Move to the next question. A no-op on the last question."""
    session = _get_session(sessions, participant_id)
    _require_idle(session)
    if session.needs_answer:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="This question requires an answer",
        )

    await session.go_to_next()
    return SurveyStateRead.from_session(session)


@router.post("/{participant_id}/prev", response_model=SurveyStateRead)
async def previous_question(
    participant_id: ParticipantId,
    sessions: Sessions,
) -> SurveyStateRead:
    """Move to the previous question. A no-op on the first question."""
    session = _get_session(sessions, participant_id)
    _require_idle(session)

    await session.go_to_prev()
    return SurveyStateRead.from_session(session)


@router.post("/{participant_id}/submit", response_model=SurveyStateRead)
async def submit_survey(
    participant_id: ParticipantId,
    sessions: Sessions,
) -> SurveyStateRead:
    """Submit the survey from the last question."""
    session = _get_session(sessions, participant_id)
    _require_idle(session)
    if session.is_last and session.needs_answer:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="This question requires an answer",
        )

    try:
        await session.submit()
    except SubmissionBlockedError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        )
    except SubmissionError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e),
        )

    return SurveyStateRead.from_session(session)
