"""Survey progression engine.

Drives one participant through the catalog one question at a time:

- Scale and choice answers are saved as soon as they are selected, then the
  session auto-advances after a short delay (unless on the last question).
- Text answers are held as a local draft and saved when the participant
  navigates or submits.
- Every navigation persists the 1-based progress marker so the participant
  can resume where they left off.
- Required questions must have a local value before moving forward.

Answer and progress write failures are logged and swallowed: the participant
keeps going and the value survives only in the local mirror. Submission
failures are raised so the caller can show them and retry.
"""

import asyncio
import logging
from typing import Any

from app.catalog.answers import parse_answer
from app.catalog.questions import Question, QuestionCatalog, QuestionType
from app.services.participants import ParticipantService
from app.services.responses import ResponseService
from app.store.base import DocumentStoreError

logger = logging.getLogger(__name__)

DEFAULT_AUTO_ADVANCE_DELAY = 0.3


class SurveyAlreadyCompletedError(Exception):
    """The participant already submitted; redirect to the completion view."""

    def __init__(self, participant_id: str) -> None:
        self.participant_id = participant_id
        super().__init__(f"Participant {participant_id} already completed the survey")


class SubmissionBlockedError(Exception):
    """Submit was requested while the submit control is disabled."""

    pass


class SubmissionError(Exception):
    """The completion write failed; the session stays unsubmitted."""

    pass


def has_value(value: Any) -> bool:
    return value is not None and value != ""


class SurveySession:
    """State machine for one participant's pass through the survey."""

    def __init__(
        self,
        participant_id: str,
        catalog: QuestionCatalog,
        participants: ParticipantService,
        responses: ResponseService,
        auto_advance_delay: float = DEFAULT_AUTO_ADVANCE_DELAY,
    ) -> None:
        self.participant_id = participant_id
        self.catalog = catalog
        self.participants = participants
        self.response_service = responses
        self.auto_advance_delay = auto_advance_delay

        self.current_index = 0
        self.responses: dict[str, Any] = {}
        self.text_draft = ""
        self.saving = False
        self.completed = False
        self.started = False

        self._auto_advance_task: asyncio.Task | None = None

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    @property
    def total(self) -> int:
        return self.catalog.total

    @property
    def current_question(self) -> Question:
        return self.catalog.at(self.current_index)

    @property
    def current_value(self) -> Any:
        return self.responses.get(self.current_question.id)

    @property
    def is_first(self) -> bool:
        return self.current_index == 0

    @property
    def is_last(self) -> bool:
        return self.current_index == self.total - 1

    @property
    def needs_answer(self) -> bool:
        """True if the current question is required and has no local value."""
        return self.current_question.is_required and not has_value(self.current_value)

    @property
    def can_go_prev(self) -> bool:
        return not self.is_first and not self.saving

    @property
    def can_go_next(self) -> bool:
        return not self.is_last and not self.saving and not self.needs_answer

    @property
    def can_submit(self) -> bool:
        return (
            self.is_last
            and not self.saving
            and not self.needs_answer
            and not self.completed
        )

    @property
    def pending_auto_advance(self) -> asyncio.Task | None:
        """The scheduled auto-advance, if one is waiting to fire."""
        task = self._auto_advance_task
        if task is None or task.done():
            return None
        return task

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self, starting_question: int, completed: bool = False) -> None:
        """Open the session at a 1-based question number.

        Raises:
            SurveyAlreadyCompletedError: If the participant already submitted
        """
        if completed:
            raise SurveyAlreadyCompletedError(self.participant_id)

        try:
            self.responses = await self.response_service.get_for_participant(
                self.participant_id
            )
        except DocumentStoreError as e:
            logger.error(
                f"Error loading responses: {e}",
                extra={"participant_id": self.participant_id},
            )
            self.responses = {}

        index = min(max(starting_question - 1, 0), self.total - 1)
        self._enter(index)
        self.started = True

    def _enter(self, index: int) -> None:
        self.current_index = index
        question = self.current_question
        if question.type == QuestionType.TEXT:
            saved = self.responses.get(question.id)
            self.text_draft = saved if isinstance(saved, str) else ""
        else:
            self.text_draft = ""

    def _ensure_open(self) -> None:
        if self.completed:
            raise SurveyAlreadyCompletedError(self.participant_id)

    # ------------------------------------------------------------------
    # Answering
    # ------------------------------------------------------------------

    async def answer(self, raw_value: Any) -> None:
        """Record an answer for the current question.

        Scale and choice answers are persisted immediately and schedule an
        auto-advance. Text answers only update the local draft.

        Raises:
            AnswerValidationError: If the value doesn't fit the question
            SurveyAlreadyCompletedError: If the survey was submitted
        """
        self._ensure_open()
        question = self.current_question
        answer = parse_answer(question, raw_value)

        if question.type == QuestionType.TEXT:
            self.text_draft = answer.value
            self.responses[question.id] = answer.value
            return

        answered_index = self.current_index
        await self._save_response(question.id, answer.value)
        if answered_index != self.total - 1:
            self._schedule_auto_advance(answered_index)

    async def _save_response(self, question_id: str, value: Any) -> None:
        self.responses[question_id] = value
        self.saving = True
        try:
            await self.response_service.save(self.participant_id, question_id, value)
        except DocumentStoreError as e:
            logger.error(
                f"Error saving response: {e}",
                extra={"participant_id": self.participant_id, "question_id": question_id},
            )
        finally:
            self.saving = False

    async def _save_progress(self, question_number: int) -> None:
        try:
            await self.participants.update_progress(self.participant_id, question_number)
        except DocumentStoreError as e:
            logger.error(
                f"Error saving progress: {e}",
                extra={"participant_id": self.participant_id},
            )

    async def _flush_text_draft(self) -> None:
        question = self.current_question
        if question.type == QuestionType.TEXT and self.text_draft != "":
            await self._save_response(question.id, self.text_draft)

    # ------------------------------------------------------------------
    # Auto-advance
    # ------------------------------------------------------------------

    def _schedule_auto_advance(self, answered_index: int) -> None:
        self._cancel_auto_advance()
        self._auto_advance_task = asyncio.create_task(
            self._auto_advance(answered_index)
        )

    async def _auto_advance(self, answered_index: int) -> None:
        await asyncio.sleep(self.auto_advance_delay)
        # Only advance from the question that was answered
        if self.completed or self.current_index != answered_index:
            return
        await self.go_to_next()

    def _cancel_auto_advance(self) -> None:
        task = self._auto_advance_task
        self._auto_advance_task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    async def go_to_next(self) -> bool:
        """Move forward one question.

        Returns:
            False if already on the last question (no-op)
        """
        self._ensure_open()
        self._cancel_auto_advance()
        if self.current_index >= self.total - 1:
            return False

        await self._flush_text_draft()
        self._enter(self.current_index + 1)
        await self._save_progress(self.current_index + 1)
        return True

    async def go_to_prev(self) -> bool:
        """Move back one question.

        Returns:
            False if already on the first question (no-op)
        """
        self._ensure_open()
        self._cancel_auto_advance()
        if self.current_index <= 0:
            return False

        await self._flush_text_draft()
        self._enter(self.current_index - 1)
        await self._save_progress(self.current_index + 1)
        return True

    async def submit(self) -> None:
        """Flush the draft and mark the participant completed.

        Raises:
            SubmissionBlockedError: If submission is currently disabled
            SubmissionError: If the completion write fails
        """
        self._ensure_open()
        if not self.can_submit:
            raise SubmissionBlockedError(
                "Answer the final question before submitting"
                if self.is_last
                else "Submission is only available on the last question"
            )

        self._cancel_auto_advance()
        await self._flush_text_draft()

        self.saving = True
        try:
            await self.participants.complete(self.participant_id)
        except DocumentStoreError as e:
            logger.error(
                f"Error submitting survey: {e}",
                extra={"participant_id": self.participant_id},
            )
            raise SubmissionError("Submission failed, please try again") from e
        finally:
            self.saving = False

        self.completed = True
        logger.info("Survey submitted", extra={"participant_id": self.participant_id})

    async def close(self) -> None:
        """Drop any pending auto-advance."""
        self._cancel_auto_advance()


class SurveySessionRegistry:
    """Live sessions keyed by participant id, for the lifetime of the process."""

    def __init__(
        self,
        catalog: QuestionCatalog,
        participants: ParticipantService,
        responses: ResponseService,
        auto_advance_delay: float = DEFAULT_AUTO_ADVANCE_DELAY,
    ) -> None:
        self.catalog = catalog
        self.participants = participants
        self.responses = responses
        self.auto_advance_delay = auto_advance_delay
        self._sessions: dict[str, SurveySession] = {}

    async def open(
        self, participant_id: str, starting_question: int, completed: bool = False
    ) -> SurveySession:
        """Start (or restart) the session for a participant.

        Raises:
            SurveyAlreadyCompletedError: If the participant already submitted
        """
        if completed:
            raise SurveyAlreadyCompletedError(participant_id)

        previous = self._sessions.pop(participant_id, None)
        if previous is not None:
            await previous.close()

        session = SurveySession(
            participant_id,
            self.catalog,
            self.participants,
            self.responses,
            auto_advance_delay=self.auto_advance_delay,
        )
        await session.start(starting_question, completed=completed)
        self._sessions[participant_id] = session
        return session

    def get(self, participant_id: str) -> SurveySession | None:
        return self._sessions.get(participant_id)

    async def close_all(self) -> None:
        for session in self._sessions.values():
            await session.close()
        self._sessions.clear()
