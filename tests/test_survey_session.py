"""Tests for the survey progression engine."""

import asyncio

import pytest

from app.catalog.answers import AnswerValidationError
from app.catalog.questions import QuestionCatalog, parse_catalog
from app.services.participants import ParticipantService
from app.services.responses import ResponseService
from app.services.survey_session import (
    SubmissionBlockedError,
    SubmissionError,
    SurveyAlreadyCompletedError,
    SurveySession,
    SurveySessionRegistry,
)
from app.store.base import DocumentStore

# Short delay keeps the timing tests fast
DELAY = 0.05
PID = "team01"


def make_session(
    store: DocumentStore, catalog: QuestionCatalog, delay: float = DELAY
) -> SurveySession:
    return SurveySession(
        PID,
        catalog,
        ParticipantService(store),
        ResponseService(store),
        auto_advance_delay=delay,
    )


async def start_at(store: DocumentStore, catalog: QuestionCatalog, number: int) -> SurveySession:
    await ParticipantService(store).get_or_create(PID)
    session = make_session(store, catalog)
    await session.start(number)
    return session


async def stored_value(store: DocumentStore, question_id: str):
    return await store.get(f"responses/{PID}/{question_id}/value")


class TestStart:
    """Tests for opening a session."""

    @pytest.mark.parametrize("number", range(1, 13))
    async def test_resume_at_saved_question(
        self, store: DocumentStore, catalog: QuestionCatalog, number: int
    ) -> None:
        """Test that a stored progress marker k shows question k."""
        session = await start_at(store, catalog, number)

        assert session.current_index == number - 1
        assert session.current_question.id == f"q{number}"

    @pytest.mark.parametrize("number,expected", [(0, 0), (-3, 0), (99, 11)])
    async def test_start_is_clamped(
        self, store: DocumentStore, catalog: QuestionCatalog, number: int, expected: int
    ) -> None:
        """Test that out-of-range markers are clamped into the catalog."""
        session = await start_at(store, catalog, number)

        assert session.current_index == expected

    async def test_completed_participant_is_redirected(
        self, store: DocumentStore, catalog: QuestionCatalog
    ) -> None:
        """Test that a completed participant can't start the survey again."""
        session = make_session(store, catalog)

        with pytest.raises(SurveyAlreadyCompletedError):
            await session.start(3, completed=True)
        assert session.started is False

    async def test_hydrates_saved_answers(
        self, store: DocumentStore, catalog: QuestionCatalog
    ) -> None:
        """Test that saved answers and text drafts are restored."""
        responses = ResponseService(store)
        await responses.save(PID, "q1", 4)
        await responses.save(PID, "q4", "The release slipped")

        session = await start_at(store, catalog, 4)

        assert session.responses == {"q1": 4, "q4": "The release slipped"}
        assert session.text_draft == "The release slipped"
        assert session.can_go_next is True

    async def test_read_failure_still_starts(
        self, flaky_store, catalog: QuestionCatalog
    ) -> None:
        """Test that a failed response read leaves an empty mirror."""
        session = make_session(flaky_store, catalog)
        flaky_store.fail_reads = True

        await session.start(2)

        assert session.responses == {}
        assert session.current_index == 1


class TestAnswering:
    """Tests for answering and auto-advance."""

    async def test_scale_answer_saves_then_auto_advances(
        self, store: DocumentStore, catalog: QuestionCatalog
    ) -> None:
        """Test that a scale answer is persisted and advances after the delay."""
        session = await start_at(store, catalog, 1)

        await session.answer(4)

        assert await stored_value(store, "q1") == 4
        assert session.current_index == 0
        assert session.pending_auto_advance is not None

        await asyncio.sleep(DELAY * 3)

        assert session.current_index == 1
        assert session.pending_auto_advance is None
        assert await store.get(f"users/{PID}/currentQuestion") == 2

    async def test_choice_answer_stored_with_timestamp(
        self, store: DocumentStore, catalog: QuestionCatalog
    ) -> None:
        """Test that choice answers store value and answeredAt."""
        session = await start_at(store, catalog, 3)

        await session.answer("unknown")
        await session.close()

        saved = await store.get(f"responses/{PID}/q3")
        assert saved["value"] == "unknown"
        assert isinstance(saved["answeredAt"], int)

    async def test_navigating_away_keeps_answer(
        self, store: DocumentStore, catalog: QuestionCatalog
    ) -> None:
        """Test that leaving before the auto-advance fires still keeps the answer."""
        session = await start_at(store, catalog, 2)

        await session.answer(5)
        await session.go_to_prev()
        await asyncio.sleep(DELAY * 3)

        assert await stored_value(store, "q2") == 5
        # The cancelled auto-advance must not move the participant
        assert session.current_index == 0

    async def test_manual_next_cancels_auto_advance(
        self, store: DocumentStore, catalog: QuestionCatalog
    ) -> None:
        """Test that a manual next isn't followed by a second automatic move."""
        session = await start_at(store, catalog, 1)

        await session.answer(3)
        await session.go_to_next()
        await asyncio.sleep(DELAY * 3)

        assert session.current_index == 1
        assert await stored_value(store, "q1") == 3

    async def test_no_auto_advance_on_last_question(self, store: DocumentStore) -> None:
        """Test that answering the last question never schedules an advance."""
        catalog = parse_catalog({
            "questions": [
                {"id": "a", "type": "text", "section": "S", "section_number": 1,
                 "title": "A", "prompt": "A?", "is_optional": True},
                {"id": "b", "type": "scale", "section": "S", "section_number": 1,
                 "title": "B", "prompt": "B?"},
            ]
        })
        session = await start_at(store, catalog, 2)

        await session.answer(2)

        assert session.pending_auto_advance is None
        assert session.can_submit is True

    async def test_text_answer_is_draft_only(
        self, store: DocumentStore, catalog: QuestionCatalog
    ) -> None:
        """Test that typing doesn't persist until navigation."""
        session = await start_at(store, catalog, 4)

        await session.answer("Two outages")

        assert session.text_draft == "Two outages"
        assert session.responses["q4"] == "Two outages"
        assert session.pending_auto_advance is None
        assert await stored_value(store, "q4") is None

        await session.go_to_next()

        assert await stored_value(store, "q4") == "Two outages"
        assert session.text_draft == ""

    async def test_empty_draft_not_saved(
        self, store: DocumentStore, catalog: QuestionCatalog
    ) -> None:
        """Test that an empty optional text answer isn't written."""
        session = await start_at(store, catalog, 7)

        await session.go_to_next()

        assert await store.get(f"responses/{PID}/q7") is None
        assert session.current_index == 7

    async def test_invalid_answer_rejected(
        self, store: DocumentStore, catalog: QuestionCatalog
    ) -> None:
        """Test that invalid values never reach the store."""
        session = await start_at(store, catalog, 1)

        with pytest.raises(AnswerValidationError):
            await session.answer(9)
        assert await store.get(f"responses/{PID}") is None


class TestGating:
    """Tests for the required-question rule."""

    async def test_required_question_blocks_next(
        self, store: DocumentStore, catalog: QuestionCatalog
    ) -> None:
        """Test that a required, unanswered question disables next."""
        session = await start_at(store, catalog, 1)

        assert session.needs_answer is True
        assert session.can_go_next is False
        assert session.can_go_prev is False

    async def test_optional_question_allows_next(
        self, store: DocumentStore, catalog: QuestionCatalog
    ) -> None:
        """Test that an optional question can be skipped."""
        session = await start_at(store, catalog, 7)

        assert session.can_go_next is True
        assert session.can_go_prev is True

    async def test_navigation_stops_at_bounds(
        self, store: DocumentStore, catalog: QuestionCatalog
    ) -> None:
        """Test that moving past either end is a no-op."""
        first = await start_at(store, catalog, 1)
        assert await first.go_to_prev() is False
        assert first.current_index == 0

        last = await start_at(store, catalog, 12)
        assert await last.go_to_next() is False
        assert last.current_index == 11


class TestSaveFailures:
    """Tests for swallowed answer and progress write failures."""

    async def test_answer_save_failure_is_swallowed(
        self, flaky_store, catalog: QuestionCatalog
    ) -> None:
        """Test that a failed save keeps going and silently loses the answer."""
        session = await start_at(flaky_store, catalog, 1)
        flaky_store.fail_prefixes.add("responses")

        await session.answer(5)

        # The local mirror has the value, the store does not
        assert session.responses["q1"] == 5
        assert await stored_value(flaky_store, "q1") is None
        assert session.saving is False

        await asyncio.sleep(DELAY * 3)
        assert session.current_index == 1

    async def test_progress_save_failure_is_swallowed(
        self, flaky_store, catalog: QuestionCatalog
    ) -> None:
        """Test that a failed progress write doesn't block navigation."""
        session = await start_at(flaky_store, catalog, 7)
        flaky_store.fail_prefixes.add("users")

        assert await session.go_to_next() is True

        assert session.current_index == 7
        # Resuming would show the stale question
        assert await flaky_store.get(f"users/{PID}/currentQuestion") == 1


class TestSubmit:
    """Tests for submission."""

    async def test_submit_blocked_before_last_question(
        self, store: DocumentStore, catalog: QuestionCatalog
    ) -> None:
        """Test that submit only works from the last question."""
        session = await start_at(store, catalog, 7)

        assert session.can_submit is False
        with pytest.raises(SubmissionBlockedError):
            await session.submit()

    async def test_submit_blocked_when_last_required_unanswered(
        self, store: DocumentStore, catalog: QuestionCatalog
    ) -> None:
        """Test that an unanswered required last question blocks submit."""
        session = await start_at(store, catalog, 12)

        assert session.can_submit is False
        with pytest.raises(SubmissionBlockedError):
            await session.submit()
        assert await store.get(f"users/{PID}/completed") is False

    async def test_submit_completes_participant(
        self, store: DocumentStore, catalog: QuestionCatalog
    ) -> None:
        """Test that submit flushes the draft and marks completion."""
        session = await start_at(store, catalog, 12)
        await session.answer("Start pairing on incidents")

        await session.submit()

        assert session.completed is True
        assert await stored_value(store, "q12") == "Start pairing on incidents"
        user = await store.get(f"users/{PID}")
        assert user["completed"] is True
        assert isinstance(user["completedAt"], int)

        with pytest.raises(SurveyAlreadyCompletedError):
            await session.go_to_prev()

    async def test_reentry_after_submit_redirects(
        self, store: DocumentStore, catalog: QuestionCatalog
    ) -> None:
        """Test that the registry refuses to reopen a completed survey."""
        participants = ParticipantService(store)
        registry = SurveySessionRegistry(
            catalog, participants, ResponseService(store), auto_advance_delay=DELAY
        )
        await participants.get_or_create(PID)
        session = await registry.open(PID, 12)
        await session.answer("Stop context switching")
        await session.submit()

        participant = await participants.get(PID)
        with pytest.raises(SurveyAlreadyCompletedError):
            await registry.open(PID, participant.current_question, participant.completed)

    async def test_submit_failure_allows_retry(
        self, flaky_store, catalog: QuestionCatalog
    ) -> None:
        """Test that a failed submission leaves the session resubmittable."""
        session = await start_at(flaky_store, catalog, 12)
        await session.answer("Keep demos")
        flaky_store.fail_prefixes.add("users")

        with pytest.raises(SubmissionError):
            await session.submit()

        assert session.completed is False
        assert session.can_submit is True

        flaky_store.fail_prefixes.clear()
        await session.submit()

        assert session.completed is True
        assert await flaky_store.get(f"users/{PID}/completed") is True


class TestConcurrency:
    """Tests that document the lack of a navigation barrier."""

    async def test_rapid_navigation_is_not_serialized(
        self, store: DocumentStore, catalog: QuestionCatalog
    ) -> None:
        """Test that two overlapping next requests both move the participant.

        Nothing serializes navigation, so a double submit skips a question.
        """
        session = await start_at(store, catalog, 7)

        await asyncio.gather(session.go_to_next(), session.go_to_next())

        assert session.current_index == 8
        assert await store.get(f"users/{PID}/currentQuestion") == 9
