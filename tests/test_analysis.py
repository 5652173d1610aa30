"""Tests for the analysis service."""

import asyncio

import pytest

from app.catalog.questions import QuestionCatalog
from app.services.analysis import (
    AnalysisFailedError,
    AnalysisInProgressError,
    AnalysisQueue,
    AnalysisService,
    NoResponsesError,
    NotAnalyzableError,
)
from app.services.prompts import PROMPT_TEMPLATES, build_question_prompt
from app.services.responses import ResponseService
from app.store.base import DocumentStore


async def seed_text_answers(store: DocumentStore) -> None:
    responses = ResponseService(store)
    await responses.save("aaaa", "q4", "  The outage in May  ")
    await responses.save("bbbb", "q4", "Hiring freeze")
    await responses.save("cccc", "q4", "   ")
    await responses.save("aaaa", "q9", "Write things down")
    await responses.save("aaaa", "q1", 4)


class TestQuestionAnalysis:
    """Tests for analysing a single question."""

    async def test_analysis_is_cached(
        self, store: DocumentStore, catalog: QuestionCatalog, generator
    ) -> None:
        """Test that the result is stored with timestamp and model."""
        await seed_text_answers(store)
        service = AnalysisService(catalog, store, generator)

        record = await service.analyze_question("q4")

        saved = await store.get("analysis/q4")
        assert saved == {
            "result": generator.text,
            "analyzedAt": record.analyzed_at,
            "model": "fake-model",
        }
        assert (await service.get_analysis("q4")).result == generator.text

    async def test_prompt_has_trimmed_answers(
        self, store: DocumentStore, catalog: QuestionCatalog, generator
    ) -> None:
        """Test that blank answers are dropped and others trimmed."""
        await seed_text_answers(store)
        service = AnalysisService(catalog, store, generator)

        await service.analyze_question("q4")

        _, prompt = generator.calls[0]
        assert "Answers (2):" in prompt
        assert "1. The outage in May\n2. Hiring freeze" in prompt

    async def test_rerun_overwrites(
        self, store: DocumentStore, catalog: QuestionCatalog, generator
    ) -> None:
        """Test that re-analysis keeps exactly one record per question."""
        await seed_text_answers(store)
        service = AnalysisService(catalog, store, generator)

        await service.analyze_question("q4")
        generator.text = "Second run"
        await service.analyze_question("q4")

        cached = await store.get("analysis")
        assert list(cached) == ["q4"]
        assert cached["q4"]["result"] == "Second run"

    async def test_no_answers(
        self, store: DocumentStore, catalog: QuestionCatalog, generator
    ) -> None:
        """Test that a question without answers never calls the model."""
        service = AnalysisService(catalog, store, generator)

        with pytest.raises(NoResponsesError):
            await service.analyze_question("q12")
        assert generator.calls == []
        assert service.status("q12").in_progress is False

    async def test_missing_analysis_is_none(
        self, store: DocumentStore, catalog: QuestionCatalog, generator
    ) -> None:
        """Test that a missing analysis is not an error."""
        service = AnalysisService(catalog, store, generator)

        assert await service.get_analysis("q4") is None
        assert await service.get_comprehensive() is None

    async def test_only_text_questions(
        self, store: DocumentStore, catalog: QuestionCatalog, generator
    ) -> None:
        """Test that scale questions and unknown ids are rejected."""
        service = AnalysisService(catalog, store, generator)

        with pytest.raises(NotAnalyzableError):
            await service.analyze_question("q1")
        with pytest.raises(KeyError):
            await service.analyze_question("q99")

    async def test_failure_recorded(
        self, store: DocumentStore, catalog: QuestionCatalog, generator
    ) -> None:
        """Test that a generation failure is kept in the question's status."""
        await seed_text_answers(store)
        generator.fail_for.add("Key events")
        service = AnalysisService(catalog, store, generator)

        with pytest.raises(AnalysisFailedError):
            await service.analyze_question("q4")

        status = service.status("q4")
        assert status.in_progress is False
        assert "Model unavailable" in status.error
        assert await store.get("analysis/q4") is None

    async def test_concurrent_run_rejected(
        self, store: DocumentStore, catalog: QuestionCatalog, generator
    ) -> None:
        """Test that a second run for the same question is refused."""
        await seed_text_answers(store)
        generator.delay = 0.05
        service = AnalysisService(catalog, store, generator)

        first = asyncio.create_task(service.analyze_question("q4"))
        await asyncio.sleep(0.01)

        assert service.status("q4").in_progress is True
        with pytest.raises(AnalysisInProgressError):
            await service.analyze_question("q4")
        await first

    async def test_legacy_record_shape(
        self, store: DocumentStore, catalog: QuestionCatalog, generator
    ) -> None:
        """Test that records with the text under "analysis" still load."""
        await store.set("analysis/q9", {"analysis": "Old text", "analyzedAt": 5})
        service = AnalysisService(catalog, store, generator)

        record = await service.get_analysis("q9")

        assert record.result == "Old text"
        assert record.model == ""


class TestBatchAnalysis:
    """Tests for analysing every unanalysed question."""

    async def test_sequential_and_skips_cached(
        self, store: DocumentStore, catalog: QuestionCatalog, generator
    ) -> None:
        """Test that the batch runs one call at a time and skips cached questions."""
        await seed_text_answers(store)
        responses = ResponseService(store)
        await responses.save("aaaa", "q12", "Fewer meetings")
        await store.set("analysis/q9", {"result": "cached", "analyzedAt": 1, "model": "m"})
        generator.delay = 0.01
        service = AnalysisService(catalog, store, generator)

        result = await service.analyze_unanalyzed()

        assert generator.max_active == 1
        assert result.analyzed == ["q4", "q12"]
        assert result.skipped == ["q7"]
        assert result.failed == {}
        assert (await store.get("analysis/q9"))["result"] == "cached"

    async def test_failure_does_not_stop_batch(
        self, store: DocumentStore, catalog: QuestionCatalog, generator
    ) -> None:
        """Test that one failed question doesn't stop the rest."""
        await seed_text_answers(store)
        generator.fail_for.add("Key events")
        service = AnalysisService(catalog, store, generator)

        result = await service.analyze_unanalyzed()

        assert result.analyzed == ["q9"]
        assert list(result.failed) == ["q4"]
        assert await store.get("analysis/q9") is not None

    async def test_queue_order(self, catalog: QuestionCatalog) -> None:
        """Test that the queue drains in insertion order."""
        order = []

        async def worker(question) -> None:
            order.append(question.id)

        queue = AnalysisQueue([catalog.get("q9"), catalog.get("q4")])
        queue.add(catalog.get("q12"))
        assert queue.pending == ["q9", "q4", "q12"]

        await queue.drain(worker)

        assert order == ["q9", "q4", "q12"]
        assert len(queue) == 0


class TestComprehensiveAnalysis:
    """Tests for the whole-survey report."""

    async def test_report_saved(
        self, store: DocumentStore, catalog: QuestionCatalog, generator
    ) -> None:
        """Test that the report prompt covers every section and is cached."""
        await seed_text_answers(store)
        service = AnalysisService(catalog, store, generator)

        outcome = await service.run_comprehensive_analysis()

        assert outcome.saved is True
        assert (await store.get("comprehensiveAnalysis"))["result"] == generator.text
        _, prompt = generator.calls[0]
        assert "## 1. Facts" in prompt
        assert "## 4. Future" in prompt
        assert "Average: 4.00 / 5" in prompt
        assert "- The outage in May" in prompt

    async def test_save_failure_returns_text(
        self, flaky_store, catalog: QuestionCatalog, generator
    ) -> None:
        """Test that a cache write failure still returns the report."""
        flaky_store.fail_prefixes.add("comprehensiveAnalysis")
        service = AnalysisService(catalog, flaky_store, generator)

        outcome = await service.run_comprehensive_analysis()

        assert outcome.saved is False
        assert outcome.record.result == generator.text
        assert "could not be saved" in outcome.error

    async def test_generation_failure(
        self, store: DocumentStore, catalog: QuestionCatalog, generator
    ) -> None:
        """Test that a model failure raises AnalysisFailedError."""
        generator.fail_for.add("comprehensive report")
        service = AnalysisService(catalog, store, generator)

        with pytest.raises(AnalysisFailedError):
            await service.run_comprehensive_analysis()
        assert await store.get("comprehensiveAnalysis") is None


class TestPrompts:
    """Tests for prompt templates."""

    def test_templates_are_versioned(self) -> None:
        """Test that every template carries a version."""
        for info in PROMPT_TEMPLATES.values():
            assert info["version"]

    def test_question_prompt(self, catalog: QuestionCatalog) -> None:
        """Test the question prompt fields."""
        prompt = build_question_prompt(catalog.get("q4"), ["a {brace}", "b"])

        assert "Title: Key events" in prompt
        assert "Why we ask: Not specified" in prompt
        assert "1. a {brace}\n2. b" in prompt
