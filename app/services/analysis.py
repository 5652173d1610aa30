"""AI analysis of free-text responses.

Analyses are derived, cached records stored at ``analysis/{questionId}`` and
``comprehensiveAnalysis``. They can always be regenerated from the responses,
and a missing record just means nobody has run the analysis yet.

Batch analysis goes through an ``AnalysisQueue`` drained one question at a
time, so there is never more than one generation request in flight per batch.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from app.catalog.questions import Question, QuestionCatalog, QuestionType
from app.services.aggregation import aggregate_survey, count_respondents
from app.services.llm_client import TextGenerationError, TextGenerator
from app.services.prompts import (
    SYSTEM_PROMPT,
    build_comprehensive_prompt,
    build_question_prompt,
)
from app.services.responses import ResponseService, values_for_question
from app.store.base import (
    COMPREHENSIVE_ANALYSIS,
    DocumentStore,
    DocumentStoreError,
    analysis_path,
)
from app.utils.time import now_ms

logger = logging.getLogger(__name__)


class AnalysisError(Exception):
    """Base exception for analysis failures."""

    pass


class NotAnalyzableError(AnalysisError):
    """Only text questions can be analysed."""

    pass


class NoResponsesError(AnalysisError):
    """There are no text answers to analyse yet."""

    pass


class AnalysisInProgressError(AnalysisError):
    """An analysis for the same target is already running."""

    pass


class AnalysisFailedError(AnalysisError):
    """Generation or saving failed; the caller may retry."""

    pass


@dataclass
class AnalysisRecord:
    """Cached analysis text."""
    result: str
    analyzed_at: int
    model: str

    @classmethod
    def from_document(cls, doc: Any) -> Optional["AnalysisRecord"]:
        if not isinstance(doc, dict):
            return None
        # Older records kept the text under "analysis"
        result = doc.get("result") or doc.get("analysis") or ""
        return cls(
            result=result,
            analyzed_at=int(doc.get("analyzedAt") or 0),
            model=doc.get("model") or "",
        )

    def to_document(self) -> dict[str, Any]:
        return {"result": self.result, "analyzedAt": self.analyzed_at, "model": self.model}


@dataclass
class AnalysisStatus:
    """In-process state of one question's analysis."""
    question_id: str
    in_progress: bool = False
    error: Optional[str] = None


@dataclass
class ComprehensiveResult:
    """Outcome of a comprehensive run.

    ``saved`` is False when the text was generated but caching it failed;
    the text is still returned so it isn't lost.
    """
    record: AnalysisRecord
    saved: bool = True
    error: Optional[str] = None


@dataclass
class BatchResult:
    """Outcome of analysing every unanalysed question."""
    analyzed: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    skipped: list[str] = field(default_factory=list)


class AnalysisQueue:
    """Ordered questions awaiting analysis, processed strictly one at a time."""

    def __init__(self, questions: Optional[list[Question]] = None) -> None:
        self._pending: deque[Question] = deque(questions or [])

    def __len__(self) -> int:
        return len(self._pending)

    def add(self, question: Question) -> None:
        self._pending.append(question)

    @property
    def pending(self) -> list[str]:
        return [q.id for q in self._pending]

    async def drain(
        self, worker: Callable[[Question], Awaitable[Any]]
    ) -> BatchResult:
        """Run the worker on each question in order, awaiting each one.

        A failure is recorded against its question and the queue moves on.
        """
        result = BatchResult()
        while self._pending:
            question = self._pending.popleft()
            try:
                await worker(question)
            except NoResponsesError:
                result.skipped.append(question.id)
            except (AnalysisError, DocumentStoreError) as e:
                result.failed[question.id] = str(e)
            else:
                result.analyzed.append(question.id)
        return result


class AnalysisService:
    """Runs and caches per-question and comprehensive analyses."""

    def __init__(
        self,
        catalog: QuestionCatalog,
        store: DocumentStore,
        generator: TextGenerator,
    ) -> None:
        self.catalog = catalog
        self.store = store
        self.generator = generator
        self.responses = ResponseService(store)
        self._status: dict[str, AnalysisStatus] = {
            q.id: AnalysisStatus(question_id=q.id)
            for q in catalog.of_type(QuestionType.TEXT)
        }
        self._comprehensive_running = False

    def _text_question(self, question_id: str) -> Question:
        question = self.catalog.get(question_id)
        if question is None:
            raise KeyError(question_id)
        if question.type != QuestionType.TEXT:
            raise NotAnalyzableError(f"Question {question_id} is not a text question")
        return question

    def status(self, question_id: str) -> AnalysisStatus:
        self._text_question(question_id)
        return self._status[question_id]

    async def collect_answers(self, question: Question) -> list[str]:
        """Every participant's trimmed, non-empty answer to a text question."""
        tree = await self.responses.get_all()
        return [
            value.strip()
            for value in values_for_question(tree, question.id)
            if isinstance(value, str) and value.strip()
        ]

    async def get_analysis(self, question_id: str) -> Optional[AnalysisRecord]:
        """Cached analysis for a question, or None if not available yet."""
        self._text_question(question_id)
        return AnalysisRecord.from_document(
            await self.store.get(analysis_path(question_id))
        )

    async def get_comprehensive(self) -> Optional[AnalysisRecord]:
        return AnalysisRecord.from_document(await self.store.get(COMPREHENSIVE_ANALYSIS))

    async def list_status(
        self,
    ) -> list[tuple[Question, int, Optional[AnalysisRecord], AnalysisStatus]]:
        """Each text question with its answer count, cached record and status."""
        tree = await self.responses.get_all()
        cached = await self.store.get(analysis_path()) or {}
        rows = []
        for question in self.catalog.of_type(QuestionType.TEXT):
            answers = [
                v for v in values_for_question(tree, question.id)
                if isinstance(v, str) and v.strip()
            ]
            rows.append((
                question,
                len(answers),
                AnalysisRecord.from_document(cached.get(question.id)),
                self._status[question.id],
            ))
        return rows

    async def analyze_question(self, question_id: str) -> AnalysisRecord:
        """Analyse one text question and overwrite its cached record.

        Raises:
            KeyError: If the question doesn't exist
            NotAnalyzableError: If it isn't a text question
            AnalysisInProgressError: If it is already being analysed
            NoResponsesError: If it has no answers yet
            AnalysisFailedError: If generation or saving fails
        """
        question = self._text_question(question_id)
        status = self._status[question_id]
        if status.in_progress:
            raise AnalysisInProgressError(f"Analysis of {question_id} is already running")

        status.in_progress = True
        status.error = None
        try:
            answers = await self.collect_answers(question)
            if not answers:
                raise NoResponsesError(f"Question {question_id} has no answers yet")

            logger.info(
                f"Analysing {len(answers)} answers",
                extra={"question_id": question_id},
            )
            prompt = build_question_prompt(question, answers)
            try:
                text = await self.generator.generate(SYSTEM_PROMPT, prompt)
            except TextGenerationError as e:
                raise AnalysisFailedError(f"AI analysis failed: {e}") from e

            record = AnalysisRecord(
                result=text, analyzed_at=now_ms(), model=self.generator.model
            )
            try:
                await self.store.set(analysis_path(question_id), record.to_document())
            except DocumentStoreError as e:
                raise AnalysisFailedError(f"Failed to save analysis: {e}") from e
        except AnalysisFailedError as e:
            status.error = str(e)
            logger.error(str(e), extra={"question_id": question_id})
            raise
        finally:
            status.in_progress = False

        logger.info("Analysis saved", extra={"question_id": question_id})
        return record

    async def analyze_unanalyzed(self) -> BatchResult:
        """Analyse every text question that has no cached analysis, in order."""
        cached = await self.store.get(analysis_path()) or {}
        queue = AnalysisQueue([
            q for q in self.catalog.of_type(QuestionType.TEXT) if q.id not in cached
        ])
        logger.info(f"Batch analysis queued {len(queue)} questions")
        return await queue.drain(lambda q: self.analyze_question(q.id))

    async def run_comprehensive_analysis(self) -> ComprehensiveResult:
        """Generate the whole-survey report and cache it.

        Raises:
            AnalysisInProgressError: If a comprehensive run is already going
            AnalysisFailedError: If generation fails
        """
        if self._comprehensive_running:
            raise AnalysisInProgressError("Comprehensive analysis is already running")

        self._comprehensive_running = True
        try:
            tree = await self.responses.get_all()
            aggregates = aggregate_survey(self.catalog.questions, tree)
            prompt = build_comprehensive_prompt(
                self.catalog, aggregates, count_respondents(tree)
            )
            try:
                text = await self.generator.generate(SYSTEM_PROMPT, prompt)
            except TextGenerationError as e:
                logger.error(f"Comprehensive analysis failed: {e}")
                raise AnalysisFailedError(f"AI analysis failed: {e}") from e

            record = AnalysisRecord(
                result=text, analyzed_at=now_ms(), model=self.generator.model
            )
            try:
                await self.store.set(COMPREHENSIVE_ANALYSIS, record.to_document())
            except DocumentStoreError as e:
                logger.error(f"Failed to save comprehensive analysis: {e}")
                return ComprehensiveResult(
                    record=record,
                    saved=False,
                    error=f"Analysis was generated but could not be saved: {e}",
                )
        finally:
            self._comprehensive_running = False

        logger.info("Comprehensive analysis saved")
        return ComprehensiveResult(record=record)
