"""Aggregation of survey responses into per-question statistics.

Aggregates by question type:
- scale: 5-bucket histogram over values 1-5 and their mean (2 decimals)
- choice: tally over exactly yes/no/unknown (the catalog allows no others)
- text: ordered list of non-empty answers, paged 5 at a time

Values that don't coerce into a scale bucket, and choice values outside the
option set, are left out of the statistics and reported as ``excluded``.
"""

import logging
import math
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Union

from app.catalog.answers import SCALE_MAX, SCALE_MIN, coerce_int
from app.catalog.questions import Question, QuestionCatalog, QuestionType
from app.services.responses import ResponseService, ResponseTree, values_for_question
from app.store.base import USERS, DocumentStore, DocumentStoreError, Unsubscribe

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 5


@dataclass
class ScaleAggregate:
    """Scale statistics. ``histogram[i]`` counts answers of value ``i + 1``."""
    question_id: str
    count: int
    mean: float
    histogram: list[int]
    excluded: int = 0

    type: str = field(default=QuestionType.SCALE.value, init=False)


@dataclass
class ChoiceAggregate:
    """Choice statistics, one count per option in catalog order."""
    question_id: str
    count: int
    tally: dict[str, int]
    excluded: int = 0

    type: str = field(default=QuestionType.CHOICE.value, init=False)


@dataclass
class TextAggregate:
    """Free-text answers in store order."""
    question_id: str
    items: list[str]
    page_size: int = DEFAULT_PAGE_SIZE

    type: str = field(default=QuestionType.TEXT.value, init=False)

    @property
    def count(self) -> int:
        return len(self.items)

    @property
    def total_pages(self) -> int:
        return total_pages(len(self.items), self.page_size)

    def page(self, number: int) -> tuple[int, list[str]]:
        return text_page(self.items, number, self.page_size)


QuestionAggregate = Union[ScaleAggregate, ChoiceAggregate, TextAggregate]


def total_pages(count: int, page_size: int = DEFAULT_PAGE_SIZE) -> int:
    return math.ceil(count / page_size)


def clamp_page(page: int, count: int, page_size: int = DEFAULT_PAGE_SIZE) -> int:
    """Clamp a 1-based page number into ``[1, max(1, total_pages)]``."""
    last = max(1, total_pages(count, page_size))
    return min(max(page, 1), last)


def text_page(
    items: list[str], page: int, page_size: int = DEFAULT_PAGE_SIZE
) -> tuple[int, list[str]]:
    """Slice one page of text answers.

    Returns:
        Tuple of (clamped page number, items on that page)
    """
    current = clamp_page(page, len(items), page_size)
    start = (current - 1) * page_size
    return current, items[start:start + page_size]


def _round_half_up(total: int, count: int) -> float:
    """Mean to 2 decimals with ties rounded up, not to even."""
    mean = Decimal(total) / Decimal(count)
    return float(mean.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def aggregate_scale(question: Question, values: list[Any]) -> ScaleAggregate:
    histogram = [0] * (SCALE_MAX - SCALE_MIN + 1)
    total = 0
    excluded = 0

    for value in values:
        number = coerce_int(value)
        if number is None or not SCALE_MIN <= number <= SCALE_MAX:
            excluded += 1
            continue
        histogram[number - SCALE_MIN] += 1
        total += number

    count = sum(histogram)
    mean = _round_half_up(total, count) if count else 0.0
    return ScaleAggregate(
        question_id=question.id,
        count=count,
        mean=mean,
        histogram=histogram,
        excluded=excluded,
    )


def aggregate_choice(question: Question, values: list[Any]) -> ChoiceAggregate:
    tally = {option: 0 for option in question.options}
    excluded = 0

    for value in values:
        if isinstance(value, str) and value in tally:
            tally[value] += 1
        else:
            excluded += 1

    return ChoiceAggregate(
        question_id=question.id,
        count=sum(tally.values()),
        tally=tally,
        excluded=excluded,
    )


def aggregate_text(
    question: Question, values: list[Any], page_size: int = DEFAULT_PAGE_SIZE
) -> TextAggregate:
    items = [value for value in values if isinstance(value, str) and value.strip()]
    return TextAggregate(question_id=question.id, items=items, page_size=page_size)


def aggregate_question(
    question: Question, values: list[Any], page_size: int = DEFAULT_PAGE_SIZE
) -> QuestionAggregate:
    """Compute the aggregate for one question from its raw values."""
    if question.type == QuestionType.SCALE:
        return aggregate_scale(question, values)
    if question.type == QuestionType.CHOICE:
        return aggregate_choice(question, values)
    return aggregate_text(question, values, page_size)


def aggregate_survey(
    questions: list[Question] | tuple[Question, ...],
    all_responses: ResponseTree,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> dict[str, QuestionAggregate]:
    """Aggregate every question, keyed by question id in catalog order."""
    return {
        question.id: aggregate_question(
            question, values_for_question(all_responses, question.id), page_size
        )
        for question in questions
    }


def count_respondents(all_responses: ResponseTree) -> int:
    """Participants with at least one stored answer."""
    return sum(
        1 for answers in all_responses.values() if isinstance(answers, dict) and answers
    )


class ResultsDashboard:
    """Live aggregate view over every participant's responses.

    Subscribes to the response tree and the participant records, and
    recomputes all aggregates on every change. Page cursors for text
    questions are held here and survive recomputation.
    """

    def __init__(
        self,
        catalog: QuestionCatalog,
        store: DocumentStore,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        self.catalog = catalog
        self.store = store
        self.responses = ResponseService(store)
        self.page_size = page_size

        self.aggregates: dict[str, QuestionAggregate] = aggregate_survey(
            catalog.questions, {}, page_size
        )
        self.respondent_count = 0
        self.completed_count = 0
        self.loaded = False
        self._pages: dict[str, int] = {}
        self._unsubscribers: list[Unsubscribe] = []

    async def start(self) -> None:
        """Subscribe to the store; the initial values arrive immediately.

        Raises:
            DocumentStoreError: If the initial read fails
        """
        if self._unsubscribers:
            return
        try:
            self._unsubscribers.append(
                await self.responses.subscribe_all(self._on_responses)
            )
            self._unsubscribers.append(await self.store.subscribe(USERS, self._on_users))
        except DocumentStoreError:
            self.stop()
            raise
        self.loaded = True
        logger.info("Results dashboard subscribed")

    def stop(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        self.loaded = False

    def _on_responses(self, tree: ResponseTree) -> None:
        self.aggregates = aggregate_survey(self.catalog.questions, tree, self.page_size)
        self.respondent_count = count_respondents(tree)
        # Keep cursors valid when the answer count changes
        for question_id, page in self._pages.items():
            aggregate = self.aggregates.get(question_id)
            if isinstance(aggregate, TextAggregate):
                self._pages[question_id] = clamp_page(page, aggregate.count, self.page_size)

    def _on_users(self, users: dict[str, Any] | None) -> None:
        self.completed_count = sum(
            1
            for doc in (users or {}).values()
            if isinstance(doc, dict) and doc.get("completed")
        )

    def text_aggregate(self, question_id: str) -> TextAggregate:
        """Look up a text question's aggregate.

        Raises:
            KeyError: If there is no such question
            ValueError: If the question isn't a text question
        """
        aggregate = self.aggregates[question_id]
        if not isinstance(aggregate, TextAggregate):
            raise ValueError(f"Question {question_id} is not a text question")
        return aggregate

    def current_page(self, question_id: str) -> int:
        return self._pages.get(question_id, 1)

    def set_page(self, question_id: str, page: int) -> int:
        """Move a text question's page cursor.

        Returns:
            The clamped page number
        """
        aggregate = self.text_aggregate(question_id)
        clamped = clamp_page(page, aggregate.count, self.page_size)
        self._pages[question_id] = clamped
        return clamped

    def page_items(self, question_id: str) -> list[str]:
        aggregate = self.text_aggregate(question_id)
        _, items = aggregate.page(self.current_page(question_id))
        return items

    def sections(self) -> list[tuple[int, str, list[QuestionAggregate]]]:
        """Aggregates grouped by catalog section."""
        return [
            (number, name, [self.aggregates[q.id] for q in questions])
            for number, name, questions in self.catalog.sections()
        ]
