"""Pydantic schemas for the results dashboard."""

from pydantic import BaseModel, Field

from app.services.aggregation import (
    ChoiceAggregate,
    QuestionAggregate,
    ResultsDashboard,
    ScaleAggregate,
    TextAggregate,
)


class QuestionResultRead(BaseModel):
    """Aggregate for one question. Fields not used by its type are left unset."""

    question_id: str
    type: str
    title: str
    count: int
    excluded: int = 0
    # scale
    mean: float | None = None
    histogram: list[int] | None = None
    # choice
    tally: dict[str, int] | None = None
    # text
    page: int | None = None
    total_pages: int | None = None
    items: list[str] | None = None


class SectionResultRead(BaseModel):
    number: int
    name: str
    questions: list[QuestionResultRead]


class ResultsRead(BaseModel):
    """Full dashboard view."""

    title: str
    respondents: int
    completed: int
    scale_labels: list[str]
    sections: list[SectionResultRead]


class PageUpdate(BaseModel):
    """Schema for moving a text question's page cursor."""

    page: int = Field(..., description="Requested 1-based page; clamped to range")


def question_result(
    dashboard: ResultsDashboard, aggregate: QuestionAggregate
) -> QuestionResultRead:
    question = dashboard.catalog.get(aggregate.question_id)
    read = QuestionResultRead(
        question_id=aggregate.question_id,
        type=aggregate.type,
        title=question.title if question else aggregate.question_id,
        count=aggregate.count,
    )
    if isinstance(aggregate, ScaleAggregate):
        read.mean = aggregate.mean
        read.histogram = aggregate.histogram
        read.excluded = aggregate.excluded
    elif isinstance(aggregate, ChoiceAggregate):
        read.tally = aggregate.tally
        read.excluded = aggregate.excluded
    elif isinstance(aggregate, TextAggregate):
        page, items = aggregate.page(dashboard.current_page(aggregate.question_id))
        read.page = page
        read.total_pages = aggregate.total_pages
        read.items = items
    return read


def results_view(dashboard: ResultsDashboard) -> ResultsRead:
    return ResultsRead(
        title=dashboard.catalog.info.title,
        respondents=dashboard.respondent_count,
        completed=dashboard.completed_count,
        scale_labels=list(dashboard.catalog.scale_labels),
        sections=[
            SectionResultRead(
                number=number,
                name=name,
                questions=[question_result(dashboard, a) for a in aggregates],
            )
            for number, name, aggregates in dashboard.sections()
        ],
    )
