"""Pydantic schemas for AI analysis."""

from typing import Any

from pydantic import BaseModel

from app.services.analysis import AnalysisRecord, BatchResult


class AnalysisRead(BaseModel):
    """A cached analysis, with its markdown parsed into nodes."""

    question_id: str | None = None
    result: str
    analyzed_at: int
    model: str
    nodes: list[dict[str, Any]]


class ComprehensiveAnalysisRead(AnalysisRead):
    """Comprehensive report; ``saved`` is False if caching failed."""

    saved: bool = True
    error: str | None = None


class AnalysisStatusRead(BaseModel):
    """Analysis state of one text question."""

    question_id: str
    title: str
    section: str
    response_count: int
    analyzed: bool
    analyzed_at: int | None = None
    in_progress: bool
    error: str | None = None


class BatchAnalysisRead(BaseModel):
    """Outcome of analysing all unanalysed questions."""

    analyzed: list[str]
    failed: dict[str, str]
    skipped: list[str]

    @classmethod
    def from_result(cls, result: BatchResult) -> "BatchAnalysisRead":
        return cls(
            analyzed=result.analyzed, failed=result.failed, skipped=result.skipped
        )


def analysis_read(
    record: AnalysisRecord, nodes: list[dict[str, Any]], question_id: str | None = None
) -> AnalysisRead:
    return AnalysisRead(
        question_id=question_id,
        result=record.result,
        analyzed_at=record.analyzed_at,
        model=record.model,
        nodes=nodes,
    )
