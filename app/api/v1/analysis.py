"""AI analysis endpoints."""

import logging
from typing import Literal

from fastapi import APIRouter, HTTPException, Query, status
from fastapi.responses import HTMLResponse

from app.api.deps import Analysis
from app.schemas.analysis import (
    AnalysisRead,
    AnalysisStatusRead,
    BatchAnalysisRead,
    ComprehensiveAnalysisRead,
    analysis_read,
)
from app.services.analysis import (
    AnalysisFailedError,
    AnalysisInProgressError,
    AnalysisRecord,
    NoResponsesError,
    NotAnalyzableError,
)
from app.services.markdown import nodes_to_dicts, render_html, render_markdown
from app.store.base import DocumentStoreError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analysis", tags=["analysis"])

OutputFormat = Literal["json", "html"]


def _store_unavailable() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Document store unavailable",
    )


def _not_available(what: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"{what} is not available yet",
    )


def _render(record: AnalysisRecord, question_id: str | None, fmt: OutputFormat):
    nodes = render_markdown(record.result)
    if fmt == "html":
        return HTMLResponse(content=render_html(nodes))
    return analysis_read(record, nodes_to_dicts(nodes), question_id)


@router.get("", response_model=list[AnalysisStatusRead])
async def list_analyses(analysis: Analysis) -> list[AnalysisStatusRead]:
    """List text questions with their answer counts and analysis state."""
    try:
        rows = await analysis.list_status()
    except DocumentStoreError:
        raise _store_unavailable()

    return [
        AnalysisStatusRead(
            question_id=question.id,
            title=question.title,
            section=question.section,
            response_count=count,
            analyzed=record is not None,
            analyzed_at=record.analyzed_at if record else None,
            in_progress=state.in_progress,
            error=state.error,
        )
        for question, count, record, state in rows
    ]


@router.post("/pending", response_model=BatchAnalysisRead)
async def analyze_pending(analysis: Analysis) -> BatchAnalysisRead:
    """Analyse every text question without a cached analysis, one at a time."""
    try:
        result = await analysis.analyze_unanalyzed()
    except DocumentStoreError:
        raise _store_unavailable()
    return BatchAnalysisRead.from_result(result)


@router.get("/comprehensive", response_model=None)
async def get_comprehensive_analysis(
    analysis: Analysis,
    format: OutputFormat = Query("json"),
) -> AnalysisRead | HTMLResponse:
    """Get the cached comprehensive report."""
    try:
        record = await analysis.get_comprehensive()
    except DocumentStoreError:
        raise _store_unavailable()

    if record is None:
        raise _not_available("Comprehensive analysis")
    return _render(record, None, format)


@router.post("/comprehensive", response_model=ComprehensiveAnalysisRead)
async def run_comprehensive_analysis(analysis: Analysis) -> ComprehensiveAnalysisRead:
    """Generate the comprehensive report from every question's results.

    If the report is generated but can't be cached, it is still returned
    with ``saved`` set to false.
    """
    try:
        outcome = await analysis.run_comprehensive_analysis()
    except AnalysisInProgressError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except AnalysisFailedError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    except DocumentStoreError:
        raise _store_unavailable()

    record = outcome.record
    return ComprehensiveAnalysisRead(
        result=record.result,
        analyzed_at=record.analyzed_at,
        model=record.model,
        nodes=nodes_to_dicts(render_markdown(record.result)),
        saved=outcome.saved,
        error=outcome.error,
    )


@router.get("/{question_id}", response_model=None)
async def get_question_analysis(
    question_id: str,
    analysis: Analysis,
    format: OutputFormat = Query("json"),
) -> AnalysisRead | HTMLResponse:
    """Get the cached analysis for one text question."""
    try:
        record = await analysis.get_analysis(question_id)
    except KeyError:
        raise _not_available(f"Question '{question_id}'")
    except NotAnalyzableError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except DocumentStoreError:
        raise _store_unavailable()

    if record is None:
        raise _not_available(f"Analysis for question '{question_id}'")
    return _render(record, question_id, format)


@router.post("/{question_id}", response_model=AnalysisRead)
async def analyze_question(question_id: str, analysis: Analysis) -> AnalysisRead:
    """Run (or re-run) the analysis for one text question."""
    try:
        record = await analysis.analyze_question(question_id)
    except KeyError:
        raise _not_available(f"Question '{question_id}'")
    except NotAnalyzableError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except NoResponsesError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except AnalysisInProgressError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except AnalysisFailedError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    except DocumentStoreError:
        raise _store_unavailable()

    return _render(record, question_id, "json")
