"""Results dashboard endpoints."""

from fastapi import APIRouter, HTTPException, status

from app.api.deps import Dashboard
from app.schemas.results import (
    PageUpdate,
    QuestionResultRead,
    ResultsRead,
    question_result,
    results_view,
)
from app.store.base import DocumentStoreError

router = APIRouter(prefix="/results", tags=["results"])


@router.get("", response_model=ResultsRead)
async def get_results(dashboard: Dashboard) -> ResultsRead:
    """Get aggregates for every question, grouped by section."""
    if not dashboard.loaded:
        try:
            await dashboard.start()
        except DocumentStoreError:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Results could not be loaded",
            )
    return results_view(dashboard)


@router.put("/{question_id}/page", response_model=QuestionResultRead)
async def set_text_page(
    question_id: str,
    body: PageUpdate,
    dashboard: Dashboard,
) -> QuestionResultRead:
    """Move a text question's page cursor. Out-of-range pages are clamped."""
    try:
        dashboard.set_page(question_id, body.page)
    except KeyError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Question '{question_id}' not found",
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        )
    return question_result(dashboard, dashboard.aggregates[question_id])
