"""Health check endpoints."""

import logging

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel

from app.api.deps import Store
from app.store.base import COMPREHENSIVE_ANALYSIS, DocumentStoreError

logger = logging.getLogger(__name__)

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response."""

    status: str


@router.get(
    "",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Health check",
    description="Returns service health status",
)
async def health_check() -> HealthResponse:
    """Check if the service is healthy.

    Returns:
        Health status response
    """
    return HealthResponse(status="ok")


@router.get(
    "/ready",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Readiness check",
    description="Returns readiness once the document store answers reads",
)
async def readiness_check(store: Store) -> HealthResponse:
    """Check if the service is ready to accept requests.

    Raises:
        HTTPException: 503 if the document store can't be read
    """
    try:
        await store.get(COMPREHENSIVE_ANALYSIS)
    except DocumentStoreError as e:
        logger.warning(f"Readiness check failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Document store unavailable",
        )
    return HealthResponse(status="ok")
