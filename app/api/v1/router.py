"""API v1 router aggregating all endpoints."""

from fastapi import APIRouter

from app.api.v1 import analysis, health, participants, results, survey

api_router = APIRouter()

# Health check
api_router.include_router(
    health.router,
    prefix="/health",
    tags=["health"],
)

# Participant entry
api_router.include_router(participants.router)

# Survey flow
api_router.include_router(survey.router)

# Results dashboard
api_router.include_router(results.router)

# AI analysis
api_router.include_router(analysis.router)
