"""FastAPI dependency injection utilities.

Services are built once in the application lifespan and held on
``app.state``; these dependencies hand them to the routers.
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from app.catalog.questions import QuestionCatalog
from app.services.aggregation import ResultsDashboard
from app.services.analysis import AnalysisService
from app.services.participants import (
    InvalidParticipantIdError,
    ParticipantService,
    normalize_participant_id,
)
from app.services.survey_session import SurveySessionRegistry
from app.store.base import DocumentStore


def get_store(request: Request) -> DocumentStore:
    return request.app.state.store


def get_catalog(request: Request) -> QuestionCatalog:
    return request.app.state.catalog


def get_participant_service(request: Request) -> ParticipantService:
    return request.app.state.participants


def get_session_registry(request: Request) -> SurveySessionRegistry:
    return request.app.state.sessions


def get_dashboard(request: Request) -> ResultsDashboard:
    return request.app.state.dashboard


def get_analysis_service(request: Request) -> AnalysisService:
    return request.app.state.analysis


def get_participant_id(participant_id: str) -> str:
    """Validate the participant id path parameter.

    Raises:
        HTTPException: 422 if the id is malformed
    """
    try:
        return normalize_participant_id(participant_id)
    except InvalidParticipantIdError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        )


# Type aliases for cleaner dependency injection
Store = Annotated[DocumentStore, Depends(get_store)]
Catalog = Annotated[QuestionCatalog, Depends(get_catalog)]
Participants = Annotated[ParticipantService, Depends(get_participant_service)]
Sessions = Annotated[SurveySessionRegistry, Depends(get_session_registry)]
Dashboard = Annotated[ResultsDashboard, Depends(get_dashboard)]
Analysis = Annotated[AnalysisService, Depends(get_analysis_service)]
ParticipantId = Annotated[str, Depends(get_participant_id)]
