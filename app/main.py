"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse

from app.api.v1.router import api_router
from app.catalog.questions import get_catalog
from app.core.config import settings
from app.core.logging import setup_logging
from app.services.aggregation import ResultsDashboard
from app.services.analysis import AnalysisService
from app.services.llm_client import LLMConfig, TextGenerationClient
from app.services.participants import ParticipantService
from app.services.responses import ResponseService
from app.services.survey_session import SurveySessionRegistry
from app.store.base import DocumentStore, DocumentStoreError
from app.store.memory import InMemoryDocumentStore

# Setup logging
setup_logging()
logger = logging.getLogger(__name__)

SERVICE_NAME = "Retrospective Survey API"
VERSION = "0.1.0"


async def build_store() -> DocumentStore:
    """Create the configured document store backend."""
    if settings.document_store_backend == "memory":
        logger.info("Using in-memory document store")
        return InMemoryDocumentStore()

    # Imported here so the memory backend never needs a database driver
    from app.db.init_db import create_tables
    from app.db.session import AsyncSessionLocal, engine
    from app.store.sql import SqlDocumentStore

    if settings.init_db_on_startup:
        logger.info("Initializing database...")
        await create_tables(engine)
    return SqlDocumentStore(AsyncSessionLocal)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup and shutdown events."""
    # Startup
    logger.info(f"Starting {SERVICE_NAME} (env={settings.env})")
    state = app.state
    owned: list[str] = []

    # A store or generator already on app.state (e.g. in tests) is used as-is
    if getattr(state, "store", None) is None:
        state.store = await build_store()
        owned.append("store")
    if getattr(state, "text_generator", None) is None:
        state.text_generator = TextGenerationClient(LLMConfig.from_settings(settings))
        owned.append("text_generator")

    state.catalog = get_catalog()
    state.participants = ParticipantService(state.store)
    state.sessions = SurveySessionRegistry(
        state.catalog,
        state.participants,
        ResponseService(state.store),
        auto_advance_delay=settings.auto_advance_delay,
    )
    state.dashboard = ResultsDashboard(
        state.catalog, state.store, page_size=settings.text_page_size
    )
    state.analysis = AnalysisService(state.catalog, state.store, state.text_generator)

    try:
        await state.dashboard.start()
    except DocumentStoreError as e:
        # Retried on the first results request
        logger.warning(f"Results dashboard not loaded at startup: {e}")

    yield

    # Shutdown
    logger.info(f"Shutting down {SERVICE_NAME}")
    await state.sessions.close_all()
    state.dashboard.stop()

    if "text_generator" in owned:
        await state.text_generator.close()
    if "store" in owned:
        await state.store.close()
        if settings.document_store_backend == "sql":
            from app.db.session import engine

            await engine.dispose()
    for name in owned:
        delattr(state, name)


# Create FastAPI application
app = FastAPI(
    title=SERVICE_NAME,
    description="Team retrospective survey with results dashboard and AI analysis",
    version=VERSION,
    docs_url="/docs" if settings.is_dev else None,
    redoc_url="/redoc" if settings.is_dev else None,
    openapi_url="/openapi.json" if settings.is_dev else None,
    lifespan=lifespan,
)

# CORS middleware (configure appropriately for production)
if settings.is_dev:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://localhost:5173"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unhandled exceptions."""
    logger.exception(f"Unhandled exception: {exc}")

    # Don't expose internal errors in production
    if settings.is_prod:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"},
        )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": str(exc)},
    )


# Include API router
app.include_router(api_router, prefix="/api/v1")


# Root endpoint
@app.get("/", include_in_schema=False)
async def root() -> dict:
    """Entry endpoint with service info."""
    return {
        "service": SERVICE_NAME,
        "version": VERSION,
        "survey": get_catalog().info.title,
        "entry": "/api/v1/participants",
        "docs": "/docs" if settings.is_dev else "Disabled in production",
    }


# Must stay last so every real route matches first
@app.get("/{path:path}", include_in_schema=False)
async def unknown_route(path: str) -> RedirectResponse:
    """Send unknown routes back to the entry endpoint."""
    return RedirectResponse(url="/", status_code=status.HTTP_307_TEMPORARY_REDIRECT)
