"""Pytest configuration and fixtures."""

import asyncio
import os
from collections.abc import AsyncGenerator, Generator

# Must be set before the app modules read settings
os.environ.setdefault("ENV", "test")
os.environ.setdefault("DOCUMENT_STORE_BACKEND", "memory")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import StaticPool
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.catalog.questions import QuestionCatalog, get_catalog
from app.db.init_db import create_tables, drop_tables
from app.main import app
from app.services.llm_client import TextGenerationError
from app.services.participants import ParticipantService
from app.services.responses import ResponseService
from app.store.base import DocumentStoreError
from app.store.memory import InMemoryDocumentStore
from app.store.sql import SqlDocumentStore


# Use SQLite for testing (simpler than spinning up postgres)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class FakeTextGenerator:
    """Records prompts and returns canned text.

    Tracks the peak number of overlapping calls so tests can check that
    batch analysis never fans out.
    """

    model = "fake-model"

    def __init__(self, text: str = "## Themes\n- **Communication** came up often") -> None:
        self.text = text
        self.calls: list[tuple[str, str]] = []
        self.fail_for: set[str] = set()
        self.delay = 0.0
        self.active = 0
        self.max_active = 0

    async def generate(self, instructions: str, prompt: str) -> str:
        self.calls.append((instructions, prompt))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            for marker in self.fail_for:
                if marker in prompt:
                    raise TextGenerationError(f"Model unavailable for {marker}")
            return self.text
        finally:
            self.active -= 1


class FlakyStore(InMemoryDocumentStore):
    """In-memory store whose writes fail for chosen path prefixes."""

    def __init__(self) -> None:
        super().__init__()
        self.fail_prefixes: set[str] = set()
        self.fail_reads = False

    async def get(self, path: str):
        if self.fail_reads:
            raise DocumentStoreError(f"Read failed at {path}")
        return await super().get(path)

    async def _write(self, changes: dict) -> None:
        for path in changes:
            if any(path.startswith(prefix) for prefix in self.fail_prefixes):
                raise DocumentStoreError(f"Write failed at {path}")
        await super()._write(changes)


@pytest.fixture
def catalog() -> QuestionCatalog:
    """The packaged question catalog."""
    return get_catalog()


@pytest.fixture
def store() -> InMemoryDocumentStore:
    """Empty in-memory document store."""
    return InMemoryDocumentStore()


@pytest.fixture
def flaky_store() -> FlakyStore:
    """In-memory store with injectable failures."""
    return FlakyStore()


@pytest.fixture
def generator() -> FakeTextGenerator:
    """Fake text generator."""
    return FakeTextGenerator()


@pytest.fixture
def participants(store: InMemoryDocumentStore) -> ParticipantService:
    return ParticipantService(store)


@pytest.fixture
def responses(store: InMemoryDocumentStore) -> ResponseService:
    return ResponseService(store)


@pytest.fixture(scope="function")
async def async_engine():
    """Create async test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
    )

    await create_tables(engine)

    yield engine

    await drop_tables(engine)

    await engine.dispose()


@pytest.fixture(scope="function")
async def sql_store(async_engine) -> AsyncGenerator[SqlDocumentStore, None]:
    """SQL document store on an in-memory SQLite database."""
    session_maker = async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )
    sql_store = SqlDocumentStore(session_maker)
    yield sql_store
    await sql_store.close()


@pytest.fixture(scope="function")
def client(
    store: InMemoryDocumentStore, generator: FakeTextGenerator
) -> Generator[TestClient, None, None]:
    """Create FastAPI test client backed by the in-memory store and fake generator."""
    app.state.store = store
    app.state.text_generator = generator

    with TestClient(app) as test_client:
        yield test_client

    del app.state.store
    del app.state.text_generator
