"""Document store backends."""

from app.store.base import (
    ANALYSIS,
    COMPREHENSIVE_ANALYSIS,
    RESPONSES,
    USERS,
    DocumentStore,
    DocumentStoreError,
    analysis_path,
    response_path,
    responses_path,
    user_path,
)
from app.store.memory import InMemoryDocumentStore

__all__ = [
    "ANALYSIS",
    "COMPREHENSIVE_ANALYSIS",
    "RESPONSES",
    "USERS",
    "DocumentStore",
    "DocumentStoreError",
    "InMemoryDocumentStore",
    "analysis_path",
    "response_path",
    "responses_path",
    "user_path",
]
