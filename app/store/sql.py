"""Relational document store backed by SQLAlchemy.

Stores the document tree as flattened leaf rows (see ``Document``), which
gives field-level last-writer-wins: two participants writing different
paths never overwrite each other.
"""

import logging
from typing import Any

from sqlalchemy import delete, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.document import Document
from app.store.base import DocumentStore, DocumentStoreError, split_path

logger = logging.getLogger(__name__)


def flatten(path: str, value: Any) -> list[tuple[str, Any]]:
    """Flatten a value into (leaf path, leaf value) pairs.

    Dicts are expanded; empty dicts and None contribute nothing.
    """
    if value is None:
        return []
    if isinstance(value, dict):
        leaves: list[tuple[str, Any]] = []
        for key, child in value.items():
            split_path(str(key))
            leaves.extend(flatten(f"{path}/{key}", child))
        return leaves
    return [(path, value)]


def unflatten(base_path: str, rows: list[tuple[str, Any]]) -> Any:
    """Rebuild the subtree at ``base_path`` from leaf rows."""
    tree: dict[str, Any] = {}
    for path, value in rows:
        if path == base_path:
            return value
        node = tree
        segments = path[len(base_path) + 1:].split("/")
        for segment in segments[:-1]:
            node = node.setdefault(segment, {})
        node[segments[-1]] = value
    return tree or None


def _ancestors(path: str) -> list[str]:
    segments = path.split("/")
    return ["/".join(segments[:i]) for i in range(1, len(segments))]


class SqlDocumentStore(DocumentStore):
    """Document store persisted in a relational database."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        super().__init__()
        self.session_factory = session_factory

    async def get(self, path: str) -> Any:
        normalized = "/".join(split_path(path))
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(Document.path, Document.value)
                    .where(
                        or_(
                            Document.path == normalized,
                            Document.path.startswith(normalized + "/", autoescape=True),
                        )
                    )
                    .order_by(Document.path)
                )
                rows = [(row.path, row.value) for row in result.all()]
        except SQLAlchemyError as e:
            logger.error(f"Store read failed at {normalized}: {e}")
            raise DocumentStoreError(f"Failed to read {normalized}: {e}") from e

        if not rows:
            return None
        return unflatten(normalized, rows)

    async def _write(self, changes: dict[str, Any]) -> None:
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    for path, value in changes.items():
                        await self._replace(session, path, value)
        except SQLAlchemyError as e:
            paths = ", ".join(changes)
            logger.error(f"Store write failed at {paths}: {e}")
            raise DocumentStoreError(f"Failed to write {paths}: {e}") from e

    async def _replace(self, session: AsyncSession, path: str, value: Any) -> None:
        # Clear the subtree and any scalar that used to sit at an ancestor
        await session.execute(
            delete(Document).where(
                or_(
                    Document.path == path,
                    Document.path.startswith(path + "/", autoescape=True),
                    Document.path.in_(_ancestors(path)),
                )
            )
            .execution_options(synchronize_session=False)
        )
        session.add_all(
            Document(path=leaf_path, value=leaf_value)
            for leaf_path, leaf_value in flatten(path, value)
        )
        await session.flush()
