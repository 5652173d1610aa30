"""Document rows for the SQL-backed document store."""

from typing import Any

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, TimestampMixin


class Document(Base, TimestampMixin):
    """One leaf value of the document tree.

    Nested objects are flattened on write: ``users/abcd`` set to
    ``{"completed": false}`` is stored as the row ``users/abcd/completed``.
    Only scalars and lists are stored, so each path holds at most one row
    and no row's path is a prefix of another's.
    """

    __tablename__ = "documents"

    path: Mapped[str] = mapped_column(
        String(512),
        nullable=False,
        unique=True,
        index=True,
    )
    value: Mapped[Any] = mapped_column(
        JSON,
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Document {self.path}>"
