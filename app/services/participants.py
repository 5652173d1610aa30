"""Participant records stored at ``users/{participantId}``."""

import logging
import re
from dataclasses import dataclass
from typing import Any

from app.store.base import DocumentStore, user_path
from app.utils.time import now_ms

logger = logging.getLogger(__name__)

# Letters and digits only, at least 4 characters
PARTICIPANT_ID_PATTERN = re.compile(r"^[A-Za-z0-9]{4,}$")
_WHITESPACE = re.compile(r"\s")


class InvalidParticipantIdError(ValueError):
    """Raised when a participant id fails validation."""

    pass


@dataclass
class Participant:
    """Participant progress record.

    ``current_question`` is the 1-based progress marker: the question the
    participant should see on resume.
    """
    id: str
    current_question: int = 1
    completed: bool = False
    started_at: int | None = None
    last_updated_at: int | None = None
    completed_at: int | None = None

    @classmethod
    def from_document(cls, participant_id: str, doc: dict[str, Any]) -> "Participant":
        current = doc.get("currentQuestion") or 1
        return cls(
            id=participant_id,
            current_question=int(current),
            completed=bool(doc.get("completed", False)),
            started_at=doc.get("startedAt"),
            last_updated_at=doc.get("lastUpdatedAt"),
            completed_at=doc.get("completedAt"),
        )

    def to_document(self) -> dict[str, Any]:
        doc: dict[str, Any] = {
            "currentQuestion": self.current_question,
            "completed": self.completed,
            "startedAt": self.started_at,
            "lastUpdatedAt": self.last_updated_at,
        }
        if self.completed_at is not None:
            doc["completedAt"] = self.completed_at
        return doc


def normalize_participant_id(raw: str) -> str:
    """Strip whitespace from an entered id and validate it.

    Raises:
        InvalidParticipantIdError: If the id is empty or not 4+ letters/digits
    """
    participant_id = _WHITESPACE.sub("", raw or "")
    if not participant_id:
        raise InvalidParticipantIdError("Participant id is required")
    if not PARTICIPANT_ID_PATTERN.match(participant_id):
        raise InvalidParticipantIdError(
            "Participant id must be at least 4 letters or digits"
        )
    return participant_id


class ParticipantService:
    """Reads and writes participant progress records."""

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    async def get(self, participant_id: str) -> Participant | None:
        doc = await self.store.get(user_path(participant_id))
        if not doc:
            return None
        return Participant.from_document(participant_id, doc)

    async def get_or_create(self, participant_id: str) -> tuple[Participant, bool]:
        """Return the existing record, or create one starting at question 1.

        Re-entering an existing id never resets progress.

        Returns:
            Tuple of (participant, created)
        """
        existing = await self.get(participant_id)
        if existing:
            return existing, False

        now = now_ms()
        participant = Participant(
            id=participant_id,
            current_question=1,
            completed=False,
            started_at=now,
            last_updated_at=now,
        )
        await self.store.set(user_path(participant_id), participant.to_document())
        logger.info(
            "Participant created", extra={"participant_id": participant_id}
        )
        return participant, True

    async def update_progress(self, participant_id: str, question_number: int) -> None:
        """Persist the 1-based progress marker."""
        await self.store.update(
            user_path(participant_id),
            {"currentQuestion": question_number, "lastUpdatedAt": now_ms()},
        )

    async def complete(self, participant_id: str) -> None:
        """Mark the participant's survey as submitted."""
        now = now_ms()
        await self.store.update(
            user_path(participant_id),
            {"completed": True, "completedAt": now, "lastUpdatedAt": now},
        )
