"""Survey responses stored at ``responses/{participantId}/{questionId}``."""

from typing import Any

from app.store.base import DocumentStore, Unsubscribe, response_path, responses_path
from app.utils.time import now_ms

# responses/{participantId}/{questionId} -> {"value": ..., "answeredAt": ...}
ResponseTree = dict[str, dict[str, dict[str, Any]]]


class ResponseService:
    """Reads and writes individual answers."""

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    async def save(self, participant_id: str, question_id: str, value: str | int) -> None:
        """Write an answer, replacing any previous one for the question."""
        await self.store.set(
            response_path(participant_id, question_id),
            {"value": value, "answeredAt": now_ms()},
        )

    async def get_for_participant(self, participant_id: str) -> dict[str, Any]:
        """Current values for one participant, keyed by question id."""
        saved = await self.store.get(responses_path(participant_id)) or {}
        return {
            question_id: doc.get("value")
            for question_id, doc in saved.items()
            if isinstance(doc, dict)
        }

    async def get_all(self) -> ResponseTree:
        """Every participant's responses."""
        return await self.store.get(responses_path()) or {}

    async def subscribe_all(self, callback) -> Unsubscribe:
        """Watch every response; the callback receives the full tree."""
        return await self.store.subscribe(
            responses_path(), lambda tree: callback(tree or {})
        )


def values_for_question(tree: ResponseTree, question_id: str) -> list[Any]:
    """Collect every participant's raw value for one question.

    Absent, null and empty-string values are skipped.
    """
    values = []
    for participant_responses in tree.values():
        if not isinstance(participant_responses, dict):
            continue
        doc = participant_responses.get(question_id)
        if not isinstance(doc, dict):
            continue
        value = doc.get("value")
        if value is None or value == "":
            continue
        values.append(value)
    return values
