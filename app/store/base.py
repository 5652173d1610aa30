"""Document store interface.

The survey persists everything in a hierarchical key-value document store
addressed by slash-separated paths. Backends implement ``get``, ``set``
and ``update``; change subscriptions are handled here for every backend.

Semantics follow a realtime database:
- ``set`` overwrites the whole subtree at a path; ``None`` or ``{}`` removes it
- ``update`` merges the given child keys, leaving siblings untouched
- ``get`` returns ``None`` for a missing path
- writes are last-writer-wins per path, with no locking or transactions
"""

import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

# Characters a realtime database rejects inside a key
_INVALID_KEY = re.compile(r"[.$#\[\]/]")

USERS = "users"
RESPONSES = "responses"
ANALYSIS = "analysis"
COMPREHENSIVE_ANALYSIS = "comprehensiveAnalysis"

Callback = Callable[[Any], None]
Unsubscribe = Callable[[], None]


class DocumentStoreError(Exception):
    """Base exception for document store failures."""

    pass


def split_path(path: str) -> list[str]:
    """Split and validate a store path.

    Raises:
        ValueError: If the path is empty or has an invalid segment
    """
    segments = path.strip("/").split("/")
    if segments == [""]:
        raise ValueError("Store path must not be empty")
    for segment in segments:
        if not segment or _INVALID_KEY.search(segment):
            raise ValueError(f"Invalid store path: {path!r}")
    return segments


def join_path(*segments: str) -> str:
    """Join segments into a validated store path."""
    path = "/".join(segments)
    split_path(path)
    return path


def user_path(participant_id: str) -> str:
    return join_path(USERS, participant_id)


def responses_path(participant_id: str | None = None) -> str:
    if participant_id is None:
        return RESPONSES
    return join_path(RESPONSES, participant_id)


def response_path(participant_id: str, question_id: str) -> str:
    return join_path(RESPONSES, participant_id, question_id)


def analysis_path(question_id: str | None = None) -> str:
    if question_id is None:
        return ANALYSIS
    return join_path(ANALYSIS, question_id)


def _overlaps(a: str, b: str) -> bool:
    """True if one path is equal to, or an ancestor of, the other."""
    return a == b or a.startswith(b + "/") or b.startswith(a + "/")


@dataclass(eq=False)
class _Subscription:
    path: str
    callback: Callback
    active: bool = True


class DocumentStore(ABC):
    """Abstract base class for document store backends."""

    def __init__(self) -> None:
        self._subscriptions: list[_Subscription] = []

    @abstractmethod
    async def get(self, path: str) -> Any:
        """Read the value at a path.

        Args:
            path: Slash-separated store path

        Returns:
            The stored value (nested dicts for subtrees) or None if missing
        """
        pass

    @abstractmethod
    async def _write(self, changes: dict[str, Any]) -> None:
        """Apply path-to-value replacements as one write.

        Each value replaces the whole subtree at its path; ``None`` removes it.
        """
        pass

    async def set(self, path: str, value: Any) -> None:
        """Overwrite the value at a path.

        Args:
            path: Slash-separated store path
            value: JSON-compatible value; None or an empty dict deletes

        Raises:
            DocumentStoreError: If the backend write fails
        """
        normalized = "/".join(split_path(path))
        await self._write({normalized: value})
        await self._notify(normalized)

    async def update(self, path: str, fields: dict[str, Any]) -> None:
        """Merge child keys into the value at a path.

        Args:
            path: Slash-separated store path
            fields: Child keys to overwrite; other children are kept

        Raises:
            DocumentStoreError: If the backend write fails
        """
        normalized = "/".join(split_path(path))
        await self._write(
            {join_path(normalized, key): value for key, value in fields.items()}
        )
        await self._notify(normalized)

    async def subscribe(self, path: str, callback: Callback) -> Unsubscribe:
        """Watch a path for changes.

        The callback fires immediately with the current value, then after
        every write that touches the path, an ancestor, or a descendant.

        Returns:
            Function that cancels the subscription
        """
        normalized = "/".join(split_path(path))
        subscription = _Subscription(path=normalized, callback=callback)
        self._subscriptions.append(subscription)

        def unsubscribe() -> None:
            subscription.active = False
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

        # A failed first read leaves nothing registered
        try:
            callback(await self.get(normalized))
        except Exception:
            unsubscribe()
            raise

        return unsubscribe

    async def _notify(self, written_path: str) -> None:
        logger.debug(f"Store write at {written_path}")
        for subscription in list(self._subscriptions):
            if subscription.active and _overlaps(subscription.path, written_path):
                subscription.callback(await self.get(subscription.path))

    async def close(self) -> None:
        """Release backend resources and drop subscriptions."""
        self._subscriptions.clear()
