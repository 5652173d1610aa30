"""In-process document store.

For development and testing. Values are deep-copied on the way in and out
so callers never share mutable state with the store.
"""

import copy
from typing import Any

from app.store.base import DocumentStore, split_path


def _is_empty(value: Any) -> bool:
    return value is None or value == {}


def _prune(value: Any) -> Any:
    """Drop empty children so deleted subtrees don't linger as ``{}``."""
    if not isinstance(value, dict):
        return value
    pruned = {}
    for key, child in value.items():
        child = _prune(child)
        if not _is_empty(child):
            pruned[str(key)] = child
    return pruned


class InMemoryDocumentStore(DocumentStore):
    """Document store backed by a nested dict."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        super().__init__()
        self._root: dict[str, Any] = _prune(copy.deepcopy(initial or {}))

    async def get(self, path: str) -> Any:
        node: Any = self._root
        for segment in split_path(path):
            if not isinstance(node, dict) or segment not in node:
                return None
            node = node[segment]
        return copy.deepcopy(node)

    async def _write(self, changes: dict[str, Any]) -> None:
        for path, value in changes.items():
            self._replace(split_path(path), _prune(copy.deepcopy(value)))

    def _replace(self, segments: list[str], value: Any) -> None:
        if _is_empty(value):
            self._remove(segments)
            return

        node = self._root
        for segment in segments[:-1]:
            child = node.get(segment)
            if not isinstance(child, dict):
                child = {}
                node[segment] = child
            node = child
        node[segments[-1]] = value

    def _remove(self, segments: list[str]) -> None:
        trail = [self._root]
        for segment in segments[:-1]:
            child = trail[-1].get(segment)
            if not isinstance(child, dict):
                return
            trail.append(child)

        trail[-1].pop(segments[-1], None)

        # Remove parents left empty by the deletion
        for depth in range(len(trail) - 1, 0, -1):
            if trail[depth]:
                break
            trail[depth - 1].pop(segments[depth - 1], None)

    def snapshot(self) -> dict[str, Any]:
        """Copy of the whole tree, for tests and debugging."""
        return copy.deepcopy(self._root)
