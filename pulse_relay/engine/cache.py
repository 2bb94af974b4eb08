"""Bounded per-topic snapshot of the most recently delivered items."""

from __future__ import annotations

from threading import Lock
from typing import Dict, Iterable, Sequence

from .parser import Item


class TopicCache:
    """Newest-first snapshot per topic, capped at ``window`` items.

    Snapshots are immutable tuples replaced wholesale, so readers never observe
    a half-applied update.
    """

    def __init__(self, window: int, topics: Iterable[str] = ()) -> None:
        if window < 1:
            raise ValueError("window must be >= 1")
        self.window = window
        self._snapshots: Dict[str, tuple[Item, ...]] = {name: () for name in topics}
        self._lock = Lock()

    def get(self, topic: str) -> tuple[Item, ...]:
        with self._lock:
            return self._snapshots.get(topic, ())

    def ids(self, topic: str) -> set[str]:
        return {item.id for item in self.get(topic)}

    def apply(self, topic: str, delta: Sequence[Item]) -> tuple[Item, ...]:
        """Prepend ``delta`` (already newest first) and truncate to the window."""

        with self._lock:
            current = self._snapshots.get(topic, ())
            if not delta:
                return current
            updated = (tuple(delta) + current)[: self.window]
            self._snapshots[topic] = updated
            return updated

    def all(self) -> dict[str, tuple[Item, ...]]:
        with self._lock:
            return dict(self._snapshots)


__all__ = ["TopicCache"]
