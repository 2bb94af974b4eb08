"""Per-topic cursor state used to request only new results."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict


def id_order_key(item_id: str) -> tuple[int, str]:
    """Ordering key for upstream identifiers.

    Identifiers are opaque strings; upstream hands out fixed-alphabet ids whose
    length only ever grows, so (length, text) orders them without parsing.
    """

    return (len(item_id), item_id)


@dataclass(slots=True)
class CursorState:
    last_seen_id: str | None = None
    is_first_poll: bool = True


class CursorStore:
    """In-memory cursor per topic.

    Not thread-safe on its own: each topic's entry is only touched by that
    topic's tick, and ticks for one topic never overlap.
    """

    def __init__(self) -> None:
        self._states: Dict[str, CursorState] = {}

    def get(self, topic: str) -> CursorState:
        state = self._states.get(topic)
        if state is None:
            state = CursorState()
            self._states[topic] = state
        return state

    def advance(self, topic: str, newest_id: str) -> bool:
        """Move the cursor forward to ``newest_id``.

        Returns ``False`` and leaves the cursor untouched when ``newest_id`` is not
        strictly newer than the current position.
        """

        state = self.get(topic)
        if state.last_seen_id is not None and id_order_key(newest_id) <= id_order_key(
            state.last_seen_id
        ):
            return False
        state.last_seen_id = newest_id
        state.is_first_poll = False
        return True

    def snapshot(self) -> dict[str, CursorState]:
        return {
            name: CursorState(state.last_seen_id, state.is_first_poll)
            for name, state in self._states.items()
        }


__all__ = ["CursorState", "CursorStore", "id_order_key"]
