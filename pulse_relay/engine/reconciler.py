"""Merge a raw upstream batch into a topic's known state."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Sequence

import structlog

from ..config import TopicConfig
from ..errors import ItemValidationError
from .cache import TopicCache
from .cursor import CursorState
from .parser import Item, belongs_to_topic, normalize, parse_raw_item


@dataclass(slots=True)
class ReconcileResult:
    delta: list[Item] = field(default_factory=list)
    newest_id: str | None = None
    accepted: int = 0
    invalid: int = 0
    unmatched: int = 0
    duplicates: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.delta


class Reconciler:
    """Filter, deduplicate and normalize a raw batch without mutating any state.

    The caller commits ``delta`` to the cache and ``newest_id`` to the cursor.
    """

    def __init__(self, cache: TopicCache, logger: structlog.BoundLogger | None = None) -> None:
        self.cache = cache
        self.logger = logger or structlog.get_logger("pulse_relay.reconciler")

    def reconcile(
        self,
        topic: TopicConfig,
        raw_batch: Sequence[Any],
        cursor: CursorState | None = None,
    ) -> ReconcileResult:
        result = ReconcileResult()
        known_ids = self.cache.ids(topic.name)
        newest_valid: str | None = None

        for payload in raw_batch:
            try:
                raw = parse_raw_item(payload)
            except ItemValidationError:
                result.invalid += 1
                continue
            if newest_valid is None:
                newest_valid = raw.id_str
            if not belongs_to_topic(raw, topic):
                result.unmatched += 1
                continue
            result.accepted += 1
            if raw.id_str in known_ids:
                result.duplicates += 1
                continue
            known_ids.add(raw.id_str)
            result.delta.append(normalize(raw, topic))

        first_poll = cursor is None or cursor.is_first_poll
        if newest_valid is not None and (result.accepted or not first_poll):
            result.newest_id = newest_valid

        if result.invalid or result.unmatched:
            self.logger.info(
                "items_dropped",
                topic=topic.name,
                invalid=result.invalid,
                unmatched=result.unmatched,
            )
        return result


__all__ = ["ReconcileResult", "Reconciler"]
