"""Derive the next upstream request from a topic and its cursor."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable

from ..config import TopicConfig
from .cursor import CursorState

RETWEET_FILTER = "-filter:retweets"


@dataclass(slots=True, frozen=True)
class QueryRequest:
    """Input for the search client."""

    topic: str
    query: str
    search_type: str = "Latest"

    def params(self) -> dict[str, str]:
        return {"query": self.query, "type": self.search_type}


class QueryBuilder:
    """Scope each topic query to what has not been seen yet."""

    def __init__(
        self,
        first_poll_window_s: int = 600,
        fallback_window_s: int = 30,
        search_type: str = "Latest",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.first_poll_window_s = first_poll_window_s
        self.fallback_window_s = fallback_window_s
        self.search_type = search_type
        self._clock = clock

    def build(self, topic: TopicConfig, cursor: CursorState) -> QueryRequest:
        base = self.base_query(topic.query)
        now = int(self._clock())
        if cursor.is_first_poll:
            scoped = f"{base} since_time:{now - self.first_poll_window_s}"
        elif cursor.last_seen_id:
            scoped = f"{base} since_id:{cursor.last_seen_id}"
        else:
            # cursor lost its id after the first poll; only look back a little
            scoped = f"{base} since_time:{now - self.fallback_window_s}"
        return QueryRequest(topic=topic.name, query=scoped, search_type=self.search_type)

    @staticmethod
    def base_query(query: str) -> str:
        if RETWEET_FILTER in query:
            return query
        return f"{query} {RETWEET_FILTER}"


__all__ = ["QueryBuilder", "QueryRequest", "RETWEET_FILTER"]
