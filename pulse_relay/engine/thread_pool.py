"""Thread pool abstraction giving every topic its own serialized executor."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from threading import Lock
from typing import Dict


class ThreadPoolManager:
    """Manage one single-worker pool per topic.

    A single worker per topic keeps a topic's ticks strictly ordered while
    different topics run side by side.
    """

    def __init__(self) -> None:
        self._executors: Dict[str, ThreadPoolExecutor] = {}
        self._lock = Lock()

    def get(self, topic: str) -> ThreadPoolExecutor:
        with self._lock:
            if topic not in self._executors:
                self._executors[topic] = ThreadPoolExecutor(
                    max_workers=1, thread_name_prefix=f"relay-{topic}"
                )
            return self._executors[topic]

    def shutdown(self, wait: bool = False) -> None:
        with self._lock:
            for executor in self._executors.values():
                executor.shutdown(wait=wait, cancel_futures=not wait)
            self._executors.clear()


__all__ = ["ThreadPoolManager"]
