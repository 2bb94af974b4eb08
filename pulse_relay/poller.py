"""Poll loop wiring query building, fetching, reconciliation, caching and fan-out."""

from __future__ import annotations

import time
from concurrent.futures import Future, wait
from dataclasses import asdict, dataclass, field
from threading import Event, Lock
from typing import Iterable, Protocol

import structlog

from .broadcast import Broadcaster
from .config import RelayConfig, TopicConfig
from .engine import (
    CursorState,
    CursorStore,
    Item,
    QueryBuilder,
    QueryRequest,
    Reconciler,
    SearchPage,
    ThreadPoolManager,
    TopicCache,
)
from .errors import TransportError
from .logging_conf import configure_logging, redact, topic_logger
from .scheduler import APSchedulerAdapter


class UpstreamClient(Protocol):
    def search(self, request: QueryRequest) -> SearchPage: ...


@dataclass(slots=True)
class TopicStats:
    """Observable per-topic status, written only by that topic's tick.

    Skipped rounds are counted by the loop itself, see ``PollLoop.status``.
    """

    poll_count: int = 0
    last_poll_ts: float = 0.0
    last_status: str = "idle"
    last_error: str = ""
    total_delivered: int = 0
    total_invalid: int = 0
    consecutive_failures: int = 0

    def record_success(self, status: str, new_items: int, invalid: int) -> None:
        self.poll_count += 1
        self.last_poll_ts = time.time()
        self.last_status = status
        self.last_error = ""
        self.total_delivered += new_items
        self.total_invalid += invalid
        self.consecutive_failures = 0

    def record_failure(self, error: str) -> None:
        self.poll_count += 1
        self.last_poll_ts = time.time()
        self.last_status = "failed"
        self.last_error = error
        self.consecutive_failures += 1

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass(slots=True)
class TickOutcome:
    topic: str
    status: str
    delta: list[Item] = field(default_factory=list)
    cursor: CursorState | None = None
    error: str | None = None
    invalid: int = 0
    subscribers_reached: int = 0


class PollLoop:
    """Drive one tick per topic on a fixed interval.

    Topics run concurrently on their own single-worker executors; a topic whose
    previous tick is still running is skipped for that round.
    """

    def __init__(
        self,
        config: RelayConfig,
        client: UpstreamClient,
        broadcaster: Broadcaster | None = None,
        cursors: CursorStore | None = None,
        query_builder: QueryBuilder | None = None,
        scheduler: APSchedulerAdapter | None = None,
        thread_pool: ThreadPoolManager | None = None,
    ) -> None:
        self.config = config
        self.client = client
        topic_names = [topic.name for topic in config.topics]
        if broadcaster is None:
            broadcaster = Broadcaster(TopicCache(config.replay_window, topic_names))
        self.broadcaster = broadcaster
        self.cache: TopicCache = broadcaster.cache
        self.cursors = cursors or CursorStore()
        self.query_builder = query_builder or QueryBuilder(
            first_poll_window_s=config.first_poll_window_s,
            fallback_window_s=config.fallback_window_s,
            search_type=config.upstream.search_type,
        )
        self.reconciler = Reconciler(self.cache)
        self.scheduler = scheduler
        self.thread_pool = thread_pool or ThreadPoolManager()
        self.logger = configure_logging().bind(component="poll_loop")
        self.stats: dict[str, TopicStats] = {name: TopicStats() for name in topic_names}
        self._guards: dict[str, Lock] = {name: Lock() for name in topic_names}
        self._topic_logs: dict[str, structlog.BoundLogger] = {
            name: topic_logger(name) for name in topic_names
        }
        self._pending: dict[str, Future[TickOutcome]] = {}
        self._pending_lock = Lock()
        self._skipped: dict[str, int] = {name: 0 for name in topic_names}
        self._stopping = Event()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(self) -> None:
        if self.scheduler is None:
            self.scheduler = APSchedulerAdapter()
        self._stopping.clear()
        self.scheduler.schedule_tick(self.tick, self.config.poll_interval_s)
        self.scheduler.start()
        self.logger.info(
            "poll_loop_started",
            topics=[topic.name for topic in self.config.topics],
            interval_s=self.config.poll_interval_s,
        )

    def stop(self, grace_s: float | None = None) -> bool:
        """Stop ticking and give in-flight ticks a bounded grace period.

        Returns ``True`` when every in-flight tick finished within the grace period.
        """

        grace = self.config.shutdown_grace_s if grace_s is None else grace_s
        self._stopping.set()
        if self.scheduler is not None:
            self.scheduler.shutdown()
        with self._pending_lock:
            in_flight = [future for future in self._pending.values() if not future.done()]
        finished = True
        if in_flight:
            _, not_done = wait(in_flight, timeout=grace)
            finished = not not_done
            if not_done:
                self.logger.warning("ticks_abandoned", count=len(not_done), grace_s=grace)
        self.thread_pool.shutdown(wait=False)
        self.logger.info("poll_loop_stopped", clean=finished)
        return finished

    # ------------------------------------------------------------------
    # Ticks
    # ------------------------------------------------------------------
    def tick(self) -> dict[str, Future[TickOutcome]]:
        """Submit one tick per topic; returns the futures actually submitted."""

        submitted: dict[str, Future[TickOutcome]] = {}
        if self._stopping.is_set():
            return submitted
        with self._pending_lock:
            for topic in self.config.topics:
                previous = self._pending.get(topic.name)
                if previous is not None and not previous.done():
                    self._skipped[topic.name] += 1
                    self._topic_logs[topic.name].info("tick_skipped", reason="previous_tick_running")
                    continue
                future = self.thread_pool.get(topic.name).submit(self.poll_topic, topic)
                self._pending[topic.name] = future
                submitted[topic.name] = future
        return submitted

    def run_once(self, topic_names: Iterable[str] | None = None) -> list[TickOutcome]:
        """Poll the selected topics synchronously, one after another."""

        wanted = set(topic_names) if topic_names is not None else None
        outcomes: list[TickOutcome] = []
        for topic in self.config.topics:
            if wanted is not None and topic.name not in wanted:
                continue
            outcomes.append(self.poll_topic(topic))
        return outcomes

    def poll_topic(self, topic: TopicConfig) -> TickOutcome:
        log = self._topic_logs[topic.name]
        stats = self.stats[topic.name]
        guard = self._guards[topic.name]
        if not guard.acquire(blocking=False):
            with self._pending_lock:
                self._skipped[topic.name] += 1
            log.info("tick_skipped", reason="topic_busy")
            return TickOutcome(topic=topic.name, status="skipped")
        try:
            return self._run_tick(topic, stats, log)
        except Exception as exc:  # noqa: BLE001 - one topic must never break the loop
            message = redact(str(exc))
            log.exception("tick_crashed", error=message)
            stats.record_failure(message)
            return TickOutcome(topic=topic.name, status="failed", error=message)
        finally:
            guard.release()

    def _run_tick(
        self, topic: TopicConfig, stats: TopicStats, log: structlog.BoundLogger
    ) -> TickOutcome:
        cursor = self.cursors.get(topic.name)
        request = self.query_builder.build(topic, cursor)
        log.info("tick_started", query=request.query, first_poll=cursor.is_first_poll)

        try:
            page = self.client.search(request)
        except TransportError as exc:
            message = redact(str(exc))
            log.warning("transport_failed", error=message, status_code=exc.status_code)
            stats.record_failure(message)
            return TickOutcome(
                topic=topic.name,
                status="failed",
                cursor=CursorState(cursor.last_seen_id, cursor.is_first_poll),
                error=message,
            )

        result = self.reconciler.reconcile(topic, page.items, cursor)

        def commit() -> None:
            if result.newest_id is not None:
                self.cursors.advance(topic.name, result.newest_id)
            if result.delta:
                self.cache.apply(topic.name, result.delta)

        reached = self.broadcaster.publish(topic.name, result.delta, commit=commit)
        status = "ok" if result.delta else "empty"
        stats.record_success(status, len(result.delta), result.invalid)
        log.info(
            "tick_finished",
            fetched=len(page.items),
            new_items=len(result.delta),
            duplicates=result.duplicates,
            invalid=result.invalid,
            unmatched=result.unmatched,
            cursor=cursor.last_seen_id,
            subscribers=reached,
        )
        return TickOutcome(
            topic=topic.name,
            status=status,
            delta=list(result.delta),
            cursor=CursorState(cursor.last_seen_id, cursor.is_first_poll),
            invalid=result.invalid,
            subscribers_reached=reached,
        )

    def status(self) -> dict[str, dict]:
        with self._pending_lock:
            skipped = dict(self._skipped)
        return {
            name: {**stats.as_dict(), "skipped_ticks": skipped[name]}
            for name, stats in self.stats.items()
        }


__all__ = ["PollLoop", "TickOutcome", "TopicStats", "UpstreamClient"]
