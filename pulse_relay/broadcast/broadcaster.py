"""Fan-out of topic deltas to a changing set of subscriber sinks."""

from __future__ import annotations

import asyncio
import uuid
from contextlib import suppress
from dataclasses import dataclass, field
from threading import Event, Lock, RLock
from typing import Any, Callable, Dict, Protocol, Sequence

import structlog

from ..engine.cache import TopicCache
from ..engine.parser import Item
from ..errors import DeliveryError
from .messages import delta_message, snapshot_message


class Sink(Protocol):
    """Anything that accepts serialized messages without blocking."""

    def send(self, message: dict[str, Any]) -> None: ...


class QueueSink:
    """Bounded per-subscriber buffer drained by a coroutine on ``loop``.

    ``send`` may be called from any thread; messages are handed to the loop with
    ``call_soon_threadsafe``. A full buffer raises ``DeliveryError``, and the
    broadcaster then disconnects the subscriber instead of dropping messages.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, maxsize: int = 256) -> None:
        self.maxsize = maxsize
        self._loop = loop
        self._queue: asyncio.Queue[dict[str, Any] | None] = asyncio.Queue()
        self._pending = 0
        self._lock = Lock()
        self._closed = Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def send(self, message: dict[str, Any]) -> None:
        if self.closed:
            raise DeliveryError("sink is closed")
        with self._lock:
            if self._pending >= self.maxsize:
                raise DeliveryError(f"subscriber queue full ({self.maxsize})")
            self._pending += 1
        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, message)
        except RuntimeError as exc:
            raise DeliveryError("subscriber event loop is closed") from exc

    async def get(self) -> dict[str, Any] | None:
        """Wait for the next message; ``None`` once the sink has been closed."""

        message = await self._queue.get()
        if message is not None:
            with self._lock:
                self._pending -= 1
        return message

    def close(self) -> None:
        if self.closed:
            return
        self._closed.set()
        # wake the consumer after whatever is already queued
        with suppress(RuntimeError):
            self._loop.call_soon_threadsafe(self._queue.put_nowait, None)


@dataclass(slots=True, eq=False)
class Subscription:
    """Handle returned by ``Broadcaster.subscribe``."""

    sink: Sink
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    delivered: int = 0
    alive: bool = True


class Broadcaster:
    """Registry of live subscribers.

    ``subscribe`` (register + replay) and the commit step of ``publish`` share one
    lock, so a subscriber either finds a delta's items in its replay or receives
    them live, never both. Sends to sinks happen outside the lock against a copy
    of the registry.
    """

    def __init__(self, cache: TopicCache, logger: structlog.BoundLogger | None = None) -> None:
        self.cache = cache
        self.logger = logger or structlog.get_logger("pulse_relay.broadcaster")
        self._subscribers: Dict[str, Subscription] = {}
        self._lock = RLock()

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def subscribe(self, sink: Sink) -> Subscription:
        subscription = Subscription(sink=sink)
        with self._lock:
            self._subscribers[subscription.id] = subscription
            self.logger.info("subscriber_connected", subscriber=subscription.id)
            for topic, items in self.cache.all().items():
                if not self._deliver(subscription, snapshot_message(topic, items)):
                    break
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            removed = self._subscribers.pop(subscription.id, None)
            subscription.alive = False
        if removed is None:
            return
        close = getattr(subscription.sink, "close", None)
        if callable(close):
            close()
        self.logger.info(
            "subscriber_disconnected",
            subscriber=subscription.id,
            delivered=subscription.delivered,
        )

    def publish(
        self,
        topic: str,
        delta: Sequence[Item],
        commit: Callable[[], None] | None = None,
    ) -> int:
        """Run ``commit`` then send ``delta`` to every current subscriber.

        Returns the number of subscribers the delta reached.
        """

        with self._lock:
            if commit is not None:
                commit()
            if not delta:
                return 0
            targets = list(self._subscribers.values())

        message = delta_message(topic, delta)
        delivered = 0
        for subscription in targets:
            if self._deliver(subscription, message):
                delivered += 1
        return delivered

    def close(self) -> None:
        with self._lock:
            subscriptions = list(self._subscribers.values())
        for subscription in subscriptions:
            self.unsubscribe(subscription)

    def _deliver(self, subscription: Subscription, message: dict[str, Any]) -> bool:
        if not subscription.alive:
            return False
        try:
            subscription.sink.send(message)
        except Exception as exc:  # noqa: BLE001 - any sink failure is an implicit disconnect
            self.logger.warning(
                "delivery_failed",
                subscriber=subscription.id,
                topic=message.get("topic"),
                error=str(exc),
            )
            self.unsubscribe(subscription)
            return False
        subscription.delivered += 1
        return True


__all__ = ["Broadcaster", "QueueSink", "Sink", "Subscription"]
