"""Subscriber registry and message shapes."""

from .broadcaster import Broadcaster, QueueSink, Sink, Subscription
from .messages import delta_message, snapshot_message

__all__ = [
    "Broadcaster",
    "QueueSink",
    "Sink",
    "Subscription",
    "delta_message",
    "snapshot_message",
]
