"""Subscriber-facing message shapes."""

from __future__ import annotations

from typing import Any, Literal, Sequence

from ..engine.parser import Item

MessageKind = Literal["snapshot", "delta"]


def build_message(kind: MessageKind, topic: str, items: Sequence[Item]) -> dict[str, Any]:
    """Tag items with their topic so one connection can multiplex every topic.

    ``ids`` lets a receiver dedupe without walking ``data``.
    """

    return {
        "type": kind,
        "topic": topic,
        "ids": [item.id for item in items],
        "data": [item.to_dict() for item in items],
    }


def snapshot_message(topic: str, items: Sequence[Item]) -> dict[str, Any]:
    return build_message("snapshot", topic, items)


def delta_message(topic: str, items: Sequence[Item]) -> dict[str, Any]:
    return build_message("delta", topic, items)


__all__ = ["MessageKind", "build_message", "delta_message", "snapshot_message"]
