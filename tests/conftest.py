"""Pytest configuration providing shared fixtures for the relay."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Iterable

import pytest

from pulse_relay.config import ConfigLocator, ConfigRepository, RelayConfig, TopicConfig
from pulse_relay.engine import QueryRequest, SearchPage
from pulse_relay.errors import DeliveryError


@pytest.fixture(autouse=True)
def relay_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv("PULSE_RELAY_HOME", str(tmp_path))
    return tmp_path


@pytest.fixture
def make_topic() -> Callable[..., TopicConfig]:
    def _builder(**overrides: Any) -> TopicConfig:
        base: dict[str, Any] = {
            "name": "alpha",
            "query": "example.com/coin/",
            "url_pattern": "example.com/coin/",
        }
        base.update(overrides)
        return TopicConfig(**base)

    return _builder


@pytest.fixture
def make_config(make_topic) -> Callable[..., RelayConfig]:
    def _builder(topics: Iterable[TopicConfig] | None = None, **overrides: Any) -> RelayConfig:
        base: dict[str, Any] = {
            "topics": list(topics) if topics is not None else [make_topic()],
            "poll_interval_s": 1.0,
            "replay_window": 3,
            "shutdown_grace_s": 1.0,
        }
        base.update(overrides)
        return RelayConfig(**base)

    return _builder


@pytest.fixture
def make_raw() -> Callable[..., dict]:
    """Build a raw upstream search result."""

    def _builder(
        item_id: str,
        text: str | None = None,
        urls: Iterable[str] = ("https://example.com/coin/abc",),
        **overrides: Any,
    ) -> dict:
        payload: dict[str, Any] = {
            "id": 0,
            "id_str": item_id,
            "full_text": text if text is not None else f"post {item_id}",
            "tweet_created_at": "2024-05-01T12:00:00.000000Z",
            "user": {
                "name": "Example User",
                "screen_name": "example",
                "profile_image_url_https": "https://img.example.com/u.png",
                "followers_count": 10,
                "friends_count": 5,
            },
            "entities": {
                "urls": [{"expanded_url": url, "display_url": url, "url": url} for url in urls],
            },
        }
        payload.update(overrides)
        return payload

    return _builder


class FakeSearchClient:
    """Scripted upstream: each call pops the next response for the topic."""

    def __init__(self) -> None:
        self.scripts: dict[str, list[Any]] = {}
        self.requests: list[QueryRequest] = []

    def script(self, topic: str, *responses: Any) -> "FakeSearchClient":
        self.scripts.setdefault(topic, []).extend(responses)
        return self

    def search(self, request: QueryRequest) -> SearchPage:
        self.requests.append(request)
        queue = self.scripts.get(request.topic) or []
        response = queue.pop(0) if queue else []
        if isinstance(response, BaseException):
            raise response
        return SearchPage(items=list(response))

    def queries(self, topic: str) -> list[str]:
        return [request.query for request in self.requests if request.topic == topic]


class RecordingSink:
    def __init__(self) -> None:
        self.messages: list[dict] = []
        self.closed = False

    def send(self, message: dict) -> None:
        self.messages.append(message)

    def close(self) -> None:
        self.closed = True

    def ids(self, kind: str | None = None, topic: str | None = None) -> list[str]:
        collected: list[str] = []
        for message in self.messages:
            if kind is not None and message["type"] != kind:
                continue
            if topic is not None and message["topic"] != topic:
                continue
            collected.extend(message["ids"])
        return collected


class FailingSink(RecordingSink):
    def send(self, message: dict) -> None:
        raise DeliveryError("connection reset")


@pytest.fixture
def fake_client() -> FakeSearchClient:
    return FakeSearchClient()


@pytest.fixture
def sink_types() -> tuple[type[RecordingSink], type[FailingSink]]:
    return RecordingSink, FailingSink


@pytest.fixture
def temp_config_repository(tmp_path: Path) -> ConfigRepository:
    locator = ConfigLocator(project_root=tmp_path)
    return ConfigRepository(locator)
