"""Pydantic models describing the relay configuration."""

from __future__ import annotations

import re

from pydantic import BaseModel, Field, field_validator, model_validator

_TOPIC_NAME = re.compile(r"^[a-z0-9][a-z0-9_-]*$")


class TopicConfig(BaseModel):
    """One independently tracked search query."""

    name: str
    query: str
    url_pattern: str | None = Field(
        default=None,
        description="Substring an expanded URL must contain for an item to belong to the topic.",
    )

    @field_validator("name")
    @classmethod
    def _validate_name(cls, value: str) -> str:
        value = value.strip().lower()
        if not _TOPIC_NAME.match(value):
            raise ValueError(f"Topic name must be a lowercase slug: {value!r}")
        return value

    @field_validator("query")
    @classmethod
    def _validate_query(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Topic query cannot be empty")
        return value

    @field_validator("url_pattern", mode="before")
    @classmethod
    def _blank_pattern_is_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def matches_url(self, url: str) -> bool:
        if self.url_pattern is None:
            return True
        return self.url_pattern in url


class UpstreamConfig(BaseModel):
    """Where and how the search endpoint is called."""

    base_url: str = "https://api.socialdata.tools/twitter/search"
    search_type: str = "Latest"
    timeout_s: float = 10.0
    api_key_env: str = "SOCIALDATA_API_KEY"

    @field_validator("timeout_s")
    @classmethod
    def _positive_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("timeout_s must be > 0")
        return value


class ServerConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = 3000


def _default_topics() -> list[TopicConfig]:
    return [
        TopicConfig(name="pumpfun", query="pump.fun/coin/", url_pattern="pump.fun/coin/"),
        TopicConfig(
            name="dexscreener",
            query="dexscreener.com/solana/",
            url_pattern="dexscreener.com/solana/",
        ),
    ]


class RelayConfig(BaseModel):
    """Process-wide settings: topics, cadence and bounds."""

    topics: list[TopicConfig] = Field(default_factory=_default_topics)
    poll_interval_s: float = 10.0
    replay_window: int = 50
    first_poll_window_s: int = 600
    fallback_window_s: int = 30
    shutdown_grace_s: float = 5.0
    subscriber_queue_size: int = 256
    server: ServerConfig = Field(default_factory=ServerConfig)
    upstream: UpstreamConfig = Field(default_factory=UpstreamConfig)

    @model_validator(mode="after")
    def _validate_bounds(self) -> "RelayConfig":
        if not self.topics:
            raise ValueError("At least one topic must be configured")
        names = [topic.name for topic in self.topics]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"Duplicate topic names: {', '.join(duplicates)}")
        if self.poll_interval_s <= 0:
            raise ValueError("poll_interval_s must be > 0")
        if self.replay_window < 1:
            raise ValueError("replay_window must be >= 1")
        if self.first_poll_window_s <= 0 or self.fallback_window_s <= 0:
            raise ValueError("Recency windows must be > 0 seconds")
        if self.shutdown_grace_s < 0:
            raise ValueError("shutdown_grace_s must be >= 0")
        if self.subscriber_queue_size < 1:
            raise ValueError("subscriber_queue_size must be >= 1")
        return self

    def topic(self, name: str) -> TopicConfig:
        for topic in self.topics:
            if topic.name == name:
                return topic
        raise KeyError(name)


__all__ = ["RelayConfig", "ServerConfig", "TopicConfig", "UpstreamConfig"]
