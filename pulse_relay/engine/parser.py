"""Validation of raw upstream items and normalization into relay items."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictStr, ValidationError, field_validator

from ..config import TopicConfig
from ..errors import ItemValidationError


class RawUrl(BaseModel):
    model_config = ConfigDict(extra="ignore")

    expanded_url: str | None = None
    display_url: str | None = None
    url: str | None = None


class RawEntities(BaseModel):
    model_config = ConfigDict(extra="ignore")

    urls: list[RawUrl] = Field(default_factory=list)

    @field_validator("urls", mode="before")
    @classmethod
    def _none_is_empty(cls, value: Any) -> Any:
        return [] if value is None else value


class RawUser(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str | None = None
    screen_name: str | None = None
    profile_image_url_https: str | None = None
    followers_count: int | None = None
    friends_count: int | None = None

    @field_validator("name", "screen_name", "profile_image_url_https", mode="before")
    @classmethod
    def _text_or_none(cls, value: Any) -> Any:
        return value if isinstance(value, str) else None

    @field_validator("followers_count", "friends_count", mode="before")
    @classmethod
    def _count_or_none(cls, value: Any) -> Any:
        # author summary is optional; a garbled count must not drop the item
        if isinstance(value, bool):
            return None
        if isinstance(value, int):
            return value
        if isinstance(value, str) and value.strip().isdigit():
            return int(value)
        return None


class RawTweet(BaseModel):
    """Untrusted search result; only the fields the relay forwards are modelled."""

    model_config = ConfigDict(extra="ignore")

    id_str: StrictStr = Field(min_length=1)
    full_text: StrictStr
    tweet_created_at: StrictStr = Field(min_length=1)
    user: RawUser = Field(default_factory=RawUser)
    entities: RawEntities = Field(default_factory=RawEntities)

    @field_validator("user", "entities", mode="before")
    @classmethod
    def _mapping_or_default(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else {}

    def expanded_urls(self) -> list[str]:
        return [url.expanded_url for url in self.entities.urls if url.expanded_url]


@dataclass(slots=True, frozen=True)
class Author:
    name: str
    screen_name: str
    profile_image_url: str
    followers_count: int = 0
    friends_count: int = 0


@dataclass(slots=True, frozen=True)
class Item:
    """Normalized item forwarded to subscribers."""

    id: str
    text: str
    created_at: str
    author: Author
    topic: str
    urls: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["urls"] = list(self.urls)
        return payload


def parse_raw_item(payload: Any) -> RawTweet:
    try:
        return RawTweet.model_validate(payload)
    except ValidationError as exc:
        raise ItemValidationError(f"Malformed item: {exc.error_count()} error(s)") from exc


def matching_urls(raw: RawTweet, topic: TopicConfig) -> list[str]:
    return [url for url in raw.expanded_urls() if topic.matches_url(url)]


def belongs_to_topic(raw: RawTweet, topic: TopicConfig) -> bool:
    """Upstream full-text matches may not satisfy the topic's stricter URL filter."""

    if topic.url_pattern is None:
        return True
    return bool(matching_urls(raw, topic))


def normalize(raw: RawTweet, topic: TopicConfig) -> Item:
    return Item(
        id=raw.id_str,
        text=raw.full_text,
        created_at=raw.tweet_created_at,
        author=Author(
            name=raw.user.name or "",
            screen_name=raw.user.screen_name or "",
            profile_image_url=raw.user.profile_image_url_https or "",
            followers_count=raw.user.followers_count or 0,
            friends_count=raw.user.friends_count or 0,
        ),
        topic=topic.name,
        urls=tuple(matching_urls(raw, topic)),
    )


__all__ = [
    "Author",
    "Item",
    "RawTweet",
    "belongs_to_topic",
    "matching_urls",
    "normalize",
    "parse_raw_item",
]
