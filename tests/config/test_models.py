from __future__ import annotations

import pytest
from pydantic import ValidationError

from pulse_relay.config import RelayConfig, TopicConfig, UpstreamConfig


def test_defaults_track_the_two_link_topics() -> None:
    config = RelayConfig()
    assert [topic.name for topic in config.topics] == ["pumpfun", "dexscreener"]
    assert config.topic("pumpfun").url_pattern == "pump.fun/coin/"
    assert config.upstream.search_type == "Latest"
    with pytest.raises(KeyError):
        config.topic("missing")


def test_topic_name_is_normalised_and_validated() -> None:
    assert TopicConfig(name="  Alpha ", query="q").name == "alpha"
    with pytest.raises(ValidationError):
        TopicConfig(name="has spaces", query="q")
    with pytest.raises(ValidationError):
        TopicConfig(name="alpha", query="   ")


def test_blank_url_pattern_matches_everything() -> None:
    topic = TopicConfig(name="alpha", query="q", url_pattern="")
    assert topic.url_pattern is None
    assert topic.matches_url("https://anything.example")


@pytest.mark.parametrize(
    "overrides",
    [
        {"topics": []},
        {"poll_interval_s": 0},
        {"replay_window": 0},
        {"fallback_window_s": 0},
        {"shutdown_grace_s": -1},
        {"subscriber_queue_size": 0},
        {"topics": [{"name": "a", "query": "x"}, {"name": "a", "query": "y"}]},
    ],
)
def test_relay_config_rejects_bad_bounds(overrides: dict) -> None:
    with pytest.raises(ValidationError):
        RelayConfig(**overrides)


def test_upstream_timeout_must_be_positive() -> None:
    with pytest.raises(ValidationError):
        UpstreamConfig(timeout_s=0)
