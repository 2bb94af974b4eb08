"""Configuration package exports."""

from .loader import ConfigLocator, ConfigRepository
from .models import RelayConfig, ServerConfig, TopicConfig, UpstreamConfig

__all__ = [
    "ConfigLocator",
    "ConfigRepository",
    "RelayConfig",
    "ServerConfig",
    "TopicConfig",
    "UpstreamConfig",
]
