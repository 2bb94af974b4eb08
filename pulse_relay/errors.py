"""Error taxonomy shared across the relay."""

from __future__ import annotations


class RelayError(Exception):
    """Base class for all relay errors."""


class ItemValidationError(RelayError):
    """A raw upstream item is missing required fields or has the wrong types."""


class TransportError(RelayError):
    """The upstream call failed, timed out, or returned an unusable body."""

    def __init__(self, message: str, status_code: int | None = None, body: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ConfigurationError(RelayError):
    """Missing credential or malformed topic definition; fatal at startup."""


class DeliveryError(RelayError):
    """A subscriber sink rejected a message."""


__all__ = [
    "ConfigurationError",
    "DeliveryError",
    "ItemValidationError",
    "RelayError",
    "TransportError",
]
