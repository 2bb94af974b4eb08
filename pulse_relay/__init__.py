"""Pulse-Relay: incremental search polling with real-time fan-out."""

__version__ = "0.3.0"
