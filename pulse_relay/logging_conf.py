"""Logging configuration built around structlog JSON logging."""

from __future__ import annotations

import logging
import logging.config
import os
import re
from pathlib import Path
from typing import Iterable

import structlog

_LOGGING_INITIALISED = False
_SECRET_PATTERN = re.compile(r"(apikey|api_key|token|bearer)([=:\s]+)[^&\s]+", re.IGNORECASE)


def _default_log_dir() -> Path:
    env_root = os.environ.get("PULSE_RELAY_HOME")
    if env_root:
        return Path(env_root).expanduser().resolve() / "logs"
    return Path(__file__).resolve().parents[1] / "logs"


def redact(text: str) -> str:
    """Mask credential-looking values before they reach a log line."""

    return _SECRET_PATTERN.sub(r"\1\2***", text)


def configure_logging(verbose: bool = False) -> structlog.BoundLogger:
    """Configure structlog + stdlib handlers and return application logger."""

    global _LOGGING_INITIALISED
    log_dir = _default_log_dir()
    error_log = log_dir / "error.log"
    relay_log = log_dir / "relay.log"
    topics_dir = log_dir / "topics"
    topics_dir.mkdir(parents=True, exist_ok=True)
    error_log.touch(exist_ok=True)
    relay_log.touch(exist_ok=True)

    if not _LOGGING_INITIALISED:
        level = "DEBUG" if verbose else "INFO"
        logging.config.dictConfig(
            {
                "version": 1,
                "disable_existing_loggers": False,
                "formatters": {
                    "plain": {
                        "()": "pythonjsonlogger.json.JsonFormatter",
                        "fmt": "%(asctime)s %(levelname)s %(name)s %(message)s",
                    }
                },
                "handlers": {
                    "console": {
                        "class": "logging.StreamHandler",
                        "level": level,
                        "formatter": "plain",
                    },
                    "relay_file": {
                        "class": "logging.FileHandler",
                        "level": "INFO",
                        "filename": str(relay_log),
                        "formatter": "plain",
                    },
                    "error_file": {
                        "class": "logging.FileHandler",
                        "level": "ERROR",
                        "filename": str(error_log),
                        "formatter": "plain",
                    },
                },
                "loggers": {
                    "pulse_relay": {
                        "handlers": ["console", "relay_file", "error_file"],
                        "level": level,
                        "propagate": False,
                    },
                },
            }
        )

        structlog.configure(
            processors=[
                structlog.contextvars.merge_contextvars,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.stdlib.add_log_level,
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
            ],
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )
        _LOGGING_INITIALISED = True
    return structlog.get_logger("pulse_relay")


def topic_logger(topic_name: str, verbose: bool = False) -> structlog.BoundLogger:
    """Return a logger bound to a specific topic and ensure its file handler exists."""

    configure_logging(verbose)
    topic_log_path = _default_log_dir() / "topics" / f"{topic_name}.log"
    topic_log_path.parent.mkdir(parents=True, exist_ok=True)

    logger_name = f"pulse_relay.topic.{topic_name}"
    py_logger = logging.getLogger(logger_name)
    if not any(
        isinstance(handler, logging.FileHandler) and handler.baseFilename == str(topic_log_path)
        for handler in py_logger.handlers
    ):
        file_handler = logging.FileHandler(topic_log_path, encoding="utf-8")
        global_logger = logging.getLogger("pulse_relay")
        if global_logger.handlers:
            file_handler.setFormatter(global_logger.handlers[0].formatter)
        file_handler.setLevel(logging.INFO)
        py_logger.addHandler(file_handler)

    return structlog.get_logger(logger_name).bind(topic=topic_name)


def tail_log(path: Path, line_count: int = 100) -> list[str]:
    """Return the last N lines from a log file."""

    if not path.exists():
        return []
    with path.open("r", encoding="utf-8", errors="ignore") as stream:
        lines = stream.readlines()
    return lines[-line_count:]


def available_topic_logs() -> Iterable[Path]:
    """Yield available per-topic log file paths."""

    topics_dir = _default_log_dir() / "topics"
    if not topics_dir.exists():
        return []
    return sorted(p for p in topics_dir.glob("*.log"))


__all__ = ["available_topic_logs", "configure_logging", "redact", "tail_log", "topic_logger"]
