from __future__ import annotations

import json
import logging
from pathlib import Path

from pulse_relay.logging_conf import available_topic_logs, redact, tail_log, topic_logger


def test_redact_masks_credentials() -> None:
    text = "GET /search?api_key=abc123&query=x failed; Authorization: Bearer s3cr3t"
    masked = redact(text)
    assert "abc123" not in masked
    assert "s3cr3t" not in masked
    assert "query=x" in masked


def test_topic_logger_creates_topic_file(relay_home: Path) -> None:
    logger = topic_logger("gamma")
    logger.info("tick_finished", new_items=1)
    paths = list(available_topic_logs())
    assert relay_home.resolve() / "logs" / "topics" / "gamma.log" in paths


def test_tail_log(tmp_path: Path) -> None:
    path = tmp_path / "sample.log"
    path.write_text("".join(f"line {n}\n" for n in range(10)), encoding="utf-8")
    assert tail_log(path, 3) == ["line 7\n", "line 8\n", "line 9\n"]
    assert tail_log(tmp_path / "missing.log") == []


def test_topic_log_lines_are_json(relay_home: Path) -> None:
    logger = topic_logger("delta")
    logger.info("tick_finished", new_items=3)
    for handler in logging.getLogger("pulse_relay.topic.delta").handlers:
        handler.flush()
    lines = tail_log(relay_home.resolve() / "logs" / "topics" / "delta.log")
    assert lines
    record = json.loads(lines[-1])
    assert record["levelname"] == "INFO"
    assert record["event"] == "tick_finished"
    assert record["topic"] == "delta"
