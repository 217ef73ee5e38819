from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any

EXTRA_FIELDS = (
    "run_id",
    "feature",
    "event_type",
    "visitor_id",
    "source",
    "reason",
    "key",
    "num_events",
    "duration_ms",
    "report",
    "config_path",
)


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts_utc": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        # attach extra fields if present
        for key in EXTRA_FIELDS:
            if hasattr(record, key):
                payload[key] = getattr(record, key)
        return json.dumps(payload, separators=(",", ":"), ensure_ascii=True, default=str)


ROOT_LOGGER = "utmtrack"


class StdoutHandler(logging.StreamHandler):
    """
    Writes to whatever sys.stdout is at emit time (pytest swaps it per test).
    """

    def __init__(self) -> None:
        super().__init__(sys.stdout)

    def emit(self, record: logging.LogRecord) -> None:
        self.stream = sys.stdout
        super().emit(record)


def get_logger(name: str, level: str | None = None) -> logging.Logger:
    """
    Module loggers propagate to the package logger, which owns the single JSON handler.
    Passing a level (re)sets it for the whole package.
    """
    root = logging.getLogger(ROOT_LOGGER)
    if not root.handlers:
        root.setLevel((level or "INFO").upper())
        handler = StdoutHandler()
        handler.setFormatter(JsonFormatter())
        root.addHandler(handler)
        root.propagate = False
    elif level is not None:
        root.setLevel(level.upper())
    return logging.getLogger(name)
