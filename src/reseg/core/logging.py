from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any

# extra= fields that are copied onto the JSON line when present
_EXTRA_KEYS = (
    "run_id",
    "feature",
    "visitor_id",
    "table",
    "reason",
    "num_rows",
    "num_events",
    "num_visitors",
    "num_sessions",
    "duration_ms",
)


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts_utc": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for key in _EXTRA_KEYS:
            if hasattr(record, key):
                payload[key] = getattr(record, key)
        return json.dumps(payload, separators=(",", ":"), ensure_ascii=True, default=str)


def get_logger(name: str, level: str | None = None) -> logging.Logger:
    logger = logging.getLogger(name)
    if logger.handlers:
        # avoid double handlers in tests; an explicit level still applies
        if level is not None:
            logger.setLevel(level.upper())
        return logger

    logger.setLevel((level or "INFO").upper())
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    logger.propagate = False
    return logger
