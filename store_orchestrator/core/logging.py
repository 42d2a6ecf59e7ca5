# Copyright (c) 2026 Store Orchestrator Contributors. All Rights Reserved.

"""
Structured Logging — one JSON object per line on stdout.

Context travels through `extra=`: a log call about a tenant passes
`store_id` / `namespace`, pipeline failures add `step` / `engine`,
and the API middleware adds `trace_id`. Only keys that are set are
emitted.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone

CONTEXT_KEYS = ("trace_id", "store_id", "namespace", "engine", "step")

# Per-request chatter from the cluster client during readiness polling.
_QUIET_LOGGERS = ("httpx", "httpcore")


class StructuredFormatter(logging.Formatter):
    """Render a LogRecord as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(
            (key, getattr(record, key))
            for key in CONTEXT_KEYS
            if getattr(record, key, None)
        )
        if record.exc_info and record.exc_info[0]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO") -> None:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
