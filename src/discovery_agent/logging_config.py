"""
Logging configuration for the Token Discovery Agent.

Supports two formats:
- ``text`` (default): human-readable log lines
- ``json``: structured JSON for log aggregation (ELK, Datadog, etc.)

Every record carries a ``batch_id``: the correlation id of the discovery
batch (or analysis dispatch) being processed when the line was logged.

Settings via env vars:
- ``LOG_LEVEL``: DEBUG / INFO / WARNING / ERROR (default: INFO)
- ``LOG_FORMAT``: text / json (default: text)
"""

from __future__ import annotations

import json as json_mod
import logging
import sys
import uuid
from contextvars import ContextVar

from config import LOG_FORMAT, LOG_LEVEL

# Context var holding the correlation id of the batch in flight
batch_id_ctx: ContextVar[str] = ContextVar("batch_id", default="-")


class JSONFormatter(logging.Formatter):
    """Emit each log record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "batch_id": batch_id_ctx.get("-"),
        }
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)
        return json_mod.dumps(entry, default=str)


def setup_logging(level: str | None = None, fmt: str | None = None) -> None:
    """Configure the root logger; arguments override the env settings."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO))

    root.handlers.clear()

    # stderr keeps stdout free for the CLI's detection stream
    handler = logging.StreamHandler(sys.stderr)

    if (fmt or LOG_FORMAT) == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s [%(levelname)s] %(name)s (%(batch_id)s) %(message)s",
                defaults={"batch_id": "-"},
            )
        )

    handler.addFilter(_BatchIdFilter())

    root.addHandler(handler)


class _BatchIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.batch_id = batch_id_ctx.get("-")  # type: ignore[attr-defined]
        return True


def generate_batch_id() -> str:
    """Create a short unique batch correlation ID."""
    return uuid.uuid4().hex[:12]
