"""Structured JSON logger for notepub.

Every log record is emitted as a single-line JSON object so that publish
runs can be followed in a log aggregator without extra parsing.

Typical structured output::

    {"ts": "2026-03-01T12:00:00.123456+00:00", "level": "INFO",
     "logger": "notepub.executor", "message": "Action committed",
     "op": "emit_body", "index": 3, "action": "insert-list"}

Usage::

    from notepub.observability import get_logger

    log = get_logger("notepub.executor")
    log.info("run started", extra={"extra_fields": {"draft_key": "n123"}})
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any


class StructuredFormatter(logging.Formatter):
    """Format log records as single-line JSON objects.

    Guaranteed keys are ``ts``, ``level``, ``logger`` and ``message``.
    Fields passed through ``extra={"extra_fields": {...}}`` are merged into
    the top-level object, and exception / stack information is serialised
    when present.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        extra_fields: dict[str, Any] | None = getattr(
            record, "extra_fields", None
        )
        if extra_fields is not None:
            log_entry.update(extra_fields)

        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)

        if record.stack_info:
            log_entry["stack_info"] = self.formatStack(record.stack_info)

        return json.dumps(log_entry, default=str, ensure_ascii=False)


# One handler per logger name so that ``get_logger`` stays idempotent.
_configured_loggers: set[str] = set()


def get_logger(
    name: str = "notepub",
    *,
    level: int | str = logging.DEBUG,
    stream: Any | None = None,
) -> logging.Logger:
    """Get or create a structured JSON logger.

    Parameters
    ----------
    name:
        Logger name.  Defaults to ``"notepub"``.
    level:
        Minimum log level, as an ``int`` or a case-insensitive level name.
    stream:
        Output stream for the handler.  Defaults to ``sys.stderr``.

    Returns
    -------
    logging.Logger
        A logger with a :class:`StructuredFormatter` handler attached.
        Repeated calls with the same *name* do not add duplicate handlers.
    """
    logger = logging.getLogger(name)

    if name not in _configured_loggers:
        resolved_level = (
            logging.getLevelName(level.upper())
            if isinstance(level, str)
            else level
        )
        logger.setLevel(resolved_level)

        handler = logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(StructuredFormatter())
        logger.addHandler(handler)
        logger.propagate = False

        _configured_loggers.add(name)

    return logger
