"""Logging configuration for the CLI and file server.

Two output types are supported:

``CONSOLE``
    Plain messages written to standard output, mirroring the classic
    ``python -m http.server`` look.

``JSON``
    One JSON object per line.  Custom attributes passed through ``extra``
    (``event``, ``hosts``, ``certificate_directory`` ...) become top-level
    keys so that log collectors can index them.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional, TextIO

LOGGING_TYPE_CONSOLE = "CONSOLE"
LOGGING_TYPE_JSON = "JSON"

_HANDLER_ATTR = "_is_ghttp_handler"

_RESERVED_ATTRS = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "exc_info",
    "exc_text",
    "stack_info",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "message",
    "stacklevel",
    "taskName",
}


def _extract_extras(record: logging.LogRecord) -> Dict[str, Any]:
    """Return custom attributes attached to *record*."""

    extras: Dict[str, Any] = {}
    for key, value in record.__dict__.items():
        if key in _RESERVED_ATTRS:
            continue
        if key.startswith("_"):
            continue
        extras[key] = value
    return extras


def normalize_logging_type(raw_value: Optional[str]) -> str:
    """Validate and normalise the requested logging type."""

    sanitized = (raw_value or "").strip().upper()
    if not sanitized:
        sanitized = LOGGING_TYPE_CONSOLE
    if sanitized not in {LOGGING_TYPE_CONSOLE, LOGGING_TYPE_JSON}:
        raise ValueError(f"unsupported logging type {raw_value}")
    return sanitized


class ConsoleLogFormatter(logging.Formatter):
    """Message-only formatter; errors get a level prefix and traceback."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        message = record.getMessage()
        if record.levelno >= logging.WARNING:
            message = f"{record.levelname}: {message}"
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return message


class JSONLogFormatter(logging.Formatter):
    """Render each record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc)
            .isoformat()
            .replace("+00:00", "Z"),
            "level": record.levelname.lower(),
            "logger": record.name,
            "msg": record.getMessage(),
        }
        payload.update(_extract_extras(record))
        if record.exc_info:
            payload["trace"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(
    logging_type: str = LOGGING_TYPE_CONSOLE,
    *,
    logger_name: str = "ghttp",
    stream: Optional[TextIO] = None,
    level: int = logging.INFO,
) -> logging.Logger:
    """Attach a single ghttp handler of the requested type to *logger_name*.

    Calling this repeatedly replaces the previously installed handler, so the
    CLI can reconfigure logging once command-line flags are known.
    """

    normalized = normalize_logging_type(logging_type)
    logger = logging.getLogger(logger_name)

    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_ATTR, False):
            logger.removeHandler(handler)
            handler.close()

    handler = logging.StreamHandler(stream or sys.stdout)
    if normalized == LOGGING_TYPE_JSON:
        handler.setFormatter(JSONLogFormatter())
    else:
        handler.setFormatter(ConsoleLogFormatter())
    setattr(handler, _HANDLER_ATTR, True)
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False
    return logger


__all__ = [
    "ConsoleLogFormatter",
    "JSONLogFormatter",
    "LOGGING_TYPE_CONSOLE",
    "LOGGING_TYPE_JSON",
    "configure_logging",
    "normalize_logging_type",
]
