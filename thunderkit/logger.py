"""Logger construction and context-aware correlation of log records."""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from typing import Any, TextIO

from .context import Context, correlation_id_from_context

TRACE = 5
PANIC = 60
DISABLED = 100

logging.addLevelName(TRACE, "TRACE")
logging.addLevelName(PANIC, "PANIC")

_LEVEL_NAMES = {
    TRACE: ("trace", "TRC"),
    logging.DEBUG: ("debug", "DBG"),
    logging.INFO: ("info", "INF"),
    logging.WARNING: ("warn", "WRN"),
    logging.ERROR: ("error", "ERR"),
    logging.CRITICAL: ("fatal", "FTL"),
    PANIC: ("panic", "PNC"),
}

_CONSOLE_ENVIRONMENTS = {"test", "local", ""}


class _LoggerKey:
    def __repr__(self) -> str:
        return "<logger key>"


_LOGGER_KEY = _LoggerKey()

_DISABLED_LOGGER = logging.Logger("thunderkit.disabled", DISABLED)
_DISABLED_LOGGER.propagate = False
_DISABLED_LOGGER.addHandler(logging.NullHandler())


def _level_names(levelno: int) -> tuple[str, str]:
    candidates = [level for level in _LEVEL_NAMES if level <= levelno]
    if not candidates:
        return _LEVEL_NAMES[TRACE]
    return _LEVEL_NAMES[max(candidates)]


def _record_fields(record: logging.LogRecord) -> dict[str, Any]:
    fields: dict[str, Any] = {}
    correlation_id = getattr(record, "correlation_id", None)
    if correlation_id:
        fields["correlation_id"] = correlation_id
    fields.update(getattr(record, "fields", None) or {})
    return fields


class _JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        data: dict[str, Any] = {
            "level": _level_names(record.levelno)[0],
            "time": int(record.created),
        }
        data.update(_record_fields(record))
        data["message"] = record.getMessage()
        return json.dumps(data, default=str)


class _ConsoleFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        stamp = (
            datetime.fromtimestamp(record.created, timezone.utc)
            .astimezone()
            .isoformat(timespec="seconds")
        )
        parts = [stamp, _level_names(record.levelno)[1], record.getMessage()]
        parts.extend(f"{key}={value}" for key, value in _record_fields(record).items())
        return " ".join(parts)


class CorrelationIDFilter(logging.Filter):
    """Adds the correlation ID of a record's ``ctx`` to the record."""

    def filter(self, record: logging.LogRecord) -> bool:
        ctx = getattr(record, "ctx", None)
        if isinstance(ctx, Context):
            correlation_id = correlation_id_from_context(ctx)
            if correlation_id:
                record.correlation_id = correlation_id
        return True


def _level_from_environment() -> int:
    log_level = os.environ.get("LOG_LEVEL", "")
    if log_level == "none":
        return DISABLED
    if log_level == "trace":
        return TRACE
    if log_level in ("debug", ""):
        return logging.DEBUG
    return logging.INFO


def new_logger(output: TextIO) -> logging.Logger:
    """Build a logger writing to ``output``, configured from the environment.

    LOG_LEVEL picks the level; ENVIRONMENT picks human-readable output for
    test, local or unset environments and JSON lines otherwise.
    """
    logger = logging.Logger("thunderkit", _level_from_environment())
    logger.propagate = False

    handler = logging.StreamHandler(output)
    if os.environ.get("ENVIRONMENT", "") in _CONSOLE_ENVIRONMENTS:
        handler.setFormatter(_ConsoleFormatter())
    else:
        handler.setFormatter(_JSONFormatter())
    handler.addFilter(CorrelationIDFilter())
    logger.addHandler(handler)
    return logger


def context_with_logger(ctx: Context, logger: logging.Logger) -> Context:
    return ctx.with_value(_LOGGER_KEY, logger)


def logger_from_context(ctx: Context) -> logging.Logger:
    """Return the context's logger, or one that discards everything."""
    found = ctx.value(_LOGGER_KEY)
    if isinstance(found, logging.Logger):
        return found
    return _DISABLED_LOGGER