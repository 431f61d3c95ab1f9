"""
Structured logging utilities for catalog-sync.

Collections, the remote store and the change feed log through
`get_logger(__name__)` and attach their context with `extra=` (collection
name, topics, row counts, error messages). `configure_logging` renders that
either as one human-readable line or, with `json_logs=True`, as one JSON
object per line with every `extra=` field promoted to a top-level key.

The database drivers (asyncpg, psycopg and its pool) are kept at WARNING
unless the application itself runs at DEBUG, so a `watch` session is not
flooded by pool maintenance messages.

Usage:
    from catalog_sync.utils.logging import configure_logging, get_logger

    configure_logging(level="INFO", json_logs=False)
    log = get_logger(__name__)
    log.info("Reports changed, refetching", extra={"collection": "reports"})
"""

from __future__ import annotations

import json
import logging
import logging.config
from typing import Any, Dict, Optional

# Attributes every LogRecord carries; anything else arrived through `extra=`.
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None)).keys()
) | {"message", "asctime", "extra"}

DRIVER_LOGGERS = ("asyncpg", "psycopg", "psycopg.pool")

_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def _json_formatter(record: logging.LogRecord) -> str:
    """Render a log record as one JSON line, `extra=` fields included."""
    payload: Dict[str, Any] = {
        "time": logging.Formatter().formatTime(record, _TIME_FORMAT),
        "level": record.levelname,
        "logger": record.name,
        "message": record.getMessage(),
    }
    for key, value in vars(record).items():
        if key not in _RESERVED_ATTRS:
            payload[key] = value
    if record.exc_info:
        payload["exc_info"] = logging.Formatter().formatException(record.exc_info)
    if record.stack_info:
        payload["stack_info"] = record.stack_info
    if hasattr(record, "extra") and isinstance(record.extra, dict):
        payload.update(record.extra)
    return json.dumps(payload, default=str)


class JsonFormatter(logging.Formatter):
    """Minimal JSON formatter for structured logs."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        return _json_formatter(record)


def configure_logging(level: str = "INFO", json_logs: bool = False) -> None:
    """
    Configure root logging for the CLI and scripts.

    Parameters
    ----------
    level : str
        Logging level name (e.g., "DEBUG", "INFO", "WARNING").
    json_logs : bool
        Whether to emit logs as JSON. If False, uses a concise human formatter.
    """
    level = level.upper()
    formatter_name = "json" if json_logs else "console"
    driver_level = "DEBUG" if level == "DEBUG" else "WARNING"

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "console": {
                    "format": "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
                    "datefmt": _TIME_FORMAT,
                },
                "json": {
                    "()": JsonFormatter,
                },
            },
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "formatter": formatter_name,
                    "level": level,
                }
            },
            "loggers": {name: {"level": driver_level} for name in DRIVER_LOGGERS},
            "root": {
                "handlers": ["default"],
                "level": level,
            },
        }
    )


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Get a logger with the given name. If name is None, returns the root logger.
    """
    return logging.getLogger(name)


__all__ = ["DRIVER_LOGGERS", "configure_logging", "get_logger", "JsonFormatter"]
