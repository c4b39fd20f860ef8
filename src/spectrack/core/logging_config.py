"""Structured logging configuration with request-id injection.

Usage:
    from spectrack.core.logging_config import configure_logging, request_context

    configure_logging(level="DEBUG", structured=True)

    with request_context("cli_abc123"):
        logger.info("Snapshot created")  # record carries request_id
"""

from __future__ import annotations

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional, TextIO

__all__ = [
    "RequestIdFilter",
    "StructuredFormatter",
    "configure_logging",
    "get_request_id",
    "set_request_id",
    "request_context",
]

ROOT_LOGGER_NAME = "spectrack"

_request_id: ContextVar[str] = ContextVar("spectrack_request_id", default="")


def get_request_id() -> str:
    """Return the request id bound to the current execution context."""
    return _request_id.get()


def set_request_id(request_id: str) -> None:
    _request_id.set(request_id)


@contextmanager
def request_context(request_id: str) -> Iterator[str]:
    """Bind ``request_id`` for the duration of the block."""
    token = _request_id.set(request_id)
    try:
        yield request_id
    finally:
        _request_id.reset(token)


class RequestIdFilter(logging.Filter):
    """Logging filter that injects the current request id into log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id() or "-"
        return True


class StructuredFormatter(logging.Formatter):
    """JSON-structured log formatter for machine-readable output.

    Example output:
        {"timestamp":"2024-01-15T10:30:45.123+00:00","level":"INFO",
         "logger":"spectrack.core.snapshot","message":"Snapshot created",
         "request_id":"cli_a1b2c3d4e5f6","extra":{"files":42}}
    """

    _standard_attrs = {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "message",
        "exc_info",
        "exc_text",
        "stack_info",
        "request_id",
    }

    def __init__(self, *, include_extra: bool = True):
        super().__init__()
        self.include_extra = include_extra

    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", "-"),
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        if self.include_extra:
            extra = {}
            for key, value in record.__dict__.items():
                if key in self._standard_attrs:
                    continue
                try:
                    json.dumps(value)
                    extra[key] = value
                except (TypeError, ValueError):
                    extra[key] = str(value)
            if extra:
                log_entry["extra"] = extra

        return json.dumps(log_entry, default=str)


def configure_logging(
    level: str = "INFO",
    *,
    structured: bool = True,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """Install a single handler on the ``spectrack`` logger.

    Repeated calls replace the previously installed handler instead of
    stacking duplicates.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR)
        structured: Emit JSON lines when True, plain text otherwise
        stream: Target stream (defaults to stderr so stdout stays JSON-only)

    Returns:
        The configured package logger
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in list(logger.handlers):
        if getattr(handler, "_spectrack_handler", False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    if structured:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s"
            )
        )
    handler.addFilter(RequestIdFilter())
    handler._spectrack_handler = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    return logger
