"""Structured logging hooks for CLI commands.

Provides request ID generation and start/end logging for CLI command
execution, plus conversion of spectrack errors into error envelopes.
"""

import logging
import time
import uuid
from contextlib import AbstractContextManager
from functools import wraps
from typing import Any, Callable, Optional, TypeVar

from spectrack.core.errors import SpecTrackError
from spectrack.core.logging_config import get_request_id, request_context, set_request_id

__all__ = [
    "generate_request_id",
    "get_request_id",
    "set_request_id",
    "cli_command",
    "get_cli_logger",
    "CLILogContext",
]

T = TypeVar("T")


def generate_request_id() -> str:
    """Generate a unique request ID for CLI command tracking.

    Returns:
        Short UUID suitable for log correlation.
    """
    return f"cli_{uuid.uuid4().hex[:12]}"


class CLILogContext:
    """Context manager for CLI command logging context.

    Automatically generates and sets a request ID for the duration
    of the context, enabling log correlation.

    Example:
        >>> with CLILogContext() as ctx:
        ...     logger.info("Processing", extra={"command": "drift check"})
    """

    def __init__(self, request_id: Optional[str] = None):
        self.request_id = request_id or generate_request_id()
        self._scope: Optional[AbstractContextManager] = None

    def __enter__(self) -> "CLILogContext":
        self._scope = request_context(self.request_id)
        self._scope.__enter__()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self._scope is not None:
            self._scope.__exit__(exc_type, exc_val, exc_tb)
            self._scope = None


class CLILogger:
    """Structured logger for CLI commands.

    Keyword arguments become structured fields on the record.
    """

    def __init__(self, name: str = "spectrack.cli"):
        self._logger = logging.getLogger(name)

    def _log(self, level: int, message: str, **extra: Any) -> None:
        self._logger.log(level, message, extra=extra)

    def debug(self, message: str, **extra: Any) -> None:
        self._log(logging.DEBUG, message, **extra)

    def info(self, message: str, **extra: Any) -> None:
        self._log(logging.INFO, message, **extra)

    def warning(self, message: str, **extra: Any) -> None:
        self._log(logging.WARNING, message, **extra)

    def error(self, message: str, **extra: Any) -> None:
        self._log(logging.ERROR, message, **extra)


# Global CLI logger
_cli_logger = CLILogger()


def get_cli_logger() -> CLILogger:
    """Get the global CLI logger."""
    return _cli_logger


def cli_command(
    command_name: Optional[str] = None,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Decorator for CLI commands.

    Automatically:
    - Generates request ID for correlation
    - Logs command start/end with duration
    - Emits an error envelope (exit code 1) for any SpecTrackError

    Args:
        command_name: Override command name (defaults to function name).

    Example:
        >>> @cli_command("drift-check")
        ... def drift_check(ctx):
        ...     ...
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        name = command_name or func.__name__

        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            with CLILogContext():
                start = time.perf_counter()
                success = True
                error_msg = None

                _cli_logger.debug(f"CLI command started: {name}", command=name)

                try:
                    return func(*args, **kwargs)
                except SpecTrackError as e:
                    success = False
                    error_msg = e.message
                    from spectrack.cli.output import emit_exception

                    emit_exception(e)
                finally:
                    duration_ms = (time.perf_counter() - start) * 1000
                    _cli_logger.debug(
                        f"CLI command completed: {name}",
                        command=name,
                        success=success,
                        duration_ms=round(duration_ms, 2),
                        error=error_msg,
                    )

        return wrapper

    return decorator
