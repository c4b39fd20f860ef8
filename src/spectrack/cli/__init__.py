"""spectrack CLI - JSON-only command-line interface.

All commands emit structured JSON envelopes for reliable parsing.
"""

from spectrack.cli.config import CLIContext, create_context
from spectrack.cli.logging import (
    CLILogContext,
    cli_command,
    get_cli_logger,
    get_request_id,
    set_request_id,
)
from spectrack.cli.main import cli
from spectrack.cli.output import emit, emit_error, emit_exception, emit_success
from spectrack.cli.registry import get_context, set_context

__all__ = [
    # Entry point
    "cli",
    # Context
    "CLIContext",
    "create_context",
    "get_context",
    "set_context",
    # Output
    "emit",
    "emit_error",
    "emit_exception",
    "emit_success",
    # Logging
    "CLILogContext",
    "cli_command",
    "get_cli_logger",
    "get_request_id",
    "set_request_id",
]
