"""Command registry for the spectrack CLI.

Centralized registration of all command groups.
Commands are organized by domain (specs, snapshot, drift, affected, checks).
"""

from typing import Optional

import click

from spectrack import __version__
from spectrack.cli.config import CLIContext

# Module-level storage for CLI context (for testing)
_cli_context: Optional[CLIContext] = None


def set_context(ctx: CLIContext) -> None:
    """Set the CLI context at module level.

    Primarily used for testing when not using Click's context.
    """
    global _cli_context
    _cli_context = ctx


def get_context(ctx: Optional[click.Context] = None) -> CLIContext:
    """Get CLI context from Click context or module-level storage.

    Raises:
        RuntimeError: If no context is available.
    """
    if ctx is not None:
        return ctx.obj["cli_context"]

    if _cli_context is not None:
        return _cli_context

    raise RuntimeError("No CLI context available. Call set_context() first.")


def register_all_commands(cli: click.Group) -> None:
    """Register all command groups with the CLI.

    Command groups are lazily imported to avoid circular dependencies.
    """
    from spectrack.cli.commands import affected, checks, drift, snapshot, specs
    from spectrack.cli.logging import cli_command

    cli.add_command(specs)
    cli.add_command(snapshot)
    cli.add_command(drift)
    cli.add_command(affected)
    cli.add_command(checks)

    @cli.command("version")
    @click.pass_context
    @cli_command("version")
    def version(ctx: click.Context) -> None:
        """Show CLI version and resolved workspace paths."""
        from spectrack.cli.output import emit_success

        cli_ctx = get_context(ctx)
        emit_success(
            {
                "version": __version__,
                "name": "spectrack",
                "project_root": str(cli_ctx.project_root),
                "specs_dir": str(cli_ctx.specs_dir),
            }
        )
