"""Affected-spec resolution command for the spectrack CLI."""

from typing import Tuple

import click

from spectrack.cli.logging import cli_command
from spectrack.cli.output import emit_success
from spectrack.cli.registry import get_context


@click.command("affected")
@click.option("--base", default="HEAD", show_default=True, help="Git revision to diff against.")
@click.option(
    "--file",
    "-f",
    "files",
    multiple=True,
    help="Explicit changed path (repeatable). Skips git and snapshot detection.",
)
@click.pass_context
@cli_command("affected")
def affected(ctx: click.Context, base: str, files: Tuple[str, ...]) -> None:
    """List specs whose referenced files changed.

    The changed set comes from --file, else from git, else from drift against
    the stored snapshot.

    Examples:
        spectrack affected
        spectrack affected --base main
        spectrack affected -f src/login.py
    """
    resolver = get_context(ctx).resolver()
    result = resolver.resolve(list(files) if files else None, base=base)
    emit_success(result.to_dict())
