"""Check lifecycle commands for the spectrack CLI."""

from typing import Optional

import click

from spectrack.cli.logging import cli_command
from spectrack.cli.output import emit_success
from spectrack.cli.registry import get_context
from spectrack.core.lifecycle import OUTCOME_TARGETS


@click.group("checks")
def checks() -> None:
    """Mark checks and evaluate completion."""
    pass


@checks.command("set")
@click.argument("slug")
@click.argument("position", type=int)
@click.argument("outcome", type=click.Choice(sorted(OUTCOME_TARGETS)))
@click.option(
    "--revision",
    type=int,
    default=None,
    help="Revision the caller read; a mismatch is rejected.",
)
@click.option(
    "--complete/--no-complete",
    default=False,
    help="Evaluate completion after marking.",
)
@click.pass_context
@cli_command("checks-set")
def set_cmd(
    ctx: click.Context,
    slug: str,
    position: int,
    outcome: str,
    revision: Optional[int],
    complete: bool,
) -> None:
    """Mark the check at POSITION (1-based) as pass, fail or reset.

    Examples:
        spectrack checks set user-login 2 pass --revision 3
    """
    manager = get_context(ctx).lifecycle()
    update = manager.set_status(slug, position, outcome, expected_revision=revision)
    data = {"update": update.to_dict()}
    if complete:
        data["completion"] = manager.evaluate_completion(update.slug).to_dict()
    emit_success(data)


@checks.command("complete")
@click.argument("slug")
@click.option("--revision", type=int, default=None, help="Revision the caller read.")
@click.pass_context
@cli_command("checks-complete")
def complete_cmd(ctx: click.Context, slug: str, revision: Optional[int]) -> None:
    """Log and reset SLUG when every check has passed.

    Examples:
        spectrack checks complete user-login
    """
    result = get_context(ctx).lifecycle().evaluate_completion(slug, expected_revision=revision)
    emit_success(result.to_dict())


@checks.command("reset")
@click.argument("slug")
@click.option("--revision", type=int, default=None, help="Revision the caller read.")
@click.pass_context
@cli_command("checks-reset")
def reset_cmd(ctx: click.Context, slug: str, revision: Optional[int]) -> None:
    """Reset every check of SLUG to unchecked without logging a run.

    Examples:
        spectrack checks reset user-login
    """
    result = get_context(ctx).lifecycle().reset_spec(slug, expected_revision=revision)
    emit_success(result.to_dict())
