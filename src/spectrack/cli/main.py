"""spectrack CLI entry point.

JSON-only output for scripts and AI coding assistants.
"""

from typing import Optional

import click

from spectrack.cli.config import create_context
from spectrack.cli.registry import register_all_commands


@click.group()
@click.option(
    "--project-root",
    envvar="SPECTRACK_PROJECT_ROOT",
    type=click.Path(exists=False, file_okay=False),
    help="Root of the tracked source tree",
)
@click.option(
    "--specs-dir",
    envvar="SPECTRACK_SPECS_DIR",
    type=click.Path(exists=False, file_okay=False),
    help="Override specs directory path",
)
@click.pass_context
def cli(ctx: click.Context, project_root: Optional[str], specs_dir: Optional[str]) -> None:
    """spectrack - keep spec checklists in sync with a changing source tree.

    All commands output JSON envelopes for reliable parsing.
    """
    ctx.ensure_object(dict)
    cli_ctx = create_context(project_root=project_root, specs_dir=specs_dir)
    cli_ctx.config.setup_logging()
    ctx.obj["cli_context"] = cli_ctx


# Register all command groups
register_all_commands(cli)


if __name__ == "__main__":
    cli()
