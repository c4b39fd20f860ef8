"""Drift detection and repair commands for the spectrack CLI."""

import click

from spectrack.cli.logging import cli_command, get_cli_logger
from spectrack.cli.output import emit_success
from spectrack.cli.registry import get_context
from spectrack.core.drift import (
    REPAIR_AUTO,
    REPAIR_INTERACTIVE,
    StaleSpec,
    discover_files,
    drift_since_snapshot,
    drifted_references,
    find_stale_specs,
    repair,
)

logger = get_cli_logger()


@click.group("drift")
def drift() -> None:
    """Compare the tree against the stored snapshot."""
    pass


@drift.command("check")
@click.pass_context
@cli_command("drift-check")
def check_cmd(ctx: click.Context) -> None:
    """Report renamed, deleted, added and modified paths plus stale specs.

    Examples:
        spectrack drift check
    """
    cli_ctx = get_context(ctx)
    report, current = drift_since_snapshot(cli_ctx.snapshot_store())
    specs = cli_ctx.registry().list_specs()
    stale = find_stale_specs(report, specs)
    drifted = [d for spec in specs for d in drifted_references(spec, current)]

    warnings = [
        f"Rename of {entry.old} is ambiguous between {', '.join(entry.candidates)}"
        for entry in report.ambiguous
    ]
    emit_success(
        {
            "report": report.to_dict(),
            "stale_specs": [s.to_dict() for s in stale],
            "drifted": [d.to_dict() for d in drifted],
        },
        warnings=warnings,
    )


def _describe(stale: StaleSpec) -> str:
    lines = [f"Spec '{stale.slug}':"]
    for ref in stale.references:
        if ref.target:
            lines.append(f"  {ref.path} -> {ref.target} ({ref.kind})")
        else:
            lines.append(f"  {ref.path} ({ref.kind}, left as is)")
    return "\n".join(lines)


@drift.command("repair")
@click.option("--auto", "auto_mode", is_flag=True, help="Accept every proposed rewrite.")
@click.option(
    "--interactive",
    "interactive_mode",
    is_flag=True,
    help="Confirm each spec even when the configured mode is auto.",
)
@click.pass_context
@cli_command("drift-repair")
def repair_cmd(ctx: click.Context, auto_mode: bool, interactive_mode: bool) -> None:
    """Rewrite stale file references to their rename targets.

    Without --auto each stale spec is confirmed on the terminal. Deleted
    references are reported and never rewritten.

    Examples:
        spectrack drift repair
        spectrack drift repair --auto
    """
    cli_ctx = get_context(ctx)
    if auto_mode:
        mode = REPAIR_AUTO
    elif interactive_mode:
        mode = REPAIR_INTERACTIVE
    else:
        mode = cli_ctx.config.repair_mode

    report, current = drift_since_snapshot(cli_ctx.snapshot_store())

    def confirm(stale: StaleSpec) -> bool:
        click.echo(_describe(stale), err=True)
        return click.confirm("Apply these rewrites?", default=False, err=True)

    result = repair(
        report,
        cli_ctx.registry(),
        mode=mode,
        confirm=confirm if mode == REPAIR_INTERACTIVE else None,
        snapshot=current,
    )
    logger.info("Drift repair finished", mode=mode, updated=len(result.updated))
    emit_success({"repair": result.to_dict(), "report": report.to_dict()})


@drift.command("discover")
@click.pass_context
@cli_command("drift-discover")
def discover_cmd(ctx: click.Context) -> None:
    """Refresh recorded file hashes for specs with auto-discovery enabled.

    Examples:
        spectrack drift discover
    """
    cli_ctx = get_context(ctx)
    current = cli_ctx.snapshot_store().scan()
    updated = discover_files(cli_ctx.registry(), current)
    emit_success({"updated": updated, "count": len(updated)})
