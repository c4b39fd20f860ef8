"""Snapshot commands for the spectrack CLI."""

import click

from spectrack.cli.logging import cli_command
from spectrack.cli.output import emit_success
from spectrack.cli.registry import get_context
from spectrack.core.errors import SnapshotMissingError


@click.group("snapshot")
def snapshot() -> None:
    """Record and inspect the baseline {path -> hash} snapshot."""
    pass


@snapshot.command("create")
@click.pass_context
@cli_command("snapshot-create")
def create_cmd(ctx: click.Context) -> None:
    """Hash the tracked tree and replace the stored snapshot.

    Examples:
        spectrack snapshot create
    """
    store = get_context(ctx).snapshot_store()
    snap = store.create()
    emit_success(
        {
            "path": str(store.snapshot_path),
            "file_count": len(snap),
            "timestamp": snap.created_at,
            "skipped": snap.skipped,
        },
        warnings=[f"Unreadable file skipped: {p}" for p in snap.skipped],
    )


@snapshot.command("show")
@click.option("--files", "show_files", is_flag=True, help="Include the full path-to-hash map.")
@click.pass_context
@cli_command("snapshot-show")
def show_cmd(ctx: click.Context, show_files: bool) -> None:
    """Show the stored snapshot.

    Examples:
        spectrack snapshot show --files
    """
    store = get_context(ctx).snapshot_store()
    snap = store.load()
    if snap is None:
        raise SnapshotMissingError("No snapshot has been created for this project")
    data = {
        "path": str(store.snapshot_path),
        "file_count": len(snap),
        "timestamp": snap.created_at,
    }
    if show_files:
        data["files"] = dict(sorted(snap.files.items()))
    emit_success(data)
