"""Spec management commands for the spectrack CLI.

Provides commands for creating, listing, finding and validating specs.
"""

from typing import Optional, Tuple

import click

from spectrack.cli.logging import cli_command, get_cli_logger
from spectrack.cli.output import emit_error, emit_success
from spectrack.cli.registry import get_context
from spectrack.core.model import Encoding
from spectrack.core.parser import unrecognized_markers
from spectrack.core.registry import ORIGIN_AGENT, ORIGIN_ROOT

logger = get_cli_logger()


@click.group("specs")
def specs() -> None:
    """Specification management commands."""
    pass


@specs.command("list")
@click.pass_context
@cli_command("specs-list")
def list_specs_cmd(ctx: click.Context) -> None:
    """List every spec under the specs directory and its agent subfolder.

    Examples:
        spectrack specs list
    """
    registry = get_context(ctx).registry()
    listing = registry.scan()
    emit_success(
        {
            "count": len(listing.specs),
            "specs": [spec.to_dict(include_checks=False) for spec in listing.specs],
            "errors": listing.errors,
        },
        warnings=[f"Could not load {e['path']}: {e['error']}" for e in listing.errors],
    )


@specs.command("show")
@click.argument("slug")
@click.pass_context
@cli_command("specs-show")
def show_cmd(ctx: click.Context, slug: str) -> None:
    """Show one spec. Falls back to a fuzzy match with a reported confidence.

    Examples:
        spectrack specs show user-login
    """
    match = get_context(ctx).registry().find_by_slug(slug)
    warnings = []
    if not match.exact:
        warnings.append(
            f"'{slug}' matched '{match.slug}' with confidence {match.confidence:.2f}"
        )
    emit_success({"match": match.to_dict(), "spec": match.spec.to_dict()}, warnings=warnings)


@specs.command("find")
@click.argument("path")
@click.pass_context
@cli_command("specs-find")
def find_cmd(ctx: click.Context, path: str) -> None:
    """Find specs whose file references match PATH exactly or by glob.

    Examples:
        spectrack specs find src/login.py
    """
    found = get_context(ctx).registry().find_referencing(path)
    emit_success(
        {
            "path": path,
            "count": len(found),
            "slugs": [spec.slug for spec in found],
        }
    )


@specs.command("create")
@click.argument("title")
@click.option("--check", "-c", "checks", multiple=True, help="Check text (repeatable).")
@click.option("--file", "-f", "files", multiple=True, help="Referenced path or glob (repeatable).")
@click.option("--machine", is_flag=True, help="Write the YAML machine encoding.")
@click.option("--auto-files", is_flag=True, help="Enable file auto-discovery for this spec.")
@click.option("--agent", is_flag=True, help="Store the spec in the agent subfolder.")
@click.pass_context
@cli_command("specs-create")
def create_cmd(
    ctx: click.Context,
    title: str,
    checks: Tuple[str, ...],
    files: Tuple[str, ...],
    machine: bool,
    auto_files: bool,
    agent: bool,
) -> None:
    """Create a spec. An existing spec with the same slug is overwritten.

    Examples:
        spectrack specs create "User Login" -c "Valid credentials log in" -f src/login.py
    """
    if not checks:
        emit_error(
            "A spec needs at least one check",
            code="VALIDATION_ERROR",
            error_type="validation",
            remediation="Pass one or more --check options",
        )

    cli_ctx = get_context(ctx)
    hashes = {}
    snapshot = cli_ctx.snapshot_store().load()
    if snapshot is not None:
        hashes = {f: snapshot.hash_for(f) for f in files if snapshot.hash_for(f)}

    spec = cli_ctx.registry().create(
        title,
        list(checks),
        list(files),
        encoding=Encoding.MACHINE if machine else Encoding.HUMAN,
        auto_discover=auto_files,
        origin=ORIGIN_AGENT if agent else ORIGIN_ROOT,
        file_hashes=hashes,
    )
    emit_success({"spec": spec.to_dict()})


@specs.command("delete")
@click.argument("slug")
@click.option("--yes", is_flag=True, help="Skip the confirmation prompt.")
@click.pass_context
@cli_command("specs-delete")
def delete_cmd(ctx: click.Context, slug: str, yes: bool) -> None:
    """Delete a spec file.

    Examples:
        spectrack specs delete user-login --yes
    """
    registry = get_context(ctx).registry()
    spec = registry.get(slug)
    if not yes and not click.confirm(f"Delete spec '{spec.slug}'?", err=True):
        logger.info("Spec deletion declined", slug=spec.slug)
        emit_success({"slug": spec.slug, "deleted": False})
        return
    path = registry.delete(spec.slug)
    emit_success({"slug": spec.slug, "deleted": True, "path": str(path)})


@specs.command("validate")
@click.argument("slug", required=False)
@click.pass_context
@cli_command("specs-validate")
def validate_cmd(ctx: click.Context, slug: Optional[str]) -> None:
    """Validate one spec, or every spec when SLUG is omitted.

    Exits with code 1 when any spec has validation errors.

    Examples:
        spectrack specs validate
        spectrack specs validate user-login
    """
    cli_ctx = get_context(ctx)
    registry = cli_ctx.registry()
    targets = [registry.get(slug)] if slug else registry.list_specs()

    results = []
    for spec in targets:
        result = registry.validate(spec, project_root=cli_ctx.project_root)
        entry = result.to_dict()
        entry["normalized_markers"] = [
            {"position": pos, "marker": glyph} for pos, glyph in unrecognized_markers(spec)
        ]
        results.append(entry)

    invalid = [r["slug"] for r in results if not r["is_valid"]]
    if invalid:
        emit_error(
            f"{len(invalid)} spec(s) failed validation",
            code="VALIDATION_ERROR",
            error_type="validation",
            remediation="Fix the listed diagnostics and re-run validation",
            details={"invalid": invalid, "results": results},
        )
    emit_success({"count": len(results), "results": results})


@specs.command("checklist")
@click.argument("slug")
@click.pass_context
@cli_command("specs-checklist")
def checklist_cmd(ctx: click.Context, slug: str) -> None:
    """Print the ordered checklist handed to a verification caller.

    Examples:
        spectrack specs checklist user-login
    """
    rows = get_context(ctx).registry().checklist(slug)
    emit_success(
        {
            "slug": rows[0]["slug"] if rows else slug,
            "revision": rows[0]["revision"] if rows else None,
            "checks": rows,
        }
    )
