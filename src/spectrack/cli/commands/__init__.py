"""CLI command groups.

The CLI is organized into domain groups (`specs`, `snapshot`, `drift`,
`checks`) plus the top-level `affected` command.
"""

from spectrack.cli.commands.affected import affected
from spectrack.cli.commands.checks import checks
from spectrack.cli.commands.drift import drift
from spectrack.cli.commands.snapshot import snapshot
from spectrack.cli.commands.specs import specs

__all__ = [
    "affected",
    "checks",
    "drift",
    "snapshot",
    "specs",
]
