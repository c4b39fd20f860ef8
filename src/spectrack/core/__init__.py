"""Core spec tracking, drift detection and lifecycle operations for spectrack."""

from spectrack.core.model import (
    Check,
    CheckStatus,
    Encoding,
    FileReference,
    Spec,
    StatusCounts,
    slugify,
)

from spectrack.core.parser import (
    parse_spec,
    parse_spec_file,
    serialize_spec,
)

from spectrack.core.snapshot import (
    Snapshot,
    SnapshotStore,
)

from spectrack.core.registry import (
    SpecRegistry,
    SlugMatch,
)

from spectrack.core.drift import (
    DriftReport,
    detect_drift,
    find_stale_specs,
    repair,
)

from spectrack.core.resolver import (
    AffectedResolver,
    resolve_affected,
)

from spectrack.core.lifecycle import (
    LifecycleManager,
)

from spectrack.core.runlog import (
    RunLog,
    RunRecord,
)

__all__ = [
    "Check",
    "CheckStatus",
    "Encoding",
    "FileReference",
    "Spec",
    "StatusCounts",
    "slugify",
    "parse_spec",
    "parse_spec_file",
    "serialize_spec",
    "Snapshot",
    "SnapshotStore",
    "SpecRegistry",
    "SlugMatch",
    "DriftReport",
    "detect_drift",
    "find_stale_specs",
    "repair",
    "AffectedResolver",
    "resolve_affected",
    "LifecycleManager",
    "RunLog",
    "RunRecord",
]
