"""
Affected-spec resolution.

Maps a set of changed paths to the slugs of specs whose file references
intersect it. The changed set comes from the caller, from git, or from drift
against the last snapshot, in that order of preference.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from spectrack.core.drift import detect_drift
from spectrack.core.errors import SnapshotMissingError
from spectrack.core.model import Spec, normalize_path
from spectrack.core.registry import SpecRegistry, reference_matches
from spectrack.core.snapshot import SnapshotStore
from spectrack.core.vcs import git_changed_paths

logger = logging.getLogger(__name__)

SOURCE_EXPLICIT = "explicit"
SOURCE_GIT = "git"
SOURCE_SNAPSHOT = "snapshot"


def resolve_affected(changed: Iterable[str], specs: Iterable[Spec]) -> List[str]:
    """
    Slugs of specs whose references match any changed path, sorted.

    An empty changed set yields no slugs. A spec without references is never
    affected by file changes.
    """
    paths = sorted({normalize_path(p) for p in changed if p and p.strip()})
    if not paths:
        return []
    affected = set()
    for spec in specs:
        if not spec.files:
            continue
        if any(reference_matches(ref, path) for ref in spec.files for path in paths):
            affected.add(spec.slug)
    return sorted(affected)


@dataclass
class AffectedResult:
    slugs: List[str]
    changed: List[str]
    source: str
    matches: Dict[str, List[str]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "slugs": list(self.slugs),
            "changed": list(self.changed),
            "source": self.source,
            "matches": {slug: list(paths) for slug, paths in self.matches.items()},
        }


class AffectedResolver:
    """
    Works out which specs a change touches.

    Args:
        registry: Spec registry
        snapshot_store: Store holding the baseline snapshot
        project_root: Root of the tracked tree (git runs here)
        use_git: Ask git for the changed set before falling back to the snapshot
    """

    def __init__(
        self,
        registry: SpecRegistry,
        snapshot_store: SnapshotStore,
        project_root: Path,
        use_git: bool = True,
    ):
        self.registry = registry
        self.snapshot_store = snapshot_store
        self.project_root = Path(project_root)
        self.use_git = use_git

    def changed_paths(self, base: str = "HEAD") -> Tuple[List[str], str]:
        """Changed paths plus the source they came from."""
        if self.use_git:
            paths = git_changed_paths(self.project_root, base)
            if paths is not None:
                return paths, SOURCE_GIT
            logger.info("git unavailable, falling back to snapshot drift")

        previous = self.snapshot_store.load()
        if previous is None:
            raise SnapshotMissingError(
                "No changed-path source: git is unavailable and no snapshot exists"
            )
        report = detect_drift(previous, self.snapshot_store.scan())
        return report.changed_paths(), SOURCE_SNAPSHOT

    def resolve(
        self, changed: Optional[Iterable[str]] = None, base: str = "HEAD"
    ) -> AffectedResult:
        if changed is not None:
            paths = sorted({normalize_path(p) for p in changed if p and p.strip()})
            source = SOURCE_EXPLICIT
        else:
            paths, source = self.changed_paths(base)

        specs = self.registry.list_specs()
        slugs = resolve_affected(paths, specs)
        by_slug = {spec.slug: spec for spec in specs}
        matches = {
            slug: [p for p in paths if any(reference_matches(r, p) for r in by_slug[slug].files)]
            for slug in slugs
        }
        logger.info(
            "Resolved affected specs",
            extra={"source": source, "changed": len(paths), "affected": len(slugs)},
        )
        return AffectedResult(slugs=slugs, changed=paths, source=source, matches=matches)
