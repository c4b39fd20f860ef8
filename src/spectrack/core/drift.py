"""
Drift detection and repair.

Two snapshots are reconciled by content hash, which is the only signal that
survives a move made outside spectrack. The report is computed, never
persisted; repair rewrites spec file references through the registry.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Optional, Tuple

from spectrack.core.errors import SnapshotMissingError, ValidationError
from spectrack.core.model import FileReference, Spec
from spectrack.core.registry import SpecRegistry, reference_matches
from spectrack.core.snapshot import Snapshot, SnapshotStore

logger = logging.getLogger(__name__)

REPAIR_AUTO = "auto"
REPAIR_INTERACTIVE = "interactive"
REPAIR_MODES = (REPAIR_AUTO, REPAIR_INTERACTIVE)


@dataclass
class AmbiguousRename:
    """An old path whose content reappeared under several equally-close paths."""

    old: str
    candidates: List[str]
    proposed: str

    def to_dict(self) -> Dict[str, Any]:
        return {"old": self.old, "candidates": list(self.candidates), "proposed": self.proposed}


@dataclass
class DriftReport:
    renamed: List[Tuple[str, str]] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)
    added: List[str] = field(default_factory=list)
    modified: List[str] = field(default_factory=list)
    ambiguous: List[AmbiguousRename] = field(default_factory=list)
    unchanged: int = 0

    @property
    def has_changes(self) -> bool:
        return bool(
            self.renamed or self.deleted or self.added or self.modified or self.ambiguous
        )

    def changed_paths(self) -> List[str]:
        """Paths a resolver should treat as changed: both ends of every move included."""
        paths = set(self.added) | set(self.modified)
        for old, new in self.renamed:
            paths.update((old, new))
        for entry in self.ambiguous:
            paths.update((entry.old, entry.proposed))
        return sorted(paths)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "renamed": [{"old": old, "new": new} for old, new in self.renamed],
            "deleted": list(self.deleted),
            "added": list(self.added),
            "modified": list(self.modified),
            "ambiguous": [entry.to_dict() for entry in self.ambiguous],
            "unchanged": self.unchanged,
        }


def common_prefix_length(a: str, b: str) -> int:
    """Number of leading path components two paths share."""
    count = 0
    for left, right in zip(a.split("/")[:-1], b.split("/")[:-1]):
        if left != right:
            break
        count += 1
    return count


def detect_drift(previous: Snapshot, current: Snapshot) -> DriftReport:
    """
    Classify every path between two snapshots.

    Args:
        previous: Baseline snapshot
        current: Snapshot of the tree as it is now

    Returns:
        DriftReport with renamed, ambiguous, deleted, added and modified paths
    """
    report = DriftReport()
    old_files = previous.files
    new_files = current.files

    old_only = sorted(p for p in old_files if p not in new_files)
    new_only = sorted(p for p in new_files if p not in old_files)

    for path in sorted(p for p in old_files if p in new_files):
        if old_files[path] == new_files[path]:
            report.unchanged += 1
        else:
            report.modified.append(path)

    new_by_hash: Dict[str, List[str]] = {}
    for path in new_only:
        new_by_hash.setdefault(new_files[path], []).append(path)
    claimed = set()

    for old in old_only:
        candidates = [p for p in new_by_hash.get(old_files[old], []) if p not in claimed]
        if not candidates:
            report.deleted.append(old)
            continue

        best = max(common_prefix_length(old, c) for c in candidates)
        closest = sorted(c for c in candidates if common_prefix_length(old, c) == best)
        target = closest[0]
        claimed.add(target)
        if len(closest) == 1:
            report.renamed.append((old, target))
        else:
            logger.info(
                "Rename target is ambiguous",
                extra={"old": old, "candidates": closest, "proposed": target},
            )
            report.ambiguous.append(AmbiguousRename(old=old, candidates=closest, proposed=target))

    report.added = [p for p in new_only if p not in claimed]
    return report


def drift_since_snapshot(store: SnapshotStore) -> Tuple[DriftReport, Snapshot]:
    """Compare the stored baseline against a fresh scan of the tree."""
    previous = store.load()
    if previous is None:
        raise SnapshotMissingError("No snapshot has been created for this project")
    current = store.scan()
    return detect_drift(previous, current), current


# Stale specs


@dataclass
class StaleReference:
    path: str
    kind: str  # "renamed", "ambiguous" or "deleted"
    target: Optional[str] = None
    candidates: List[str] = field(default_factory=list)

    @property
    def rewritable(self) -> bool:
        return self.target is not None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"path": self.path, "kind": self.kind, "target": self.target}
        if self.candidates:
            data["candidates"] = list(self.candidates)
        return data


@dataclass
class StaleSpec:
    slug: str
    references: List[StaleReference] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"slug": self.slug, "references": [r.to_dict() for r in self.references]}


def _stale_references(spec: Spec, report: DriftReport) -> List[StaleReference]:
    stale: List[StaleReference] = []
    for ref in spec.files:
        for old, new in report.renamed:
            if reference_matches(ref, old) and not reference_matches(ref, new):
                target = None if ref.is_glob else new
                stale.append(StaleReference(path=ref.path, kind="renamed", target=target))
        for entry in report.ambiguous:
            if reference_matches(ref, entry.old) and not reference_matches(ref, entry.proposed):
                stale.append(
                    StaleReference(
                        path=ref.path,
                        kind="ambiguous",
                        target=None if ref.is_glob else entry.proposed,
                        candidates=list(entry.candidates),
                    )
                )
        if not ref.is_glob and ref.path in report.deleted:
            stale.append(StaleReference(path=ref.path, kind="deleted"))
    return stale


def find_stale_specs(report: DriftReport, specs: List[Spec]) -> List[StaleSpec]:
    """Specs referencing a path that was deleted or moved away."""
    stale = []
    for spec in specs:
        references = _stale_references(spec, report)
        if references:
            stale.append(StaleSpec(slug=spec.slug, references=references))
    return stale


# Reference drift


@dataclass
class DriftedReference:
    slug: str
    path: str
    recorded: str
    current: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "slug": self.slug,
            "path": self.path,
            "recorded": self.recorded,
            "current": self.current,
        }


def drifted_references(spec: Spec, snapshot: Snapshot) -> List[DriftedReference]:
    """References whose association-time hash no longer matches the tree."""
    drifted = []
    for ref in spec.files:
        if ref.is_glob or not ref.hash:
            continue
        current = snapshot.hash_for(ref.path)
        if current != ref.hash:
            drifted.append(
                DriftedReference(slug=spec.slug, path=ref.path, recorded=ref.hash, current=current)
            )
    return drifted


def refresh_hashes(spec: Spec, snapshot: Snapshot) -> List[str]:
    """Record the current snapshot hash on every concrete reference. Returns changed paths."""
    changed = []
    refreshed = []
    for ref in spec.files:
        current = None if ref.is_glob else snapshot.hash_for(ref.path)
        if current is not None and current != ref.hash:
            refreshed.append(replace(ref, hash=current))
            changed.append(ref.path)
        else:
            refreshed.append(ref)
    spec.files = refreshed
    return changed


def discover_files(registry: SpecRegistry, snapshot: Snapshot) -> Dict[str, List[str]]:
    """Refresh hashes for every spec with auto-discovery enabled and save the changed ones."""
    updated: Dict[str, List[str]] = {}
    for spec in registry.list_specs():
        if not spec.auto_discover:
            continue
        changed = refresh_hashes(spec, snapshot)
        if changed:
            registry.save(spec)
            updated[spec.slug] = changed
            logger.info("Refreshed file hashes", extra={"slug": spec.slug, "paths": changed})
    return updated


# Repair


@dataclass
class RepairResult:
    mode: str
    rewrites: List[Dict[str, str]] = field(default_factory=list)
    updated: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    deleted_references: List[Dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": self.mode,
            "rewrites": list(self.rewrites),
            "updated": list(self.updated),
            "skipped": list(self.skipped),
            "deleted_references": list(self.deleted_references),
        }


def _apply_rewrites(
    spec: Spec, stale: StaleSpec, snapshot: Optional[Snapshot]
) -> List[Dict[str, str]]:
    targets = {ref.path: ref.target for ref in stale.references if ref.rewritable}
    rewrites = []
    files: List[FileReference] = []
    seen = set()
    for ref in spec.files:
        new_path = targets.get(ref.path)
        if new_path is None:
            new_ref = ref
        else:
            digest = snapshot.hash_for(new_path) if snapshot is not None else None
            new_ref = FileReference(path=new_path, hash=digest or ref.hash)
            rewrites.append({"slug": spec.slug, "old": ref.path, "new": new_path})
        if new_ref.path in seen:
            continue
        seen.add(new_ref.path)
        files.append(new_ref)
    spec.files = files
    return rewrites


def repair(
    report: DriftReport,
    registry: SpecRegistry,
    mode: str = REPAIR_INTERACTIVE,
    confirm: Optional[Callable[[StaleSpec], bool]] = None,
    snapshot: Optional[Snapshot] = None,
) -> RepairResult:
    """
    Rewrite stale file references to their rename targets.

    Auto mode accepts every rename, ambiguous ones included (the proposed
    target is the lexicographically first of the closest candidates).
    Interactive mode asks ``confirm`` once per stale spec and writes nothing
    when no callback is supplied. Deleted references are reported only.

    Args:
        report: Drift report to act on
        registry: Registry owning the specs
        mode: ``auto`` or ``interactive``
        confirm: Per-spec confirmation callback for interactive mode
        snapshot: Current snapshot, used to record the new targets' hashes
    """
    if mode not in REPAIR_MODES:
        raise ValidationError(
            f"Unknown repair mode '{mode}'",
            details={"mode": mode, "allowed": list(REPAIR_MODES)},
        )

    result = RepairResult(mode=mode)
    specs = {spec.slug: spec for spec in registry.list_specs()}
    for stale in find_stale_specs(report, list(specs.values())):
        for ref in stale.references:
            if ref.kind == "deleted":
                result.deleted_references.append({"slug": stale.slug, "path": ref.path})
        if not any(ref.rewritable for ref in stale.references):
            continue

        if mode == REPAIR_INTERACTIVE and (confirm is None or not confirm(stale)):
            result.skipped.append(stale.slug)
            continue

        spec = specs[stale.slug]
        rewrites = _apply_rewrites(spec, stale, snapshot)
        registry.save(spec)
        result.rewrites.extend(rewrites)
        result.updated.append(stale.slug)
        logger.info(
            "Repaired file references",
            extra={"slug": stale.slug, "rewrites": len(rewrites), "mode": mode},
        )
    return result
