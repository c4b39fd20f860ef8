"""
Snapshot store for the tracked tree.

A snapshot maps every tracked project-relative path to its content hash. One
snapshot is active per project; ``create()`` replaces it wholesale and
everything else only reads it. The loaded :class:`Snapshot` is passed
explicitly to the drift detector and the resolver.
"""

import fnmatch
import json
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Sequence

from spectrack.core.errors import SpecIOError, ValidationError
from spectrack.core.hashing import HASH_ALGORITHM, Unreadable, hash_file
from spectrack.core.model import normalize_path
from spectrack.core.storage import atomic_write_json
from spectrack.core.vcs import git_tracked_files

logger = logging.getLogger(__name__)

SNAPSHOT_FORMAT_VERSION = 1

DEFAULT_IGNORE_PATTERNS = (
    ".git/",
    ".hg/",
    ".svn/",
    ".spectrack/",
    "node_modules/",
    "__pycache__/",
    ".pytest_cache/",
    ".mypy_cache/",
    ".venv/",
    "*.pyc",
    ".DS_Store",
)


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass
class Snapshot:
    """Path-to-hash map at a point in time.

    Equality compares the map only, so two scans of an unchanged tree are
    equal regardless of when they were taken.
    """

    files: Dict[str, str] = field(default_factory=dict)
    created_at: str = field(default="", compare=False)
    skipped: List[str] = field(default_factory=list, compare=False)

    def hash_for(self, path: str) -> Optional[str]:
        return self.files.get(normalize_path(path))

    def __contains__(self, path: object) -> bool:
        return isinstance(path, str) and normalize_path(path) in self.files

    def __len__(self) -> int:
        return len(self.files)

    def to_dict(self) -> dict:
        return {
            "version": SNAPSHOT_FORMAT_VERSION,
            "algorithm": HASH_ALGORITHM,
            "timestamp": self.created_at,
            "files": dict(sorted(self.files.items())),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Snapshot":
        if not isinstance(data, dict) or not isinstance(data.get("files"), dict):
            raise ValidationError("Snapshot store is malformed: missing 'files' mapping")
        files = {}
        for path, digest in data["files"].items():
            if not isinstance(digest, str):
                raise ValidationError(f"Snapshot entry for {path!r} is not a hash string")
            files[normalize_path(str(path))] = digest
        return cls(files=files, created_at=str(data.get("timestamp", "")))


class IgnorePolicy:
    """
    Gitignore-style exclusion used when git itself cannot enumerate the tree.

    Supported pattern forms: ``name`` (matches any path component),
    ``dir/`` (directories only), ``/anchored`` or ``a/b`` (relative to the
    root) and shell wildcards. Negated patterns (``!keep``) are ignored.
    """

    def __init__(self, patterns: Iterable[str] = DEFAULT_IGNORE_PATTERNS):
        self.patterns: List[str] = []
        for raw in patterns:
            pattern = raw.strip()
            if not pattern or pattern.startswith("#"):
                continue
            if pattern.startswith("!"):
                logger.debug("Negated ignore pattern not supported: %s", pattern)
                continue
            self.patterns.append(pattern)

    @classmethod
    def for_root(cls, root: Path, extra: Sequence[str] = ()) -> "IgnorePolicy":
        patterns = list(DEFAULT_IGNORE_PATTERNS) + list(extra)
        gitignore = root / ".gitignore"
        if gitignore.is_file():
            try:
                patterns.extend(gitignore.read_text(encoding="utf-8").splitlines())
            except OSError as e:
                logger.warning("Could not read %s: %s", gitignore, e)
        return cls(patterns)

    def _matches(self, pattern: str, rel_path: str, is_dir: bool) -> bool:
        dir_only = pattern.endswith("/")
        body = pattern.rstrip("/")
        if dir_only and not is_dir:
            return False
        if body.startswith("/") or "/" in body:
            return fnmatch.fnmatchcase(rel_path, body.lstrip("/"))
        return fnmatch.fnmatchcase(rel_path.rsplit("/", 1)[-1], body)

    def is_ignored(self, rel_path: str, is_dir: bool = False) -> bool:
        return any(self._matches(p, rel_path, is_dir) for p in self.patterns)


def iter_tree(root: Path, ignore: IgnorePolicy) -> Iterator[str]:
    """Walk ``root`` and yield project-relative file paths not ignored."""

    def on_error(error: OSError) -> None:
        logger.warning("Skipping unreadable directory %s: %s", error.filename, error)

    for dirpath, dirnames, filenames in os.walk(root, onerror=on_error):
        rel_dir = Path(dirpath).relative_to(root).as_posix()
        prefix = "" if rel_dir == "." else rel_dir + "/"
        dirnames[:] = sorted(
            d for d in dirnames if not ignore.is_ignored(prefix + d, is_dir=True)
        )
        for name in sorted(filenames):
            rel_path = prefix + name
            if not ignore.is_ignored(rel_path):
                yield rel_path


class SnapshotStore:
    """
    Persists the last-known {path -> hash} map for the tracked tree.

    Args:
        project_root: Root of the tracked tree
        snapshot_path: Location of the store file
        ignore_patterns: Extra patterns for the fallback walker
        use_git: Enumerate the tree through ``git ls-files`` when possible
    """

    def __init__(
        self,
        project_root: Path,
        snapshot_path: Path,
        ignore_patterns: Sequence[str] = (),
        use_git: bool = True,
    ):
        self.project_root = Path(project_root).resolve()
        self.snapshot_path = Path(snapshot_path)
        if not self.snapshot_path.is_absolute():
            self.snapshot_path = self.project_root / self.snapshot_path
        self.ignore_patterns = list(ignore_patterns)
        self.use_git = use_git

    def _excluded_self(self) -> Optional[str]:
        try:
            return self.snapshot_path.resolve().relative_to(self.project_root).as_posix()
        except ValueError:
            return None

    def tracked_paths(self) -> List[str]:
        """Enumerate tracked files, preferring git's view of the tree."""
        paths: Optional[List[str]] = None
        if self.use_git:
            paths = git_tracked_files(self.project_root)
            if paths is not None:
                ignore = IgnorePolicy(self.ignore_patterns + [".spectrack/"])
                paths = [p for p in paths if not ignore.is_ignored(p)]
        if paths is None:
            ignore = IgnorePolicy.for_root(self.project_root, self.ignore_patterns)
            paths = list(iter_tree(self.project_root, ignore))

        own = self._excluded_self()
        return sorted(p for p in paths if p != own)

    def scan(self) -> Snapshot:
        """Hash the current tree without persisting anything.

        Unreadable files are recorded in ``skipped`` and left out of the map.
        """
        files: Dict[str, str] = {}
        skipped: List[str] = []
        for rel_path in self.tracked_paths():
            full_path = self.project_root / rel_path
            if not full_path.is_file():
                # git ls-files --cached still lists deleted, unstaged files
                continue
            result = hash_file(full_path)
            if isinstance(result, Unreadable):
                logger.warning(
                    "Skipping unreadable file during scan",
                    extra={"path": rel_path, "reason": result.reason},
                )
                skipped.append(rel_path)
                continue
            files[rel_path] = result
        return Snapshot(files=files, created_at=_utc_now(), skipped=skipped)

    def create(self) -> Snapshot:
        """Scan the tree and replace the stored snapshot atomically."""
        snapshot = self.scan()
        atomic_write_json(self.snapshot_path, snapshot.to_dict())
        logger.info(
            "Snapshot created",
            extra={
                "files": len(snapshot.files),
                "skipped": len(snapshot.skipped),
                "path": str(self.snapshot_path),
            },
        )
        return snapshot

    def exists(self) -> bool:
        return self.snapshot_path.is_file()

    def load(self) -> Optional[Snapshot]:
        """
        Return the persisted snapshot.

        Returns:
            The snapshot, or None when no snapshot was ever created. An empty
            project yields an empty Snapshot, never None.

        Raises:
            ValidationError: If the store exists but is corrupt
            SpecIOError: If the store exists but cannot be read
        """
        if not self.exists():
            return None
        try:
            raw = self.snapshot_path.read_text(encoding="utf-8")
        except OSError as e:
            raise SpecIOError(
                f"Cannot read snapshot store: {e}", path=str(self.snapshot_path)
            ) from e
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValidationError(
                f"Snapshot store is not valid JSON: {e}",
                details={"path": str(self.snapshot_path)},
            ) from e
        return Snapshot.from_dict(data)
