"""
In-memory spec model shared by both on-disk encodings.

A Spec is a tagged variant: ``encoding`` says which serializer owns it, and
``source`` keeps the parsed document so untouched content can be written back
verbatim. Everything downstream (registry, resolver, lifecycle) only sees the
fields defined here.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from spectrack.core.errors import CheckPositionError

SLUG_MAX_LENGTH = 50
GLOB_CHARS = frozenset("*?[")


class CheckStatus(str, Enum):
    UNCHECKED = "unchecked"
    PASSED = "passed"
    FAILED = "failed"


class Encoding(str, Enum):
    HUMAN = "human"
    MACHINE = "machine"


HUMAN_EXTENSIONS = (".md", ".markdown")
MACHINE_EXTENSIONS = (".yaml", ".yml")
SPEC_EXTENSIONS = HUMAN_EXTENSIONS + MACHINE_EXTENSIONS


def slugify(title: str) -> str:
    """Derive the spec slug from a title.

    >>> slugify("User Login: happy path!")
    'user-login-happy-path'
    """
    slug = re.sub(r"[^a-z0-9]+", "-", title.strip().lower()).strip("-")
    return slug[:SLUG_MAX_LENGTH].rstrip("-")


def encoding_for_path(path: Path) -> Optional[Encoding]:
    suffix = path.suffix.lower()
    if suffix in HUMAN_EXTENSIONS:
        return Encoding.HUMAN
    if suffix in MACHINE_EXTENSIONS:
        return Encoding.MACHINE
    return None


def normalize_path(path: str) -> str:
    """Normalize a project-relative path to forward slashes without ``./``."""
    normalized = path.strip().replace("\\", "/")
    while normalized.startswith("./"):
        normalized = normalized[2:]
    normalized = re.sub(r"/{2,}", "/", normalized)
    return normalized.rstrip("/") if normalized != "/" else normalized


@dataclass
class Check:
    """One verifiable item. Identity is its 1-based position."""

    position: int
    text: str
    status: CheckStatus = CheckStatus.UNCHECKED
    code: Optional[str] = None
    # Glyph found between the brackets when it was not one of the three
    # recognized markers; the check parses as unchecked.
    unrecognized_marker: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "position": self.position,
            "text": self.text,
            "status": self.status.value,
        }
        if self.code:
            data["code"] = self.code
        return data


@dataclass(frozen=True)
class FileReference:
    """A path (or glob) a spec is associated with, plus its association-time hash."""

    path: str
    hash: Optional[str] = None

    @property
    def is_glob(self) -> bool:
        return any(c in GLOB_CHARS for c in self.path)

    def to_dict(self) -> Dict[str, Any]:
        return {"path": self.path, "hash": self.hash}


@dataclass(frozen=True)
class StatusCounts:
    passed: int = 0
    failed: int = 0
    unchecked: int = 0

    @property
    def total(self) -> int:
        return self.passed + self.failed + self.unchecked

    def as_tuple(self) -> tuple:
        return (self.passed, self.failed, self.unchecked)

    def to_dict(self) -> Dict[str, int]:
        return {
            "passed": self.passed,
            "failed": self.failed,
            "unchecked": self.unchecked,
            "total": self.total,
        }


@dataclass
class Spec:
    slug: str
    title: str
    encoding: Encoding
    checks: List[Check] = field(default_factory=list)
    files: List[FileReference] = field(default_factory=list)
    auto_discover: bool = False
    revision: int = 0
    path: Optional[Path] = None
    origin: str = "root"
    source: Any = field(default=None, repr=False, compare=False)

    def counts(self) -> StatusCounts:
        passed = sum(1 for c in self.checks if c.status is CheckStatus.PASSED)
        failed = sum(1 for c in self.checks if c.status is CheckStatus.FAILED)
        return StatusCounts(
            passed=passed,
            failed=failed,
            unchecked=len(self.checks) - passed - failed,
        )

    @property
    def all_passed(self) -> bool:
        return bool(self.checks) and all(
            c.status is CheckStatus.PASSED for c in self.checks
        )

    def check_at(self, position: int) -> Check:
        """Return the check at a 1-based position or raise CheckPositionError."""
        if not isinstance(position, int) or not 1 <= position <= len(self.checks):
            raise CheckPositionError(self.slug, position, len(self.checks))
        return self.checks[position - 1]

    def renumber(self) -> None:
        for index, check in enumerate(self.checks, start=1):
            check.position = index

    def file_paths(self) -> List[str]:
        return [ref.path for ref in self.files]

    def to_dict(self, include_checks: bool = True) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "slug": self.slug,
            "title": self.title,
            "encoding": self.encoding.value,
            "origin": self.origin,
            "revision": self.revision,
            "auto_discover": self.auto_discover,
            "path": str(self.path) if self.path else None,
            "files": [ref.to_dict() for ref in self.files],
            "counts": self.counts().to_dict(),
        }
        if include_checks:
            data["checks"] = [c.to_dict() for c in self.checks]
        return data
