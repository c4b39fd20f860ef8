"""
Append-only run log.

One JSON object per line. A record is the only durable trace of a completed
verification pass, because the spec itself is reset right after logging.
"""

import json
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

from spectrack.core.errors import SpecIOError
from spectrack.core.storage import append_line, truncate_to

logger = logging.getLogger(__name__)


@dataclass
class RunRecord:
    """A completed, fully-passed verification pass."""

    timestamp: str
    slug: str
    title: str
    revision: int
    success: bool
    total: int
    passed: int
    checks: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class RunLog:
    """Reader/appender for the run log file."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def append(self, record: RunRecord) -> int:
        """Append a record and return the pre-append size for rollback."""
        size = append_line(self.path, json.dumps(record.to_dict(), ensure_ascii=False))
        logger.info(
            "Run logged",
            extra={"slug": record.slug, "revision": record.revision, "total": record.total},
        )
        return size

    def rollback(self, size: int) -> None:
        truncate_to(self.path, size)
        logger.warning("Run log rolled back", extra={"path": str(self.path), "size": size})

    def records(self, slug: Optional[str] = None) -> List[RunRecord]:
        """Read records, oldest first. Malformed lines are skipped with a warning."""
        if not self.path.exists():
            return []
        try:
            raw_lines = self.path.read_text(encoding="utf-8").splitlines()
        except OSError as e:
            raise SpecIOError(f"Cannot read run log: {e}", path=str(self.path)) from e

        records = []
        for number, line in enumerate(raw_lines, start=1):
            if not line.strip():
                continue
            try:
                data = json.loads(line)
                record = RunRecord(
                    timestamp=str(data["timestamp"]),
                    slug=str(data["slug"]),
                    title=str(data.get("title", "")),
                    revision=int(data.get("revision", 0)),
                    success=bool(data.get("success", True)),
                    total=int(data.get("total", 0)),
                    passed=int(data.get("passed", 0)),
                    checks=list(data.get("checks", [])),
                )
            except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed run log line %d: %s", number, e)
                continue
            if slug is None or record.slug == slug:
                records.append(record)
        return records

    def completed_revisions(self, slug: str) -> Set[int]:
        return {r.revision for r in self.records(slug) if r.success}


def new_record(slug: str, title: str, revision: int, checks: List[Dict[str, Any]]) -> RunRecord:
    passed = sum(1 for c in checks if c.get("status") == "passed")
    return RunRecord(
        timestamp=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        slug=slug,
        title=title,
        revision=revision,
        success=passed == len(checks),
        total=len(checks),
        passed=passed,
        checks=checks,
    )
