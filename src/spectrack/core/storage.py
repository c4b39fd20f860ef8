"""
Crash-safe file writes.
Every persisted artifact (spec, snapshot, run log) goes through this module.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional, Union

from spectrack.core.errors import SpecIOError

logger = logging.getLogger(__name__)


def atomic_write_text(path: Union[str, Path], content: str) -> Path:
    """
    Write text to ``path`` via a temp file in the same directory plus rename.

    A crash at any point leaves either the previous file or the new one, never
    a partial write.

    Args:
        path: Destination file
        content: Full file content (UTF-8)

    Returns:
        The destination path

    Raises:
        SpecIOError: If the write or the rename fails; the destination is untouched
    """
    target = Path(path)
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise SpecIOError(f"Cannot create directory {target.parent}: {e}", path=str(target)) from e

    temp_file: Optional[Path] = None
    try:
        fd, temp_name = tempfile.mkstemp(
            prefix=f".{target.name}.", suffix=".tmp", dir=str(target.parent)
        )
        temp_file = Path(temp_name)
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        temp_file.replace(target)
    except OSError as e:
        if temp_file is not None and temp_file.exists():
            temp_file.unlink()
        logger.error("Atomic write failed for %s: %s", target, e)
        raise SpecIOError(f"Failed to write {target}: {e}", path=str(target)) from e
    return target


def atomic_write_json(path: Union[str, Path], data: Dict[str, Any]) -> Path:
    """Serialize ``data`` with sorted keys and write it atomically."""
    return atomic_write_text(path, json.dumps(data, indent=2, sort_keys=True) + "\n")


def append_line(path: Union[str, Path], line: str) -> int:
    """
    Append one line to an append-only log and fsync it.

    Returns:
        The file size before the append, usable with :func:`truncate_to`
        to roll the append back.
    """
    target = Path(path)
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        previous_size = target.stat().st_size if target.exists() else 0
        with open(target, "a", encoding="utf-8") as f:
            f.write(line.rstrip("\n") + "\n")
            f.flush()
            os.fsync(f.fileno())
    except OSError as e:
        raise SpecIOError(f"Failed to append to {target}: {e}", path=str(target)) from e
    return previous_size


def truncate_to(path: Union[str, Path], size: int) -> None:
    """Roll an append-only log back to ``size`` bytes."""
    target = Path(path)
    try:
        with open(target, "r+b") as f:
            f.truncate(size)
            f.flush()
            os.fsync(f.fileno())
    except OSError as e:
        logger.error("Rollback of %s to %d bytes failed: %s", target, size, e)
        raise SpecIOError(f"Failed to roll back {target}: {e}", path=str(target)) from e
