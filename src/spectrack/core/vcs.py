"""
Version-control collaborator.

Thin wrappers over the ``git`` executable. Every function returns ``None``
when git or the repository is unavailable so callers can fall back to
snapshot-based detection.
"""

import logging
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence

from spectrack.core.model import normalize_path

logger = logging.getLogger(__name__)

GIT_TIMEOUT_SECONDS = 30


def _run_git(root: Path, args: Sequence[str]) -> Optional[str]:
    try:
        result = subprocess.run(
            ["git", "-C", str(root), *args],
            capture_output=True,
            text=True,
            check=True,
            timeout=GIT_TIMEOUT_SECONDS,
        )
    except (subprocess.CalledProcessError, FileNotFoundError, subprocess.TimeoutExpired) as e:
        logger.debug("git %s unavailable in %s: %s", " ".join(args), root, e)
        return None
    return result.stdout


def _split(output: str, sep: str) -> List[str]:
    return [normalize_path(p) for p in output.split(sep) if p.strip()]


def git_tracked_files(root: Path) -> Optional[List[str]]:
    """
    List files git considers part of the tree under ``root``.

    Includes untracked files that are not ignored, so the result honors
    ``.gitignore``, ``.git/info/exclude`` and the global excludes file.
    Paths are relative to ``root``.
    """
    output = _run_git(
        root, ["ls-files", "--cached", "--others", "--exclude-standard", "-z"]
    )
    if output is None:
        return None
    return sorted(set(_split(output, "\0")))


def git_changed_paths(root: Path, base: str = "HEAD") -> Optional[List[str]]:
    """
    Paths changed relative to ``base``, plus untracked files.

    Renames are reported as both the old and the new path.

    Args:
        root: Project root (paths are returned relative to it)
        base: Any revision git understands (branch, tag, sha)

    Returns:
        Sorted list of changed paths, or None if git cannot answer
    """
    diff = _run_git(root, ["diff", "--name-only", "--no-renames", "--relative", "-z", base])
    if diff is None:
        return None
    untracked = _run_git(root, ["ls-files", "--others", "--exclude-standard", "-z"])
    changed = set(_split(diff, "\0"))
    if untracked:
        changed.update(_split(untracked, "\0"))
    return sorted(changed)
