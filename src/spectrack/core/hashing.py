"""Content fingerprints for tracked files.

Fingerprints are SHA-256 hex digests of the raw bytes: identical bytes always
fingerprint identically, and no attempt is made at semantic comparison.
"""

import hashlib
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)

HASH_ALGORITHM = "sha256"
_CHUNK_SIZE = 1024 * 1024


@dataclass(frozen=True)
class Unreadable:
    """A file that could not be fingerprinted. Callers skip it."""

    path: str
    reason: str


HashResult = Union[str, Unreadable]


def hash_bytes(data: bytes) -> str:
    """Return the hex fingerprint of ``data``."""
    return hashlib.sha256(data).hexdigest()


def hash_file(path: Union[str, Path]) -> HashResult:
    """Fingerprint a file's bytes, streaming in chunks.

    Permission errors, files deleted mid-scan and directories all produce an
    :class:`Unreadable` result instead of raising.
    """
    digest = hashlib.sha256()
    try:
        with open(path, "rb") as f:
            for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
                digest.update(chunk)
    except OSError as e:
        logger.debug("Skipping unreadable file %s: %s", path, e)
        return Unreadable(path=str(path), reason=e.strerror or type(e).__name__)
    return digest.hexdigest()
