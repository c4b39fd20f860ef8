"""Exception taxonomy for spectrack.

Every error carries the ``error_code`` / ``error_type`` pair used in the
response envelope so callers can route failures without string matching.
"""

from typing import Any, Dict, List, Optional, Sequence

from spectrack.core.responses import ErrorCode, ErrorType


class SpecTrackError(Exception):
    """Base class for all spectrack errors."""

    error_code: ErrorCode = ErrorCode.INTERNAL_ERROR
    error_type: ErrorType = ErrorType.INTERNAL
    remediation: Optional[str] = None

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = dict(details or {})

    def to_details(self) -> Dict[str, Any]:
        return dict(self.details)


class ValidationError(SpecTrackError):
    """Malformed spec content. Surfaced directly, never silently repaired."""

    error_code = ErrorCode.VALIDATION_ERROR
    error_type = ErrorType.VALIDATION
    remediation = "Fix the spec file and retry"

    def __init__(
        self,
        message: str,
        *,
        diagnostics: Optional[Sequence[Any]] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details=details)
        self.diagnostics = list(diagnostics or [])

    def to_details(self) -> Dict[str, Any]:
        details = dict(self.details)
        if self.diagnostics:
            details["diagnostics"] = [
                {"code": d.code, "message": d.message, "severity": d.severity}
                for d in self.diagnostics
            ]
        return details


class CheckPositionError(ValidationError):
    """A lifecycle call addressed a check outside the valid range."""

    error_code = ErrorCode.INVALID_POSITION
    remediation = "Fetch the checklist again and address a position inside the valid range"

    def __init__(self, slug: str, position: int, total: int):
        valid = f"1..{total}" if total else "none (spec has no checks)"
        super().__init__(
            f"Check position {position} is out of range for spec '{slug}' (valid: {valid})",
            details={"slug": slug, "requested": position, "valid_range": [1, total]},
        )
        self.slug = slug
        self.position = position
        self.total = total


class IllegalTransitionError(SpecTrackError):
    """A status transition the check state machine does not allow."""

    error_code = ErrorCode.CONFLICT
    error_type = ErrorType.CONFLICT


class RevisionMismatchError(SpecTrackError):
    """The caller operated on a stale view of the check list."""

    error_code = ErrorCode.CONFLICT
    error_type = ErrorType.CONFLICT
    remediation = "Fetch the checklist again to obtain the current revision"

    def __init__(self, slug: str, expected: int, current: int):
        super().__init__(
            f"Spec '{slug}' is at revision {current}, caller expected {expected}",
            details={"slug": slug, "expected": expected, "current": current},
        )
        self.expected = expected
        self.current = current


class NotFoundError(SpecTrackError):
    """No spec or path matched. Carries ranked near-matches."""

    error_code = ErrorCode.SPEC_NOT_FOUND
    error_type = ErrorType.NOT_FOUND
    remediation = "Run 'spectrack specs list' to see available specs"

    def __init__(
        self,
        message: str,
        *,
        near_matches: Optional[List[Any]] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details=details)
        self.near_matches = list(near_matches or [])

    def to_details(self) -> Dict[str, Any]:
        details = dict(self.details)
        details["near_matches"] = [
            {"slug": m.slug, "confidence": round(m.confidence, 3)}
            for m in self.near_matches
        ]
        return details


class AmbiguousMatchError(SpecTrackError):
    """Several candidates tie; the caller has to choose."""

    error_code = ErrorCode.AMBIGUOUS_MATCH
    error_type = ErrorType.AMBIGUOUS
    remediation = "Repeat the call with one of the listed candidates"

    def __init__(self, message: str, candidates: Sequence[str]):
        super().__init__(message, details={"candidates": list(candidates)})
        self.candidates = list(candidates)


class SpecIOError(SpecTrackError, OSError):
    """Filesystem failure during an atomic write or a required read."""

    error_code = ErrorCode.IO_ERROR
    error_type = ErrorType.IO
    remediation = "Check permissions and free disk space, then retry"

    def __init__(self, message: str, *, path: Optional[str] = None):
        SpecTrackError.__init__(self, message, details={"path": path} if path else None)
        self.path = path

    def __str__(self) -> str:
        return self.message


class SnapshotMissingError(NotFoundError):
    """Drift detection needs a baseline snapshot and none was ever created."""

    error_code = ErrorCode.SNAPSHOT_NOT_FOUND
    remediation = "Run 'spectrack snapshot create' to record a baseline"
