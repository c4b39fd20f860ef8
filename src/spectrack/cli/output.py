"""JSON output helpers for the spectrack CLI.

This module provides the sole output mechanism for the CLI. Every command
emits a response-v2 envelope: successes on stdout, errors on stderr with
exit code 1. Humans can pipe through `jq` if needed.
"""

import json
import sys
from dataclasses import asdict
from typing import Any, Mapping, NoReturn, Optional, Sequence

from spectrack.cli.logging import generate_request_id, get_request_id, set_request_id
from spectrack.core.errors import SpecTrackError
from spectrack.core.responses import error_response, success_response


def _ensure_request_id() -> str:
    request_id = get_request_id()
    if request_id:
        return request_id
    request_id = generate_request_id()
    set_request_id(request_id)
    return request_id


def emit(data: Any) -> None:
    """Emit JSON to stdout.

    This is the single output function for all CLI commands.

    Args:
        data: Any JSON-serializable data structure.
    """
    print(json.dumps(data, separators=(",", ":"), ensure_ascii=False, default=str))


def emit_error(
    message: str,
    code: str = "INTERNAL_ERROR",
    *,
    error_type: str = "internal",
    remediation: Optional[str] = None,
    details: Optional[Mapping[str, Any]] = None,
) -> NoReturn:
    """Emit error JSON to stderr and exit with code 1.

    Args:
        message: Human-readable error description.
        code: Error code in SCREAMING_SNAKE_CASE (e.g., VALIDATION_ERROR, SPEC_NOT_FOUND).
        error_type: Error category for routing (validation, not_found, conflict, etc.).
        remediation: Actionable guidance for resolving the error.
        details: Optional additional error context.

    Raises:
        SystemExit: Always exits with code 1.
    """
    response = error_response(
        message=message,
        error_code=code,
        error_type=error_type,
        remediation=remediation,
        details=details,
        request_id=_ensure_request_id(),
    )
    print(
        json.dumps(asdict(response), separators=(",", ":"), ensure_ascii=False, default=str),
        file=sys.stderr,
    )
    sys.exit(1)


def emit_exception(error: SpecTrackError) -> NoReturn:
    """Emit the error envelope for a spectrack exception and exit with code 1."""
    emit_error(
        error.message,
        code=error.error_code.value,
        error_type=error.error_type.value,
        remediation=error.remediation,
        details=error.to_details(),
    )


def emit_success(
    data: Any,
    *,
    warnings: Optional[Sequence[str]] = None,
    meta: Optional[Mapping[str, Any]] = None,
) -> None:
    """Emit success response envelope to stdout.

    All responses include meta.version: "response-v2".

    Args:
        data: The operation-specific payload.
        warnings: Non-fatal issues to surface in meta.warnings.
        meta: Additional metadata to merge into meta object.
    """
    if not isinstance(data, dict):
        data = {"result": data}
    response = success_response(
        data=data,
        warnings=warnings,
        meta=meta,
        request_id=_ensure_request_id(),
    )
    emit(asdict(response))
