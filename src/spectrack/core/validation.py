"""
Validation operations for parsed specs.

Validation is pure: it inspects a Spec (plus the set of revisions the run log
records as completed) and returns diagnostics. Hard errors are never
auto-fixed; callers surface them through :meth:`ValidationResult.raise_for_errors`.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import AbstractSet, List, Optional

from spectrack.core.errors import ValidationError
from spectrack.core.model import Spec


@dataclass
class Diagnostic:
    """
    Structured validation finding.
    """

    code: str  # Diagnostic code (e.g., "NO_CHECKS", "SKIPPED_RESET")
    message: str  # Human-readable description
    severity: str  # "error", "warning", "info"
    location: Optional[str] = None  # Check position or file path the finding is about

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "severity": self.severity,
            "location": self.location,
        }


@dataclass
class ValidationResult:
    """
    Complete validation result for a spec.
    """

    slug: str
    diagnostics: List[Diagnostic] = field(default_factory=list)

    @property
    def errors(self) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == "error"]

    @property
    def warnings(self) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == "warning"]

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def raise_for_errors(self) -> None:
        errors = self.errors
        if errors:
            summary = "; ".join(d.message for d in errors)
            raise ValidationError(
                f"Spec '{self.slug}' is invalid: {summary}",
                diagnostics=errors,
                details={"slug": self.slug},
            )

    def to_dict(self) -> dict:
        return {
            "slug": self.slug,
            "is_valid": self.is_valid,
            "error_count": len(self.errors),
            "warning_count": len(self.warnings),
            "diagnostics": [d.to_dict() for d in self.diagnostics],
        }


def validate_spec(
    spec: Spec,
    completed_revisions: AbstractSet[int] = frozenset(),
    project_root: Optional[Path] = None,
) -> ValidationResult:
    """
    Validate a parsed spec.

    Args:
        spec: Parsed spec
        completed_revisions: Revisions of this spec the run log records as
            completed passes
        project_root: When given, file references are checked for existence
            (missing files are warnings; pre-implementation specs are valid)

    Returns:
        ValidationResult with all findings
    """
    result = ValidationResult(slug=spec.slug)
    diagnostics = result.diagnostics

    if not spec.title.strip():
        diagnostics.append(
            Diagnostic(
                code="EMPTY_TITLE",
                message="Spec has no title line",
                severity="error",
            )
        )

    if not spec.checks:
        diagnostics.append(
            Diagnostic(
                code="NO_CHECKS",
                message="Spec has zero checks",
                severity="error",
            )
        )

    if spec.all_passed:
        if spec.revision == 0:
            diagnostics.append(
                Diagnostic(
                    code="SKIPPED_RESET",
                    message=(
                        "Every check is already passed but no verification run "
                        "has touched this spec"
                    ),
                    severity="error",
                )
            )
        elif spec.revision in completed_revisions:
            diagnostics.append(
                Diagnostic(
                    code="SKIPPED_RESET",
                    message=(
                        f"Every check is passed at revision {spec.revision}, which "
                        "the run log already records as completed; the reset was skipped"
                    ),
                    severity="error",
                )
            )

    for check in spec.checks:
        if check.unrecognized_marker is not None:
            diagnostics.append(
                Diagnostic(
                    code="UNRECOGNIZED_MARKER",
                    message=(
                        f"Marker [{check.unrecognized_marker}] is not recognized; "
                        "it reads as unchecked and is rewritten on next save"
                    ),
                    severity="warning",
                    location=str(check.position),
                )
            )
        if not check.text:
            diagnostics.append(
                Diagnostic(
                    code="EMPTY_CHECK",
                    message="Check has no text",
                    severity="warning",
                    location=str(check.position),
                )
            )

    seen = set()
    for ref in spec.files:
        if ref.path in seen:
            diagnostics.append(
                Diagnostic(
                    code="DUPLICATE_FILE_REFERENCE",
                    message=f"File reference listed more than once: {ref.path}",
                    severity="warning",
                    location=ref.path,
                )
            )
        seen.add(ref.path)
        if project_root is not None and not ref.is_glob:
            if not (project_root / ref.path).exists():
                diagnostics.append(
                    Diagnostic(
                        code="MISSING_FILE_REFERENCE",
                        message=f"Referenced file does not exist yet: {ref.path}",
                        severity="warning",
                        location=ref.path,
                    )
                )

    return result
