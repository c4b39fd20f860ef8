"""
Check lifecycle operations.
Provides per-check status transitions and the reset-on-all-green policy.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from spectrack.core.errors import (
    IllegalTransitionError,
    RevisionMismatchError,
    SpecIOError,
    ValidationError,
)
from spectrack.core.model import CheckStatus, Spec, StatusCounts
from spectrack.core.registry import SpecRegistry
from spectrack.core.runlog import RunLog, RunRecord, new_record

logger = logging.getLogger(__name__)


# Data structures

@dataclass
class StatusUpdate:
    """
    Result of changing one check's status.
    """
    slug: str
    position: int
    previous: CheckStatus
    status: CheckStatus
    changed: bool
    revision: int
    counts: StatusCounts

    def to_dict(self) -> Dict[str, Any]:
        return {
            "slug": self.slug,
            "position": self.position,
            "previous": self.previous.value,
            "status": self.status.value,
            "changed": self.changed,
            "revision": self.revision,
            "counts": self.counts.to_dict(),
        }


@dataclass
class CompletionResult:
    """
    Result of evaluating a spec for completion.
    """
    slug: str
    completed: bool  # True when a run was logged and the checks were reset
    revision: int
    counts: StatusCounts
    record: Optional[RunRecord] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "slug": self.slug,
            "completed": self.completed,
            "revision": self.revision,
            "counts": self.counts.to_dict(),
            "record": self.record.to_dict() if self.record else None,
        }


@dataclass
class ResetResult:
    slug: str
    reset_positions: List[int] = field(default_factory=list)
    revision: int = 0
    counts: StatusCounts = field(default_factory=StatusCounts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "slug": self.slug,
            "reset_positions": list(self.reset_positions),
            "revision": self.revision,
            "counts": self.counts.to_dict(),
        }


# Constants

OUTCOME_PASS = "pass"
OUTCOME_FAIL = "fail"
OUTCOME_RESET = "reset"

OUTCOME_TARGETS = {
    OUTCOME_PASS: CheckStatus.PASSED,
    OUTCOME_FAIL: CheckStatus.FAILED,
    OUTCOME_RESET: CheckStatus.UNCHECKED,
}

CHECK_TRANSITIONS = {
    CheckStatus.UNCHECKED: [CheckStatus.PASSED, CheckStatus.FAILED],
    CheckStatus.PASSED: [CheckStatus.UNCHECKED],
    CheckStatus.FAILED: [CheckStatus.UNCHECKED],
}


def transition_path(current: CheckStatus, target: CheckStatus) -> List[CheckStatus]:
    """
    Legal steps leading from ``current`` to ``target``.

    A marked check re-marked the other way goes through ``unchecked``.
    Returns an empty list when ``current`` already is ``target``.

    Raises:
        IllegalTransitionError: If no legal path exists
    """
    if current is target:
        return []
    if target in CHECK_TRANSITIONS[current]:
        return [target]
    if CheckStatus.UNCHECKED in CHECK_TRANSITIONS[current]:
        return [CheckStatus.UNCHECKED, target]
    raise IllegalTransitionError(
        f"Cannot move a check from {current.value} to {target.value}",
        details={"from": current.value, "to": target.value},
    )


class LifecycleManager:
    """
    Mutates check statuses and enforces the reset-on-all-green policy.

    Args:
        registry: Registry used to load and save specs
        run_log: Append-only log of completed passes
    """

    def __init__(self, registry: SpecRegistry, run_log: RunLog):
        self.registry = registry
        self.run_log = run_log

    def _load(self, slug: str, expected_revision: Optional[int]) -> Spec:
        spec = self.registry.get(slug)
        if expected_revision is not None and expected_revision != spec.revision:
            raise RevisionMismatchError(spec.slug, expected_revision, spec.revision)
        return spec

    def set_status(
        self,
        slug: str,
        position: int,
        outcome: str,
        expected_revision: Optional[int] = None,
    ) -> StatusUpdate:
        """
        Apply ``pass``, ``fail`` or ``reset`` to the check at ``position``.

        Re-applying a check's current status is a no-op. Every change bumps
        the spec's revision.

        Raises:
            ValidationError: Unknown outcome
            CheckPositionError: Position outside 1..N
            IllegalTransitionError: Resetting a check that is already unchecked
            RevisionMismatchError: ``expected_revision`` is stale
        """
        if outcome not in OUTCOME_TARGETS:
            raise ValidationError(
                f"Unknown outcome '{outcome}'",
                details={"outcome": outcome, "allowed": sorted(OUTCOME_TARGETS)},
            )
        spec = self._load(slug, expected_revision)
        check = spec.check_at(position)
        previous = check.status
        target = OUTCOME_TARGETS[outcome]

        if outcome == OUTCOME_RESET and previous is CheckStatus.UNCHECKED:
            raise IllegalTransitionError(
                f"Check {position} of '{spec.slug}' is already unchecked",
                details={"slug": spec.slug, "position": position},
            )

        steps = transition_path(previous, target)
        if steps:
            check.status = steps[-1]
            check.unrecognized_marker = None
            spec.revision += 1
            self.registry.save(spec)
            logger.info(
                "Check status changed",
                extra={
                    "slug": spec.slug,
                    "position": position,
                    "from": previous.value,
                    "to": check.status.value,
                    "steps": len(steps),
                    "revision": spec.revision,
                },
            )

        return StatusUpdate(
            slug=spec.slug,
            position=position,
            previous=previous,
            status=check.status,
            changed=bool(steps),
            revision=spec.revision,
            counts=spec.counts(),
        )

    def evaluate_completion(
        self, slug: str, expected_revision: Optional[int] = None
    ) -> CompletionResult:
        """
        Log and reset a spec whose checks are all passed.

        The run record is appended first and the reset spec written second.
        If the spec write fails the log is truncated back, so either both
        land or neither does. A spec with any failed or unchecked check is
        left untouched.

        Raises:
            ValidationError: The spec fails validation (e.g. a skipped reset)
            SpecIOError: The spec or the log could not be written
        """
        spec = self._load(slug, expected_revision)
        if not spec.all_passed:
            return CompletionResult(
                slug=spec.slug,
                completed=False,
                revision=spec.revision,
                counts=spec.counts(),
            )

        self.registry.validate(spec).raise_for_errors()

        record = new_record(
            spec.slug, spec.title, spec.revision, [c.to_dict() for c in spec.checks]
        )
        for check in spec.checks:
            check.status = CheckStatus.UNCHECKED
        spec.revision += 1

        size = self.run_log.append(record)
        try:
            self.registry.save(spec)
        except SpecIOError:
            self.run_log.rollback(size)
            raise

        logger.info(
            "Verification pass completed",
            extra={"slug": spec.slug, "checks": record.total, "revision": spec.revision},
        )
        return CompletionResult(
            slug=spec.slug,
            completed=True,
            revision=spec.revision,
            counts=spec.counts(),
            record=record,
        )

    def reset_spec(self, slug: str, expected_revision: Optional[int] = None) -> ResetResult:
        """Reset every marked check without logging a run."""
        spec = self._load(slug, expected_revision)
        positions = [c.position for c in spec.checks if c.status is not CheckStatus.UNCHECKED]
        if positions:
            for check in spec.checks:
                check.status = CheckStatus.UNCHECKED
            spec.revision += 1
            self.registry.save(spec)
            logger.info(
                "Spec reset",
                extra={"slug": spec.slug, "positions": positions, "revision": spec.revision},
            )
        return ResetResult(
            slug=spec.slug,
            reset_positions=positions,
            revision=spec.revision,
            counts=spec.counts(),
        )

    def checklist(self, slug: str) -> List[Dict[str, Any]]:
        return self.registry.checklist(slug)
