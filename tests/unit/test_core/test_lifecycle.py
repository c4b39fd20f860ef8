"""
Unit tests for spectrack.core.lifecycle module.

Tests check status transitions and the reset-on-all-green policy.
"""

import pytest

from spectrack.core.errors import (
    CheckPositionError,
    IllegalTransitionError,
    RevisionMismatchError,
    SpecIOError,
    ValidationError,
)
from spectrack.core.lifecycle import (
    CHECK_TRANSITIONS,
    OUTCOME_FAIL,
    OUTCOME_PASS,
    OUTCOME_RESET,
    LifecycleManager,
    transition_path,
)
from spectrack.core import storage
from spectrack.core.model import CheckStatus


# Test fixtures

@pytest.fixture
def lifecycle(registry, run_log):
    return LifecycleManager(registry, run_log)


def counts(registry, slug="user-login"):
    return registry.get(slug).counts().as_tuple()


class TestTransitions:
    def test_transition_table(self):
        assert CHECK_TRANSITIONS[CheckStatus.UNCHECKED] == [CheckStatus.PASSED, CheckStatus.FAILED]
        assert CHECK_TRANSITIONS[CheckStatus.PASSED] == [CheckStatus.UNCHECKED]

    def test_direct_path(self):
        assert transition_path(CheckStatus.UNCHECKED, CheckStatus.PASSED) == [CheckStatus.PASSED]

    def test_flip_goes_through_unchecked(self):
        assert transition_path(CheckStatus.FAILED, CheckStatus.PASSED) == [
            CheckStatus.UNCHECKED,
            CheckStatus.PASSED,
        ]

    def test_same_state_is_empty(self):
        assert transition_path(CheckStatus.PASSED, CheckStatus.PASSED) == []


class TestSetStatus:
    def test_full_verification_pass(self, lifecycle, registry, run_log, login_spec):
        lifecycle.set_status("user-login", 1, OUTCOME_PASS)
        lifecycle.set_status("user-login", 2, OUTCOME_FAIL)
        assert counts(registry) == (1, 1, 1)

        lifecycle.set_status("user-login", 2, OUTCOME_PASS)
        assert counts(registry) == (2, 0, 1)

        update = lifecycle.set_status("user-login", 3, OUTCOME_PASS)
        assert counts(registry) == (3, 0, 0)
        assert update.revision == 4

        result = lifecycle.evaluate_completion("user-login")
        assert result.completed is True
        assert counts(registry) == (0, 0, 3)
        assert result.revision == 5
        records = run_log.records("user-login")
        assert len(records) == 1
        assert records[0].revision == 4
        assert records[0].passed == 3

    def test_update_reports_previous_and_counts(self, lifecycle, login_spec):
        update = lifecycle.set_status("user-login", 2, OUTCOME_FAIL)
        assert update.previous is CheckStatus.UNCHECKED
        assert update.status is CheckStatus.FAILED
        assert update.changed is True
        assert update.to_dict()["counts"] == {"passed": 0, "failed": 1, "unchecked": 2, "total": 3}

    def test_repeat_is_a_noop(self, lifecycle, registry, login_spec):
        lifecycle.set_status("user-login", 1, OUTCOME_PASS)
        before = login_spec.read_bytes()
        update = lifecycle.set_status("user-login", 1, OUTCOME_PASS)
        assert update.changed is False
        assert update.revision == 1
        assert login_spec.read_bytes() == before

    def test_position_out_of_range(self, lifecycle, login_spec):
        with pytest.raises(CheckPositionError) as exc_info:
            lifecycle.set_status("user-login", 4, OUTCOME_PASS)
        assert "1..3" in str(exc_info.value)
        with pytest.raises(CheckPositionError):
            lifecycle.set_status("user-login", 0, OUTCOME_PASS)

    def test_reset_unchecked_is_illegal(self, lifecycle, login_spec):
        with pytest.raises(IllegalTransitionError):
            lifecycle.set_status("user-login", 1, OUTCOME_RESET)

    def test_reset_marked_check(self, lifecycle, registry, login_spec):
        lifecycle.set_status("user-login", 1, OUTCOME_FAIL)
        lifecycle.set_status("user-login", 1, OUTCOME_RESET)
        assert counts(registry) == (0, 0, 3)

    def test_stale_revision_is_rejected(self, lifecycle, registry, login_spec):
        lifecycle.set_status("user-login", 1, OUTCOME_PASS, expected_revision=0)
        with pytest.raises(RevisionMismatchError) as exc_info:
            lifecycle.set_status("user-login", 2, OUTCOME_PASS, expected_revision=0)
        assert exc_info.value.current == 1
        assert counts(registry) == (1, 0, 2)

    def test_unknown_outcome(self, lifecycle, login_spec):
        with pytest.raises(ValidationError):
            lifecycle.set_status("user-login", 1, "maybe")

    def test_unknown_marker_is_normalized_on_write(self, lifecycle, write_spec):
        path = write_spec(
            "odd.md", "# Odd\n\n## Checks\n- [x] First\n- [ ] Second\n"
        )
        lifecycle.set_status("odd", 2, OUTCOME_PASS)
        text = path.read_text(encoding="utf-8")
        assert "- [ ] First" in text
        assert "- [🟩] Second" in text


class TestEvaluateCompletion:
    def test_failed_spec_is_left_untouched(self, lifecycle, run_log, login_spec):
        for position, outcome in ((1, OUTCOME_PASS), (2, OUTCOME_FAIL), (3, OUTCOME_PASS)):
            lifecycle.set_status("user-login", position, outcome)
        before = login_spec.read_bytes()

        result = lifecycle.evaluate_completion("user-login")
        assert result.completed is False
        assert result.counts.as_tuple() == (2, 1, 0)
        assert login_spec.read_bytes() == before
        assert run_log.records() == []

    def test_hand_marked_spec_is_rejected(self, lifecycle, run_log, write_spec):
        write_spec("done.md", "# Done\n\n## Checks\n- [🟩] One\n- [🟩] Two\n")
        with pytest.raises(ValidationError) as exc_info:
            lifecycle.evaluate_completion("done")
        assert [d.code for d in exc_info.value.diagnostics] == ["SKIPPED_RESET"]
        assert run_log.records() == []

    def test_failed_write_rolls_back_the_log(self, monkeypatch, lifecycle, registry, run_log, login_spec):
        for position in (1, 2, 3):
            lifecycle.set_status("user-login", position, OUTCOME_PASS)
        before = login_spec.read_bytes()

        def failing_save(spec):
            raise SpecIOError("disk full", path=str(spec.path))

        monkeypatch.setattr(registry, "save", failing_save)
        with pytest.raises(SpecIOError):
            lifecycle.evaluate_completion("user-login")

        assert run_log.records() == []
        assert login_spec.read_bytes() == before

    def test_unwritable_temp_file_rolls_back_the_log(self, monkeypatch, lifecycle, registry, run_log, login_spec):
        for position in (1, 2, 3):
            lifecycle.set_status("user-login", position, OUTCOME_PASS)
        before = login_spec.read_bytes()

        def no_space(*args, **kwargs):
            raise OSError(28, "No space left on device")

        with monkeypatch.context() as patched:
            patched.setattr(storage.tempfile, "mkstemp", no_space)
            with pytest.raises(SpecIOError):
                lifecycle.evaluate_completion("user-login")

        assert run_log.records() == []
        assert login_spec.read_bytes() == before

        # Once the disk recovers the same pass completes normally.
        result = lifecycle.evaluate_completion("user-login")
        assert result.completed
        assert len(run_log.records("user-login")) == 1

    def test_second_pass_logs_again(self, lifecycle, run_log, login_spec):
        for _ in range(2):
            for position in (1, 2, 3):
                lifecycle.set_status("user-login", position, OUTCOME_PASS)
            assert lifecycle.evaluate_completion("user-login").completed
        assert [r.revision for r in run_log.records("user-login")] == [3, 7]


class TestResetSpec:
    def test_reset_all_marked_checks(self, lifecycle, registry, run_log, login_spec):
        lifecycle.set_status("user-login", 1, OUTCOME_PASS)
        lifecycle.set_status("user-login", 3, OUTCOME_FAIL)
        result = lifecycle.reset_spec("user-login")
        assert result.reset_positions == [1, 3]
        assert result.revision == 3
        assert counts(registry) == (0, 0, 3)
        assert run_log.records() == []

    def test_reset_fresh_spec_is_a_noop(self, lifecycle, login_spec):
        before = login_spec.read_bytes()
        result = lifecycle.reset_spec("user-login")
        assert result.reset_positions == []
        assert login_spec.read_bytes() == before
