"""
Property-based tests for spec, snapshot and drift invariants using Hypothesis.
"""

import string
import tempfile
from pathlib import Path

from hypothesis import HealthCheck, given, settings, strategies as st

from spectrack.core.drift import detect_drift
from spectrack.core.errors import IllegalTransitionError
from spectrack.core.lifecycle import OUTCOME_TARGETS, LifecycleManager
from spectrack.core.model import Check, CheckStatus, Encoding, FileReference, Spec
from spectrack.core.parser import parse_spec, render_human, serialize_spec
from spectrack.core.registry import SpecRegistry
from spectrack.core.runlog import RunLog
from spectrack.core.snapshot import Snapshot, SnapshotStore


# Custom strategies

WORD = st.text(alphabet=string.ascii_letters + string.digits, min_size=1, max_size=10)

statuses = st.sampled_from(list(CheckStatus))

relative_paths = st.from_regex(r"[a-z]{1,6}(/[a-z]{1,6}){0,2}\.(py|js|md)", fullmatch=True)

hashes = st.text(alphabet="0123456789abcdef", min_size=8, max_size=8)


@st.composite
def phrase(draw):
    """Space-separated words with no leading or trailing whitespace."""
    return " ".join(draw(st.lists(WORD, min_size=1, max_size=5)))


@st.composite
def specs(draw, encoding=Encoding.HUMAN):
    checks = draw(st.lists(st.tuples(phrase(), statuses), min_size=1, max_size=8))
    files = draw(st.lists(relative_paths, unique=True, max_size=4))
    return Spec(
        slug="generated",
        title=draw(phrase()),
        encoding=encoding,
        checks=[
            Check(position=i, text=text, status=status)
            for i, (text, status) in enumerate(checks, start=1)
        ],
        files=[FileReference(path=p) for p in files],
        auto_discover=draw(st.booleans()),
        revision=draw(st.integers(min_value=0, max_value=10_000)),
    )


snapshots = st.dictionaries(relative_paths, hashes, max_size=12).map(lambda f: Snapshot(files=f))


def summary(spec):
    return (
        spec.title,
        [(c.text, c.status) for c in spec.checks],
        spec.file_paths(),
        spec.auto_discover,
        spec.revision,
    )


class TestSpecInvariants:
    @given(specs())
    def test_counts_cover_every_check(self, spec):
        counts = spec.counts()
        assert counts.total == len(spec.checks)
        assert spec.all_passed == (counts.passed == len(spec.checks))

    @given(specs())
    def test_human_render_parses_back(self, spec):
        text = render_human(spec)
        parsed = parse_spec(text, Encoding.HUMAN)
        assert summary(parsed) == summary(spec)
        assert serialize_spec(parsed) == text

    @given(specs(encoding=Encoding.MACHINE))
    def test_machine_serialize_parses_back(self, spec):
        text = serialize_spec(spec)
        parsed = parse_spec(text, Encoding.MACHINE)
        assert summary(parsed) == summary(spec)
        assert serialize_spec(parsed) == text


class TestDriftInvariants:
    @given(snapshots)
    def test_identical_snapshots_have_no_drift(self, snapshot):
        report = detect_drift(snapshot, snapshot)
        assert not report.has_changes
        assert report.unchanged == len(snapshot)

    @given(st.dictionaries(relative_paths, hashes, max_size=10, min_size=1))
    def test_moving_every_distinct_file_is_all_renames(self, files):
        unique = {}
        for path, digest in files.items():
            unique.setdefault(digest, path)
        previous = Snapshot(files={path: digest for digest, path in unique.items()})
        current = Snapshot(files={f"_moved/{path}": digest for path, digest in previous.files.items()})

        report = detect_drift(previous, current)
        assert sorted(report.renamed) == sorted((p, f"_moved/{p}") for p in previous.files)
        assert report.added == []
        assert report.deleted == []

    @given(snapshots, snapshots)
    def test_every_path_is_classified_once(self, previous, current):
        report = detect_drift(previous, current)
        both = set(previous.files) & set(current.files)

        old_side = (
            [o for o, _ in report.renamed]
            + [a.old for a in report.ambiguous]
            + report.deleted
        )
        new_side = (
            [n for _, n in report.renamed]
            + [a.proposed for a in report.ambiguous]
            + report.added
        )
        assert sorted(old_side) == sorted(set(previous.files) - both)
        assert sorted(new_side) == sorted(set(current.files) - both)
        assert report.unchanged + len(report.modified) == len(both)


class TestSnapshotInvariants:
    @settings(max_examples=25, deadline=None, suppress_health_check=[HealthCheck.too_slow])
    @given(st.dictionaries(relative_paths, st.binary(max_size=64), max_size=6))
    def test_scanning_twice_is_stable(self, contents):
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            for rel_path, data in contents.items():
                target = root / rel_path
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_bytes(data)

            store = SnapshotStore(root, root / ".spectrack" / "snapshot.json", use_git=False)
            first = store.create()
            assert store.load() == first
            assert store.scan() == first
            assert not detect_drift(first, store.scan()).has_changes


class TestLifecycleInvariants:
    @settings(max_examples=25, deadline=None, suppress_health_check=[HealthCheck.too_slow])
    @given(
        st.integers(min_value=1, max_value=5),
        st.lists(
            st.tuples(st.integers(min_value=1, max_value=5), st.sampled_from(sorted(OUTCOME_TARGETS))),
            max_size=15,
        ),
    )
    def test_operations_never_change_check_count(self, size, operations):
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            run_log = RunLog(root / "run.log")
            registry = SpecRegistry(root / "specs", run_log=run_log)
            registry.create("Generated", [f"check {i}" for i in range(1, size + 1)])
            manager = LifecycleManager(registry, run_log)

            for position, outcome in operations:
                if position > size:
                    continue
                try:
                    manager.set_status("generated", position, outcome)
                except IllegalTransitionError:
                    continue
                manager.evaluate_completion("generated")
                spec = registry.get("generated")
                assert spec.counts().total == size
                assert not spec.all_passed

            for record in run_log.records():
                assert record.success and record.total == size
