"""
Unit tests for spectrack.core.snapshot module.

Tests tree enumeration, ignore handling, persistence and idempotence of the
snapshot store. Git is disabled so results do not depend on the host.
"""

import json

import pytest

from spectrack.core.errors import ValidationError
from spectrack.core.hashing import Unreadable, hash_bytes
from spectrack.core.snapshot import IgnorePolicy, Snapshot, SnapshotStore


@pytest.fixture
def tree(project):
    (project / "src" / "login.py").write_text("def login(): pass\n")
    (project / "src" / "util.py").write_text("X = 1\n")
    (project / "README.md").write_text("# readme\n")
    return project


class TestSnapshotStore:
    def test_load_without_create_returns_none(self, snapshot_store):
        assert snapshot_store.exists() is False
        assert snapshot_store.load() is None

    def test_empty_project_is_not_none(self, tmp_path):
        store = SnapshotStore(tmp_path, tmp_path / ".spectrack" / "snapshot.json", use_git=False)
        snap = store.create()
        assert snap.files == {}
        loaded = store.load()
        assert loaded is not None
        assert len(loaded) == 0

    def test_create_hashes_every_file(self, tree, snapshot_store):
        snap = snapshot_store.create()
        assert snap.hash_for("src/login.py") == hash_bytes(b"def login(): pass\n")
        assert "README.md" in snap
        assert "./src/util.py" in snap

    def test_create_is_idempotent(self, tree, snapshot_store):
        first = snapshot_store.create()
        second = snapshot_store.create()
        assert first == second
        assert first.files == second.files

    def test_load_round_trips_created_snapshot(self, tree, snapshot_store):
        created = snapshot_store.create()
        loaded = snapshot_store.load()
        assert loaded == created
        assert loaded.created_at == created.created_at

    def test_store_file_excludes_itself(self, tree, snapshot_store):
        snapshot_store.create()
        snap = snapshot_store.create()
        assert not any(p.startswith(".spectrack/") for p in snap.files)

    def test_persisted_form_is_sorted(self, tree, snapshot_store):
        snapshot_store.create()
        data = json.loads(snapshot_store.snapshot_path.read_text())
        assert list(data["files"]) == sorted(data["files"])
        assert data["algorithm"] == "sha256"
        assert data["timestamp"]

    def test_corrupt_store_raises_validation_error(self, snapshot_store):
        snapshot_store.snapshot_path.parent.mkdir(parents=True)
        snapshot_store.snapshot_path.write_text("{not json")
        with pytest.raises(ValidationError):
            snapshot_store.load()

    def test_store_without_files_mapping_is_rejected(self, snapshot_store):
        snapshot_store.snapshot_path.parent.mkdir(parents=True)
        snapshot_store.snapshot_path.write_text('{"timestamp": "x"}')
        with pytest.raises(ValidationError):
            snapshot_store.load()

    def test_unreadable_file_is_skipped(self, tree, snapshot_store, monkeypatch):
        from spectrack.core import snapshot as snapshot_module

        real_hash_file = snapshot_module.hash_file

        def flaky(path):
            if str(path).endswith("util.py"):
                return Unreadable(path=str(path), reason="Permission denied")
            return real_hash_file(path)

        monkeypatch.setattr(snapshot_module, "hash_file", flaky)
        snap = snapshot_store.scan()
        assert "src/util.py" not in snap
        assert "src/login.py" in snap
        assert snap.skipped == ["src/util.py"]


class TestIgnorePolicy:
    def test_default_patterns_prune_directories(self, tree, snapshot_store):
        (tree / "node_modules" / "pkg").mkdir(parents=True)
        (tree / "node_modules" / "pkg" / "index.js").write_text("x")
        (tree / "src" / "__pycache__").mkdir()
        (tree / "src" / "__pycache__" / "login.cpython-311.pyc").write_bytes(b"\0")
        paths = snapshot_store.tracked_paths()
        assert not any(p.startswith("node_modules/") for p in paths)
        assert not any("__pycache__" in p for p in paths)

    def test_gitignore_patterns_are_honored(self, tree, snapshot_store):
        (tree / ".gitignore").write_text("build/\n*.log\n# comment\n!keep.log\n")
        (tree / "build").mkdir()
        (tree / "build" / "out.js").write_text("x")
        (tree / "debug.log").write_text("x")
        paths = snapshot_store.tracked_paths()
        assert "debug.log" not in paths
        assert "build/out.js" not in paths
        assert ".gitignore" in paths

    def test_anchored_pattern(self):
        policy = IgnorePolicy(["/docs/*.md"])
        assert policy.is_ignored("docs/a.md")
        assert not policy.is_ignored("src/docs/a.md")

    def test_directory_only_pattern_skips_files(self):
        policy = IgnorePolicy(["dist/"])
        assert policy.is_ignored("dist", is_dir=True)
        assert not policy.is_ignored("dist")


class TestSnapshot:
    def test_equality_ignores_timestamp(self):
        a = Snapshot(files={"a.js": "h1"}, created_at="2024-01-01T00:00:00Z")
        b = Snapshot(files={"a.js": "h1"}, created_at="2025-01-01T00:00:00Z")
        assert a == b

    def test_from_dict_rejects_non_string_hash(self):
        with pytest.raises(ValidationError):
            Snapshot.from_dict({"files": {"a.js": 3}})
