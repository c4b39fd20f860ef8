"""
Unit tests for spectrack.core.storage module.

Covers the temp-file-then-rename write and the append/rollback pair used by
the run log.
"""

from pathlib import Path

import pytest

from spectrack.core import storage
from spectrack.core.errors import SpecIOError
from spectrack.core.storage import (
    append_line,
    atomic_write_json,
    atomic_write_text,
    truncate_to,
)


class TestAtomicWrite:
    def test_writes_content_and_leaves_no_temp_files(self, tmp_path):
        target = tmp_path / "specs" / "a.md"
        atomic_write_text(target, "# A\n")
        assert target.read_text(encoding="utf-8") == "# A\n"
        assert [p.name for p in target.parent.iterdir()] == ["a.md"]

    def test_failed_rename_keeps_previous_content(self, tmp_path, monkeypatch):
        target = tmp_path / "a.md"
        target.write_text("original\n", encoding="utf-8")

        def boom(self, other):
            raise OSError(28, "No space left on device")

        monkeypatch.setattr(Path, "replace", boom)
        with pytest.raises(SpecIOError):
            atomic_write_text(target, "new\n")

        assert target.read_text(encoding="utf-8") == "original\n"
        assert [p.name for p in tmp_path.iterdir()] == ["a.md"]

    def test_temp_file_creation_failure_is_spec_io_error(self, tmp_path, monkeypatch):
        target = tmp_path / "a.md"
        target.write_text("original\n", encoding="utf-8")

        def read_only(*args, **kwargs):
            raise OSError(30, "Read-only file system")

        monkeypatch.setattr(storage.tempfile, "mkstemp", read_only)
        with pytest.raises(SpecIOError):
            atomic_write_text(target, "new\n")

        assert target.read_text(encoding="utf-8") == "original\n"

    def test_spec_io_error_is_an_os_error(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        with pytest.raises(OSError):
            atomic_write_text(blocker / "child.md", "content")

    def test_preserves_crlf_newlines(self, tmp_path):
        target = tmp_path / "a.md"
        atomic_write_text(target, "a\r\nb\r\n")
        assert target.read_bytes() == b"a\r\nb\r\n"

    def test_json_is_sorted(self, tmp_path):
        target = tmp_path / "snap.json"
        atomic_write_json(target, {"b": 1, "a": 2})
        text = target.read_text(encoding="utf-8")
        assert text.index('"a"') < text.index('"b"')
        assert text.endswith("\n")


class TestAppendAndRollback:
    def test_append_returns_previous_size(self, tmp_path):
        log = tmp_path / "logs" / "run.log"
        assert append_line(log, "first") == 0
        size = append_line(log, "second")
        assert size == len("first\n")
        assert log.read_text(encoding="utf-8") == "first\nsecond\n"

    def test_truncate_rolls_back_append(self, tmp_path):
        log = tmp_path / "run.log"
        append_line(log, "kept")
        size = append_line(log, "dropped")
        truncate_to(log, size)
        assert log.read_text(encoding="utf-8") == "kept\n"
