"""
Root pytest configuration and shared fixtures.

Provides a throwaway project tree with a specs directory, run log and
snapshot location, plus helpers for writing spec files.
"""

import logging
import os
from pathlib import Path

import pytest

import spectrack.config as config_module
from spectrack.core.logging_config import ROOT_LOGGER_NAME, set_request_id
from spectrack.core.registry import SpecRegistry
from spectrack.core.runlog import RunLog
from spectrack.core.snapshot import SnapshotStore

LOGIN_SPEC = """\
# User Login

## Files
- src/login.py

## Checks
- [ ] Valid credentials log in
- [ ] Invalid password is rejected
- [ ] Session cookie is set
"""


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch):
    """Never let a developer's spectrack.toml or global config leak into tests."""
    monkeypatch.setattr(config_module, "_config", None)
    for name in list(os.environ):
        if name.startswith("SPECTRACK_"):
            monkeypatch.delenv(name, raising=False)
    yield
    package_logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(package_logger.handlers):
        if getattr(handler, "_spectrack_handler", False):
            package_logger.removeHandler(handler)
    package_logger.setLevel(logging.NOTSET)
    set_request_id("")


@pytest.fixture
def project(tmp_path):
    """Create a project root with an empty specs directory."""
    (tmp_path / "spectrack" / "specs").mkdir(parents=True)
    (tmp_path / "src").mkdir()
    return tmp_path


@pytest.fixture
def specs_dir(project):
    return project / "spectrack" / "specs"


@pytest.fixture
def run_log(project):
    return RunLog(project / "spectrack" / "logs" / "run.log")


@pytest.fixture
def registry(specs_dir, run_log):
    return SpecRegistry(specs_dir, run_log=run_log)


@pytest.fixture
def snapshot_store(project):
    return SnapshotStore(project, project / ".spectrack" / "snapshot.json", use_git=False)


@pytest.fixture
def write_spec(specs_dir):
    """Write raw spec text under the specs directory and return its path."""

    def _write(name: str, text: str, subdir: str = "") -> Path:
        directory = specs_dir / subdir if subdir else specs_dir
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / name
        path.write_text(text, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def login_spec(write_spec):
    """A three-check human spec referencing src/login.py."""
    return write_spec("user-login.md", LOGIN_SPEC)
