"""
Unit tests for spectrack.config module.
"""

import logging
from pathlib import Path

import pytest

from spectrack import config as config_module
from spectrack.config import TrackerConfig, get_config, set_config


# Test fixtures

@pytest.fixture
def toml_file(tmp_path):
    path = tmp_path / "spectrack.toml"
    path.write_text(
        """
[workspace]
specs_dir = "docs/specs"
agents_subdir = "bots"

[logging]
level = "debug"
structured = false

[drift]
repair_mode = "auto"
use_git = false
ignore = ["build/", "*.log"]

[registry]
fuzzy_threshold = 0.75
tie_tolerance = 0.1
""",
        encoding="utf-8",
    )
    return path


class TestDefaults:
    def test_defaults(self):
        config = TrackerConfig()
        assert config.specs_dir == Path("spectrack/specs")
        assert config.repair_mode == "interactive"
        assert config.use_git is True
        assert config.fuzzy_threshold == 0.6

    def test_relative_paths_resolve_against_project_root(self, tmp_path):
        config = TrackerConfig(project_root=tmp_path)
        assert config.specs_path == tmp_path / "spectrack" / "specs"
        assert config.snapshot_file == tmp_path / ".spectrack" / "snapshot.json"
        assert config.run_log_file == tmp_path / "spectrack" / "logs" / "run.log"

    def test_absolute_paths_are_kept(self, tmp_path):
        config = TrackerConfig(project_root=tmp_path, specs_dir=tmp_path / "elsewhere")
        assert config.specs_path == tmp_path / "elsewhere"


class TestTomlLoading:
    def test_load_sections(self, toml_file):
        config = TrackerConfig.from_env(str(toml_file))
        assert config.specs_dir == Path("docs/specs")
        assert config.agents_subdir == "bots"
        assert config.log_level == "DEBUG"
        assert config.structured_logging is False
        assert config.repair_mode == "auto"
        assert config.use_git is False
        assert config.ignore_patterns == ["build/", "*.log"]
        assert config.fuzzy_threshold == 0.75
        assert config.tie_tolerance == 0.1

    def test_default_file_in_cwd(self, monkeypatch, toml_file):
        monkeypatch.chdir(toml_file.parent)
        assert TrackerConfig.from_env().agents_subdir == "bots"

    def test_config_file_from_env(self, monkeypatch, toml_file):
        monkeypatch.setenv("SPECTRACK_CONFIG_FILE", str(toml_file))
        assert TrackerConfig.from_env().repair_mode == "auto"

    def test_missing_file_keeps_defaults(self, tmp_path):
        config = TrackerConfig.from_env(str(tmp_path / "absent.toml"))
        assert config.repair_mode == "interactive"

    def test_malformed_file_keeps_defaults(self, tmp_path, caplog):
        path = tmp_path / "bad.toml"
        path.write_text("[drift\nrepair_mode = ", encoding="utf-8")
        with caplog.at_level(logging.ERROR, logger="spectrack.config"):
            config = TrackerConfig.from_env(str(path))
        assert config.repair_mode == "interactive"
        assert "Error loading config file" in caplog.text

    def test_invalid_repair_mode_falls_back(self, tmp_path):
        path = tmp_path / "mode.toml"
        path.write_text('[drift]\nrepair_mode = "yolo"\n', encoding="utf-8")
        assert TrackerConfig.from_env(str(path)).repair_mode == "interactive"


class TestEnvOverrides:
    def test_env_beats_toml(self, monkeypatch, toml_file):
        monkeypatch.setenv("SPECTRACK_REPAIR_MODE", "INTERACTIVE")
        monkeypatch.setenv("SPECTRACK_USE_GIT", "yes")
        monkeypatch.setenv("SPECTRACK_SPECS_DIR", "other/specs")
        config = TrackerConfig.from_env(str(toml_file))
        assert config.repair_mode == "interactive"
        assert config.use_git is True
        assert config.specs_dir == Path("other/specs")

    def test_ignore_list(self, monkeypatch, tmp_path):
        monkeypatch.setenv("SPECTRACK_IGNORE", "dist/, *.tmp ,")
        config = TrackerConfig.from_env(str(tmp_path / "absent.toml"))
        assert config.ignore_patterns == ["dist/", "*.tmp"]

    def test_non_numeric_threshold_is_ignored(self, monkeypatch, tmp_path):
        monkeypatch.setenv("SPECTRACK_FUZZY_THRESHOLD", "high")
        config = TrackerConfig.from_env(str(tmp_path / "absent.toml"))
        assert config.fuzzy_threshold == 0.6


class TestGlobalConfig:
    def test_set_and_get(self, tmp_path):
        config = TrackerConfig(project_root=tmp_path)
        set_config(config)
        assert get_config() is config

    def test_get_builds_once(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        first = get_config()
        assert get_config() is first
        assert config_module._config is first
