"""
Configuration for spectrack.

Supports configuration via:
1. Environment variables (highest priority)
2. TOML config file (spectrack.toml)
3. Default values (lowest priority)

Environment variables:
- SPECTRACK_PROJECT_ROOT: Root of the tracked source tree
- SPECTRACK_SPECS_DIR: Path to the specs directory
- SPECTRACK_AGENTS_SUBDIR: Name of the agent spec subfolder
- SPECTRACK_SNAPSHOT_PATH: Path to the snapshot store
- SPECTRACK_RUN_LOG_PATH: Path to the append-only run log
- SPECTRACK_LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR)
- SPECTRACK_STRUCTURED_LOGGING: Emit JSON log lines (true/false)
- SPECTRACK_REPAIR_MODE: Default drift repair mode (interactive, auto)
- SPECTRACK_USE_GIT: Use git for tree enumeration and changed paths (true/false)
- SPECTRACK_IGNORE: Comma-separated extra ignore patterns
- SPECTRACK_FUZZY_THRESHOLD: Minimum confidence for fuzzy slug lookup
- SPECTRACK_TIE_TOLERANCE: Confidence gap treated as a tie
- SPECTRACK_CONFIG_FILE: Path to TOML config file

Relative paths resolve against the project root.
"""

import os
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional

try:
    import tomllib
except ImportError:
    import tomli as tomllib  # Python < 3.11 fallback

from spectrack.core.drift import REPAIR_INTERACTIVE, REPAIR_MODES
from spectrack.core.logging_config import configure_logging
from spectrack.core.registry import DEFAULT_FUZZY_THRESHOLD, DEFAULT_TIE_TOLERANCE


logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILES = ("spectrack.toml", ".spectrack.toml")


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"true", "1", "yes", "on"}


def _normalize_repair_mode(value: str) -> str:
    normalized = value.strip().lower()
    if normalized not in REPAIR_MODES:
        logger.warning(
            "Invalid repair mode '%s'. Falling back to '%s'. Valid options: %s",
            value,
            REPAIR_INTERACTIVE,
            ", ".join(REPAIR_MODES),
        )
        return REPAIR_INTERACTIVE
    return normalized


@dataclass
class TrackerConfig:
    """Tracker configuration with support for env vars and TOML overrides."""

    # Workspace configuration
    project_root: Path = field(default_factory=Path.cwd)
    specs_dir: Path = Path("spectrack/specs")
    agents_subdir: str = "agents"
    snapshot_path: Path = Path(".spectrack/snapshot.json")
    run_log_path: Path = Path("spectrack/logs/run.log")

    # Logging configuration
    log_level: str = "WARNING"
    structured_logging: bool = True

    # Drift configuration
    repair_mode: str = REPAIR_INTERACTIVE
    use_git: bool = True
    ignore_patterns: List[str] = field(default_factory=list)

    # Registry configuration
    fuzzy_threshold: float = DEFAULT_FUZZY_THRESHOLD
    tie_tolerance: float = DEFAULT_TIE_TOLERANCE

    @classmethod
    def from_env(cls, config_file: Optional[str] = None) -> "TrackerConfig":
        """
        Create configuration from environment variables and optional TOML file.

        Priority (highest to lowest):
        1. Environment variables
        2. TOML config file
        3. Default values
        """
        config = cls()

        toml_path = config_file or os.environ.get("SPECTRACK_CONFIG_FILE")
        if toml_path:
            config._load_toml(Path(toml_path))
        else:
            for default_path in DEFAULT_CONFIG_FILES:
                if Path(default_path).exists():
                    config._load_toml(Path(default_path))
                    break

        config._load_env()

        return config

    def _load_toml(self, path: Path) -> None:
        """Load configuration from TOML file."""
        if not path.exists():
            logger.warning(f"Config file not found: {path}")
            return

        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)

            # Workspace settings
            if "workspace" in data:
                ws = data["workspace"]
                if "project_root" in ws:
                    self.project_root = Path(ws["project_root"])
                if "specs_dir" in ws:
                    self.specs_dir = Path(ws["specs_dir"])
                if "agents_subdir" in ws:
                    self.agents_subdir = str(ws["agents_subdir"])
                if "snapshot_path" in ws:
                    self.snapshot_path = Path(ws["snapshot_path"])
                if "run_log_path" in ws:
                    self.run_log_path = Path(ws["run_log_path"])

            # Logging settings
            if "logging" in data:
                log = data["logging"]
                if "level" in log:
                    self.log_level = log["level"].upper()
                if "structured" in log:
                    self.structured_logging = _parse_bool(log["structured"])

            # Drift settings
            if "drift" in data:
                drift = data["drift"]
                if "repair_mode" in drift:
                    self.repair_mode = _normalize_repair_mode(str(drift["repair_mode"]))
                if "use_git" in drift:
                    self.use_git = _parse_bool(drift["use_git"])
                if "ignore" in drift:
                    self.ignore_patterns = [str(p) for p in drift["ignore"]]

            # Registry settings
            if "registry" in data:
                reg = data["registry"]
                if "fuzzy_threshold" in reg:
                    self.fuzzy_threshold = float(reg["fuzzy_threshold"])
                if "tie_tolerance" in reg:
                    self.tie_tolerance = float(reg["tie_tolerance"])

        except (OSError, tomllib.TOMLDecodeError, TypeError, ValueError, AttributeError) as e:
            logger.error(f"Error loading config file {path}: {e}")

    def _load_env(self) -> None:
        """Load configuration from environment variables."""
        if root := os.environ.get("SPECTRACK_PROJECT_ROOT"):
            self.project_root = Path(root)

        if specs := os.environ.get("SPECTRACK_SPECS_DIR"):
            self.specs_dir = Path(specs)

        if agents := os.environ.get("SPECTRACK_AGENTS_SUBDIR"):
            self.agents_subdir = agents

        if snapshot := os.environ.get("SPECTRACK_SNAPSHOT_PATH"):
            self.snapshot_path = Path(snapshot)

        if run_log := os.environ.get("SPECTRACK_RUN_LOG_PATH"):
            self.run_log_path = Path(run_log)

        if level := os.environ.get("SPECTRACK_LOG_LEVEL"):
            self.log_level = level.upper()

        if structured := os.environ.get("SPECTRACK_STRUCTURED_LOGGING"):
            self.structured_logging = _parse_bool(structured)

        if mode := os.environ.get("SPECTRACK_REPAIR_MODE"):
            self.repair_mode = _normalize_repair_mode(mode)

        if use_git := os.environ.get("SPECTRACK_USE_GIT"):
            self.use_git = _parse_bool(use_git)

        if ignore := os.environ.get("SPECTRACK_IGNORE"):
            self.ignore_patterns = [p.strip() for p in ignore.split(",") if p.strip()]

        if threshold := os.environ.get("SPECTRACK_FUZZY_THRESHOLD"):
            try:
                self.fuzzy_threshold = float(threshold)
            except ValueError:
                logger.warning("Ignoring non-numeric SPECTRACK_FUZZY_THRESHOLD: %s", threshold)

        if tolerance := os.environ.get("SPECTRACK_TIE_TOLERANCE"):
            try:
                self.tie_tolerance = float(tolerance)
            except ValueError:
                logger.warning("Ignoring non-numeric SPECTRACK_TIE_TOLERANCE: %s", tolerance)

    def _resolve(self, path: Path) -> Path:
        path = path.expanduser()
        if path.is_absolute():
            return path
        return self.project_root.expanduser() / path

    @property
    def specs_path(self) -> Path:
        return self._resolve(self.specs_dir)

    @property
    def snapshot_file(self) -> Path:
        return self._resolve(self.snapshot_path)

    @property
    def run_log_file(self) -> Path:
        return self._resolve(self.run_log_path)

    def setup_logging(self) -> None:
        """Configure logging based on settings."""
        configure_logging(self.log_level, structured=self.structured_logging)


# Global configuration instance
_config: Optional[TrackerConfig] = None


def get_config() -> TrackerConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = TrackerConfig.from_env()
    return _config


def set_config(config: TrackerConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
