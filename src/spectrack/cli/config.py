"""CLI configuration and workspace wiring.

Resolves the effective project layout from command-line overrides and the
shared spectrack.config module, and builds the core collaborators commands
work with.
"""

from dataclasses import replace
from pathlib import Path
from typing import Optional

from spectrack.config import TrackerConfig, get_config
from spectrack.core.lifecycle import LifecycleManager
from spectrack.core.registry import SpecRegistry
from spectrack.core.resolver import AffectedResolver
from spectrack.core.runlog import RunLog
from spectrack.core.snapshot import SnapshotStore


class CLIContext:
    """CLI execution context with resolved configuration.

    Holds the effective configuration for a CLI command, including
    any overrides from command-line options.
    """

    def __init__(
        self,
        project_root: Optional[str] = None,
        specs_dir: Optional[str] = None,
        config: Optional[TrackerConfig] = None,
    ):
        """Initialize CLI context.

        Args:
            project_root: Explicit project root override from --project-root.
            specs_dir: Explicit specs directory override from --specs-dir.
            config: Optional tracker config (uses global if not provided).
        """
        self._config = config or get_config()
        self._project_root_override = project_root
        self._specs_dir_override = specs_dir

    @property
    def config(self) -> TrackerConfig:
        """Get the underlying tracker configuration."""
        return self._config

    @property
    def project_root(self) -> Path:
        """Resolution order: --project-root, then the configured project root."""
        if self._project_root_override:
            return Path(self._project_root_override).resolve()
        return self._config.project_root.expanduser().resolve()

    @property
    def specs_dir(self) -> Path:
        """Resolution order: --specs-dir, then the configured specs directory."""
        if self._specs_dir_override:
            return Path(self._specs_dir_override).resolve()
        return self.layout.specs_path

    @property
    def layout(self) -> TrackerConfig:
        """The configuration re-rooted at the effective project root."""
        return replace(self._config, project_root=self.project_root)

    def run_log(self) -> RunLog:
        return RunLog(self.layout.run_log_file)

    def registry(self) -> SpecRegistry:
        return SpecRegistry(
            self.specs_dir,
            agents_subdir=self._config.agents_subdir,
            run_log=self.run_log(),
            fuzzy_threshold=self._config.fuzzy_threshold,
            tie_tolerance=self._config.tie_tolerance,
        )

    def snapshot_store(self) -> SnapshotStore:
        return SnapshotStore(
            self.project_root,
            self.layout.snapshot_file,
            ignore_patterns=self._config.ignore_patterns,
            use_git=self._config.use_git,
        )

    def lifecycle(self) -> LifecycleManager:
        registry = self.registry()
        return LifecycleManager(registry, registry.run_log or self.run_log())

    def resolver(self) -> AffectedResolver:
        return AffectedResolver(
            self.registry(),
            self.snapshot_store(),
            self.project_root,
            use_git=self._config.use_git,
        )


def create_context(
    project_root: Optional[str] = None,
    specs_dir: Optional[str] = None,
) -> CLIContext:
    """Create a CLI context with optional overrides."""
    return CLIContext(project_root=project_root, specs_dir=specs_dir)
