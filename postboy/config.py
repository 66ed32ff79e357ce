"""
Configuration management for PostBoy.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from postboy.paths import workspace_dir_name

# Provider type definitions
StorageProvider = Literal["local", "memory"]

# Default paths
DEFAULT_POSTBOY_HOME = Path.home() / ".postboy"
WORKSPACES_DIR = "workspaces"


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class StorageConfig:
    """Configuration for the durable storage backend."""

    provider: StorageProvider = "local"
    # Local
    # Project root that holds the workspaces/ folder. None means ~/.postboy
    project_root: str | None = None
    atomic_writes: bool = True

    def get_project_root(self) -> Path:
        """Get the project root, using default if not set."""
        if self.project_root:
            return Path(self.project_root)
        return DEFAULT_POSTBOY_HOME

    def get_workspaces_path(self) -> Path:
        return self.get_project_root() / WORKSPACES_DIR

    def get_workspace_path(self, workspace_name: str) -> Path:
        """Get the directory of a specific workspace."""
        return self.get_workspaces_path() / workspace_dir_name(workspace_name)


@dataclass
class TreeConfig:
    """Configuration for the collection tree engine."""

    # Remove durable files when a folder, request or collection is deleted.
    # False keeps the files on disk as orphans (see CollectionStore.find_orphans)
    purge_on_delete: bool = True
    max_log_entries: int = 500


def _standard_variables() -> list[tuple[str, str]]:
    return [
        ("url", "string"),
        ("username", "string"),
        ("password", "secret"),
        ("environment", "string"),
        ("companyCode", "string"),
        ("time", "string"),
    ]


@dataclass
class EnvironmentConfig:
    """Configuration for new environments."""

    # (key, type) pairs seeded into every new environment.
    # "environment" is filled with the environment name, "time" with the
    # creation time, the rest start empty.
    standard_variables: list[tuple[str, str]] = field(
        default_factory=_standard_variables
    )


@dataclass
class PostBoyConfig:
    """Main configuration for PostBoy."""

    storage: StorageConfig = field(default_factory=StorageConfig)
    tree: TreeConfig = field(default_factory=TreeConfig)
    environments: EnvironmentConfig = field(default_factory=EnvironmentConfig)

    auto_log: bool = True

    # Debug mode - logs every storage step of a mutation
    debug: bool = False

    @classmethod
    def from_env(cls) -> "PostBoyConfig":
        """Create configuration from environment variables."""
        config = cls()

        config.storage.project_root = os.getenv("POSTBOY_HOME") or None
        provider = os.getenv("POSTBOY_STORAGE", "local").strip().lower()
        config.storage.provider = "memory" if provider == "memory" else "local"
        config.tree.purge_on_delete = _env_flag("POSTBOY_PURGE_ON_DELETE", True)
        config.debug = _env_flag("POSTBOY_DEBUG", False)

        return config

    @classmethod
    def default_local(cls, project_root: str | None = None) -> "PostBoyConfig":
        """Workspaces on disk under ``project_root`` (default ~/.postboy)."""
        return cls(
            storage=StorageConfig(provider="local", project_root=project_root),
        )

    @classmethod
    def in_memory(cls) -> "PostBoyConfig":
        """Ephemeral workspaces held in memory (no persistence)."""
        return cls(storage=StorageConfig(provider="memory"))
