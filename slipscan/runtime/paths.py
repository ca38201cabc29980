"""Centralized path management for slipscan.

This module provides a single source of truth for all project paths,
eliminating scattered path definitions across modules.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path


def _get_project_root() -> Path:
    """Determine the project root directory (SLIPSCAN_HOME or the current directory)."""
    env_root = os.environ.get("SLIPSCAN_HOME")
    if env_root:
        return Path(env_root).expanduser()
    return Path.cwd()


@dataclass
class ProjectPaths:
    """Container for all project-related paths.

    All paths are computed relative to the project root, ensuring consistency
    across all modules regardless of the current working directory.
    """

    root: Path = field(default_factory=_get_project_root)

    def __post_init__(self) -> None:
        self.root = self.root.resolve()

    # --- Configuration paths ---
    @property
    def config(self) -> Path:
        """Configuration directory (config/)."""
        return self.root / "config"

    @property
    def parser_rules(self) -> Path:
        """Parser keyword and duplicate tolerance overrides TOML file."""
        return self.config / "parser_rules.toml"

    # --- Data paths ---
    @property
    def data(self) -> Path:
        """Local data directory."""
        return self.root / "data"

    @property
    def database(self) -> Path:
        """SQLite receipt database."""
        return self.data / "receipts.db"

    @property
    def images(self) -> Path:
        """Uploaded receipt photos."""
        return self.data / "images"

    @property
    def ocr_text(self) -> Path:
        """Raw text recognition output kept for debugging."""
        return self.data / "ocr_text"

    def ensure_data_directories(self) -> None:
        """Create all data directories if they don't exist."""
        self.data.mkdir(parents=True, exist_ok=True)
        self.images.mkdir(parents=True, exist_ok=True)
        self.ocr_text.mkdir(parents=True, exist_ok=True)


_paths: ProjectPaths | None = None


def get_paths() -> ProjectPaths:
    """Get the singleton ProjectPaths instance."""
    global _paths
    if _paths is None:
        _paths = ProjectPaths()
    return _paths


def reset_paths(root: Path | None = None) -> ProjectPaths:
    """Replace the singleton, e.g. after SLIPSCAN_HOME changed (used by tests)."""
    global _paths
    _paths = ProjectPaths(root=root) if root is not None else ProjectPaths()
    return _paths
