"""Runtime infrastructure for slipscan.

This package provides process/runtime services including:
- Logging setup via get_logger()
- Path resolution via get_paths(), ProjectPaths
- Config loading via load_parser_rules(), load_dedupe_config()

Usage:
    from slipscan.runtime import get_logger, get_paths

    logger = get_logger(__name__)
    paths = get_paths()
    print(paths.root, paths.database)
"""

from slipscan.runtime.logging import (
    configure_logging,
    get_logger,
    set_log_level,
)
from slipscan.runtime.paths import ProjectPaths, get_paths, reset_paths
from slipscan.runtime.receipt_rules import load_dedupe_config, load_parser_rules

__all__ = [
    # Logging
    "get_logger",
    "configure_logging",
    "set_log_level",
    # Rules
    "load_parser_rules",
    "load_dedupe_config",
    # Paths
    "get_paths",
    "reset_paths",
    "ProjectPaths",
]
