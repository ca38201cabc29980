"""Shared pytest fixtures for slipscan tests."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from slipscan.runtime import load_dedupe_config, load_parser_rules, reset_paths


@pytest.fixture(autouse=True)
def slipscan_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    """Point every test at an empty project root so no real data or config leaks in."""
    monkeypatch.setenv("SLIPSCAN_HOME", str(tmp_path))
    monkeypatch.delenv("SLIPSCAN_OPENAI_API_KEY", raising=False)
    reset_paths(tmp_path)
    load_parser_rules.cache_clear()
    load_dedupe_config.cache_clear()
    yield tmp_path
    reset_paths()
    load_parser_rules.cache_clear()
    load_dedupe_config.cache_clear()
