"""Runtime loader for parser keyword and duplicate-check overrides.

Example ``config/parser_rules.toml``::

    [parser]
    extra_ignore_keywords = ["points earned", "bottle deposit"]
    extra_tax_code_suffixes = ["HH"]

    [duplicates]
    tolerance_seconds = 90
"""

from __future__ import annotations

from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Any

from slipscan.receipt.dedupe import DEFAULT_TOLERANCE_MS, DedupeConfig
from slipscan.receipt.ocr_parser import ParserRules, build_parser_rules
from slipscan.runtime.logging import get_logger
from slipscan.runtime.paths import get_paths

logger = get_logger(__name__)


def _load_toml(path: Path) -> dict[str, Any]:
    """Load TOML file and return parsed dict; missing files map to empty dict."""
    try:
        import tomllib
    except ImportError:
        import tomli as tomllib  # type: ignore[no-redef]

    if not path.exists():
        return {}

    with open(path, "rb") as f:
        data = tomllib.load(f)
    logger.debug("Loaded receipt rules from %s", path)
    return data if isinstance(data, dict) else {}


def _resolve(config_path: str | None) -> Path:
    return Path(config_path) if config_path is not None else get_paths().parser_rules


@lru_cache(maxsize=4)
def load_parser_rules(config_path: str | None = None) -> ParserRules:
    """
    Load text parser rules.

    Args:
        config_path: Optional TOML path override. If None, uses default project path.
    """
    data = _load_toml(_resolve(config_path))
    section = data.get("parser", {})
    return build_parser_rules(section if isinstance(section, dict) else None)


@lru_cache(maxsize=4)
def load_dedupe_config(config_path: str | None = None) -> DedupeConfig:
    """Load duplicate-check tolerances; missing keys keep the defaults."""
    data = _load_toml(_resolve(config_path))
    section = data.get("duplicates", {})
    if not isinstance(section, dict):
        return DedupeConfig()

    tolerance_ms = DEFAULT_TOLERANCE_MS
    seconds = section.get("tolerance_seconds")
    if isinstance(seconds, (int, float)) and not isinstance(seconds, bool) and seconds >= 0:
        tolerance_ms = int(seconds * 1000)

    amount_tolerance = DedupeConfig().amount_tolerance
    amount = section.get("amount_tolerance")
    if isinstance(amount, (int, float)) and not isinstance(amount, bool) and amount >= 0:
        amount_tolerance = Decimal(str(amount))

    return DedupeConfig(tolerance_ms=tolerance_ms, amount_tolerance=amount_tolerance)
