"""Trust-zone dependency rules between slipscan packages.

Pure code (domain models and the receipt core) never reaches into runtime
services, workflows or the CLI. Runtime services may use pure code but not
the layers above them.
"""

from __future__ import annotations

import ast
import importlib.util
from pathlib import Path

_ROOT = Path(__file__).resolve().parents[1]

_ZONES: dict[tuple[str, ...], str] = {
    ("domain",): "Pure",
    ("receipt",): "Pure",
    ("runtime",): "Privileged",
    ("application",): "Orchestrator",
    ("cli",): "Orchestrator",
}
_ALLOWED_TARGET_ZONES = {
    "Privileged": {"Privileged", "Pure"},
    "Orchestrator": {"Privileged", "Orchestrator", "Pure"},
    "Pure": {"Pure"},
}
# The upload server is the runtime entry point that drives scan workflows.
_ENTRY_POINTS = {Path("runtime") / "receipt_server.py"}


def _zone_for_parts(parts: tuple[str, ...]) -> str | None:
    for prefix, zone in _ZONES.items():
        if parts[: len(prefix)] == prefix:
            return zone
    return None


def _module_name_for_file(path: Path) -> str:
    parts = list(path.relative_to(_ROOT).with_suffix("").parts)
    if parts and parts[-1] == "__init__":
        parts = parts[:-1]
    return ".".join(["slipscan", *parts])


def _imported_modules(path: Path) -> list[str]:
    module_name = _module_name_for_file(path)
    current_package = module_name if path.name == "__init__.py" else module_name.rsplit(".", 1)[0]
    tree = ast.parse(path.read_text(encoding="utf-8"), filename=str(path))

    imports: list[str] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            imports.extend(alias.name for alias in node.names)
        elif isinstance(node, ast.ImportFrom):
            if node.level == 0:
                if node.module:
                    imports.append(node.module)
                continue
            rel_name = "." * node.level + (node.module or "")
            try:
                imports.append(importlib.util.resolve_name(rel_name, current_package))
            except ImportError:
                continue
    return imports


def test_zone_directories_exist() -> None:
    missing = [str(Path(*parts)) for parts in _ZONES if not (_ROOT / Path(*parts)).is_dir()]
    assert not missing, f"Zone directories missing: {missing}"


def test_trust_zone_import_boundaries() -> None:
    violations: list[str] = []

    for parts in _ZONES:
        for path in sorted((_ROOT / Path(*parts)).rglob("*.py")):
            rel = path.relative_to(_ROOT)
            if rel in _ENTRY_POINTS:
                continue
            source_zone = _zone_for_parts(rel.parts)
            if source_zone is None:
                continue

            for module in _imported_modules(path):
                if not module.startswith("slipscan."):
                    continue
                target_zone = _zone_for_parts(tuple(module.split(".")[1:]))
                if target_zone is None:
                    continue
                if target_zone not in _ALLOWED_TARGET_ZONES[source_zone]:
                    violations.append(f"{rel}: {source_zone} imports {module} ({target_zone})")

    assert not violations, "Trust-zone import violations:\n" + "\n".join(violations)


def test_pure_zone_has_no_logging_or_network() -> None:
    forbidden = {"logging", "httpx", "sqlite3", "os"}
    violations: list[str] = []

    for parts, zone in _ZONES.items():
        if zone != "Pure":
            continue
        for path in sorted((_ROOT / Path(*parts)).rglob("*.py")):
            for module in _imported_modules(path):
                if module.split(".")[0] in forbidden:
                    violations.append(f"{path.relative_to(_ROOT)}: imports {module}")

    assert not violations, "Pure-zone side-effect imports:\n" + "\n".join(violations)
