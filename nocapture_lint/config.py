"""
nocapture_lint/config.py
════════════════════════

Settings for a lint run, read from ``[tool.nocapture]`` in
``pyproject.toml`` and overridable from the command line.

    [tool.nocapture]
    marker-names = ["NoCapture", "no_capture", "hot_path"]
    receiver-alias = "this"
    exclude-dirs = ["build", "migrations"]
    jobs = 4
    output = "gcc"
    suppress = []
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

try:
    import tomllib
except ImportError:  # Python < 3.11
    import tomli as tomllib  # type: ignore[no-redef]

from nocapture_lint.errors import ConfigError, SourceSpan
from nocapture_lint.markers import DEFAULT_MARKER_NAMES

_log = logging.getLogger(__name__)

OUTPUT_FORMATS: Tuple[str, ...] = ("text", "json", "gcc", "summary")


@dataclass(frozen=True)
class LintConfig:
    marker_names: Tuple[str, ...] = tuple(sorted(DEFAULT_MARKER_NAMES))
    receiver_alias: str = "this"
    python_exts: Tuple[str, ...] = (".py", ".pyi")
    exclude_dirs: Tuple[str, ...] = (
        ".git", ".venv", "venv", "__pycache__", "node_modules", "dist", "build",
        ".mypy_cache", ".pytest_cache", ".tox",
    )
    jobs: int = 1
    output: str = "text"
    suppress: Tuple[str, ...] = ()
    source: Optional[Path] = None

    def validate(self) -> List[str]:
        """Return a list of problems (empty if valid)."""
        problems: List[str] = []
        if not self.marker_names:
            problems.append("marker-names must not be empty")
        for name in self.marker_names:
            if not isinstance(name, str) or not name.isidentifier():
                problems.append(f"marker name {name!r} is not an identifier")
        if not self.receiver_alias:
            problems.append("receiver-alias must not be empty")
        if not isinstance(self.jobs, int) or self.jobs < 1:
            problems.append("jobs must be positive")
        if self.output not in OUTPUT_FORMATS:
            problems.append(
                f"output must be one of {', '.join(OUTPUT_FORMATS)}, got {self.output!r}"
            )
        return problems

    def with_overrides(self, **overrides: Any) -> "LintConfig":
        """Copy with every non-``None`` override applied, then validated."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        for key in ("marker_names", "exclude_dirs", "suppress", "python_exts"):
            if key in changes:
                changes[key] = tuple(changes[key])
        updated = replace(self, **changes)
        problems = updated.validate()
        if problems:
            raise ConfigError("invalid configuration", problems)
        return updated


_KEY_MAP: Dict[str, str] = {
    f.name.replace("_", "-"): f.name for f in fields(LintConfig) if f.name != "source"
}


def config_from_mapping(table: Mapping[str, Any], source: Optional[Path] = None) -> LintConfig:
    """Build a ``LintConfig`` from a ``[tool.nocapture]`` table."""
    span = SourceSpan(file=str(source)) if source else None
    unknown = sorted(set(table) - set(_KEY_MAP))
    if unknown:
        raise ConfigError(
            "unknown [tool.nocapture] keys", [f"unknown key {k!r}" for k in unknown], span
        )
    values: Dict[str, Any] = {}
    for key, value in table.items():
        attr = _KEY_MAP[key]
        if isinstance(value, list):
            value = tuple(value)
        values[attr] = value
    config = LintConfig(source=source, **values)
    problems = config.validate()
    if problems:
        raise ConfigError("invalid [tool.nocapture] table", problems, span)
    return config


def find_pyproject(start: Path) -> Optional[Path]:
    """Closest ``pyproject.toml`` at or above ``start``."""
    start = start.resolve()
    for directory in (start, *start.parents):
        candidate = directory / "pyproject.toml"
        if candidate.is_file():
            return candidate
    return None


def load_config(path: Optional[Path] = None, start: Optional[Path] = None) -> LintConfig:
    """
    Load settings from ``path`` or the nearest ``pyproject.toml``.

    Missing files and files without a ``[tool.nocapture]`` table yield the
    defaults.  Malformed TOML or bad values raise ``ConfigError``.
    """
    if path is None:
        path = find_pyproject(start or Path.cwd())
        if path is None:
            _log.debug("no pyproject.toml found; using defaults")
            return LintConfig()
    try:
        with open(path, "rb") as fh:
            document = tomllib.load(fh)
    except FileNotFoundError as exc:
        raise ConfigError(f"config file not found: {path}", span=SourceSpan(file=str(path))) from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"malformed TOML: {exc}", span=SourceSpan(file=str(path))) from exc

    table = document.get("tool", {}).get("nocapture")
    if table is None:
        _log.debug("%s has no [tool.nocapture] table; using defaults", path)
        return LintConfig(source=Path(path))
    _log.info("loaded configuration from %s", path)
    return config_from_mapping(table, source=Path(path))


__all__ = [
    "LintConfig",
    "OUTPUT_FORMATS",
    "config_from_mapping",
    "find_pyproject",
    "load_config",
]
