"""
nocapture_lint/driver.py
════════════════════════

Walks every lambda of a module through the pipeline

    bind → marker gate → capture analysis → report

short-circuiting at the first negative gate.  Each lambda is evaluated on
its own, as a pure function of ``(node, syntax, model, marker names)``, so
outer and nested lambdas are reported independently and the evaluations
can be spread over a thread pool.
"""

from __future__ import annotations

import ast
import io
import logging
import tokenize
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Sequence

from nocapture_lint.ast_helper import SyntaxIndex
from nocapture_lint.binder import bind
from nocapture_lint.captures import RECEIVER_ALIAS, captures
from nocapture_lint.errors import SourceError, SourceSpan
from nocapture_lint.markers import DEFAULT_MARKER_NAMES, marker_applies
from nocapture_lint.reporter import Violation, report
from nocapture_lint.semantic import PythonSemanticModel, SemanticModel

_log = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
#  SOURCE UNITS
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class SourceUnit:
    path: str
    text: str
    tree: ast.Module


def parse_source(text: str, filename: str = "<string>") -> SourceUnit:
    try:
        tree = ast.parse(text, filename=filename)
    except SyntaxError as exc:
        raise SourceError.from_syntax_error(filename, exc) from exc
    except ValueError as exc:  # e.g. null bytes
        raise SourceError(str(exc), span=SourceSpan(file=filename), cause=exc) from exc
    return SourceUnit(path=filename, text=text, tree=tree)


def load_source(path: Path) -> SourceUnit:
    try:
        raw = path.read_bytes()
    except OSError as exc:
        raise SourceError(
            f"cannot read file: {exc.strerror or exc}", span=SourceSpan(file=str(path)), cause=exc
        ) from exc
    try:
        encoding, _ = tokenize.detect_encoding(io.BytesIO(raw).readline)
    except SyntaxError as exc:  # unknown or conflicting coding cookie
        raise SourceError(str(exc), span=SourceSpan(file=str(path)), cause=exc) from exc
    try:
        text = raw.decode(encoding)
    except UnicodeDecodeError as exc:
        raise SourceError(
            f"cannot decode file as {encoding}: {exc.reason}",
            span=SourceSpan(file=str(path)),
            cause=exc,
        ) from exc
    return parse_source(text, str(path))


def discover_files(
    paths: Iterable[Path],
    python_exts: Sequence[str] = (".py",),
    exclude_dirs: Sequence[str] = (),
) -> Iterator[Path]:
    """Expand files and directories into Python files, sorted per directory."""
    excluded = set(exclude_dirs)
    for path in paths:
        if path.is_dir():
            for candidate in sorted(path.rglob("*")):
                if not candidate.is_file() or candidate.suffix not in python_exts:
                    continue
                relative = candidate.relative_to(path).parts[:-1]
                if any(part in excluded for part in relative):
                    continue
                yield candidate
        else:
            yield path


# ═══════════════════════════════════════════════════════════════════════════
#  PIPELINE
# ═══════════════════════════════════════════════════════════════════════════

def evaluate_lambda(
    node: ast.Lambda,
    syntax: SyntaxIndex,
    model: SemanticModel,
    marker_names: Iterable[str] = DEFAULT_MARKER_NAMES,
    receiver_alias: str = RECEIVER_ALIAS,
) -> Optional[Violation]:
    """Full pipeline for one lambda node."""
    names = frozenset(marker_names)
    binding = bind(node, syntax, model)
    if binding is None:
        return None
    if not marker_applies(binding, model, names):
        return None
    capture_set = captures(node, model, receiver_alias)
    return report(binding, capture_set, model, names)


def _evaluate_safely(
    node: ast.Lambda,
    syntax: SyntaxIndex,
    model: SemanticModel,
    marker_names: frozenset,
    receiver_alias: str,
) -> Optional[Violation]:
    try:
        return evaluate_lambda(node, syntax, model, marker_names, receiver_alias)
    except Exception:
        # One ineligible node must not abort the rest of the module.
        _log.debug(
            "lambda at line %d skipped after internal error",
            getattr(node, "lineno", 0),
            exc_info=True,
        )
        return None


def analyze_module(
    tree: ast.Module,
    marker_names: Iterable[str] = DEFAULT_MARKER_NAMES,
    receiver_alias: str = RECEIVER_ALIAS,
    jobs: int = 1,
    model: Optional[SemanticModel] = None,
    syntax: Optional[SyntaxIndex] = None,
) -> List[Violation]:
    """Violations for every lambda of ``tree``, sorted by source position."""
    syntax = syntax or SyntaxIndex(tree)
    if model is None:
        model = PythonSemanticModel(tree, syntax)
    names = frozenset(marker_names)
    lambdas = list(syntax.iter_lambdas())
    _log.debug("evaluating %d lambda(s) with jobs=%d", len(lambdas), jobs)

    if jobs > 1 and len(lambdas) > 1:
        with ThreadPoolExecutor(max_workers=jobs) as pool:
            results = list(pool.map(
                lambda n: _evaluate_safely(n, syntax, model, names, receiver_alias),
                lambdas,
            ))
    else:
        results = [
            _evaluate_safely(n, syntax, model, names, receiver_alias) for n in lambdas
        ]

    violations = [v for v in results if v is not None]
    violations.sort(key=lambda v: (v.line, v.column))
    return violations


def analyze_source(
    text: str,
    filename: str = "<string>",
    marker_names: Iterable[str] = DEFAULT_MARKER_NAMES,
    receiver_alias: str = RECEIVER_ALIAS,
    jobs: int = 1,
) -> List[Violation]:
    unit = parse_source(text, filename)
    return analyze_module(unit.tree, marker_names, receiver_alias, jobs)


def analyze_file(
    path: Path,
    marker_names: Iterable[str] = DEFAULT_MARKER_NAMES,
    receiver_alias: str = RECEIVER_ALIAS,
    jobs: int = 1,
) -> List[Violation]:
    unit = load_source(path)
    return analyze_module(unit.tree, marker_names, receiver_alias, jobs)


__all__ = [
    "SourceUnit",
    "parse_source",
    "load_source",
    "discover_files",
    "evaluate_lambda",
    "analyze_module",
    "analyze_source",
    "analyze_file",
]
