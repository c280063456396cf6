"""
nocapture_lint/checkers.py
══════════════════════════

Checker framework that turns the capture-compliance pipeline into
actionable, suppressible diagnostics.

Architecture
────────────

  ┌─────────────────────────────────────────────────────────┐
  │                   CheckerRunner                         │
  │  ┌──────────────────────────────────────────────────┐   │
  │  │               NoCaptureChecker                   │   │
  │  └──────────────────────┬───────────────────────────┘   │
  │                         │                               │
  │  ┌──────────────────────▼───────────────────────────┐   │
  │  │              Evidence Collection                 │   │
  │  │  binder │ markers │ captures │ reporter          │   │
  │  └──────────────────────┬───────────────────────────┘   │
  │                         │                               │
  │  ┌──────────────────────▼───────────────────────────┐   │
  │  │           SuppressionManager                     │   │
  │  │  # noqa: NC001  │  file-level  │  global         │   │
  │  └──────────────────────┬───────────────────────────┘   │
  │                         │                               │
  │  ┌──────────────────────▼───────────────────────────┐   │
  │  │        Diagnostic Formatter (text / JSON / gcc)  │   │
  │  └──────────────────────────────────────────────────┘   │
  └─────────────────────────────────────────────────────────┘

Each Checker follows a four-phase lifecycle:

  1. **configure()**        — read options (marker names, jobs)
  2. **collect_evidence()** — run the pipeline over the module
  3. **diagnose()**         — turn violations into Diagnostics
  4. **report()**           — emit Diagnostics (filtered by suppressions)
"""

from __future__ import annotations

import io
import json
import logging
import re
import time
import tokenize
from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum, auto
from fnmatch import fnmatch
from pathlib import Path
from typing import (
    Any,
    ClassVar,
    Dict,
    FrozenSet,
    Iterable,
    List,
    Optional,
    Sequence,
    Set,
    Tuple,
    Type,
)

from nocapture_lint import reporter
from nocapture_lint.config import LintConfig
from nocapture_lint.driver import SourceUnit, analyze_module, discover_files, load_source
from nocapture_lint.errors import SourceError

_log = logging.getLogger(__name__)


# ═════════════════════════════════════════════════════════════════════════
#  PART 1 — DIAGNOSTIC MODEL
# ═════════════════════════════════════════════════════════════════════════

class DiagnosticSeverity(Enum):
    ERROR = "error"
    WARNING = "warning"
    INFORMATION = "information"


class Confidence(Enum):
    """
    How certain we are that the diagnostic is a true positive.

    HIGH   — binding, marker and capture are all resolved statically
    LOW    — infrastructure notes (unparsable file, ...)
    """
    HIGH = auto()
    LOW = auto()


@dataclass(frozen=True)
class SourceLocation:
    file: str = ""
    line: int = 0
    column: int = 0

    def __str__(self) -> str:
        if self.line:
            return f"{self.file}:{self.line}:{self.column}"
        return self.file


@dataclass(frozen=True)
class Diagnostic:
    """
    A single diagnostic finding.

    Attributes
    ----------
    error_id     : Unique identifier (e.g., "NC001")
    message      : Human-readable description
    severity     : DiagnosticSeverity
    location     : Primary source location (column is 0-based)
    confidence   : Confidence level
    checker_name : Name of the checker that produced this
    category     : Rule category
    evidence     : Machine-readable evidence dict for downstream tooling
    """
    error_id: str
    message: str
    severity: DiagnosticSeverity
    location: SourceLocation
    confidence: Confidence = Confidence.HIGH
    checker_name: str = ""
    category: str = reporter.CATEGORY
    evidence: Dict[str, Any] = field(default_factory=dict)

    def to_json(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "file": self.location.file,
            "line": self.location.line,
            "column": self.location.column,
            "severity": self.severity.value,
            "errorId": self.error_id,
            "message": self.message,
            "category": self.category,
            "checker": self.checker_name,
        }
        if self.evidence:
            result["evidence"] = self.evidence
        return result

    def to_json_str(self) -> str:
        return json.dumps(self.to_json())

    def to_gcc_format(self) -> str:
        """GCC-style diagnostic string: file:line:col: severity: message [id]."""
        return f"{self.location}: {self.severity.value}: {self.message} [{self.error_id}]"

    def to_text(self) -> str:
        """flake8-style line: file:line:col+1: ID message."""
        loc = self.location
        return f"{loc.file}:{loc.line}:{loc.column + 1}: {self.error_id} {self.message}"


# ═════════════════════════════════════════════════════════════════════════
#  PART 2 — SUPPRESSION MANAGER
# ═════════════════════════════════════════════════════════════════════════

_NOQA_RE = re.compile(
    r"#\s*noqa(?::\s*(?P<codes>[A-Z]+[0-9]+(?:[,\s]+[A-Z]+[0-9]+)*))?",
    re.IGNORECASE,
)
_IGNORE_RE = re.compile(r"#\s*nocapture:\s*ignore\b", re.IGNORECASE)


class SuppressionManager:
    """
    Manages diagnostic suppressions from multiple sources.

    Sources:
      1. Inline comments on the reported line:
         ``# noqa``, ``# noqa: NC001``, ``# nocapture: ignore``
      2. File-level suppressions (passed programmatically)
      3. Global suppressions (command-line or config)

    Usage
    -----
    >>> sm = SuppressionManager()
    >>> sm.load_inline_suppressions(unit)
    >>> sm.add_file_suppression("NC001", "legacy/*.py")
    >>> sm.add_global_suppression("sourceError")
    >>> if not sm.is_suppressed(diagnostic):
    ...     emit(diagnostic)
    """

    def __init__(self) -> None:
        # {(file, line)} → set of error_ids suppressed at that location
        self._inline: Dict[Tuple[str, int], Set[str]] = defaultdict(set)
        # file pattern → set of error_ids
        self._file_level: Dict[str, Set[str]] = defaultdict(set)
        self._global: Set[str] = set()

    def load_inline_suppressions(self, unit: SourceUnit) -> None:
        """Scan comment tokens of ``unit`` for suppression markers."""
        try:
            tokens = list(tokenize.generate_tokens(io.StringIO(unit.text).readline))
        except (tokenize.TokenError, SyntaxError) as exc:
            _log.debug("%s: cannot tokenize for suppressions: %s", unit.path, exc)
            return
        for tok in tokens:
            if tok.type != tokenize.COMMENT:
                continue
            line = tok.start[0]
            if _IGNORE_RE.search(tok.string):
                self._inline[(unit.path, line)].add("*")
                continue
            match = _NOQA_RE.search(tok.string)
            if match is None:
                continue
            codes = match.group("codes")
            if not codes:
                self._inline[(unit.path, line)].add("*")
            else:
                for code in re.split(r"[,\s]+", codes.strip()):
                    if code:
                        self._inline[(unit.path, line)].add(code.upper())

    def add_file_suppression(self, error_id: str, file_pattern: str) -> None:
        self._file_level[file_pattern].add(error_id)

    def add_global_suppression(self, error_id: str) -> None:
        self._global.add(error_id)

    def is_suppressed(self, diag: Diagnostic) -> bool:
        eid = diag.error_id

        if eid in self._global or "*" in self._global:
            return True

        loc = diag.location
        suppressed_ids = self._inline.get((loc.file, loc.line), set())
        if eid in suppressed_ids or "*" in suppressed_ids:
            return True

        for pattern, ids in self._file_level.items():
            if eid in ids or "*" in ids:
                if pattern == loc.file or loc.file.endswith(pattern) or fnmatch(loc.file, pattern):
                    return True

        return False

    def filter_diagnostics(self, diagnostics: Iterable[Diagnostic]) -> List[Diagnostic]:
        return [d for d in diagnostics if not self.is_suppressed(d)]


# ═════════════════════════════════════════════════════════════════════════
#  PART 3 — CHECKER BASE CLASS
# ═════════════════════════════════════════════════════════════════════════

@dataclass
class CheckerContext:
    """
    Shared context passed to every checker during execution.

    Attributes
    ----------
    unit         : parsed source file under analysis
    config       : LintConfig for the run
    suppressions : SuppressionManager
    stats        : mutable dict for timing / counting statistics
    """
    unit: SourceUnit
    config: LintConfig = field(default_factory=LintConfig)
    suppressions: "SuppressionManager" = field(default_factory=SuppressionManager)
    stats: Dict[str, Any] = field(default_factory=dict)


class Checker(ABC):
    """
    Abstract base class for all checkers.

    Subclass Contract
    ─────────────────
      - Override ``name``, ``description``, ``error_ids``
      - Implement ``collect_evidence()`` and ``diagnose()``
      - Optionally override ``configure()`` for custom setup
    """

    name: ClassVar[str] = "base-checker"
    description: ClassVar[str] = ""
    error_ids: ClassVar[FrozenSet[str]] = frozenset()
    default_severity: ClassVar[DiagnosticSeverity] = DiagnosticSeverity.WARNING

    def __init__(self) -> None:
        self._diagnostics: List[Diagnostic] = []

    @property
    def diagnostics(self) -> List[Diagnostic]:
        return list(self._diagnostics)

    def configure(self, ctx: CheckerContext) -> None:
        """Called before evidence collection.  Default does nothing."""

    @abstractmethod
    def collect_evidence(self, ctx: CheckerContext) -> None:
        ...

    @abstractmethod
    def diagnose(self, ctx: CheckerContext) -> None:
        ...

    def report(self, ctx: CheckerContext) -> List[Diagnostic]:
        """Final diagnostics, filtered by suppressions."""
        return ctx.suppressions.filter_diagnostics(self._diagnostics)

    def _emit(
        self,
        error_id: str,
        message: str,
        file: str,
        line: int,
        column: int = 0,
        severity: Optional[DiagnosticSeverity] = None,
        confidence: Confidence = Confidence.HIGH,
        evidence: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._diagnostics.append(Diagnostic(
            error_id=error_id,
            message=message,
            severity=severity or self.default_severity,
            location=SourceLocation(file=file, line=line, column=column),
            confidence=confidence,
            checker_name=self.name,
            evidence=evidence or {},
        ))

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} '{self.name}'>"


# ═════════════════════════════════════════════════════════════════════════
#  PART 4 — CHECKER REGISTRY
# ═════════════════════════════════════════════════════════════════════════

class CheckerRegistry:
    """
    Registry of available checkers.

    >>> registry = CheckerRegistry()
    >>> registry.register(NoCaptureChecker)
    >>> registry.checkers()
    [<class 'nocapture_lint.checkers.NoCaptureChecker'>]
    """

    def __init__(self) -> None:
        self._checkers: Dict[str, Type[Checker]] = {}

    def register(self, checker_cls: Type[Checker]) -> None:
        self._checkers[checker_cls.name] = checker_cls

    def checkers(self) -> List[Type[Checker]]:
        return list(self._checkers.values())

    def get_by_name(self, name: str) -> Optional[Type[Checker]]:
        return self._checkers.get(name)

    @property
    def names(self) -> List[str]:
        return sorted(self._checkers.keys())


# ═════════════════════════════════════════════════════════════════════════
#  PART 5 — NO-CAPTURE CHECKER
# ═════════════════════════════════════════════════════════════════════════

class NoCaptureChecker(Checker):
    """
    Reports lambdas that capture outer variables while being passed to a
    method or parameter marked as forbidding captures.
    """

    name: ClassVar[str] = "no-capture"
    description: ClassVar[str] = reporter.TITLE
    error_ids: ClassVar[FrozenSet[str]] = frozenset({reporter.ERROR_ID})
    default_severity: ClassVar[DiagnosticSeverity] = DiagnosticSeverity.ERROR

    def __init__(self) -> None:
        super().__init__()
        self._violations: List[reporter.Violation] = []
        self._marker_names: Tuple[str, ...] = ()
        self._receiver_alias = "this"
        self._jobs = 1

    def configure(self, ctx: CheckerContext) -> None:
        self._marker_names = ctx.config.marker_names
        self._receiver_alias = ctx.config.receiver_alias
        self._jobs = ctx.config.jobs

    def collect_evidence(self, ctx: CheckerContext) -> None:
        self._violations = analyze_module(
            ctx.unit.tree,
            marker_names=self._marker_names,
            receiver_alias=self._receiver_alias,
            jobs=self._jobs,
        )
        ctx.stats[f"{self.name}_violations"] = len(self._violations)

    def diagnose(self, ctx: CheckerContext) -> None:
        for violation in self._violations:
            self._emit(
                error_id=reporter.ERROR_ID,
                message=violation.message,
                file=ctx.unit.path,
                line=violation.line,
                column=violation.column,
                evidence={
                    "callee": violation.callee_name,
                    "parameter": violation.parameter_name,
                    "captured": list(violation.captured_names),
                },
            )


# ═════════════════════════════════════════════════════════════════════════
#  PART 6 — CHECKER RUNNER
# ═════════════════════════════════════════════════════════════════════════

DEFAULT_REGISTRY = CheckerRegistry()
DEFAULT_REGISTRY.register(NoCaptureChecker)

INTERNAL_ERROR_ID = "checkerInternalError"


@dataclass
class CheckerRunResults:
    """
    Aggregate results from running a suite of checkers.

    Attributes
    ----------
    diagnostics            : All diagnostics from all checkers
    diagnostics_by_checker : Diagnostics grouped by checker name
    stats                  : Timing and counting statistics
    checker_names          : Names of checkers that were run
    files                  : Files analysed (including unparsable ones)
    """
    diagnostics: List[Diagnostic] = field(default_factory=list)
    diagnostics_by_checker: Dict[str, List[Diagnostic]] = field(
        default_factory=lambda: defaultdict(list)
    )
    stats: Dict[str, Any] = field(default_factory=dict)
    checker_names: List[str] = field(default_factory=list)
    files: List[str] = field(default_factory=list)

    @property
    def error_count(self) -> int:
        return sum(1 for d in self.diagnostics if d.severity == DiagnosticSeverity.ERROR)

    @property
    def total_count(self) -> int:
        return len(self.diagnostics)

    def by_file(self, file: str) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.location.file == file]

    def by_error_id(self, error_id: str) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.error_id == error_id]

    def merge(self, other: "CheckerRunResults") -> None:
        self.diagnostics.extend(other.diagnostics)
        for name, diags in other.diagnostics_by_checker.items():
            self.diagnostics_by_checker[name].extend(diags)
        for key, val in other.stats.items():
            self.stats[key] = self.stats.get(key, 0) + val
        for name in other.checker_names:
            if name not in self.checker_names:
                self.checker_names.append(name)
        self.files.extend(other.files)

    def format(self, output: str) -> str:
        if output == "json":
            return "\n".join(d.to_json_str() for d in self.diagnostics)
        if output == "gcc":
            return "\n".join(d.to_gcc_format() for d in self.diagnostics)
        if output == "summary":
            return self.summary()
        return "\n".join(d.to_text() for d in self.diagnostics)

    def summary(self) -> str:
        lines = [
            f"Checked {len(self.files)} file(s): {self.total_count} diagnostics "
            f"({self.error_count} errors)",
        ]
        for name in self.checker_names:
            count = len(self.diagnostics_by_checker.get(name, []))
            elapsed = self.stats.get(f"{name}_elapsed_ms", 0)
            lines.append(f"  {name}: {count} findings ({elapsed:.1f}ms)")
        return "\n".join(lines)


class CheckerRunner:
    """
    Runs a suite of checkers against parsed source units.

    Usage
    -----
    >>> runner = CheckerRunner(config=LintConfig())
    >>> results = runner.run_paths([Path("src")])
    >>> print(results.summary())
    """

    def __init__(
        self,
        registry: Optional[CheckerRegistry] = None,
        suppressions: Optional[SuppressionManager] = None,
        config: Optional[LintConfig] = None,
    ) -> None:
        self.registry = registry or DEFAULT_REGISTRY
        self.suppressions = suppressions or SuppressionManager()
        self.config = config or LintConfig()
        for error_id in self.config.suppress:
            self.suppressions.add_global_suppression(error_id)

    def _checker_classes(self, checkers: Optional[Sequence[str]]) -> List[Type[Checker]]:
        if checkers is None:
            return self.registry.checkers()
        classes: List[Type[Checker]] = []
        for name in checkers:
            cls = self.registry.get_by_name(name)
            if cls is None:
                _log.warning("unknown checker %r ignored", name)
                continue
            classes.append(cls)
        return classes

    def run(
        self,
        unit: SourceUnit,
        checkers: Optional[Sequence[str]] = None,
    ) -> CheckerRunResults:
        """Run checkers against a single parsed source unit."""
        results = CheckerRunResults(files=[unit.path])
        self.suppressions.load_inline_suppressions(unit)
        ctx = CheckerContext(
            unit=unit,
            config=self.config,
            suppressions=self.suppressions,
        )

        for cls in self._checker_classes(checkers):
            checker = cls()
            checker_name = cls.name
            results.checker_names.append(checker_name)

            t0 = time.monotonic()
            try:
                checker.configure(ctx)
                checker.collect_evidence(ctx)
                checker.diagnose(ctx)
                diags = checker.report(ctx)
            except Exception as exc:
                # Graceful degradation: report the failure, don't crash
                _log.error("checker %s failed on %s", checker_name, unit.path, exc_info=True)
                diags = [Diagnostic(
                    error_id=INTERNAL_ERROR_ID,
                    message=f"Checker '{checker_name}' failed: {exc}",
                    severity=DiagnosticSeverity.INFORMATION,
                    location=SourceLocation(file=unit.path),
                    confidence=Confidence.LOW,
                    checker_name=checker_name,
                )]
            elapsed_ms = (time.monotonic() - t0) * 1000.0

            results.diagnostics.extend(diags)
            results.diagnostics_by_checker[checker_name].extend(diags)
            results.stats[f"{checker_name}_elapsed_ms"] = elapsed_ms

        return results

    def run_paths(
        self,
        paths: Iterable[Path],
        checkers: Optional[Sequence[str]] = None,
    ) -> CheckerRunResults:
        """Run checkers across every Python file under ``paths``."""
        combined = CheckerRunResults()
        for path in discover_files(paths, self.config.python_exts, self.config.exclude_dirs):
            try:
                unit = load_source(path)
            except SourceError as exc:
                _log.warning("%s", exc)
                combined.files.append(str(path))
                diag = Diagnostic(
                    error_id=exc.error_id,
                    message=exc.message,
                    severity=DiagnosticSeverity.ERROR,
                    location=SourceLocation(
                        file=exc.span.file or str(path),
                        line=exc.span.line,
                        column=exc.span.column,
                    ),
                    confidence=Confidence.LOW,
                    checker_name="parser",
                )
                if not self.suppressions.is_suppressed(diag):
                    combined.diagnostics.append(diag)
                continue
            _log.info("checking %s", path)
            combined.merge(self.run(unit, checkers=checkers))
        return combined


__all__ = [
    "Diagnostic",
    "DiagnosticSeverity",
    "Confidence",
    "SourceLocation",
    "SuppressionManager",
    "Checker",
    "CheckerContext",
    "CheckerRegistry",
    "NoCaptureChecker",
    "CheckerRunner",
    "CheckerRunResults",
    "DEFAULT_REGISTRY",
    "INTERNAL_ERROR_ID",
]
