# nocapture_lint/errors.py
"""
Error types for the nocapture-lint tool-suite.

The capture-compliance core never raises: an unresolvable call site, a
lambda outside an argument position or an inconsistent semantic answer all
degrade to "not applicable".  The exceptions below belong to the plumbing
around the core (reading files, loading configuration) and are turned into
``sourceError`` / ``configError`` diagnostics or CLI exit codes by the
callers.

Error Hierarchy:
────────────────
┌─────────────────────────────────────────────────────────────┐
│  NoCaptureError (base)                                      │
│  ├── SourceError   - file cannot be read, decoded or parsed │
│  └── ConfigError   - invalid ``[tool.nocapture]`` settings  │
└─────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional


# ═══════════════════════════════════════════════════════════════════════════════
# SOURCE SPANS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class SourceSpan:
    """Position of an error inside a file (1-based line, 0-based column)."""

    file: str = ""
    line: int = 0
    column: int = 0

    def __str__(self) -> str:
        if self.line:
            return f"{self.file}:{self.line}:{self.column}"
        return self.file


# ═══════════════════════════════════════════════════════════════════════════════
# EXCEPTIONS
# ═══════════════════════════════════════════════════════════════════════════════

class NoCaptureError(Exception):
    """
    Base exception for all nocapture-lint errors.

    Carries a ``SourceSpan`` so callers can report the failure at a
    location instead of as a bare string.
    """

    error_id: str = "internalError"

    def __init__(
        self,
        message: str,
        span: Optional[SourceSpan] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.span = span or SourceSpan()
        self.cause = cause

    def to_gcc_format(self) -> str:
        """Format as ``file:line:col: error: message [id]``."""
        return f"{self.span}: error: {self.message} [{self.error_id}]"

    def __str__(self) -> str:
        if self.span.file:
            return self.to_gcc_format()
        return self.message


class SourceError(NoCaptureError):
    """A Python source file could not be read, decoded or parsed."""

    error_id = "sourceError"

    @classmethod
    def from_syntax_error(cls, filename: str, exc: SyntaxError) -> "SourceError":
        return cls(
            exc.msg or "invalid syntax",
            span=SourceSpan(
                file=filename,
                line=exc.lineno or 0,
                column=max((exc.offset or 1) - 1, 0),
            ),
            cause=exc,
        )


class ConfigError(NoCaptureError):
    """Configuration values failed validation."""

    error_id = "configError"

    def __init__(
        self,
        message: str,
        problems: Optional[List[str]] = None,
        span: Optional[SourceSpan] = None,
    ) -> None:
        super().__init__(message, span=span)
        self.problems = list(problems or [])

    def __str__(self) -> str:
        base = super().__str__()
        if not self.problems:
            return base
        return base + "\n" + "\n".join(f"  - {p}" for p in self.problems)


__all__ = [
    "SourceSpan",
    "NoCaptureError",
    "SourceError",
    "ConfigError",
]
