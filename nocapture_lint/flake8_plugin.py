"""
nocapture_lint/flake8_plugin.py
═══════════════════════════════

flake8 entry point (``flake8.extension``, code prefix ``NC``).

    [flake8]
    nocapture-markers = NoCapture,no_capture,hot_path

flake8 handles ``# noqa`` itself, so the plugin reports every violation the
driver finds.
"""

from __future__ import annotations

import ast
from typing import Any, ClassVar, Iterator, Tuple

from nocapture_lint import __version__
from nocapture_lint.driver import analyze_module
from nocapture_lint.markers import DEFAULT_MARKER_NAMES
from nocapture_lint.reporter import ERROR_ID


class Flake8NoCapturePlugin:
    name = "nocapture-lint"
    version = __version__

    marker_names: ClassVar[Tuple[str, ...]] = tuple(sorted(DEFAULT_MARKER_NAMES))

    def __init__(self, tree: ast.AST, filename: str = "(none)") -> None:
        self.tree = tree
        self.filename = filename

    @classmethod
    def add_options(cls, option_manager: Any) -> None:
        option_manager.add_option(
            "--nocapture-markers",
            default=",".join(cls.marker_names),
            parse_from_config=True,
            comma_separated_list=True,
            help="Decorator / Annotated tag names that forbid capturing lambdas "
                 "(default: %(default)s)",
        )

    @classmethod
    def parse_options(cls, options: Any) -> None:
        markers = getattr(options, "nocapture_markers", None)
        if isinstance(markers, str):
            markers = [m.strip() for m in markers.split(",")]
        if markers:
            cls.marker_names = tuple(m for m in markers if m)

    def run(self) -> Iterator[Tuple[int, int, str, type]]:
        if not isinstance(self.tree, ast.Module):
            return
        for violation in analyze_module(self.tree, marker_names=self.marker_names):
            yield (
                violation.line,
                violation.column,
                f"{ERROR_ID} {violation.message}",
                type(self),
            )
