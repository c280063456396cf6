"""
nocapture_lint/reporter.py
══════════════════════════

Violation reporter: turns a gated binding plus a non-empty capture set into
one immutable ``Violation``.

Message template (stable, consumed by tests and editor integrations)::

    <callee>( <parameter> ) doesn't allow capturing lambdas. Captured variables: a,b.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

from nocapture_lint.ast_helper import node_position
from nocapture_lint.binder import CallBinding
from nocapture_lint.captures import CaptureSet
from nocapture_lint.markers import DEFAULT_MARKER_NAMES, marker_applies
from nocapture_lint.semantic import SemanticModel

ERROR_ID = "NC001"
TITLE = "Capturing is not allowed"
CATEGORY = "performance"
SEVERITY = "error"
MESSAGE_TEMPLATE = (
    "{callee}( {parameter} ) doesn't allow capturing lambdas. "
    "Captured variables: {captured}."
)


@dataclass(frozen=True)
class Violation:
    callee_name: str
    parameter_name: str
    captured_names: Tuple[str, ...]
    line: int = 0
    column: int = 0

    @property
    def message(self) -> str:
        return format_message(self.callee_name, self.parameter_name, self.captured_names)


def format_message(callee: str, parameter: str, captured: Iterable[str]) -> str:
    return MESSAGE_TEMPLATE.format(
        callee=callee, parameter=parameter, captured=",".join(captured)
    )


def report(
    binding: CallBinding,
    capture_set: CaptureSet,
    model: SemanticModel,
    marker_names: Iterable[str] = DEFAULT_MARKER_NAMES,
) -> Optional[Violation]:
    if not capture_set:
        return None
    if not marker_applies(binding, model, marker_names):
        return None
    line, column = node_position(binding.argument)
    return Violation(
        callee_name=binding.method.name,
        parameter_name=binding.parameter.name,
        captured_names=capture_set.names,
        line=line,
        column=column,
    )


__all__ = [
    "ERROR_ID",
    "TITLE",
    "CATEGORY",
    "SEVERITY",
    "MESSAGE_TEMPLATE",
    "Violation",
    "format_message",
    "report",
]
