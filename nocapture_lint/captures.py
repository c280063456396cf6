"""
nocapture_lint/captures.py
══════════════════════════

Capture analyzer: the ordered set of outer variables a lambda closes over.

The free-variable boundary is exactly the lambda under test::

    def outer(self, limit):
        run(lambda xs: pick(xs, lambda x: x > limit))
        #   outer lambda captures: limit     (read by the inner lambda)
        #   inner lambda captures: limit
        run(lambda xs: pick(xs, lambda x: x in xs))
        #   outer lambda captures: nothing   (xs is its own parameter)
        #   inner lambda captures: xs

Reads of the enclosing method's receiver (``self``/``cls``) collapse into a
single pseudo-name, ``this`` by default.
"""

from __future__ import annotations

import ast
from dataclasses import dataclass
from typing import Iterator, List, Tuple

from nocapture_lint.semantic import SemanticModel

RECEIVER_ALIAS = "this"


@dataclass(frozen=True)
class CaptureSet:
    names: Tuple[str, ...] = ()

    def __bool__(self) -> bool:
        return bool(self.names)

    def __len__(self) -> int:
        return len(self.names)

    def __iter__(self) -> Iterator[str]:
        return iter(self.names)

    def render(self) -> str:
        return ",".join(self.names)


EMPTY = CaptureSet()


def captures(
    node: ast.Lambda,
    model: SemanticModel,
    receiver_alias: str = RECEIVER_ALIAS,
) -> CaptureSet:
    names: List[str] = []
    for variable in model.captured_variables(node):
        name = receiver_alias if variable.is_receiver else variable.name
        if name not in names:
            names.append(name)
    if not names:
        return EMPTY
    return CaptureSet(tuple(names))


__all__ = ["CaptureSet", "captures", "RECEIVER_ALIAS", "EMPTY"]
