"""
nocapture_lint/binder.py
════════════════════════

Argument binder: which (method, parameter) does a lambda argument satisfy?

    f(a, lambda: x)            positional   → f's 2nd positional parameter
    f(func=lambda: x, seed=1)  named        → parameter ``func`` wherever declared
    f(a, lambda: x, lambda: y) past the end → ``*args`` itself, per item
    self.f(lambda: x)          bound call   → receiver already dropped
    f(extra=lambda: x)         no match     → ``**kwargs`` if declared

Every failure is a silent ``None``: ambiguous or foreign call targets,
unknown keywords, arguments behind a ``*starred`` unpacking, lambdas that
are not a direct argument at all.
"""

from __future__ import annotations

import ast
from dataclasses import dataclass, field
from typing import Optional

from nocapture_lint.ast_helper import SyntaxIndex
from nocapture_lint.semantic import SemanticModel
from nocapture_lint.symbols import MethodSymbol, ParameterSymbol


@dataclass(frozen=True)
class CallBinding:
    method: MethodSymbol
    parameter: ParameterSymbol
    argument: ast.expr = field(repr=False)
    call: ast.Call = field(repr=False)


def match_named(method: MethodSymbol, name: str) -> Optional[ParameterSymbol]:
    parameter = method.parameter_named(name)
    if parameter is not None:
        return parameter
    return method.var_keyword


def match_positional(method: MethodSymbol, position: int) -> Optional[ParameterSymbol]:
    positional = method.positional_parameters
    if position < len(positional):
        return positional[position]
    return method.var_positional


def bind(
    node: ast.expr,
    syntax: SyntaxIndex,
    model: SemanticModel,
) -> Optional[CallBinding]:
    """Resolve the call binding of ``node``, or ``None`` if there is none."""
    parent = syntax.parent_of(node)

    if isinstance(parent, ast.keyword):
        call = syntax.parent_of(parent)
        if not isinstance(call, ast.Call) or parent.arg is None:
            return None
        method = model.resolve_callee(call)
        if method is None:
            return None
        parameter = match_named(method, parent.arg)

    elif isinstance(parent, ast.Call):
        call = parent
        position = next(
            (i for i, arg in enumerate(call.args) if arg is node), None
        )
        if position is None:
            return None
        if any(isinstance(arg, ast.Starred) for arg in call.args[:position]):
            return None
        method = model.resolve_callee(call)
        if method is None:
            return None
        parameter = match_positional(method, position)

    else:
        return None

    if parameter is None:
        return None
    return CallBinding(method=method, parameter=parameter, argument=node, call=call)


__all__ = [
    "CallBinding",
    "bind",
    "match_named",
    "match_positional",
]
