"""
nocapture_lint/symbols.py
═════════════════════════

Symbol handles handed out by the semantic model.

Symbols are identity-comparable (``eq=False``): two parameters that happen
to share a name in different functions are different symbols.  They carry
the marker tag names attached to them (decorators for methods, ``Annotated``
metadata for parameters) so marker lookup is a pure name query.
"""

from __future__ import annotations

import ast
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional, Tuple


class SymbolKind(Enum):
    METHOD = "method"
    PARAMETER = "parameter"
    VARIABLE = "variable"


class ParameterKind(Enum):
    """Mirrors :class:`inspect.Parameter` kinds."""
    POSITIONAL_ONLY = "positional-only"
    POSITIONAL_OR_KEYWORD = "positional-or-keyword"
    VAR_POSITIONAL = "var-positional"
    KEYWORD_ONLY = "keyword-only"
    VAR_KEYWORD = "var-keyword"


@dataclass(frozen=True, eq=False)
class Symbol:
    name: str
    kind: SymbolKind
    markers: Tuple[str, ...] = ()
    node: Optional[ast.AST] = field(default=None, repr=False)


@dataclass(frozen=True, eq=False)
class ParameterSymbol(Symbol):
    """A declared parameter; ``index`` is its position in the full signature."""
    parameter_kind: ParameterKind = ParameterKind.POSITIONAL_OR_KEYWORD
    index: int = 0

    @property
    def is_positional(self) -> bool:
        return self.parameter_kind in (
            ParameterKind.POSITIONAL_ONLY,
            ParameterKind.POSITIONAL_OR_KEYWORD,
        )

    @property
    def accepts_keyword(self) -> bool:
        return self.parameter_kind in (
            ParameterKind.POSITIONAL_OR_KEYWORD,
            ParameterKind.KEYWORD_ONLY,
        )


@dataclass(frozen=True, eq=False)
class MethodSymbol(Symbol):
    """
    A ``def`` resolved from a call target.

    ``bound`` views drop the receiver parameter so that the parameter list
    lines up with the call's argument list (``self.m(x)`` binds ``x`` to the
    second declared parameter).
    """
    qualname: str = ""
    parameters: Tuple[ParameterSymbol, ...] = ()
    bound: bool = False

    @property
    def positional_parameters(self) -> Tuple[ParameterSymbol, ...]:
        return tuple(p for p in self.parameters if p.is_positional)

    @property
    def var_positional(self) -> Optional[ParameterSymbol]:
        for p in self.parameters:
            if p.parameter_kind is ParameterKind.VAR_POSITIONAL:
                return p
        return None

    @property
    def var_keyword(self) -> Optional[ParameterSymbol]:
        for p in self.parameters:
            if p.parameter_kind is ParameterKind.VAR_KEYWORD:
                return p
        return None

    def parameter_named(self, name: str) -> Optional[ParameterSymbol]:
        for p in self.parameters:
            if p.name == name and p.accepts_keyword:
                return p
        return None

    def bind_receiver(self) -> "MethodSymbol":
        """View of this method with the leading receiver parameter removed."""
        positional = self.positional_parameters
        if self.bound or not positional:
            return self
        receiver = positional[0]
        return replace(
            self,
            parameters=tuple(p for p in self.parameters if p is not receiver),
            bound=True,
        )


@dataclass(frozen=True, eq=False)
class VariableSymbol(Symbol):
    """A binding in a function, lambda or comprehension scope."""
    is_receiver: bool = False


__all__ = [
    "SymbolKind",
    "ParameterKind",
    "Symbol",
    "ParameterSymbol",
    "MethodSymbol",
    "VariableSymbol",
]
