#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
nocapture_lint/ast_helper.py
════════════════════════════

Syntax-level helpers over the standard :mod:`ast` tree.

    ┌─────────────────────────────────────────────────────────────────┐
    │  Traversal                                                      │
    │    • Field-order pre-order iteration                            │
    │    • Parent chain walking (``SyntaxIndex``)                     │
    │    • Lambda enumeration and nesting queries                     │
    ├─────────────────────────────────────────────────────────────────┤
    │  Name extraction                                                │
    │    • Terminal names of dotted / called / subscripted exprs      │
    │    • Decorator names, ``Annotated[...]`` metadata tags          │
    └─────────────────────────────────────────────────────────────────┘

All functions are read-only: the tree is never mutated, parent links live
in a side table instead of on the nodes.
"""

from __future__ import annotations

import ast
from typing import Dict, Iterator, List, Optional, Tuple


# ═══════════════════════════════════════════════════════════════════════════
#  CONSTANTS
# ═══════════════════════════════════════════════════════════════════════════

ANNOTATED_NAMES = frozenset({"Annotated"})
OVERLOAD_NAMES = frozenset({"overload"})
STATICMETHOD_NAMES = frozenset({"staticmethod"})
CLASSMETHOD_NAMES = frozenset({"classmethod"})

FunctionNode = (ast.FunctionDef, ast.AsyncFunctionDef)


# ═══════════════════════════════════════════════════════════════════════════
#  TRAVERSAL
# ═══════════════════════════════════════════════════════════════════════════

def iter_preorder(node: ast.AST) -> Iterator[ast.AST]:
    """
    Depth-first, pre-order iteration in ``_fields`` order.

    Unlike :func:`ast.walk` (breadth-first) this yields nodes in the order
    a reader meets them, which is the order capture names are reported in.
    """
    stack: List[ast.AST] = [node]
    while stack:
        current = stack.pop()
        yield current
        children = list(ast.iter_child_nodes(current))
        stack.extend(reversed(children))


class SyntaxIndex:
    """
    Parent links and lambda enumeration for one module tree.

    This is the syntax half of the front end consumed by the core:
    "is this a lambda", "what is this node's parent chain" and "does this
    subtree contain nested lambdas".
    """

    def __init__(self, tree: ast.AST) -> None:
        self.tree = tree
        self._parents: Dict[ast.AST, ast.AST] = {}
        self._lambdas: List[ast.Lambda] = []
        for node in iter_preorder(tree):
            if isinstance(node, ast.Lambda):
                self._lambdas.append(node)
            for child in ast.iter_child_nodes(node):
                self._parents[child] = node

    def parent_of(self, node: ast.AST) -> Optional[ast.AST]:
        return self._parents.get(node)

    def ancestors(self, node: ast.AST) -> Iterator[ast.AST]:
        parent = self._parents.get(node)
        while parent is not None:
            yield parent
            parent = self._parents.get(parent)

    def iter_lambdas(self) -> Iterator[ast.Lambda]:
        """All lambda nodes of the tree, outermost first, in source order."""
        return iter(self._lambdas)

    def nested_lambdas(self, node: ast.AST) -> List[ast.Lambda]:
        """Lambdas strictly inside ``node``."""
        return [
            n for n in iter_preorder(node)
            if n is not node and isinstance(n, ast.Lambda)
        ]

    def contains_lambdas(self, node: ast.AST) -> bool:
        return bool(self.nested_lambdas(node))

    @staticmethod
    def is_lambda(node: ast.AST) -> bool:
        return isinstance(node, ast.Lambda)


# ═══════════════════════════════════════════════════════════════════════════
#  NAME EXTRACTION
# ═══════════════════════════════════════════════════════════════════════════

def terminal_name(expr: Optional[ast.AST]) -> Optional[str]:
    """
    Last identifier of a dotted, called or subscripted expression.

    >>> terminal_name(ast.parse("a.b.NoCapture()", mode="eval").body)
    'NoCapture'
    """
    while expr is not None:
        if isinstance(expr, ast.Name):
            return expr.id
        if isinstance(expr, ast.Attribute):
            return expr.attr
        if isinstance(expr, ast.Call):
            expr = expr.func
            continue
        if isinstance(expr, ast.Subscript):
            expr = expr.value
            continue
        return None
    return None


def decorator_names(node: ast.AST) -> Tuple[str, ...]:
    """Terminal names of every decorator on a def/class, in source order."""
    names: List[str] = []
    for deco in getattr(node, "decorator_list", ()):
        name = terminal_name(deco)
        if name:
            names.append(name)
    return tuple(names)


def _parse_string_annotation(value: str) -> Optional[ast.AST]:
    try:
        return ast.parse(value.strip(), mode="eval").body
    except SyntaxError:
        return None


def annotation_tags(annotation: Optional[ast.AST]) -> Tuple[str, ...]:
    """
    Metadata tag names carried by an ``Annotated[T, tag, ...]`` annotation.

    String (forward-reference) annotations are parsed first.  Anything that
    is not an ``Annotated`` subscript carries no tags.
    """
    if isinstance(annotation, ast.Constant) and isinstance(annotation.value, str):
        annotation = _parse_string_annotation(annotation.value)
    if not isinstance(annotation, ast.Subscript):
        return ()
    if terminal_name(annotation.value) not in ANNOTATED_NAMES:
        return ()
    items = annotation.slice
    if not isinstance(items, ast.Tuple) or len(items.elts) < 2:
        return ()
    tags: List[str] = []
    for meta in items.elts[1:]:
        name = terminal_name(meta)
        if name:
            tags.append(name)
    return tuple(tags)


def is_overload(node: ast.AST) -> bool:
    return any(n in OVERLOAD_NAMES for n in decorator_names(node))


def is_staticmethod(node: ast.AST) -> bool:
    return any(n in STATICMETHOD_NAMES for n in decorator_names(node))


def is_classmethod(node: ast.AST) -> bool:
    return any(n in CLASSMETHOD_NAMES for n in decorator_names(node))


def node_position(node: ast.AST) -> Tuple[int, int]:
    """``(line, col)`` of a node; ``(0, 0)`` for nodes without a position."""
    return getattr(node, "lineno", 0), getattr(node, "col_offset", 0)


__all__ = [
    "iter_preorder",
    "SyntaxIndex",
    "terminal_name",
    "decorator_names",
    "annotation_tags",
    "is_overload",
    "is_staticmethod",
    "is_classmethod",
    "node_position",
    "FunctionNode",
]
