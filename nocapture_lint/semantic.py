#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
nocapture_lint/semantic.py
══════════════════════════

Semantic model consumed by the capture-compliance core.

The core only needs three capabilities, captured by the ``SemanticModel``
protocol:

    resolve_callee(call)        → the single ``MethodSymbol`` a call binds to
    markers_of(symbol)          → tag names attached to a symbol
    captured_variables(lambda)  → outer-scope bindings the lambda reads

``PythonSemanticModel`` implements them for one module with a scope pass
over :mod:`ast` that follows the language's name-resolution rules:

    ┌──────────────────────────────────────────────────────────────────┐
    │  module ── class ── function ── lambda ── comprehension          │
    │                                                                  │
    │  • class bodies are invisible to nested scopes                   │
    │  • ``global`` / ``nonlocal`` redirect the lookup                 │
    │  • walrus targets bind in the nearest non-comprehension scope    │
    │  • the first comprehension iterable is evaluated outside         │
    │  • lambda defaults are evaluated where the lambda is written     │
    └──────────────────────────────────────────────────────────────────┘

Call targets are resolved inside the module only.  Anything the model
cannot pin down to exactly one ``def`` (imported callables, rebinding,
attribute access on arbitrary objects) resolves to ``None``.
"""

from __future__ import annotations

import ast
from dataclasses import dataclass, field
from enum import Enum
from typing import (
    Dict,
    Iterator,
    List,
    Optional,
    Protocol,
    Set,
    Tuple,
    runtime_checkable,
)

from nocapture_lint.ast_helper import (
    FunctionNode,
    SyntaxIndex,
    annotation_tags,
    decorator_names,
    is_classmethod,
    is_overload,
    is_staticmethod,
    iter_preorder,
)
from nocapture_lint.symbols import (
    MethodSymbol,
    ParameterKind,
    ParameterSymbol,
    Symbol,
    SymbolKind,
    VariableSymbol,
)


# ═══════════════════════════════════════════════════════════════════════════
#  PART 1 — PROTOCOL
# ═══════════════════════════════════════════════════════════════════════════

@runtime_checkable
class SemanticModel(Protocol):
    """What the core asks of a front end."""

    def resolve_callee(self, call: ast.Call) -> Optional[MethodSymbol]:
        ...

    def markers_of(self, symbol: Symbol) -> Tuple[str, ...]:
        ...

    def captured_variables(self, node: ast.Lambda) -> Tuple[VariableSymbol, ...]:
        ...


# ═══════════════════════════════════════════════════════════════════════════
#  PART 2 — SCOPES
# ═══════════════════════════════════════════════════════════════════════════

class ScopeKind(Enum):
    MODULE = "module"
    CLASS = "class"
    FUNCTION = "function"
    LAMBDA = "lambda"
    COMPREHENSION = "comprehension"


# Scopes whose bindings become closure cells when a nested scope reads them.
CLOSURE_SCOPES = frozenset({
    ScopeKind.FUNCTION, ScopeKind.LAMBDA, ScopeKind.COMPREHENSION,
})


@dataclass(eq=False)
class Scope:
    kind: ScopeKind
    node: ast.AST
    parent: Optional["Scope"] = None
    name: str = ""
    receiver: Optional[str] = None
    bindings: Dict[str, VariableSymbol] = field(default_factory=dict)
    definitions: Dict[str, List[ast.AST]] = field(default_factory=dict)
    globals_: Set[str] = field(default_factory=set)
    nonlocals: Set[str] = field(default_factory=set)

    def bind(self, name: str, site: ast.AST) -> None:
        if name not in self.bindings:
            self.bindings[name] = VariableSymbol(
                name=name,
                kind=SymbolKind.VARIABLE,
                node=site,
                is_receiver=(name == self.receiver),
            )
        self.definitions.setdefault(name, []).append(site)

    def is_strict_ancestor_of(self, other: "Scope") -> bool:
        scope = other.parent
        while scope is not None:
            if scope is self:
                return True
            scope = scope.parent
        return False

    @property
    def qualname(self) -> str:
        parts: List[str] = []
        scope: Optional[Scope] = self
        while scope is not None and scope.kind is not ScopeKind.MODULE:
            parts.append(scope.name)
            scope = scope.parent
        return ".".join(reversed(parts))

    def __repr__(self) -> str:
        return f"<Scope {self.kind.value} {self.qualname or '<module>'}>"


class _ScopeBuilder(ast.NodeVisitor):
    """Single pass that builds the scope tree and records name reads."""

    def __init__(self, module: ast.Module) -> None:
        self.root = Scope(ScopeKind.MODULE, module)
        self.current = self.root
        self.scope_of_node: Dict[ast.AST, Scope] = {}
        self.enclosing: Dict[ast.AST, Scope] = {}
        self.reads: Dict[ast.Name, Scope] = {}

    # ── helpers ─────────────────────────────────────────────────────

    def _enter(self, scope: Scope) -> Scope:
        previous = self.current
        self.current = scope
        self.scope_of_node[scope.node] = scope
        return previous

    def _visit_all(self, nodes) -> None:
        for node in nodes:
            if node is not None:
                self.visit(node)

    def _bind_arguments(self, scope: Scope, args: ast.arguments) -> None:
        for arg in (*args.posonlyargs, *args.args, args.vararg,
                    *args.kwonlyargs, args.kwarg):
            if arg is not None:
                scope.bind(arg.arg, arg)

    def _visit_signature_outside(self, args: ast.arguments, annotations: bool) -> None:
        self._visit_all(args.defaults)
        self._visit_all(args.kw_defaults)
        if annotations:
            for arg in (*args.posonlyargs, *args.args, args.vararg,
                        *args.kwonlyargs, args.kwarg):
                if arg is not None and arg.annotation is not None:
                    self.visit(arg.annotation)

    # ── scopes ──────────────────────────────────────────────────────

    def visit_Module(self, node: ast.Module) -> None:
        self.scope_of_node[node] = self.root
        self._visit_all(node.body)

    def _visit_function(self, node) -> None:
        self.current.bind(node.name, node)
        self.enclosing[node] = self.current
        self._visit_all(node.decorator_list)
        self._visit_signature_outside(node.args, annotations=True)
        if node.returns is not None:
            self.visit(node.returns)

        receiver = None
        if self.current.kind is ScopeKind.CLASS and not is_staticmethod(node):
            positional = [*node.args.posonlyargs, *node.args.args]
            if positional:
                receiver = positional[0].arg
        scope = Scope(ScopeKind.FUNCTION, node, self.current, node.name, receiver)
        self._bind_arguments(scope, node.args)
        previous = self._enter(scope)
        self._visit_all(node.body)
        self.current = previous

    visit_FunctionDef = _visit_function
    visit_AsyncFunctionDef = _visit_function

    def visit_Lambda(self, node: ast.Lambda) -> None:
        self.enclosing[node] = self.current
        self._visit_signature_outside(node.args, annotations=False)
        scope = Scope(ScopeKind.LAMBDA, node, self.current, "<lambda>")
        self._bind_arguments(scope, node.args)
        previous = self._enter(scope)
        self.visit(node.body)
        self.current = previous

    def visit_ClassDef(self, node: ast.ClassDef) -> None:
        self.current.bind(node.name, node)
        self.enclosing[node] = self.current
        self._visit_all(node.decorator_list)
        self._visit_all(node.bases)
        self._visit_all(node.keywords)
        scope = Scope(ScopeKind.CLASS, node, self.current, node.name)
        previous = self._enter(scope)
        self._visit_all(node.body)
        self.current = previous

    def _visit_comprehension(self, node) -> None:
        generators: List[ast.comprehension] = node.generators
        self.enclosing[node] = self.current
        if generators:
            self.visit(generators[0].iter)
        scope = Scope(ScopeKind.COMPREHENSION, node, self.current, "<comprehension>")
        previous = self._enter(scope)
        for index, gen in enumerate(generators):
            if index:
                self.visit(gen.iter)
            self.visit(gen.target)
            self._visit_all(gen.ifs)
        if isinstance(node, ast.DictComp):
            self.visit(node.key)
            self.visit(node.value)
        else:
            self.visit(node.elt)
        self.current = previous

    visit_ListComp = _visit_comprehension
    visit_SetComp = _visit_comprehension
    visit_DictComp = _visit_comprehension
    visit_GeneratorExp = _visit_comprehension

    # ── bindings and reads ──────────────────────────────────────────

    def visit_Name(self, node: ast.Name) -> None:
        if isinstance(node.ctx, ast.Load):
            self.reads[node] = self.current
        else:
            self.current.bind(node.id, node)

    def visit_NamedExpr(self, node: ast.NamedExpr) -> None:
        self.visit(node.value)
        target_scope = self.current
        while target_scope.kind is ScopeKind.COMPREHENSION and target_scope.parent:
            target_scope = target_scope.parent
        target_scope.bind(node.target.id, node.target)

    def visit_Call(self, node: ast.Call) -> None:
        self.enclosing[node] = self.current
        self.generic_visit(node)

    def visit_Global(self, node: ast.Global) -> None:
        self.current.globals_.update(node.names)

    def visit_Nonlocal(self, node: ast.Nonlocal) -> None:
        self.current.nonlocals.update(node.names)

    def visit_Import(self, node: ast.Import) -> None:
        for alias in node.names:
            self.current.bind(alias.asname or alias.name.split(".")[0], node)

    def visit_ImportFrom(self, node: ast.ImportFrom) -> None:
        for alias in node.names:
            if alias.name != "*":
                self.current.bind(alias.asname or alias.name, node)

    def visit_ExceptHandler(self, node: ast.ExceptHandler) -> None:
        if node.name:
            self.current.bind(node.name, node)
        self.generic_visit(node)

    def visit_MatchAs(self, node: ast.MatchAs) -> None:
        if node.name:
            self.current.bind(node.name, node)
        self.generic_visit(node)

    def visit_MatchStar(self, node: ast.MatchStar) -> None:
        if node.name:
            self.current.bind(node.name, node)

    def visit_MatchMapping(self, node: ast.MatchMapping) -> None:
        if node.rest:
            self.current.bind(node.rest, node)
        self.generic_visit(node)


# ═══════════════════════════════════════════════════════════════════════════
#  PART 3 — MODEL
# ═══════════════════════════════════════════════════════════════════════════

class PythonSemanticModel:
    """
    Scope-aware semantic model of a single module.

    Usage
    -----
    >>> tree = ast.parse(source)
    >>> model = PythonSemanticModel(tree)
    >>> method = model.resolve_callee(call_node)
    >>> names = [v.name for v in model.captured_variables(lambda_node)]
    """

    def __init__(self, tree: ast.Module, syntax: Optional[SyntaxIndex] = None) -> None:
        self.tree = tree
        self.syntax = syntax or SyntaxIndex(tree)
        builder = _ScopeBuilder(tree)
        builder.visit(tree)
        self.root = builder.root
        self._scope_of_node = builder.scope_of_node
        self._enclosing = builder.enclosing
        self._reads = builder.reads
        self._methods: Dict[ast.AST, MethodSymbol] = {}
        self._bound: Dict[ast.AST, MethodSymbol] = {}
        # Built up front so that evaluation never mutates the model.
        for node in iter_preorder(tree):
            if isinstance(node, FunctionNode):
                self.bound_method_symbol(node)

    # ── scope lookups ───────────────────────────────────────────────

    def scope_of(self, node: ast.AST) -> Optional[Scope]:
        """The scope a lambda/def/class/comprehension node opens."""
        return self._scope_of_node.get(node)

    def enclosing_scope(self, node: ast.AST) -> Optional[Scope]:
        """The scope a def/class/lambda/call node is written in."""
        return self._enclosing.get(node)

    def lookup(self, name: str, scope: Scope) -> Optional[Scope]:
        """
        Scope that binds ``name`` for a read in ``scope``.

        ``None`` means the name is a global that was never assigned in the
        module, or a builtin.
        """
        if name in scope.globals_:
            return self.root
        if name in scope.bindings and name not in scope.nonlocals:
            return scope
        candidate = scope.parent
        while candidate is not None:
            if candidate.kind is ScopeKind.CLASS:
                candidate = candidate.parent
                continue
            if name in candidate.globals_:
                return self.root
            if name in candidate.bindings and name not in candidate.nonlocals:
                if candidate.kind is ScopeKind.MODULE and name in scope.nonlocals:
                    return None
                return candidate
            candidate = candidate.parent
        return None

    def single_definition(self, scope: Scope, name: str) -> Optional[ast.AST]:
        """
        The one statement binding ``name`` in ``scope``.

        ``typing.overload`` stubs are ignored; any other second binding makes
        the name ambiguous.
        """
        sites = [
            site for site in scope.definitions.get(name, [])
            if not is_overload(site)
        ]
        if len(sites) != 1:
            return None
        return sites[0]

    # ── symbols ─────────────────────────────────────────────────────

    def method_symbol(self, node: ast.AST) -> MethodSymbol:
        cached = self._methods.get(node)
        if cached is not None:
            return cached
        params: List[ParameterSymbol] = []
        args: ast.arguments = node.args

        def add(arg: ast.arg, kind: ParameterKind) -> None:
            params.append(ParameterSymbol(
                name=arg.arg,
                kind=SymbolKind.PARAMETER,
                markers=annotation_tags(arg.annotation),
                node=arg,
                parameter_kind=kind,
                index=len(params),
            ))

        for arg in args.posonlyargs:
            add(arg, ParameterKind.POSITIONAL_ONLY)
        for arg in args.args:
            add(arg, ParameterKind.POSITIONAL_OR_KEYWORD)
        if args.vararg is not None:
            add(args.vararg, ParameterKind.VAR_POSITIONAL)
        for arg in args.kwonlyargs:
            add(arg, ParameterKind.KEYWORD_ONLY)
        if args.kwarg is not None:
            add(args.kwarg, ParameterKind.VAR_KEYWORD)

        scope = self.scope_of(node)
        symbol = MethodSymbol(
            name=node.name,
            kind=SymbolKind.METHOD,
            markers=decorator_names(node),
            node=node,
            qualname=scope.qualname if scope else node.name,
            parameters=tuple(params),
        )
        self._methods[node] = symbol
        return symbol

    def bound_method_symbol(self, node: ast.AST) -> MethodSymbol:
        cached = self._bound.get(node)
        if cached is None:
            cached = self.method_symbol(node).bind_receiver()
            self._bound[node] = cached
        return cached

    def iter_methods(self) -> Iterator[MethodSymbol]:
        """Every function definition in the module, in source order."""
        for node in iter_preorder(self.tree):
            if isinstance(node, FunctionNode):
                yield self.method_symbol(node)

    def markers_of(self, symbol: Symbol) -> Tuple[str, ...]:
        return symbol.markers

    # ── call resolution ─────────────────────────────────────────────

    def resolve_callee(self, call: ast.Call) -> Optional[MethodSymbol]:
        scope = self.enclosing_scope(call)
        if scope is None:
            return None
        func = call.func
        if isinstance(func, ast.Name):
            return self._resolve_name_call(func.id, scope)
        if isinstance(func, ast.Attribute):
            return self._resolve_attribute_call(func, scope)
        return None

    def _resolve_name_call(self, name: str, scope: Scope) -> Optional[MethodSymbol]:
        owner = self.lookup(name, scope)
        if owner is None:
            return None
        site = self.single_definition(owner, name)
        if isinstance(site, FunctionNode):
            return self.method_symbol(site)
        if isinstance(site, ast.ClassDef):
            init = self._lookup_member(site, "__init__")
            if init is not None and not is_staticmethod(init):
                return self.bound_method_symbol(init)
        return None

    def _resolve_attribute_call(
        self, func: ast.Attribute, scope: Scope
    ) -> Optional[MethodSymbol]:
        value = func.value

        # self.m(...) / cls.m(...) inside a method
        if isinstance(value, ast.Name):
            owner = self.lookup(value.id, scope)
            if owner is None:
                return None
            if owner.kind is ScopeKind.FUNCTION and owner.receiver == value.id:
                class_scope = owner.parent
                if class_scope is None or class_scope.kind is not ScopeKind.CLASS:
                    return None
                member = self._lookup_member(class_scope.node, func.attr)
                if member is None:
                    return None
                receiver_is_class = is_classmethod(owner.node)
                return self._member_symbol(member, via_instance=not receiver_is_class)
            site = self.single_definition(owner, value.id)
            if isinstance(site, ast.ClassDef):
                member = self._lookup_member(site, func.attr)
                if member is None:
                    return None
                return self._member_symbol(member, via_instance=False)
            return None

        if isinstance(value, ast.Call):
            # super().m(...)
            if isinstance(value.func, ast.Name) and value.func.id == "super" \
                    and not value.args and self.lookup("super", scope) is None:
                return self._resolve_super_call(func.attr, scope)
            # C(...).m(...)
            if isinstance(value.func, ast.Name):
                owner = self.lookup(value.func.id, scope)
                if owner is None:
                    return None
                site = self.single_definition(owner, value.func.id)
                if isinstance(site, ast.ClassDef):
                    member = self._lookup_member(site, func.attr)
                    if member is None:
                        return None
                    return self._member_symbol(member, via_instance=True)
        return None

    def _resolve_super_call(self, attr: str, scope: Scope) -> Optional[MethodSymbol]:
        method_scope: Optional[Scope] = scope
        while method_scope is not None and not (
            method_scope.kind is ScopeKind.FUNCTION and method_scope.receiver
        ):
            method_scope = method_scope.parent
        if method_scope is None or method_scope.parent is None:
            return None
        class_node = method_scope.parent.node
        if not isinstance(class_node, ast.ClassDef):
            return None
        for base in self._base_classes(class_node):
            member = self._lookup_member(base, attr)
            if member is not None:
                receiver_is_class = is_classmethod(method_scope.node)
                return self._member_symbol(member, via_instance=not receiver_is_class)
        return None

    def _member_symbol(self, member: ast.AST, via_instance: bool) -> MethodSymbol:
        if is_staticmethod(member):
            return self.method_symbol(member)
        if is_classmethod(member):
            return self.bound_method_symbol(member)
        if via_instance:
            return self.bound_method_symbol(member)
        # plain function looked up on the class: receiver passed explicitly
        return self.method_symbol(member)

    def _base_classes(self, class_node: ast.ClassDef) -> List[ast.ClassDef]:
        outer = self.enclosing_scope(class_node)
        bases: List[ast.ClassDef] = []
        if outer is None:
            return bases
        for base in class_node.bases:
            if not isinstance(base, ast.Name):
                continue
            owner = self.lookup(base.id, outer)
            if owner is None:
                continue
            site = self.single_definition(owner, base.id)
            if isinstance(site, ast.ClassDef):
                bases.append(site)
        return bases

    def _lookup_member(
        self,
        class_node: ast.ClassDef,
        attr: str,
        _seen: Optional[Set[ast.AST]] = None,
    ) -> Optional[ast.AST]:
        """
        The ``def`` that ``attr`` names on a module-local class.

        The most derived definition wins, so a marker on a base method does
        not carry over to an override.
        """
        seen = _seen if _seen is not None else set()
        if class_node in seen:
            return None
        seen.add(class_node)
        class_scope = self.scope_of(class_node)
        if class_scope is None:
            return None
        if attr in class_scope.definitions:
            site = self.single_definition(class_scope, attr)
            return site if isinstance(site, FunctionNode) else None
        for base in self._base_classes(class_node):
            found = self._lookup_member(base, attr, seen)
            if found is not None:
                return found
        return None

    # ── captures ────────────────────────────────────────────────────

    def resolve_read(self, node: ast.Name) -> Optional[VariableSymbol]:
        """Binding a ``Load`` name refers to, or ``None`` for globals/builtins."""
        scope = self._reads.get(node)
        if scope is None:
            return None
        owner = self.lookup(node.id, scope)
        if owner is None:
            return None
        return owner.bindings.get(node.id)

    def captured_variables(self, node: ast.Lambda) -> Tuple[VariableSymbol, ...]:
        """
        Outer function-scope bindings read anywhere inside ``node``'s body.

        Reads are reported in pre-order, first occurrence only.  A read that
        a nested lambda makes from this lambda's own parameters is local
        here; a read it makes from further out is a capture here as well.
        """
        scope = self.scope_of(node)
        if scope is None:
            return ()
        found: List[VariableSymbol] = []
        seen: Set[VariableSymbol] = set()
        for child in iter_preorder(node.body):
            if not isinstance(child, ast.Name) or not isinstance(child.ctx, ast.Load):
                continue
            read_scope = self._reads.get(child)
            if read_scope is None:
                continue
            owner = self.lookup(child.id, read_scope)
            if owner is None or owner.kind not in CLOSURE_SCOPES:
                continue
            if not owner.is_strict_ancestor_of(scope):
                continue
            symbol = owner.bindings[child.id]
            if symbol not in seen:
                seen.add(symbol)
                found.append(symbol)
        return tuple(found)


__all__ = [
    "SemanticModel",
    "ScopeKind",
    "Scope",
    "PythonSemanticModel",
    "CLOSURE_SCOPES",
]
