# tests/test_captures.py
"""
Tests for capture analysis: which outer bindings a lambda reads, in what
order, and how the receiver is reported.
"""

import pytest

from nocapture_lint.captures import EMPTY, RECEIVER_ALIAS, CaptureSet, captures
from tests.conftest import build, captured_names, lambdas


NESTED_OUTER_FREE = """
    def run(f):
        return f

    def pick(xs, f):
        return f

    def outer(limit):
        return run(lambda xs: pick(xs, lambda x: x > limit))
"""

NESTED_INNER_ONLY = """
    def run(f):
        return f

    def pick(xs, f):
        return f

    def outer(limit):
        return run(lambda xs: pick(xs, lambda x: x in xs))
"""


class TestNestingBoundary:

    def test_inner_read_of_outer_function_is_captured_by_both(self):
        assert captured_names(NESTED_OUTER_FREE, 0) == ["limit"]
        assert captured_names(NESTED_OUTER_FREE, 1) == ["limit"]

    def test_inner_read_of_outer_lambda_parameter(self):
        assert captured_names(NESTED_INNER_ONLY, 0) == []
        assert captured_names(NESTED_INNER_ONLY, 1) == ["xs"]


class TestScopeRules:

    def test_own_parameters_are_not_captures(self):
        assert captured_names("""
            def f(x):
                return lambda x: x
        """) == []

    def test_defaults_are_evaluated_outside(self):
        assert captured_names("""
            def f(y):
                return lambda x=y: x
        """) == []

    def test_module_globals_are_not_captures(self):
        assert captured_names("""
            LIMIT = 3

            def f():
                return lambda: LIMIT
        """) == []

    def test_builtins_are_not_captures(self):
        assert captured_names("""
            def f(x):
                return lambda: len(x)
        """) == ["x"]

    def test_global_statement_redirects_to_module(self):
        assert captured_names("""
            def f():
                global total
                total = 1
                return lambda: total
        """) == []

    def test_nonlocal_resolves_to_outer_function(self):
        assert captured_names("""
            def f():
                count = 0
                def g():
                    nonlocal count
                    count = 1
                    return lambda: count
                return g
        """) == ["count"]

    def test_class_body_is_invisible(self):
        assert captured_names("""
            class C:
                size = 3

                def m(self):
                    return lambda: size
        """) == []

    def test_lambda_in_class_body(self):
        assert captured_names("""
            class C:
                size = 3
                f = lambda: size
        """) == []

    def test_attribute_names_are_not_captures(self):
        assert captured_names("""
            def f(obj):
                return lambda: obj.attr
        """) == ["obj"]

    def test_walrus_binds_in_function(self):
        assert captured_names("""
            def f(data):
                if (n := len(data)) > 1:
                    return lambda: n
        """) == ["n"]

    def test_walrus_inside_comprehension_binds_in_lambda(self):
        assert captured_names("""
            def f(items):
                return lambda: [y := v for v in items]
        """) == ["items"]


class TestComprehensions:

    def test_comprehension_reads_in_field_order(self):
        assert captured_names("""
            def f(items, k):
                return lambda: [i * k for i in items]
        """) == ["k", "items"]

    def test_loop_variable_of_enclosing_comprehension(self):
        assert captured_names("""
            def f(items):
                return [lambda: i for i in items]
        """) == ["i"]

    def test_comprehension_at_module_level(self):
        assert captured_names("""
            handlers = [lambda: i for i in range(3)]
        """) == ["i"]


class TestOrdering:

    def test_first_occurrence_order_without_duplicates(self):
        assert captured_names("""
            def f(a, b):
                return lambda: b + a + b
        """) == ["b", "a"]


class TestCaptureSet:

    SRC = """
        class C:
            def m(self, x):
                return lambda: self.a + x + self.b
    """

    def _captures(self, **kwargs):
        _, syntax, model = build(self.SRC)
        return captures(lambdas(syntax)[0], model, **kwargs)

    def test_receiver_collapses_to_alias(self):
        result = self._captures()
        assert result.names == (RECEIVER_ALIAS, "x")
        assert result.render() == "this,x"

    def test_custom_receiver_alias(self):
        assert self._captures(receiver_alias="self").names == ("self", "x")

    def test_cls_receiver(self):
        _, syntax, model = build("""
            class C:
                @classmethod
                def m(cls):
                    return lambda: cls.default
        """)
        assert captures(lambdas(syntax)[0], model).names == ("this",)

    def test_staticmethod_first_parameter_is_not_a_receiver(self):
        _, syntax, model = build("""
            class C:
                @staticmethod
                def m(self):
                    return lambda: self
        """)
        assert captures(lambdas(syntax)[0], model).names == ("self",)

    def test_empty(self):
        _, syntax, model = build("""
            def f():
                return lambda: 42
        """)
        result = captures(lambdas(syntax)[0], model)
        assert result is EMPTY
        assert not result
        assert len(result) == 0

    @pytest.mark.parametrize("names,rendered", [
        ((), ""),
        (("a",), "a"),
        (("this", "a", "b"), "this,a,b"),
    ])
    def test_render(self, names, rendered):
        assert CaptureSet(names).render() == rendered
