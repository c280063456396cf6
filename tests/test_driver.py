# tests/test_driver.py
"""
End-to-end tests: Python source → parse → per-lambda pipeline → violations.
"""

import ast
import dataclasses

import pytest

from nocapture_lint.driver import (
    analyze_file,
    analyze_module,
    discover_files,
    evaluate_lambda,
    load_source,
    parse_source,
)
from nocapture_lint.errors import SourceError
from tests.conftest import (
    LOCAL_FUNCTION,
    MARKED_CAPTURELESS,
    MARKED_CAPTURING,
    NAMED_REORDERED,
    PARAMETER_MARKED,
    UNMARKED_CAPTURING,
    VARIADIC_MARKED,
    VARIADIC_UNMARKED,
    analyze,
    build,
    dedent,
    lambdas,
    messages,
)


def _msg(callee, parameter, captured):
    return (
        f"{callee}( {parameter} ) doesn't allow capturing lambdas. "
        f"Captured variables: {captured}."
    )


class TestScenarios:

    def test_capturing_call_of_unmarked_method_is_ignored(self):
        assert analyze(UNMARKED_CAPTURING) == []

    def test_captureless_call_of_marked_method_is_ignored(self):
        assert analyze(MARKED_CAPTURELESS) == []

    def test_capturing_call_of_marked_method_is_reported(self):
        violations = analyze(MARKED_CAPTURING)
        assert len(violations) == 1
        assert violations[0].message == _msg("invoke", "func", "this")
        assert (violations[0].line, violations[0].column) == (6, 27)

    def test_named_arguments_in_wrong_order(self):
        assert messages(NAMED_REORDERED) == [_msg("invoke", "func", "this")]

    def test_marked_parameter(self):
        assert messages(PARAMETER_MARKED) == [
            _msg("invoke", "no_capture_func", "this"),
        ]

    def test_marked_parameter_inside_local_function(self):
        assert messages(LOCAL_FUNCTION) == [_msg("select", "selector", "outer_arg")]

    def test_capturing_variadic_item_without_marker_is_ignored(self):
        assert analyze(VARIADIC_UNMARKED) == []

    def test_capturing_variadic_item_with_marker_is_reported(self):
        assert messages(VARIADIC_MARKED) == [_msg("invoke", "transforms", "this")]

    def test_no_false_positive_for_captureless_lambda_in_local_function(self):
        assert analyze("""
            from typing import Annotated, Callable

            def where_no_capture(sequence, predicate: Annotated[Callable, NoCapture]):
                return [x for x in sequence if predicate(x)]

            class C:
                def call_site(self):
                    def local():
                        return where_no_capture(self.numbers, lambda x: x == 42)
                    return local()
        """) == []

    def test_receiver_and_locals_together(self):
        assert messages("""
            class C:
                def call_site(self, limit):
                    return self.invoke(lambda x: x < limit and x in self.seen)

                @no_capture
                def invoke(self, func):
                    return func(1)
        """) == [_msg("invoke", "func", "limit,this")]


class TestNestedLambdas:

    SRC = """
        from typing import Annotated, Callable

        def run(f: Annotated[Callable, NoCapture]):
            return f

        def pick(xs, f: Annotated[Callable, NoCapture]):
            return f

        def outer(limit):
            run(lambda xs: pick(xs, lambda x: x in xs))
            run(lambda xs: pick(xs, lambda x: x > limit))
    """

    def test_outer_and_inner_are_independent(self):
        assert messages(self.SRC) == [
            _msg("pick", "f", "xs"),
            _msg("run", "f", "limit"),
            _msg("pick", "f", "limit"),
        ]


class TestOrderingAndConcurrency:

    SRC = """
        @no_capture
        def invoke(func):
            return func()

        def a(x, y):
            invoke(lambda: y); invoke(lambda: x)
            invoke(lambda: x + y)

        def b(z):
            invoke(lambda: z)
            invoke(lambda: 1)
    """

    def test_sorted_by_position(self):
        positions = [(v.line, v.column) for v in analyze(self.SRC)]
        assert positions == sorted(positions)
        assert len(positions) == 4

    def test_threads_give_the_same_answer(self):
        assert analyze(self.SRC, jobs=4) == analyze(self.SRC)

    def test_custom_marker_names(self):
        src = """
            @hot_path
            def invoke(func):
                return func()

            def a(x):
                invoke(lambda: x)
        """
        assert analyze(src) == []
        assert messages(src, marker_names={"hot_path"}) == [_msg("invoke", "func", "x")]

    def test_receiver_alias(self):
        assert messages(MARKED_CAPTURING, receiver_alias="self") == [
            _msg("invoke", "func", "self"),
        ]


class _ExplodingModel:

    def resolve_callee(self, call):
        raise RuntimeError("boom")

    def markers_of(self, symbol):
        return ()

    def captured_variables(self, node):
        return ()


class TestRobustness:

    def test_internal_error_skips_only_that_lambda(self):
        tree = ast.parse("f(lambda: 1)\ng(lambda: 2)\n")
        assert analyze_module(tree, model=_ExplodingModel()) == []

    def test_evaluate_lambda_returns_none_for_unbound(self):
        _, syntax, model = build("handler = lambda: 1")
        assert evaluate_lambda(lambdas(syntax)[0], syntax, model) is None

    def test_module_without_lambdas(self):
        assert analyze("x = 1") == []


class TestSources:

    def test_parse_error_raises_source_error(self):
        with pytest.raises(SourceError) as info:
            parse_source("def broken(:\n", "bad.py")
        assert info.value.span.file == "bad.py"
        assert info.value.span.line == 1
        assert info.value.error_id == "sourceError"

    def test_null_bytes(self):
        with pytest.raises(SourceError):
            parse_source("x = 1\0\n", "nul.py")

    def test_missing_file(self, tmp_path):
        with pytest.raises(SourceError, match="cannot read file"):
            load_source(tmp_path / "absent.py")

    def test_undecodable_file(self, tmp_path):
        path = tmp_path / "latin.py"
        path.write_bytes(b"x = '\xff'\n")
        with pytest.raises(SourceError, match="cannot decode file as utf-8"):
            load_source(path)

    def test_declared_encoding_is_honoured(self, tmp_path):
        path = tmp_path / "latin.py"
        path.write_bytes(b"# -*- coding: latin-1 -*-\nname = '\xe9'\n")
        unit = load_source(path)
        assert unit.text.endswith("name = '\u00e9'\n")
        assert isinstance(unit.tree, ast.Module)

    def test_unknown_encoding_cookie(self, tmp_path):
        path = tmp_path / "bogus.py"
        path.write_bytes(b"# -*- coding: no-such-codec -*-\nx = 1\n")
        with pytest.raises(SourceError):
            load_source(path)

    def test_source_unit_fields(self):
        unit = parse_source("x = 1\n", "m.py")
        assert [f.name for f in dataclasses.fields(unit)] == ["path", "text", "tree"]

    def test_bom_is_stripped(self, tmp_path):
        path = tmp_path / "bom.py"
        path.write_bytes(b"\xef\xbb\xbfx = 1\n")
        assert load_source(path).text == "x = 1\n"

    def test_analyze_file(self, tmp_path):
        path = tmp_path / "mod.py"
        path.write_text(dedent(MARKED_CAPTURING), encoding="utf-8")
        assert len(analyze_file(path)) == 1

    def test_discover_files(self, tmp_path):
        (tmp_path / "a.py").write_text("", encoding="utf-8")
        (tmp_path / "b.txt").write_text("", encoding="utf-8")
        (tmp_path / "sub").mkdir()
        (tmp_path / "sub" / "c.pyi").write_text("", encoding="utf-8")
        (tmp_path / "build").mkdir()
        (tmp_path / "build" / "d.py").write_text("", encoding="utf-8")
        found = discover_files([tmp_path], (".py", ".pyi"), ("build",))
        assert [p.relative_to(tmp_path).as_posix() for p in found] == ["a.py", "sub/c.pyi"]

    def test_explicit_file_is_always_yielded(self, tmp_path):
        path = tmp_path / "script"
        path.write_text("", encoding="utf-8")
        assert list(discover_files([path])) == [path]
