# tests/conftest.py
"""
Shared helpers and source snippets for the nocapture-lint test-suite.
"""

import ast
import textwrap
from typing import List, Optional, Tuple

import pytest

from nocapture_lint.ast_helper import SyntaxIndex
from nocapture_lint.binder import CallBinding, bind
from nocapture_lint.driver import analyze_source
from nocapture_lint.reporter import Violation
from nocapture_lint.semantic import PythonSemanticModel


# ═══════════════════════════════════════════════════════════════════════
#  HELPERS
# ═══════════════════════════════════════════════════════════════════════

def dedent(src: str) -> str:
    return textwrap.dedent(src).lstrip("\n")


def analyze(src: str, **kwargs) -> List[Violation]:
    return analyze_source(dedent(src), "<test>", **kwargs)


def messages(src: str, **kwargs) -> List[str]:
    return [v.message for v in analyze(src, **kwargs)]


def build(src: str) -> Tuple[ast.Module, SyntaxIndex, PythonSemanticModel]:
    tree = ast.parse(dedent(src))
    syntax = SyntaxIndex(tree)
    return tree, syntax, PythonSemanticModel(tree, syntax)


def lambdas(syntax: SyntaxIndex) -> List[ast.Lambda]:
    return list(syntax.iter_lambdas())


def bind_nth(src: str, index: int = 0) -> Optional[CallBinding]:
    """Binding of the ``index``-th lambda of ``src`` (source order)."""
    _, syntax, model = build(src)
    return bind(lambdas(syntax)[index], syntax, model)


def captured_names(src: str, index: int = 0) -> List[str]:
    _, syntax, model = build(src)
    node = lambdas(syntax)[index]
    return [v.name for v in model.captured_variables(node)]


# ═══════════════════════════════════════════════════════════════════════
#  SNIPPETS
# ═══════════════════════════════════════════════════════════════════════

MARKER_PRELUDE = """\
from typing import Annotated, Callable
from nocapture_lint.markers import NoCapture, no_capture
"""

UNMARKED_CAPTURING = MARKER_PRELUDE + """
class C:
    def call_site(self):
        return self.invoke(lambda: self.field)

    def invoke(self, func):
        return func()
"""

MARKED_CAPTURELESS = MARKER_PRELUDE + """
class C:
    def call_site(self):
        return self.invoke(lambda: 42)

    @no_capture
    def invoke(self, func):
        return func()
"""

MARKED_CAPTURING = MARKER_PRELUDE + """
class C:
    def call_site(self):
        return self.invoke(lambda: self.field)

    @no_capture
    def invoke(self, func):
        return func()
"""

NAMED_REORDERED = MARKER_PRELUDE + """
class C:
    def call_site(self):
        return self.invoke(func=lambda s: s + self.field, seed=64)

    @no_capture
    def invoke(self, seed, func):
        return func(seed)
"""

PARAMETER_MARKED = MARKER_PRELUDE + """
class C:
    def call_site(self):
        return self.invoke(lambda: self.field, lambda: self.field + 2)

    def invoke(self, normal_func, no_capture_func: Annotated[Callable, NoCapture]):
        return normal_func() + no_capture_func()
"""

LOCAL_FUNCTION = MARKER_PRELUDE + """
def select(value, selector: Annotated[Callable, NoCapture]):
    return selector(value)

class C:
    def call_site(self, outer_arg):
        def local(not_null_field):
            return select(not_null_field, lambda x: x + outer_arg)
        return local(self.field)
"""

VARIADIC_UNMARKED = MARKER_PRELUDE + """
class C:
    def call_site(self):
        return self.invoke(64, lambda x: x + 2, lambda x: self.field + x)

    def invoke(self, initial_value, *transforms):
        return initial_value
"""

VARIADIC_MARKED = MARKER_PRELUDE + """
class C:
    def call_site(self):
        return self.invoke(64, lambda x: x + 2, lambda x: self.field + x)

    def invoke(self, initial_value, *transforms: Annotated[Callable, NoCapture]):
        return initial_value
"""


@pytest.fixture
def project(tmp_path):
    """A small source tree with one violation and one clean file."""
    (tmp_path / "pyproject.toml").write_text("[project]\nname = \"demo\"\n", encoding="utf-8")
    pkg = tmp_path / "pkg"
    pkg.mkdir()
    (pkg / "bad.py").write_text(dedent(MARKED_CAPTURING), encoding="utf-8")
    (pkg / "good.py").write_text(dedent(MARKED_CAPTURELESS), encoding="utf-8")
    return tmp_path
