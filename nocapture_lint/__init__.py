"""
nocapture_lint — capture-compliance checker for marked lambdas
==============================================================

Reports lambda expressions that capture variables from an enclosing
function while being passed to a method (or a single parameter) marked as
forbidding captures.  Capturing lambdas allocate a closure on every call,
which hot paths want to avoid.

Core modules
------------
semantic
    Scope-aware semantic model of one module (call targets, captures).
binder
    Maps a lambda argument to the (method, parameter) it satisfies.
markers
    ``NoCapture`` / ``no_capture`` runtime markers and name-based lookup.
captures
    Ordered capture set of a lambda.
reporter
    Violation record and the diagnostic message.
driver
    Per-lambda pipeline, per-module analysis, file discovery.
checkers
    Diagnostics, suppressions, checker registry and runner.
config
    ``[tool.nocapture]`` settings.

Quick start
-----------
>>> from nocapture_lint import analyze_source
>>> src = '''
... from typing import Annotated
... def invoke(func: Annotated[object, NoCapture]): ...
... def caller(x):
...     invoke(lambda: x)
... '''
>>> [v.message for v in analyze_source(src)]
["invoke( func ) doesn't allow capturing lambdas. Captured variables: x."]

Package layout
--------------
::

    nocapture_lint/
    ├── __init__.py            ← this file
    ├── __main__.py
    ├── main.py                CLI
    ├── errors.py
    ├── ast_helper.py
    ├── symbols.py
    ├── semantic.py
    ├── binder.py
    ├── markers.py
    ├── captures.py
    ├── reporter.py
    ├── driver.py
    ├── config.py
    ├── checkers.py
    └── flake8_plugin.py
"""

from __future__ import annotations

import importlib
import sys
from typing import Dict, List

# ---------------------------------------------------------------------------
# Package metadata
# ---------------------------------------------------------------------------

__version__ = "0.1.0"
__all__: List[str] = ["__version__"]          # populated incrementally below

# ---------------------------------------------------------------------------
# Internal registry: (module_name, list_of_names_to_import)
# ---------------------------------------------------------------------------

_CORE_MODULES: Dict[str, List[str]] = {
    "errors": [
        "NoCaptureError",
        "SourceError",
        "ConfigError",
    ],
    "markers": [
        "NoCapture",
        "no_capture",
        "DEFAULT_MARKER_NAMES",
    ],
    "semantic": [
        "SemanticModel",
        "PythonSemanticModel",
    ],
    "binder": [
        "CallBinding",
        "bind",
    ],
    "captures": [
        "CaptureSet",
    ],
    "reporter": [
        "Violation",
        "format_message",
    ],
    "driver": [
        "evaluate_lambda",
        "analyze_module",
        "analyze_source",
        "analyze_file",
    ],
    "config": [
        "LintConfig",
        "load_config",
    ],
    "checkers": [
        "Diagnostic",
        "CheckerRunner",
        "NoCaptureChecker",
    ],
    "flake8_plugin": [
        "Flake8NoCapturePlugin",
    ],
}

# ---------------------------------------------------------------------------
# Import helper
# ---------------------------------------------------------------------------

def _import_names(module_rel_name: str, names: List[str]) -> None:
    """Import *names* from a submodule and bind them in the package namespace."""
    fq_name = f"{__name__}.{module_rel_name}"
    try:
        mod = importlib.import_module(fq_name)
    except ImportError as exc:
        raise ImportError(
            f"nocapture_lint: required submodule '{module_rel_name}' "
            f"failed to import: {exc}"
        ) from exc

    current_module = sys.modules[__name__]
    for name in names:
        obj = getattr(mod, name, None)
        if obj is None:
            raise AttributeError(
                f"nocapture_lint.{module_rel_name} does not export '{name}'"
            )
        setattr(current_module, name, obj)
        __all__.append(name)


for _mod, _names in _CORE_MODULES.items():
    _import_names(_mod, _names)

del _mod, _names
