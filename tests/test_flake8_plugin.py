# tests/test_flake8_plugin.py
"""
Tests for the flake8 entry point.
"""

import argparse
import ast
from unittest.mock import MagicMock

from nocapture_lint.flake8_plugin import Flake8NoCapturePlugin
from tests.conftest import MARKED_CAPTURELESS, MARKED_CAPTURING, dedent


def _run(src):
    return list(Flake8NoCapturePlugin(ast.parse(dedent(src)), "m.py").run())


class TestFlake8Plugin:

    def test_reports_tuples(self):
        results = _run(MARKED_CAPTURING)
        assert len(results) == 1
        line, col, text, kind = results[0]
        assert (line, col) == (6, 27)
        assert text.startswith("NC001 invoke( func ) doesn't allow capturing lambdas.")
        assert kind is Flake8NoCapturePlugin

    def test_clean_source(self):
        assert _run(MARKED_CAPTURELESS) == []

    def test_add_options(self):
        manager = MagicMock()
        Flake8NoCapturePlugin.add_options(manager)
        manager.add_option.assert_called_once()
        args, kwargs = manager.add_option.call_args
        assert args == ("--nocapture-markers",)
        assert kwargs["parse_from_config"] is True

    def test_parse_options(self, monkeypatch):
        monkeypatch.setattr(
            Flake8NoCapturePlugin, "marker_names", Flake8NoCapturePlugin.marker_names
        )
        Flake8NoCapturePlugin.parse_options(argparse.Namespace(nocapture_markers=["hot_path"]))
        assert Flake8NoCapturePlugin.marker_names == ("hot_path",)
        assert _run("""
            @no_capture
            def invoke(func):
                return func()

            def f(x):
                return invoke(lambda: x)
        """) == []

    def test_parse_options_from_string(self, monkeypatch):
        monkeypatch.setattr(
            Flake8NoCapturePlugin, "marker_names", Flake8NoCapturePlugin.marker_names
        )
        Flake8NoCapturePlugin.parse_options(argparse.Namespace(nocapture_markers="a, b"))
        assert Flake8NoCapturePlugin.marker_names == ("a", "b")

    def test_plugin_metadata(self):
        assert Flake8NoCapturePlugin.name == "nocapture-lint"
        assert Flake8NoCapturePlugin.version

    def test_exported_from_package(self):
        import nocapture_lint

        assert nocapture_lint.Flake8NoCapturePlugin is Flake8NoCapturePlugin
        assert "Flake8NoCapturePlugin" in nocapture_lint.__all__
