# tests/test_cli.py
"""
Tests for the ``nocapture-lint`` command line.
"""

import json
import logging

import pytest

from nocapture_lint import __version__
from nocapture_lint.checkers import NoCaptureChecker
from nocapture_lint.main import EXIT_ERROR, EXIT_INFRA, EXIT_OK, main
from tests.conftest import PARAMETER_MARKED, dedent


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    logger = logging.getLogger("nocapture_lint")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)


class TestCheckCommand:

    def test_violation_exit_code(self, project, capsys):
        assert main(["check", str(project / "pkg")]) == EXIT_ERROR
        out = capsys.readouterr().out
        assert "bad.py:6:28: NC001 invoke( func )" in out
        assert "good.py" not in out

    def test_clean_file(self, project, capsys):
        assert main(["check", str(project / "pkg" / "good.py")]) == EXIT_OK
        assert capsys.readouterr().out == ""

    def test_json_to_file(self, project):
        dest = project / "out" / "report.jsonl"
        code = main(["check", str(project / "pkg"), "--format", "json", "-o", str(dest)])
        assert code == EXIT_ERROR
        records = [json.loads(line) for line in dest.read_text(encoding="utf-8").splitlines()]
        assert [r["errorId"] for r in records] == ["NC001"]
        assert records[0]["evidence"]["captured"] == ["this"]

    def test_summary_format(self, project, capsys):
        main(["check", str(project / "pkg"), "-f", "summary"])
        assert "Checked 2 file(s)" in capsys.readouterr().out

    def test_suppress_flag(self, project):
        assert main(["check", str(project / "pkg"), "--suppress", "NC001"]) == EXIT_OK

    def test_extra_marker(self, tmp_path, capsys):
        (tmp_path / "pyproject.toml").write_text("", encoding="utf-8")
        path = tmp_path / "hot.py"
        path.write_text(dedent("""
            def hot_path(func):
                return func

            @hot_path
            def invoke(func):
                return func()

            def call_site(x):
                return invoke(lambda: x)
        """), encoding="utf-8")
        assert main(["check", str(path)]) == EXIT_OK
        assert main(["check", str(path), "--marker", "hot_path"]) == EXIT_ERROR
        assert "Captured variables: x." in capsys.readouterr().out

    def test_receiver_alias_flag(self, project, capsys):
        main(["check", str(project / "pkg"), "--receiver-alias", "self"])
        assert "Captured variables: self." in capsys.readouterr().out

    def test_config_table_is_honoured(self, project):
        (project / "pyproject.toml").write_text(
            '[tool.nocapture]\nsuppress = ["NC001"]\n', encoding="utf-8"
        )
        assert main(["check", str(project / "pkg")]) == EXIT_OK

    def test_invalid_config(self, project):
        bad = project / "bad.toml"
        bad.write_text("[tool.nocapture]\njobs = 0\n", encoding="utf-8")
        assert main(["check", str(project / "pkg"), "--config", str(bad)]) == EXIT_INFRA

    def test_unparsable_file(self, project, capsys):
        (project / "pkg" / "broken.py").write_text("def broken(:\n", encoding="utf-8")
        assert main(["check", str(project / "pkg")]) == EXIT_INFRA
        assert "sourceError" in capsys.readouterr().out

    def test_checker_crash_is_infrastructure_failure(self, project, monkeypatch, capsys):
        def explode(self, ctx):
            raise RuntimeError("boom")

        monkeypatch.setattr(NoCaptureChecker, "collect_evidence", explode)
        assert main(["check", str(project / "pkg")]) == EXIT_INFRA
        assert "checkerInternalError" in capsys.readouterr().out

    def test_missing_path(self, tmp_path):
        assert main(["check", str(tmp_path / "absent")]) == EXIT_INFRA

    def test_jobs(self, project):
        assert main(["-v", "check", str(project / "pkg"), "--jobs", "3"]) == EXIT_ERROR


class TestMarkersCommand:

    def test_lists_marked_methods_and_parameters(self, project, capsys):
        (project / "pkg" / "param.py").write_text(dedent(PARAMETER_MARKED), encoding="utf-8")
        assert main(["markers", str(project / "pkg")]) == EXIT_OK
        out = capsys.readouterr().out
        assert "bad.py:9: C.invoke\n" in out
        assert "C.invoke( no_capture_func )" in out
        assert "call_site" not in out

    def test_unparsable_file(self, project):
        (project / "pkg" / "broken.py").write_text("def broken(:\n", encoding="utf-8")
        assert main(["markers", str(project / "pkg")]) == EXIT_INFRA


class TestTopLevel:

    def test_no_command(self):
        assert main([]) == EXIT_INFRA

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as info:
            main(["--version"])
        assert info.value.code == 0
        assert __version__ in capsys.readouterr().out
