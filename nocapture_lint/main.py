#!/usr/bin/env python3
"""nocapture_lint/main.py — CLI entry-point for nocapture-lint.

Usage examples
--------------
    # Check a tree of Python files
    nocapture-lint check src/

    # JSON lines instead of flake8-style text
    nocapture-lint check src/ --format json -o report.jsonl

    # Treat an extra decorator name as the marker, fan out lambdas
    nocapture-lint check src/ --marker hot_path --jobs 4

    # List every marked method and parameter the checker can see
    nocapture-lint markers src/

    # Show version and exit
    nocapture-lint --version

Exit codes
----------
    0   Success (no diagnostics with severity ERROR).
    1   One or more capturing lambdas were reported.
    2   Infrastructure failure (bad configuration, unreadable or
        unparsable file, missing path, checker crash).

The module doubles as ``python -m nocapture_lint`` via the companion
``nocapture_lint/__main__.py`` which simply calls :func:`main`.
"""

from __future__ import annotations

import argparse
import logging
import sys
import textwrap
from pathlib import Path
from typing import List, Optional, Sequence, TextIO

from nocapture_lint import __version__
from nocapture_lint.checkers import INTERNAL_ERROR_ID, CheckerRunner
from nocapture_lint.config import OUTPUT_FORMATS, LintConfig, load_config
from nocapture_lint.driver import discover_files, load_source
from nocapture_lint.errors import ConfigError, SourceError
from nocapture_lint.markers import has_marker
from nocapture_lint.semantic import PythonSemanticModel

_log = logging.getLogger("nocapture_lint")

# Exit codes ----------------------------------------------------------------

EXIT_OK: int = 0
EXIT_ERROR: int = 1
EXIT_INFRA: int = 2


# ===========================================================================
# Utility helpers
# ===========================================================================

def _configure_logging(verbosity: int) -> None:
    """Set up the root ``nocapture_lint`` logger.

    Parameters
    ----------
    verbosity:
        0 → WARNING, 1 → INFO, 2+ → DEBUG.
    """
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    root = logging.getLogger("nocapture_lint")
    root.setLevel(level)
    if root.handlers:
        return
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s [%(levelname)-5.5s] %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    root.addHandler(handler)


def _resolve_path(raw: str, label: str = "path") -> Path:
    """Resolve *raw* to a ``Path``, raising on missing files."""
    p = Path(raw).expanduser()
    if not p.exists():
        _log.error("%s not found: %s", label, p)
        raise SystemExit(EXIT_INFRA)
    return p


def _open_output(dest: Optional[str]) -> TextIO:
    """Return a writable text stream.

    *dest* ``None`` or ``"-"`` → ``sys.stdout``; otherwise open the path
    for writing (creating parent directories as needed).
    """
    if dest is None or dest == "-":
        return sys.stdout
    p = Path(dest).expanduser().resolve()
    p.parent.mkdir(parents=True, exist_ok=True)
    return open(p, "w", encoding="utf-8")


def _load_config(args: argparse.Namespace) -> LintConfig:
    config_path = _resolve_path(args.config, "config file") if args.config else None
    start = Path(args.paths[0]) if args.paths else None
    if start is not None and start.is_file():
        start = start.parent
    base = load_config(config_path, start=start)
    extra_markers = getattr(args, "marker", None)
    return base.with_overrides(
        marker_names=(*base.marker_names, *extra_markers) if extra_markers else None,
        jobs=getattr(args, "jobs", None),
        output=getattr(args, "format", None),
        suppress=(*base.suppress, *args.suppress) if getattr(args, "suppress", None) else None,
        receiver_alias=getattr(args, "receiver_alias", None),
    )


# ===========================================================================
# Sub-command implementations
# ===========================================================================

def cmd_check(args: argparse.Namespace) -> int:
    """``nocapture-lint check`` — report capturing lambdas."""
    try:
        config = _load_config(args)
    except ConfigError as exc:
        _log.error("%s", exc)
        return EXIT_INFRA

    paths = [_resolve_path(raw) for raw in args.paths]
    runner = CheckerRunner(config=config)
    results = runner.run_paths(paths)

    stream = _open_output(args.output)
    try:
        text = results.format(config.output)
        if text:
            stream.write(text + "\n")
    finally:
        if stream is not sys.stdout:
            stream.close()

    _log.info("%d file(s), %d diagnostic(s)", len(results.files), results.total_count)
    if results.by_error_id(SourceError.error_id) or results.by_error_id(INTERNAL_ERROR_ID):
        return EXIT_INFRA
    return EXIT_ERROR if results.error_count > 0 else EXIT_OK


def cmd_markers(args: argparse.Namespace) -> int:
    """``nocapture-lint markers`` — list marked methods and parameters."""
    try:
        config = _load_config(args)
    except ConfigError as exc:
        _log.error("%s", exc)
        return EXIT_INFRA

    paths = [_resolve_path(raw) for raw in args.paths]
    names = frozenset(config.marker_names)
    failed = False
    lines: List[str] = []
    for path in discover_files(paths, config.python_exts, config.exclude_dirs):
        try:
            unit = load_source(path)
        except SourceError as exc:
            _log.error("%s", exc)
            failed = True
            continue
        model = PythonSemanticModel(unit.tree)
        for method in model.iter_methods():
            line = getattr(method.node, "lineno", 0)
            if has_marker(method, model, names):
                lines.append(f"{unit.path}:{line}: {method.qualname}")
            for parameter in method.parameters:
                if has_marker(parameter, model, names):
                    lines.append(f"{unit.path}:{line}: {method.qualname}( {parameter.name} )")

    stream = _open_output(args.output)
    try:
        for entry in lines:
            stream.write(entry + "\n")
    finally:
        if stream is not sys.stdout:
            stream.close()
    return EXIT_INFRA if failed else EXIT_OK


# ===========================================================================
# Argument parser
# ===========================================================================

def _build_parser() -> argparse.ArgumentParser:
    """Construct the full CLI argument parser with subcommands."""

    parser = argparse.ArgumentParser(
        prog="nocapture-lint",
        description=(
            "Reports lambdas that capture outer variables while being passed\n"
            "to methods or parameters marked with NoCapture."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""\
            examples:
              nocapture-lint check src/
              nocapture-lint check src/ --format gcc --marker hot_path
              nocapture-lint markers src/
        """),
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v info, -vv debug).",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        title="commands",
        metavar="<command>",
    )

    def _add_common_args(p: argparse.ArgumentParser) -> None:
        p.add_argument("paths", nargs="+", metavar="PATH",
                       help="Python files or directories to analyse.")
        p.add_argument(
            "-o", "--output",
            default=None,
            metavar="FILE",
            help='Output file ("-" or omit for stdout).',
        )
        p.add_argument(
            "--config",
            default=None,
            metavar="FILE",
            help="pyproject.toml to read [tool.nocapture] from "
                 "(default: nearest one above the first PATH).",
        )
        p.add_argument(
            "--marker",
            action="append",
            default=None,
            metavar="NAME",
            help="Extra decorator / Annotated tag name treated as the marker "
                 "(repeatable).",
        )

    # --- check -------------------------------------------------------------
    p_check = subparsers.add_parser(
        "check",
        help="Report lambdas that capture while passed to marked callees.",
    )
    _add_common_args(p_check)
    p_check.add_argument(
        "-f", "--format",
        choices=list(OUTPUT_FORMATS),
        default=None,
        help="Output format (default: text, or [tool.nocapture] output).",
    )
    p_check.add_argument(
        "-j", "--jobs",
        type=int,
        default=None,
        metavar="N",
        help="Evaluate lambdas of a module on N threads.",
    )
    p_check.add_argument(
        "--suppress",
        action="append",
        default=None,
        metavar="ID",
        help="Suppress an error id globally (repeatable).",
    )
    p_check.add_argument(
        "--receiver-alias",
        default=None,
        metavar="NAME",
        help='Name reported for captured self/cls (default: "this").',
    )
    p_check.set_defaults(func=cmd_check)

    # --- markers -----------------------------------------------------------
    p_markers = subparsers.add_parser(
        "markers",
        help="List methods and parameters carrying the marker.",
    )
    _add_common_args(p_markers)
    p_markers.set_defaults(func=cmd_markers)

    return parser


# ===========================================================================
# Main
# ===========================================================================

def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the nocapture-lint CLI.

    Parameters
    ----------
    argv:
        Command-line arguments.  ``None`` → ``sys.argv[1:]``.

    Returns
    -------
    int
        Exit code (see module docstring for semantics).
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    _configure_logging(args.verbose)

    # No subcommand given → print help.
    if not hasattr(args, "func"):
        parser.print_help(sys.stderr)
        return EXIT_INFRA

    try:
        return args.func(args)
    except KeyboardInterrupt:
        _log.info("Interrupted by user.")
        return 130  # Standard UNIX convention for SIGINT
    except SystemExit as exc:
        return exc.code if isinstance(exc.code, int) else EXIT_INFRA
    except Exception as exc:
        _log.error("Unhandled exception: %s", exc, exc_info=True)
        return EXIT_INFRA


if __name__ == "__main__":
    raise SystemExit(main())
