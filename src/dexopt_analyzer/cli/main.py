"""
Module: cli.main

Purpose:
    Command-line entry point (`dexopt-analyzer`). Collects the package list
    and status dump (live or from files), runs analyze() and renders the
    result as a table, verbose blocks or JSON.

Key Functions:
    - build_parser(): argparse definition
    - main(): Entry point; returns the process exit code

Exit codes:
    0 success, 1 boundary input unavailable or not root, 2 usage or config
    error, 130 interrupted

Dependencies:
    - argparse (std)
    - colorama: Windows console support for ANSI output
    - analysis.pipeline, device.*, cli.render

Used By:
    - console script entry point, `python -m dexopt_analyzer`
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from colorama import Fore, Style, just_fix_windows_console

from dexopt_analyzer import __version__
from dexopt_analyzer.analysis import (
    AnalysisConfig,
    DiagnosticsCollector,
    FilterCriteria,
    TimingLog,
    analyze,
    load_config,
)
from dexopt_analyzer.analysis.config import EXECUTOR_KINDS
from dexopt_analyzer.core.errors import BoundaryInputUnavailable, CommandFailed
from dexopt_analyzer.core.models import PackageIdentity, ScopeFilter
from dexopt_analyzer.device import (
    detect_host_configuration,
    fetch_dexopt_dump,
    fetch_packages,
    is_root,
    read_dump_file,
    read_package_file,
)
from dexopt_analyzer.utils.logging_utils import configure_logging

from . import render

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dexopt-analyzer",
        description="Analyze the ahead-of-time compilation (dexopt) status of installed Android apps.",
    )
    parser.add_argument("-f", "--filter", help="Filter packages by name (case-insensitive substring)")
    parser.add_argument(
        "-s", "--status",
        help="Only packages with a record of this status (up-to-date, run-from-apk, error, unknown)",
    )
    parser.add_argument(
        "-c", "--compiler-filter",
        help="Only packages with a record compiled with this filter (e.g. speed-profile, verify)",
    )
    parser.add_argument(
        "-t", "--type",
        choices=[s.value for s in ScopeFilter],
        default=ScopeFilter.USER.value,
        help="Type of applications to analyze (default: user)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Show a detailed block per package")
    parser.add_argument("-j", "--json", action="store_true", help="Output results as JSON")
    parser.add_argument("--locale", help="Locale to resolve labels for (default: device locale)")
    parser.add_argument("--workers", type=int, help="Label resolution workers (default: CPU count)")
    parser.add_argument("--executor", choices=EXECUTOR_KINDS, help="Worker pool kind (default: process)")
    parser.add_argument("--no-labels", action="store_true", help="Skip application label resolution")
    parser.add_argument("--no-color", action="store_true", help="Disable coloured output")
    parser.add_argument("--dump-file", type=Path, help="Read a saved `dumpsys package dexopt` output ('-' = stdin)")
    parser.add_argument("--packages-file", type=Path, help="Read a saved `pm list packages -f` output")
    parser.add_argument("--diag-json", type=Path, help="Write a diagnostics report (label fallbacks, dump warnings)")
    parser.add_argument("--timings", action="store_true", help="Print phase timings to stderr")
    parser.add_argument("--config", type=Path, help="JSON file with analysis settings")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        help="Logging verbosity (default: WARNING)",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def _error(message: str, color: bool) -> None:
    print(render.paint(f"Error: {message}", Fore.RED, Style.BRIGHT, color=color), file=sys.stderr)


def _build_config(args: argparse.Namespace) -> AnalysisConfig:
    """Config file (if any) with command-line overrides applied."""
    try:
        config = load_config(args.config) if args.config else AnalysisConfig()
    except OSError as e:
        raise ValueError(f"cannot read config {args.config}: {e.strerror or e}") from e
    resolve_labels = None
    if args.no_labels or not (args.verbose or args.json):
        # The compact table never shows labels
        resolve_labels = False
    return config.with_overrides(
        max_workers=args.workers,
        executor=args.executor,
        host_locale=args.locale,
        resolve_labels=resolve_labels,
    )


def _load_packages(args: argparse.Namespace, scope: ScopeFilter) -> List[PackageIdentity]:
    if args.packages_file:
        try:
            return read_package_file(args.packages_file, scope)
        except OSError as e:
            raise BoundaryInputUnavailable("package list", f"{args.packages_file}: {e.strerror or e}") from e
    try:
        return fetch_packages(scope)
    except CommandFailed as e:
        raise BoundaryInputUnavailable("package list", str(e)) from e


def _load_dump(args: argparse.Namespace) -> str:
    if args.dump_file:
        return read_dump_file(args.dump_file)
    try:
        return fetch_dexopt_dump()
    except CommandFailed as e:
        raise BoundaryInputUnavailable("status dump", str(e)) from e


def run(args: argparse.Namespace) -> int:
    color = not args.no_color
    scope = ScopeFilter(args.type)
    config = _build_config(args)
    live = args.dump_file is None or args.packages_file is None
    if live and not is_root():
        _error("This tool requires root access (su) unless --dump-file and --packages-file are given.", color)
        return EXIT_FAILURE

    prefix = render.paint("[-]", Fore.CYAN, color=color)
    chatty = not args.json

    if chatty:
        print(f"{prefix} {render.paint('Fetching package list', Style.BRIGHT, color=color)} ({scope}) ...")
    packages = _load_packages(args, scope)
    if chatty:
        count = render.paint(str(len(packages)), Fore.GREEN, Style.BRIGHT, color=color)
        print(f"{prefix} Found {count} packages.")
        print(f"{prefix} {render.paint('Fetching dexopt dump...', Style.BRIGHT, color=color)}")
    dump_text = _load_dump(args)

    if config.host_locale:
        host = None
    elif live:
        host = detect_host_configuration()
    else:
        host = detect_host_configuration(read_property=lambda _name: None)

    diagnostics = DiagnosticsCollector() if args.diag_json else None
    timing = TimingLog() if args.timings else None
    criteria = FilterCriteria(
        scope=scope,
        name=args.filter,
        status=args.status,
        compiler_filter=args.compiler_filter,
    )
    result = analyze(
        dump_text,
        packages,
        criteria=criteria,
        config=config,
        host=host,
        diagnostics=diagnostics,
        timing=timing,
    )

    if args.json:
        print(render.format_json(result.records))
    else:
        if not args.verbose:
            print(render.format_header(color))
        for record in result.records:
            lines = render.format_block(record, color) if args.verbose else render.format_compact(record, color)
            print("\n".join(lines))
        print("\n".join(render.format_summary(result.summary, color)))

    if diagnostics is not None:
        diagnostics.generate_report().save(args.diag_json)
    if timing is not None:
        print(timing.summary(), file=sys.stderr)
    return EXIT_OK


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)
    just_fix_windows_console()
    color = not args.no_color

    try:
        return run(args)
    except ValueError as e:
        # Invalid --config file or option value
        _error(str(e), color)
        return EXIT_USAGE
    except BoundaryInputUnavailable as e:
        _error(str(e), color)
        return EXIT_FAILURE
    except KeyboardInterrupt:
        print(file=sys.stderr)
        return EXIT_INTERRUPTED


if __name__ == "__main__":
    sys.exit(main())
