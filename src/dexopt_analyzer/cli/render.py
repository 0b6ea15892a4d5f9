"""
Module: cli.render

Purpose:
    Terminal and JSON rendering of analysis results. Every function returns
    text; printing is left to the caller. Colour codes come from colorama
    and are left out entirely when color=False.

Key Functions:
    - format_header() / format_compact(): Package | status table
    - format_block(): Boxed verbose entry for one package
    - format_summary(): Summary box
    - format_json(): JSON document for --json

Dependencies:
    - colorama: ANSI colour codes

Used By:
    - cli.main
"""

from __future__ import annotations

import json
from typing import Any, List, Optional

from colorama import Fore, Style

from dexopt_analyzer.core.models import (
    STATUS_ERROR,
    STATUS_UP_TO_DATE,
    AnalysisRecord,
    AnalysisSummary,
    CompilationStatusRecord,
)

NAME_WIDTH = 45
BLOCK_MIN_WIDTH = 40
SUMMARY_WIDTH = 47
SUMMARY_LABEL_WIDTH = 22

STATUS_COLORS = {
    "speed-profile": Fore.GREEN,
    "speed": Fore.GREEN,
    "verify": Fore.YELLOW,
    "quicken": Fore.BLUE,
    "run-from-apk": Fore.RED,
    "error": Fore.RED,
    "everything": Fore.MAGENTA,
}
DEFAULT_COLOR = Fore.WHITE


def paint(text: str, *codes: str, color: bool = True) -> str:
    if not color or not codes:
        return text
    return "".join(codes) + text + Style.RESET_ALL


def status_key(record: CompilationStatusRecord) -> str:
    """Compiler filter for compiled records, else the status itself."""
    if record.status == STATUS_UP_TO_DATE:
        return record.compiler_filter
    return record.status


def colorize_line(line: str, key: str, color: bool = True) -> str:
    codes = [STATUS_COLORS.get(key, DEFAULT_COLOR)]
    if key == STATUS_ERROR:
        codes.append(Style.BRIGHT)
    return paint(line, *codes, color=color)


# ─────────────────────────────────────────────────────────────────────────────
# Compact table
# ─────────────────────────────────────────────────────────────────────────────

def format_header(color: bool = True) -> str:
    package = paint(f"{'Package':<{NAME_WIDTH}}", Style.BRIGHT, color=color)
    status = paint(f"{'DexOpt Status':<30}", Style.BRIGHT, color=color)
    return f"\n{package} | {status}\n"


def format_compact(record: AnalysisRecord, color: bool = True) -> List[str]:
    """Table rows for one package, followed by a blank separator line."""
    lines = []
    for i, status in enumerate(record.statuses):
        line = colorize_line(status.display_line, status_key(status), color)
        if i == 0:
            name = paint(f"{record.package:<{NAME_WIDTH}}", Style.BRIGHT, Fore.WHITE, color=color)
        else:
            name = f"{'':<{NAME_WIDTH}}"
        lines.append(f"{name} | {line}")
    lines.append("")
    return lines


# ─────────────────────────────────────────────────────────────────────────────
# Verbose blocks
# ─────────────────────────────────────────────────────────────────────────────

def format_block(record: AnalysisRecord, color: bool = True) -> List[str]:
    """
    Boxed `Label (package)` header followed by aligned status lines.

    Example (color=False):
        ┌────────────────────────────────────────┐
        │        Example (com.example.app)       │
        └────────────────────────────────────────┘
          arm64: [status=speed-profile] [reason=bg-dexopt]
    """
    display_name = record.display_name
    width = max(len(display_name) + 4, BLOCK_MIN_WIDTH)
    border = "─" * width
    pad_left = (width - len(display_name)) // 2
    pad_right = width - len(display_name) - pad_left

    if record.display_name != record.package:
        inner = (
            paint(record.label.text, Style.BRIGHT, Fore.CYAN, color=color)
            + " ("
            + paint(record.package, Style.BRIGHT, Fore.WHITE, color=color)
            + ")"
        )
    else:
        inner = paint(record.package, Style.BRIGHT, Fore.WHITE, color=color)

    lines = [
        paint(f"┌{border}┐", Fore.CYAN, color=color),
        paint("│", Fore.CYAN, color=color) + " " * pad_left + inner + paint(" " * pad_right + "│", Fore.CYAN, color=color),
        paint(f"└{border}┘", Fore.CYAN, color=color),
    ]

    if not record.status_known:
        lines.append("  " + paint("(no info found)", Fore.RED, color=color))
    else:
        raw_lines = [status.display_line for status in record.statuses]
        prefix_width = max((line.find(":") for line in raw_lines if ":" in line), default=0)
        for status, raw in zip(record.statuses, raw_lines):
            if ":" in raw:
                prefix, rest = raw.split(":", 1)
                raw = f"{prefix:<{prefix_width}}:{rest}"
            lines.append("  " + colorize_line(raw, status_key(status), color))
    lines.append("")
    return lines


# ─────────────────────────────────────────────────────────────────────────────
# Summary
# ─────────────────────────────────────────────────────────────────────────────

def _summary_line(label: str, value: str, value_code: str, color: bool) -> str:
    bar = paint("║", Fore.LIGHTBLUE_EX, color=color)
    label_part = paint(f"{label:<{SUMMARY_LABEL_WIDTH}}", Style.BRIGHT, Fore.CYAN, color=color)
    value_part = paint(value, Style.BRIGHT, value_code, color=color)
    padding = " " * max(SUMMARY_WIDTH - (5 + SUMMARY_LABEL_WIDTH + len(value)), 0)
    return f"{bar}  {label_part} : {value_part}{padding}{bar}"


def _summary_title(title: str, code: str, color: bool) -> str:
    bar = paint("║", Fore.LIGHTBLUE_EX, color=color)
    pad_left = (SUMMARY_WIDTH - len(title)) // 2
    pad_right = SUMMARY_WIDTH - len(title) - pad_left
    return f"{bar}{' ' * pad_left}{paint(title, Style.BRIGHT, code, color=color)}{' ' * pad_right}{bar}"


def format_summary(summary: AnalysisSummary, color: bool = True) -> List[str]:
    """Summary box: scope, package total, per-filter and per-status counts."""
    top = paint(f"╔{'═' * SUMMARY_WIDTH}╗", Fore.LIGHTBLUE_EX, color=color)
    mid = paint(f"╠{'═' * SUMMARY_WIDTH}╣", Fore.LIGHTBLUE_EX, color=color)
    bottom = paint(f"╚{'═' * SUMMARY_WIDTH}╝", Fore.LIGHTBLUE_EX, color=color)

    lines = ["", "", top]
    lines.append(_summary_title("DEXOPT ANALYSIS SUMMARY", Fore.LIGHTYELLOW_EX, color))
    lines.append(mid)
    lines.append(_summary_line("App Scope", str(summary.scope), Fore.MAGENTA, color))
    lines.append(_summary_line("Total Apps Checked", str(summary.total_packages), Fore.LIGHTGREEN_EX, color))
    lines.append(mid)
    lines.append(_summary_title("Profile Breakdown", Style.DIM, color))
    lines.append(mid)

    compiled = {k: v for k, v in summary.by_filter.items() if k != "unknown"}
    uncompiled = {k: v for k, v in summary.by_status.items() if k != STATUS_UP_TO_DATE}
    if not compiled and not uncompiled:
        message = "No profile data found."
        bar = paint("║", Fore.LIGHTBLUE_EX, color=color)
        lines.append(f"{bar}  {message}{' ' * max(SUMMARY_WIDTH - 2 - len(message), 0)}{bar}")
    else:
        for name, count in compiled.items():
            lines.append(_summary_line(name, str(count), STATUS_COLORS.get(name, DEFAULT_COLOR), color))
        for name, count in uncompiled.items():
            lines.append(_summary_line(name, str(count), STATUS_COLORS.get(name, DEFAULT_COLOR), color))
    lines.append(bottom)
    return lines


# ─────────────────────────────────────────────────────────────────────────────
# JSON
# ─────────────────────────────────────────────────────────────────────────────

def format_json(records: List[AnalysisRecord], summary: Optional[AnalysisSummary] = None) -> str:
    """
    JSON document: a list of package objects, or {"packages", "summary"}
    when a summary is given.
    """
    packages = [record.to_dict() for record in records]
    payload: Any = packages
    if summary is not None:
        payload = {"packages": packages, "summary": summary.to_dict()}
    return json.dumps(payload, indent=2, ensure_ascii=False)
