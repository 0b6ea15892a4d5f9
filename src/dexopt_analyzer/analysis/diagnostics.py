"""
Module: analysis.diagnostics

Captures per-package and per-line problems that were recovered during an
analysis run (label fallbacks, malformed dump lines, rejected package list
entries) and turns them into a report for later inspection.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from dexopt_analyzer.core.errors import StatusDumpLineMalformed
from dexopt_analyzer.core.models import ResolvedLabel

logger = logging.getLogger(__name__)

ISSUE_LABEL_FALLBACK = "label_fallback"
ISSUE_LABEL_PARTIAL = "label_partial"
ISSUE_DUMP_LINE = "malformed_dump_line"
ISSUE_INVALID_PACKAGE = "invalid_package"
ISSUE_RESOLUTION_CRASH = "resolution_crash"


@dataclass
class DiagnosticIssue:
    """A single recovered problem."""
    issue_type: str
    package: Optional[str]
    message: str
    line_number: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "issue_type": self.issue_type,
            "package": self.package,
            "message": self.message,
        }
        if self.line_number is not None:
            d["line_number"] = self.line_number
        return d


class DiagnosticsCollector:
    """
    Thread-safe collector for recovered problems.

    Worker processes do not share it: the pipeline feeds it from the
    collecting thread once results come back.
    """

    def __init__(self):
        self._issues: List[DiagnosticIssue] = []
        self._lock = threading.Lock()

    def _add(self, issue: DiagnosticIssue) -> None:
        with self._lock:
            self._issues.append(issue)

    def add_label(self, label: ResolvedLabel) -> None:
        """Record a label if it is a fallback of either kind."""
        if label.is_fallback:
            self._add(DiagnosticIssue(ISSUE_LABEL_FALLBACK, label.package, label.reason or ""))
        elif label.reason:
            self._add(DiagnosticIssue(ISSUE_LABEL_PARTIAL, label.package, f"{label.text!r}: {label.reason}"))

    def add_dump_warning(self, warning: StatusDumpLineMalformed) -> None:
        self._add(DiagnosticIssue(
            ISSUE_DUMP_LINE,
            warning.package,
            f"{warning.reason}: {warning.line.strip()}",
            line_number=warning.line_number,
        ))

    def add_invalid_package(self, entry: str, reason: str) -> None:
        self._add(DiagnosticIssue(ISSUE_INVALID_PACKAGE, None, f"{entry!r}: {reason}"))

    def add_resolution_crash(self, package: str, reason: str) -> None:
        self._add(DiagnosticIssue(ISSUE_RESOLUTION_CRASH, package, reason))

    def generate_report(self) -> DiagnosticsReport:
        with self._lock:
            return DiagnosticsReport.from_issues(list(self._issues))

    @property
    def issue_count(self) -> int:
        with self._lock:
            return len(self._issues)


@dataclass
class DiagnosticsReport:
    """Complete diagnostics report."""
    generated_at: str
    total_issues: int
    summary_by_type: Dict[str, int]
    issues: List[DiagnosticIssue]

    @classmethod
    def from_issues(cls, issues: List[DiagnosticIssue]) -> DiagnosticsReport:
        summary_by_type: Dict[str, int] = {}
        for issue in issues:
            summary_by_type[issue.issue_type] = summary_by_type.get(issue.issue_type, 0) + 1

        return cls(
            generated_at=datetime.now(timezone.utc).isoformat(),
            total_issues=len(issues),
            summary_by_type=summary_by_type,
            issues=issues,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "generated_at": self.generated_at,
            "total_issues": self.total_issues,
            "summary_by_type": self.summary_by_type,
            "issues": [issue.to_dict() for issue in self.issues],
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    def save(self, path: Path) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.to_json(), encoding="utf-8")
        logger.info(f"Diagnostics saved: {path}")
