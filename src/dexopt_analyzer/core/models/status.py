"""
Module: status

Purpose:
    Provides the CompilationStatusRecord dataclass - one instruction-set line
    of the dexopt dump for one package, with the compiler filter separated
    from the derived status.

Key Classes:
    - CompilationStatusRecord: Parsed dexopt state for (package, dex path, ISA)

Key Functions:
    - classify_status(): Split a raw `status=` value into (filter, status)

Dependencies:
    - dataclasses (std)

Used By:
    - analysis.status_parser: Creates records
    - analysis.correlation: Filters on status / compiler filter
    - cli.render: Colours lines by compiler filter
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

STATUS_UP_TO_DATE = "up-to-date"
STATUS_RUN_FROM_APK = "run-from-apk"
STATUS_ERROR = "error"
STATUS_UNKNOWN = "unknown"

UNKNOWN_FILTER = "unknown"

# Values the runtime prints in place of a compiler filter when no usable
# artifacts exist.
_NON_FILTER_STATUSES = {
    "run-from-apk": STATUS_RUN_FROM_APK,
    "run-from-apk-fallback": STATUS_RUN_FROM_APK,
    "error": STATUS_ERROR,
    "unknown": STATUS_UNKNOWN,
}


def classify_status(raw: Optional[str], explicit_filter: Optional[str] = None) -> Tuple[str, str]:
    """
    Split a raw dump status value into (compiler_filter, status).

    Args:
        raw: Value of the `status=` field, if any
        explicit_filter: Value of a separate `filter=` field, if any

    Returns:
        Tuple of (compiler filter, status)

    Example:
        >>> classify_status("speed-profile")
        ('speed-profile', 'up-to-date')
        >>> classify_status("run-from-apk")
        ('unknown', 'run-from-apk')
    """
    value = (raw or "").strip().lower()
    compiler_filter = (explicit_filter or "").strip().lower() or None

    if not value:
        if compiler_filter:
            return compiler_filter, STATUS_UP_TO_DATE
        return UNKNOWN_FILTER, STATUS_UNKNOWN

    if value in _NON_FILTER_STATUSES:
        return compiler_filter or UNKNOWN_FILTER, _NON_FILTER_STATUSES[value]

    return compiler_filter or value, STATUS_UP_TO_DATE


@dataclass(frozen=True)
class CompilationStatusRecord:
    """
    Dexopt state of one package for one instruction set (immutable).

    Attributes:
        package: Package name the record belongs to
        compiler_filter: e.g. "speed-profile", "verify", "unknown"
        status: One of "up-to-date", "run-from-apk", "error", "unknown"
        instruction_set: e.g. "arm64"; empty for placeholder records
        reason: Compilation reason (e.g. "bg-dexopt"), if printed
        dex_path: The `path:` line this record was listed under
        location: Artifact location (odex path), if printed
        primary_abi: Whether the runtime flagged this ISA as the primary ABI
        has_artifacts: True when compiled artifacts are reported present
        degraded: True when the record was synthesized for a block whose
            lines could not be parsed
        raw_line: Original dump line (for display)
    """

    package: str
    compiler_filter: str
    status: str
    instruction_set: str = ""
    reason: Optional[str] = None
    dex_path: Optional[str] = None
    location: Optional[str] = None
    primary_abi: bool = False
    has_artifacts: bool = False
    degraded: bool = False
    raw_line: str = ""

    @classmethod
    def placeholder(cls, package: str, *, degraded: bool = False) -> CompilationStatusRecord:
        """Record for a package with no parsable status line."""
        return cls(
            package=package,
            compiler_filter=UNKNOWN_FILTER,
            status=STATUS_UNKNOWN,
            degraded=degraded,
        )

    @property
    def display_line(self) -> str:
        """Raw line if available, otherwise a synthesized one."""
        if self.raw_line:
            return self.raw_line
        isa = f"{self.instruction_set}: " if self.instruction_set else ""
        return f"{isa}[status={self.status}]"

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "instruction_set": self.instruction_set,
            "compiler_filter": self.compiler_filter,
            "status": self.status,
            "raw_line": self.raw_line,
        }
        if self.reason:
            d["reason"] = self.reason
        if self.dex_path:
            d["dex_path"] = self.dex_path
        if self.location:
            d["location"] = self.location
        if self.primary_abi:
            d["primary_abi"] = True
        d["has_artifacts"] = self.has_artifacts
        if self.degraded:
            d["degraded"] = True
        return d
