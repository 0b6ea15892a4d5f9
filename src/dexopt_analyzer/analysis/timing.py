"""
Module: analysis.timing

Purpose:
    Timing instrumentation for analysis runs: how long each pipeline phase
    took and which packages were slowest to resolve.

Key Classes:
    - TimingLog: Collects phase and per-package durations

Key Functions:
    - timed_phase: Context manager for timing code blocks

Dependencies:
    - time (std)
    - contextlib (std)
    - dataclasses (std)

Used By:
    - analysis.pipeline: Phase timings
    - analysis.scheduler: Per-package resolution times
    - cli.main: --timings output
"""

from __future__ import annotations

import json
import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional, Tuple

logger = logging.getLogger(__name__)


@dataclass
class TimingLog:
    """
    Timing metrics for one analysis run.

    Attributes:
        phase_timings: phase name -> duration in seconds
        package_timings: package name -> label resolution seconds

    Example:
        >>> log = TimingLog()
        >>> log.log_phase("parse_dump", 0.012)
        >>> log.log_package("com.example.app", 0.034)
        >>> print(log.summary())
    """
    phase_timings: Dict[str, float] = field(default_factory=dict)
    package_timings: Dict[str, float] = field(default_factory=dict)

    def log_phase(self, phase: str, duration: float) -> None:
        self.phase_timings[phase] = duration

    def log_package(self, package: str, duration: float) -> None:
        self.package_timings[package] = duration

    @property
    def total(self) -> float:
        return sum(self.phase_timings.values())

    def get_package_average(self) -> float:
        if not self.package_timings:
            return 0.0
        return sum(self.package_timings.values()) / len(self.package_timings)

    def get_slowest_packages(self, n: int = 3) -> List[Tuple[str, float]]:
        """N slowest label resolutions, slowest first."""
        ranked = sorted(self.package_timings.items(), key=lambda x: x[1], reverse=True)
        return ranked[:n]

    def summary(self) -> str:
        """Human-readable timing summary."""
        lines = ["", "=== Analysis Timing Summary ==="]

        if self.phase_timings:
            lines.append("Phases:")
            for phase, duration in self.phase_timings.items():
                lines.append(f"  {phase:25s} {duration:.3f}s")

        if self.package_timings:
            lines.append("")
            lines.append(
                f"Label resolution: {len(self.package_timings)} packages, "
                f"avg {self.get_package_average():.3f}s"
            )
            lines.append("Slowest packages:")
            for package, duration in self.get_slowest_packages(3):
                lines.append(f"  {package}: {duration:.3f}s")

        lines.append("")
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phase_timings": self.phase_timings,
            "package_average": self.get_package_average(),
            "slowest_packages": [
                {"package": package, "duration": duration}
                for package, duration in self.get_slowest_packages(5)
            ],
        }

    def save(self, path: Path) -> None:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)
        logger.debug(f"Saved timing data to {path}")


@contextmanager
def timed_phase(
    log: Optional[TimingLog],
    phase: str,
    package: Optional[str] = None,
) -> Generator[None, None, None]:
    """
    Context manager for timing a code phase.

    Args:
        log: TimingLog to record into (None disables timing)
        phase: Name of the phase being timed
        package: If provided, records a per-package duration instead

    Example:
        >>> log = TimingLog()
        >>> with timed_phase(log, "parse_dump"):
        ...     dump = parse_status_dump(text)
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        if log is not None:
            if package:
                log.log_package(package, elapsed)
            else:
                log.log_phase(phase, elapsed)
