"""
Analysis package: status dump parsing, parallel label resolution and
correlation into the final record set.

Main Components:
    - StatusParser: dumpsys dexopt text -> status records
    - ParallelResolutionScheduler: Label resolution over a worker pool
    - CorrelationEngine: Join, filter and summarize
    - analyze(): The whole run
"""

from .config import AnalysisConfig, load_config
from .correlation import CorrelationEngine, FilterCriteria
from .diagnostics import DiagnosticsCollector, DiagnosticsReport
from .pipeline import AnalysisResult, analyze, build_identities
from .scheduler import ParallelResolutionScheduler
from .status_parser import StatusDump, StatusParser, parse_status_dump
from .timing import TimingLog, timed_phase

__all__ = [
    "AnalysisConfig",
    "AnalysisResult",
    "CorrelationEngine",
    "DiagnosticsCollector",
    "DiagnosticsReport",
    "FilterCriteria",
    "ParallelResolutionScheduler",
    "StatusDump",
    "StatusParser",
    "TimingLog",
    "analyze",
    "build_identities",
    "load_config",
    "parse_status_dump",
    "timed_phase",
]
