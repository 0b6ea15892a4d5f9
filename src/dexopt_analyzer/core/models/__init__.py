"""
Core Models Package

Immutable data models shared by the decoders, the analysis engine and the
presentation layer.

All models in this package are frozen dataclasses. This ensures:
1. No accidental mutation once a pipeline stage has produced them
2. Safe to hand across worker threads and processes
3. Output ordering and content are reproducible between runs
"""

from .packages import PackageIdentity, Scope, ScopeFilter
from .status import (
    CompilationStatusRecord,
    STATUS_ERROR,
    STATUS_RUN_FROM_APK,
    STATUS_UNKNOWN,
    STATUS_UP_TO_DATE,
    classify_status,
)
from .labels import LabelProvenance, ResolvedLabel
from .records import AnalysisRecord, AnalysisSummary

__all__ = [
    "AnalysisRecord",
    "AnalysisSummary",
    "CompilationStatusRecord",
    "LabelProvenance",
    "PackageIdentity",
    "ResolvedLabel",
    "STATUS_ERROR",
    "STATUS_RUN_FROM_APK",
    "STATUS_UNKNOWN",
    "STATUS_UP_TO_DATE",
    "Scope",
    "ScopeFilter",
    "classify_status",
]
