"""
Module: analysis.pipeline

Purpose:
    Orchestrates one analysis run: parse the status dump, validate the
    package list, pre-filter, resolve labels in parallel, correlate and
    summarize.

Key Functions:
    - analyze(): Main entry point
    - build_identities(): Validate package enumeration entries

Key Classes:
    - AnalysisResult: Container for the run's output

Dependencies:
    - analysis.status_parser, analysis.scheduler, analysis.correlation
    - analysis.diagnostics, analysis.timing
    - apk.labels: LabelResolver settings

Used By:
    - cli.main: Command-line entry point
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from dexopt_analyzer.apk.configuration import ResourceConfiguration
from dexopt_analyzer.apk.labels import LabelResolver
from dexopt_analyzer.core.errors import BoundaryInputUnavailable, InvalidPackageIdentity
from dexopt_analyzer.core.models import (
    AnalysisRecord,
    AnalysisSummary,
    PackageIdentity,
    ResolvedLabel,
    Scope,
)

from .config import AnalysisConfig
from .correlation import CorrelationEngine, FilterCriteria
from .diagnostics import DiagnosticsCollector
from .scheduler import ParallelResolutionScheduler, ProgressCallback
from .status_parser import StatusParser
from .timing import TimingLog, timed_phase

logger = logging.getLogger(__name__)

LABELS_DISABLED_REASON = "label resolution disabled"

# (name, [base path, split paths...], scope)
PackageEntry = Tuple[str, Sequence[str], Union[Scope, str]]


@dataclass
class AnalysisResult:
    """
    Result of one analysis run.

    Attributes:
        records: Filtered records in enumeration order
        summary: Counts over records
        host: Configuration labels were resolved for
        warnings: Human-readable recovered problems (dump lines, rejected
            package entries, crashed resolutions)
    """
    records: List[AnalysisRecord]
    summary: AnalysisSummary
    host: ResourceConfiguration
    warnings: List[str] = field(default_factory=list)

    @property
    def package_count(self) -> int:
        return len(self.records)

    def to_json_list(self) -> List[Dict[str, Any]]:
        return [record.to_dict() for record in self.records]


def build_identities(
    entries: Optional[Iterable[Union[PackageIdentity, PackageEntry]]],
    diagnostics: Optional[DiagnosticsCollector] = None,
    warnings: Optional[List[str]] = None,
) -> List[PackageIdentity]:
    """
    Validate package enumeration entries.

    Invalid entries are skipped with a warning.

    Raises:
        BoundaryInputUnavailable: If entries is None, or no entry is valid
    """
    if entries is None:
        raise BoundaryInputUnavailable("package list", "no package list")

    identities: List[PackageIdentity] = []
    rejected = 0
    for entry in entries:
        if isinstance(entry, PackageIdentity):
            identities.append(entry)
            continue
        try:
            name, paths, scope = entry
            if isinstance(paths, str):
                paths = [paths]
            identities.append(PackageIdentity.from_fields(name, list(paths), scope))
        except (InvalidPackageIdentity, ValueError, TypeError) as e:
            rejected += 1
            logger.warning(f"Skipping invalid package entry {entry!r}: {e}")
            if diagnostics is not None:
                diagnostics.add_invalid_package(repr(entry), str(e))
            if warnings is not None:
                warnings.append(f"invalid package entry {entry!r}: {e}")

    if rejected and not identities:
        raise BoundaryInputUnavailable("package list", f"all {rejected} entries are invalid")
    return identities


def analyze(
    dump_text: Optional[str],
    packages: Optional[Iterable[Union[PackageIdentity, PackageEntry]]],
    *,
    criteria: Optional[FilterCriteria] = None,
    config: Optional[AnalysisConfig] = None,
    host: Optional[ResourceConfiguration] = None,
    diagnostics: Optional[DiagnosticsCollector] = None,
    timing: Optional[TimingLog] = None,
    progress: Optional[ProgressCallback] = None,
) -> AnalysisResult:
    """
    Run a complete analysis.

    Pipeline:
    1. Parse the status dump
    2. Validate package entries
    3. Select packages passing the filters
    4. Resolve labels for the selected packages (parallel)
    5. Correlate and summarize

    Args:
        dump_text: Text of `dumpsys package dexopt` (None = unavailable)
        packages: PackageIdentity objects or (name, paths, scope) triples
        criteria: Filters (default: everything)
        config: Run settings (default: AnalysisConfig())
        host: Host configuration; config.host_locale takes precedence
        diagnostics: Collector for recovered problems
        timing: Timing log for phases and per-package resolution
        progress: Called as (done, total, package) after each label

    Returns:
        AnalysisResult with ordered records

    Raises:
        BoundaryInputUnavailable: If the dump or the package list is
            unavailable
    """
    config = config or AnalysisConfig()
    criteria = criteria or FilterCriteria()
    engine = CorrelationEngine(criteria)
    warnings: List[str] = []

    if config.host_locale:
        host = ResourceConfiguration.from_locale(config.host_locale, config.host_density)
    host = host or ResourceConfiguration(density=config.host_density)

    with timed_phase(timing, "parse_dump"):
        dump = StatusParser().parse(dump_text)
    for warning in dump.warnings:
        warnings.append(str(warning))
        if diagnostics is not None:
            diagnostics.add_dump_warning(warning)

    with timed_phase(timing, "validate_packages"):
        identities = build_identities(packages, diagnostics, warnings)

    selected = engine.select(identities, dump.records)
    logger.info(f"{len(selected)} of {len(identities)} packages selected")

    with timed_phase(timing, "resolve_labels"):
        labels, crashed = _resolve_labels(selected, config, host, timing, progress)
    for package, reason in crashed.items():
        warnings.append(f"{package}: {reason}")
        if diagnostics is not None:
            diagnostics.add_resolution_crash(package, reason)
    # Disabled resolution is not a per-package problem
    if diagnostics is not None and config.resolve_labels:
        for package, label in labels.items():
            if package not in crashed:
                diagnostics.add_label(label)

    with timed_phase(timing, "correlate"):
        records = engine.correlate(selected, dump.records, labels)
        summary = engine.summarize(records)

    return AnalysisResult(records=records, summary=summary, host=host, warnings=warnings)


def _resolve_labels(
    identities: List[PackageIdentity],
    config: AnalysisConfig,
    host: ResourceConfiguration,
    timing: Optional[TimingLog],
    progress: Optional[ProgressCallback],
) -> Tuple[Dict[str, ResolvedLabel], Dict[str, str]]:
    """Labels per package, and the packages whose resolution task crashed."""
    if not config.resolve_labels:
        return {i.name: ResolvedLabel.fallback(i.name, LABELS_DISABLED_REASON) for i in identities}, {}

    resolver = LabelResolver(
        host,
        max_entry_bytes=config.max_entry_bytes,
        max_chunks=config.max_chunks,
        max_reference_depth=config.max_reference_depth,
    )
    scheduler = ParallelResolutionScheduler(
        resolver,
        max_workers=config.max_workers,
        executor=config.executor,
        timing=timing,
        progress=progress,
    )
    labels = scheduler.run(identities)
    return labels, dict(scheduler.crashed)
