"""
Module: analysis.correlation

Purpose:
    Join package identities, status records and resolved labels by package
    name into AnalysisRecords, applying the run's filters. Output order is
    the enumeration order of the identities.

Key Classes:
    - FilterCriteria: Scope / name / status / compiler-filter selection
    - CorrelationEngine: select(), correlate(), summarize()

Dependencies:
    - core.models: Identity, status, label and record models

Used By:
    - analysis.pipeline: Pre-filtering and final join
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from dexopt_analyzer.core.models import (
    AnalysisRecord,
    AnalysisSummary,
    CompilationStatusRecord,
    PackageIdentity,
    ResolvedLabel,
    ScopeFilter,
)

logger = logging.getLogger(__name__)

MISSING_LABEL_REASON = "no label resolved"

StatusIndex = Mapping[str, Tuple[CompilationStatusRecord, ...]]


@dataclass(frozen=True)
class FilterCriteria:
    """
    Record selection for a run. Filters are applied in field order.

    Attributes:
        scope: Which install scopes to keep
        name: Case-insensitive substring of the package name
        status: Exact status ("up-to-date", "run-from-apk", "error", "unknown");
            a package passes when any of its records matches
        compiler_filter: Exact compiler filter (e.g. "speed-profile");
            a package passes when any of its records matches
    """
    scope: ScopeFilter = ScopeFilter.ALL
    name: Optional[str] = None
    status: Optional[str] = None
    compiler_filter: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.scope, ScopeFilter):
            object.__setattr__(self, "scope", ScopeFilter(self.scope))
        for attr in ("name", "status", "compiler_filter"):
            value = getattr(self, attr)
            if value is not None:
                value = value.strip()
                object.__setattr__(self, attr, value or None)

    def accepts_identity(self, identity: PackageIdentity) -> bool:
        if not self.scope.accepts(identity.scope):
            return False
        if self.name and self.name.lower() not in identity.name.lower():
            return False
        return True

    def accepts_statuses(self, statuses: Sequence[CompilationStatusRecord]) -> bool:
        if self.status and not any(r.status == self.status.lower() for r in statuses):
            return False
        if self.compiler_filter and not any(
            r.compiler_filter == self.compiler_filter.lower() for r in statuses
        ):
            return False
        return True


class CorrelationEngine:
    """
    Joins the three inputs of an analysis run.

    A package with no block in the status dump gets one synthesized
    "unknown" record and status_known=False. Labels missing from the label
    map (never expected from the scheduler) become package-name fallbacks,
    so every emitted record is complete.

    Example:
        >>> engine = CorrelationEngine(FilterCriteria(status="error"))
        >>> records = engine.correlate(identities, dump.records, labels)
        >>> all(any(s.status == "error" for s in r.statuses) for r in records)
        True
    """

    def __init__(self, criteria: Optional[FilterCriteria] = None):
        self.criteria = criteria or FilterCriteria()

    def statuses_for(
        self, identity: PackageIdentity, statuses: StatusIndex
    ) -> Tuple[Tuple[CompilationStatusRecord, ...], bool]:
        """Status records for a package and whether the dump listed it."""
        found = statuses.get(identity.name)
        if found:
            return tuple(found), True
        return (CompilationStatusRecord.placeholder(identity.name),), False

    def select(
        self, identities: Sequence[PackageIdentity], statuses: StatusIndex
    ) -> List[PackageIdentity]:
        """
        Identities that will appear in the output, before labels exist.

        Lets the pipeline resolve labels only for packages that are shown.
        """
        selected = []
        for identity in identities:
            if not self.criteria.accepts_identity(identity):
                continue
            records, _ = self.statuses_for(identity, statuses)
            if not self.criteria.accepts_statuses(records):
                continue
            selected.append(identity)
        return selected

    def correlate(
        self,
        identities: Sequence[PackageIdentity],
        statuses: StatusIndex,
        labels: Mapping[str, ResolvedLabel],
    ) -> List[AnalysisRecord]:
        """
        Build the ordered, filtered record list.

        Returns:
            One AnalysisRecord per selected identity, in input order
        """
        records: List[AnalysisRecord] = []
        seen: Dict[str, bool] = {}
        for identity in self.select(identities, statuses):
            if identity.name in seen:
                logger.debug(f"Duplicate package {identity.name} ignored")
                continue
            seen[identity.name] = True
            status_records, known = self.statuses_for(identity, statuses)
            label = labels.get(identity.name)
            if label is None:
                label = ResolvedLabel.fallback(identity.name, MISSING_LABEL_REASON)
            records.append(AnalysisRecord(
                identity=identity,
                label=label,
                statuses=status_records,
                status_known=known,
            ))
        logger.debug(f"Correlated {len(records)} of {len(identities)} packages")
        return records

    def summarize(self, records: Sequence[AnalysisRecord]) -> AnalysisSummary:
        return AnalysisSummary.from_records(records, self.criteria.scope)
