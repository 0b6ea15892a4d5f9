"""
Module: records

Purpose:
    Provides AnalysisRecord - the join of a package, its status records and
    its resolved label - and AnalysisSummary, the counts shown at the end of
    a run. These are the typed output handed to the presentation layer.

Key Classes:
    - AnalysisRecord: One filtered package with derived display fields
    - AnalysisSummary: Totals and per-filter / per-status breakdown

Dependencies:
    - dataclasses (std)
    - .packages, .status, .labels

Used By:
    - analysis.correlation: Creates records and summaries
    - cli.render: Displays records
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence, Tuple

from .labels import LabelProvenance, ResolvedLabel
from .packages import PackageIdentity, ScopeFilter
from .status import CompilationStatusRecord


@dataclass(frozen=True)
class AnalysisRecord:
    """
    Analysis result for one package (immutable).

    Attributes:
        identity: The enumerated package
        label: Resolved label (always present)
        statuses: Status records for the package, never empty
        status_known: False when the dump had no block for the package and
            statuses holds a synthesized "unknown" record

    Invariants:
        - statuses is non-empty
        - every status record and the label belong to identity.name
    """

    identity: PackageIdentity
    label: ResolvedLabel
    statuses: Tuple[CompilationStatusRecord, ...]
    status_known: bool = True

    def __post_init__(self) -> None:
        """Validate record on construction."""
        if not self.statuses:
            raise ValueError(f"AnalysisRecord for {self.identity.name} needs at least one status")
        if self.label.package != self.identity.name:
            raise ValueError(
                f"label package {self.label.package!r} does not match {self.identity.name!r}"
            )
        for record in self.statuses:
            if record.package != self.identity.name:
                raise ValueError(
                    f"status package {record.package!r} does not match {self.identity.name!r}"
                )

    @property
    def package(self) -> str:
        return self.identity.name

    @property
    def display_name(self) -> str:
        """`Label (package)` when a label was decoded, else the package name."""
        if self.label.provenance is LabelProvenance.FALLBACK_TO_PACKAGE_NAME:
            return self.identity.name
        if self.label.text == self.identity.name:
            return self.identity.name
        return f"{self.label.text} ({self.identity.name})"

    @property
    def primary_record(self) -> CompilationStatusRecord:
        """Primary-ABI record if flagged, else the first record."""
        for record in self.statuses:
            if record.primary_abi:
                return record
        return self.statuses[0]

    @property
    def primary_status(self) -> str:
        return self.primary_record.status

    @property
    def primary_filter(self) -> str:
        return self.primary_record.compiler_filter

    def to_dict(self) -> Dict[str, Any]:
        d = self.identity.to_dict()
        d["label"] = self.label.text
        d["label_provenance"] = self.label.provenance.value
        if self.label.reason:
            d["label_fallback_reason"] = self.label.reason
        d["status_known"] = self.status_known
        d["dexopt_info"] = [record.to_dict() for record in self.statuses]
        return d


@dataclass(frozen=True)
class AnalysisSummary:
    """
    Totals for a set of analysis records.

    Attributes:
        scope: Scope filter of the run
        total_packages: Number of records displayed
        by_filter: Status-record count per compiler filter (sorted by name)
        by_status: Status-record count per status (sorted by name)
    """

    scope: ScopeFilter
    total_packages: int
    by_filter: Dict[str, int] = field(default_factory=dict)
    by_status: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_records(
        cls,
        records: Sequence[AnalysisRecord],
        scope: ScopeFilter = ScopeFilter.USER,
    ) -> AnalysisSummary:
        by_filter: Dict[str, int] = {}
        by_status: Dict[str, int] = {}
        for record in records:
            if not record.status_known:
                continue
            for status in record.statuses:
                by_filter[status.compiler_filter] = by_filter.get(status.compiler_filter, 0) + 1
                by_status[status.status] = by_status.get(status.status, 0) + 1
        return cls(
            scope=scope,
            total_packages=len(records),
            by_filter=dict(sorted(by_filter.items())),
            by_status=dict(sorted(by_status.items())),
        )

    def count_for(self, compiler_filter: str) -> Optional[int]:
        return self.by_filter.get(compiler_filter)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scope": self.scope.value,
            "total_packages": self.total_packages,
            "by_filter": self.by_filter,
            "by_status": self.by_status,
        }
