"""
Module: labels

Purpose:
    Provides the ResolvedLabel dataclass - the tagged result of label
    resolution. A package always gets one, so callers never handle
    "no label".

Key Classes:
    - LabelProvenance: How the label text was obtained
    - ResolvedLabel: Label text plus provenance and fallback reason

Dependencies:
    - dataclasses (std)
    - enum (std)

Used By:
    - apk.labels: Produces labels
    - analysis.scheduler: Collects labels per package
    - analysis.correlation: Joins labels into AnalysisRecord
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class LabelProvenance(str, Enum):
    DECODED = "decoded"
    FALLBACK_TO_PACKAGE_NAME = "fallback-to-package-name"
    FALLBACK_TO_PARTIAL = "fallback-to-partial"


@dataclass(frozen=True)
class ResolvedLabel:
    """
    Resolved application label (immutable).

    Attributes:
        package: Package name
        text: Label text (the package name for fallbacks)
        provenance: DECODED, FALLBACK_TO_PACKAGE_NAME or FALLBACK_TO_PARTIAL
        reason: Why a fallback happened (None when decoded)

    Example:
        >>> ResolvedLabel.fallback("com.example", "EntryMissing").text
        'com.example'
    """

    package: str
    text: str
    provenance: LabelProvenance
    reason: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.text:
            raise ValueError(f"label text must be non-empty for {self.package}")

    @classmethod
    def decoded(cls, package: str, text: str) -> ResolvedLabel:
        return cls(package=package, text=text, provenance=LabelProvenance.DECODED)

    @classmethod
    def partial(cls, package: str, text: str, reason: str) -> ResolvedLabel:
        return cls(
            package=package,
            text=text,
            provenance=LabelProvenance.FALLBACK_TO_PARTIAL,
            reason=reason,
        )

    @classmethod
    def fallback(cls, package: str, reason: str) -> ResolvedLabel:
        return cls(
            package=package,
            text=package,
            provenance=LabelProvenance.FALLBACK_TO_PACKAGE_NAME,
            reason=reason,
        )

    @property
    def is_fallback(self) -> bool:
        return self.provenance is LabelProvenance.FALLBACK_TO_PACKAGE_NAME
