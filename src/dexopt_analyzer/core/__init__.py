"""
Core package: immutable models and the shared error taxonomy.
"""

from .errors import (
    BoundaryInputUnavailable,
    CommandFailed,
    ContainerUnreadable,
    DexoptAnalyzerError,
    EntryMissing,
    InvalidPackageIdentity,
    LabelAttributeAbsent,
    MalformedBinaryXml,
    MalformedChunk,
    MalformedResourceTable,
    ResourceUnresolved,
    StatusDumpLineMalformed,
)

__all__ = [
    "BoundaryInputUnavailable",
    "CommandFailed",
    "ContainerUnreadable",
    "DexoptAnalyzerError",
    "EntryMissing",
    "InvalidPackageIdentity",
    "LabelAttributeAbsent",
    "MalformedBinaryXml",
    "MalformedChunk",
    "MalformedResourceTable",
    "ResourceUnresolved",
    "StatusDumpLineMalformed",
]
