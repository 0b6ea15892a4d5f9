"""
Module: core.errors

Purpose:
    Error taxonomy for the analyzer. Per-package decode errors are raised by
    the apk decoders and absorbed by the label resolver; per-line dump errors
    are raised and absorbed inside the status parser. Only
    BoundaryInputUnavailable is allowed to end a whole run.

Key Classes:
    - DexoptAnalyzerError: Base for every error raised by this package
    - ContainerUnreadable / EntryMissing: Container access failures
    - MalformedChunk: Base for binary decoding failures
        - MalformedBinaryXml: Manifest decoding failure
        - MalformedResourceTable: resources.arsc decoding failure
    - LabelAttributeAbsent / ResourceUnresolved: Label lookups that came up empty
    - InvalidPackageIdentity: Rejected package enumeration entry
    - StatusDumpLineMalformed: Recovered dump line problem (warning only)
    - BoundaryInputUnavailable: Status dump or package list missing
    - CommandFailed: A device command could not be run

Used By:
    - every other module in dexopt_analyzer
"""

from __future__ import annotations

from typing import Optional


class DexoptAnalyzerError(Exception):
    """Base class for analyzer errors."""
    pass


class ContainerUnreadable(DexoptAnalyzerError):
    """Container could not be opened or read as a ZIP archive."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"Cannot read container {path}: {reason}")
        self.path = path
        self.reason = reason


class EntryMissing(DexoptAnalyzerError):
    """A requested entry is not present in the container."""

    def __init__(self, path: str, entry: str):
        super().__init__(f"{entry} not found in {path}")
        self.path = path
        self.entry = entry


class MalformedChunk(DexoptAnalyzerError):
    """Binary chunk data is truncated, oversized or otherwise invalid."""
    pass


class MalformedBinaryXml(MalformedChunk):
    """Binary XML manifest could not be decoded."""
    pass


class MalformedResourceTable(MalformedChunk):
    """Resource table could not be decoded."""
    pass


class LabelAttributeAbsent(DexoptAnalyzerError):
    """Manifest has no usable application label attribute."""
    pass


class ResourceUnresolved(DexoptAnalyzerError):
    """A resource id has no value usable as a label."""

    def __init__(self, resource_id: int, reason: str = "no matching entry"):
        super().__init__(f"Resource 0x{resource_id:08x} unresolved: {reason}")
        self.resource_id = resource_id
        self.reason = reason


class InvalidPackageIdentity(DexoptAnalyzerError, ValueError):
    """Package enumeration entry is missing a required field."""
    pass


class StatusDumpLineMalformed(DexoptAnalyzerError):
    """
    A status dump line could not be parsed.

    Never raised out of the parser: instances are collected as warnings.
    """

    def __init__(self, line_number: int, line: str, reason: str, package: Optional[str] = None):
        where = f" in [{package}]" if package else ""
        super().__init__(f"Line {line_number}{where}: {reason}: {line.strip()!r}")
        self.line_number = line_number
        self.line = line
        self.reason = reason
        self.package = package


class BoundaryInputUnavailable(DexoptAnalyzerError):
    """A whole-run input (status dump or package list) is absent or unusable."""

    def __init__(self, input_name: str, detail: str = ""):
        message = f"{input_name} unavailable"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.input_name = input_name
        self.detail = detail


class CommandFailed(DexoptAnalyzerError):
    """A device command could not be executed or exited non-zero."""

    def __init__(self, command: str, detail: str):
        super().__init__(f"'{command}' failed: {detail}")
        self.command = command
        self.detail = detail
