"""
Module: analysis.status_parser

Purpose:
    Parse the text of `dumpsys package dexopt` into CompilationStatusRecords.
    The dump is semi-structured: package blocks start at a `[package]`
    header line and contain `path:` lines followed by one line per
    instruction set carrying bracketed fields.

Key Classes:
    - StatusParser: Tolerant line parser
    - StatusDump: Parsed records per package plus recovered warnings

Key Functions:
    - parse_status_dump(): Parse text with a default parser

Dependencies:
    - re (std)
    - core.models: CompilationStatusRecord, classify_status
    - core.errors: StatusDumpLineMalformed, BoundaryInputUnavailable

Used By:
    - analysis.pipeline: First stage of analyze()

Example dump (Android 14):
    [com.example.app]
      path: /data/app/~~x==/com.example.app-y==/base.apk
        arm64: [status=speed-profile] [reason=bg-dexopt] [primary-abi]
          [location is /data/app/~~x==/com.example.app-y==/oat/arm64/base.odex]
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Optional, Set, Tuple

from dexopt_analyzer.core.errors import BoundaryInputUnavailable, StatusDumpLineMalformed
from dexopt_analyzer.core.models import STATUS_UP_TO_DATE, CompilationStatusRecord, classify_status

logger = logging.getLogger(__name__)

INSTRUCTION_SETS = ("arm64", "arm", "x86_64", "x86", "riscv64")

_ISA_LINE_RE = re.compile(r"^(?P<isa>arm64|arm|x86_64|x86|riscv64):\s*(?P<rest>.*)$")
_FIELD_RE = re.compile(r"\[([^\[\]]*)\]")
_LOCATION_RE = re.compile(r"^\[location is (?P<location>.+)\]$")

# Keys that carry the compiler filter, newest format first
_FILTER_KEYS = ("filter", "compilation_filter", "compiler_filter")


@dataclass
class StatusDump:
    """
    Result of parsing one status dump.

    Attributes:
        records: Package name -> status records, in dump order
        warnings: Malformed lines that were skipped
        degraded_packages: Packages with at least one malformed line
    """
    records: Dict[str, Tuple[CompilationStatusRecord, ...]] = field(default_factory=dict)
    warnings: List[StatusDumpLineMalformed] = field(default_factory=list)
    degraded_packages: Set[str] = field(default_factory=set)

    def get(self, package: str) -> Optional[Tuple[CompilationStatusRecord, ...]]:
        return self.records.get(package)

    @property
    def packages(self) -> List[str]:
        return list(self.records)

    def __contains__(self, package: object) -> bool:
        return package in self.records

    def __len__(self) -> int:
        return len(self.records)


class _Block:
    """Mutable state of the package block being parsed."""

    def __init__(self, package: str):
        self.package = package
        self.dex_path: Optional[str] = None
        self.records: List[CompilationStatusRecord] = []
        self.malformed = 0


class StatusParser:
    """
    Tolerant parser for `dumpsys package dexopt` output.

    Unknown lines and unknown bracket fields are ignored. An instruction-set
    line that cannot be parsed is skipped and recorded as a warning; it never
    affects another package. A block without any parsable instruction-set
    line still yields one "unknown" record.

    Example:
        >>> dump = StatusParser().parse("[com.a]\\n  arm64: [status=verify]\\n")
        >>> dump.get("com.a")[0].compiler_filter
        'verify'
    """

    def parse(self, text: Optional[str]) -> StatusDump:
        """
        Parse dump text.

        Raises:
            BoundaryInputUnavailable: If text is None
        """
        if text is None:
            raise BoundaryInputUnavailable("status dump", "no dump text")
        return self.parse_lines(text.splitlines())

    def parse_lines(self, lines: Iterable[str]) -> StatusDump:
        """Parse an iterable of dump lines (e.g. an open file)."""
        dump = StatusDump()
        block: Optional[_Block] = None

        for line_number, line in enumerate(lines, start=1):
            trimmed = line.strip()
            if not trimmed:
                continue

            if _is_header(trimmed):
                self._close_block(block, dump)
                block = _Block(trimmed[1:-1])
                continue
            if block is None:
                continue

            if trimmed.startswith("path:"):
                block.dex_path = trimmed[len("path:"):].strip() or None
                continue

            location = _LOCATION_RE.match(trimmed)
            if location:
                if block.records:
                    block.records[-1] = replace(
                        block.records[-1], location=location.group("location").strip()
                    )
                continue

            isa_line = _ISA_LINE_RE.match(trimmed)
            if isa_line is None:
                continue
            try:
                block.records.append(self._parse_isa_line(block, isa_line, trimmed))
            except ValueError as e:
                warning = StatusDumpLineMalformed(line_number, trimmed, str(e), block.package)
                logger.warning(f"Skipping malformed status line: {warning}")
                dump.warnings.append(warning)
                block.malformed += 1

        self._close_block(block, dump)
        logger.debug(f"Parsed status dump: {len(dump)} packages, {len(dump.warnings)} warnings")
        return dump

    def _parse_isa_line(self, block: _Block, match: re.Match, line: str) -> CompilationStatusRecord:
        """Build a record from an instruction-set line; ValueError if malformed."""
        rest = match.group("rest")
        if rest.count("[") != rest.count("]"):
            raise ValueError("unbalanced brackets")

        values: Dict[str, str] = {}
        flags: Set[str] = set()
        location: Optional[str] = None
        for body in _FIELD_RE.findall(rest):
            body = body.strip()
            if body.startswith("location is "):
                location = body[len("location is "):].strip()
            elif "=" in body:
                key, _, value = body.partition("=")
                values[key.strip().lower()] = value.strip()
            elif body:
                flags.add(body.lower())

        raw_status = values.get("status")
        explicit_filter = next((values[k] for k in _FILTER_KEYS if values.get(k)), None)
        if not raw_status and not explicit_filter:
            raise ValueError("no status or filter value")

        # Older dumps print the artifact path before the bracketed fields
        artifact = rest.split("[", 1)[0].strip() or None

        compiler_filter, status = classify_status(raw_status, explicit_filter)
        return CompilationStatusRecord(
            package=block.package,
            compiler_filter=compiler_filter,
            status=status,
            instruction_set=match.group("isa"),
            reason=values.get("reason") or None,
            dex_path=block.dex_path,
            location=location or artifact,
            primary_abi="primary-abi" in flags,
            has_artifacts=status == STATUS_UP_TO_DATE,
            raw_line=line,
        )

    @staticmethod
    def _close_block(block: Optional[_Block], dump: StatusDump) -> None:
        if block is None:
            return
        records = block.records
        if not records:
            records = [CompilationStatusRecord.placeholder(block.package, degraded=block.malformed > 0)]
        if block.malformed:
            dump.degraded_packages.add(block.package)
        # A package can appear in more than one block (e.g. secondary dex section)
        dump.records[block.package] = dump.records.get(block.package, ()) + tuple(records)


def _is_header(trimmed: str) -> bool:
    return (
        len(trimmed) > 2
        and trimmed.startswith("[")
        and trimmed.endswith("]")
        and " " not in trimmed
        and "=" not in trimmed
    )


def parse_status_dump(text: Optional[str]) -> StatusDump:
    """Parse dump text with a default StatusParser."""
    return StatusParser().parse(text)
