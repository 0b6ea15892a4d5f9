"""
Module: apk.arsc

Purpose:
    Decode resources.arsc into an index from (package id, type id, entry id)
    to the (configuration, value) pairs declared for it, and resolve a
    resource id to a string for a preferred configuration.

Key Classes:
    - ResourceTableDecoder: Parses the table and answers lookups
    - TableEntry: One entry in one configuration
    - ResolvedString: Resolution result with the tier it matched at

Dependencies:
    - apk.reader: Bounded chunk walking
    - apk.string_pool: Global value pool, key pools
    - apk.configuration: ResTable_config parsing and the decision table
    - core.errors: MalformedResourceTable, ResourceUnresolved

Used By:
    - apk.labels: Label reference resolution

Format notes:
    RES_TABLE_TYPE
      ├── string pool (values)
      └── RES_TABLE_PACKAGE_TYPE (one or more)
            ├── string pool (type names), string pool (key names)
            ├── RES_TABLE_TYPE_SPEC_TYPE   (skipped)
            └── RES_TABLE_TYPE_TYPE        one per (type, configuration)
    Type chunks hold an entry offset array (32-bit, 16-bit or sparse) and
    entries that are either simple (one Res_value), compact, or complex
    (maps, used for styles and plurals). Complex entries are indexed but
    never resolve to a string.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional, Tuple

from dexopt_analyzer.core.errors import MalformedResourceTable, ResourceUnresolved

from .configuration import ConfigMatch, ResourceConfiguration, rank_candidates, read_config
from .reader import ByteCursor, ChunkHeader, iter_chunks, read_chunk_header
from .res_value import RES_VALUE_SIZE, ResValue, read_res_value
from .string_pool import RES_STRING_POOL_TYPE, StringPool

logger = logging.getLogger(__name__)

RES_TABLE_TYPE = 0x0002
RES_TABLE_PACKAGE_TYPE = 0x0200
RES_TABLE_TYPE_TYPE = 0x0201
RES_TABLE_TYPE_SPEC_TYPE = 0x0202
RES_TABLE_LIBRARY_TYPE = 0x0203

TABLE_HEADER_SIZE = 12
PACKAGE_HEADER_MIN_SIZE = 284
TYPE_HEADER_FIXED_SIZE = 20

TYPE_FLAG_SPARSE = 0x01
TYPE_FLAG_OFFSET16 = 0x02

ENTRY_FLAG_COMPLEX = 0x0001
ENTRY_FLAG_COMPACT = 0x0008

NO_ENTRY = 0xFFFFFFFF
NO_ENTRY16 = 0xFFFF

ENTRY_HEADER_SIZE = 8

DEFAULT_MAX_CHUNKS = 200_000
DEFAULT_MAX_REFERENCE_DEPTH = 8


@dataclass(frozen=True)
class TableEntry:
    """
    One resource entry in one configuration.

    Attributes:
        key_index: Index into the package's key string pool
        value: Simple value, None for complex (map) entries
    """
    key_index: int
    value: Optional[ResValue]

    @property
    def is_complex(self) -> bool:
        return self.value is None


@dataclass(frozen=True)
class ResolvedString:
    """
    Result of resolving a resource id to text.

    Attributes:
        text: Resolved string
        tier: Decision-table tier of the label's own entry (0 = exact locale)
        rule: Decision-table rule name
        config: Configuration of the entry that matched
    """
    text: str
    tier: int
    rule: str
    config: ResourceConfiguration


@dataclass(frozen=True)
class _TypeChunk:
    """Location of one type chunk, decoded on demand."""
    header: ChunkHeader
    config: ResourceConfiguration
    flags: int
    entry_count: int
    entries_start: int


@dataclass
class _Package:
    package_id: int
    name: str
    key_pool: Optional[StringPool]
    types: Dict[int, List[_TypeChunk]]


class ResourceTableDecoder:
    """
    Decoder and lookup index for a resources.arsc table.

    Parsing records where every type chunk lives and what configuration it
    declares; entry bodies are decoded on first lookup and cached per
    (package, type, entry).

    Example:
        >>> table = ResourceTableDecoder(arsc_bytes)
        >>> table.resolve(0x7F010000, ResourceConfiguration.from_locale("fr-FR")).text
        'Exemple'
    """

    def __init__(
        self,
        data: bytes,
        *,
        max_chunks: int = DEFAULT_MAX_CHUNKS,
        max_reference_depth: int = DEFAULT_MAX_REFERENCE_DEPTH,
    ):
        self._max_chunks = max_chunks
        self._max_reference_depth = max_reference_depth
        self._cursor = ByteCursor(data, error=MalformedResourceTable)
        self._strings: Optional[StringPool] = None
        self._packages: Dict[int, _Package] = {}
        self._entry_cache: Dict[Tuple[int, int, int], Tuple[Tuple[ResourceConfiguration, TableEntry], ...]] = {}
        self._parse()

    # ─────────────────────────────────────────────────────────────────────────
    # Public API
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def package_ids(self) -> Tuple[int, ...]:
        return tuple(self._packages)

    @property
    def string_count(self) -> int:
        return len(self._strings) if self._strings is not None else 0

    def package_name(self, package_id: int) -> Optional[str]:
        package = self._packages.get(package_id)
        return package.name if package else None

    def configurations(self, package_id: int, type_id: int) -> Tuple[ResourceConfiguration, ...]:
        """Configurations declared for a type, in table order."""
        package = self._packages.get(package_id)
        if package is None:
            return ()
        return tuple(chunk.config for chunk in package.types.get(type_id, ()))

    def entries(self, resource_id: int) -> Tuple[Tuple[ResourceConfiguration, TableEntry], ...]:
        """
        All (configuration, entry) pairs declared for a resource id.

        Raises:
            MalformedResourceTable: If an entry body is out of bounds
        """
        package_id, type_id, entry_id = self._split_id(resource_id)
        key = (package_id, type_id, entry_id)
        cached = self._entry_cache.get(key)
        if cached is not None:
            return cached

        package = self._packages.get(package_id)
        found: List[Tuple[ResourceConfiguration, TableEntry]] = []
        if package is not None:
            for chunk in package.types.get(type_id, ()):
                entry = self._read_entry(chunk, entry_id)
                if entry is not None:
                    found.append((chunk.config, entry))
        result = tuple(found)
        self._entry_cache[key] = result
        return result

    def key_name(self, resource_id: int) -> Optional[str]:
        """Entry key (e.g. "app_name") for a resource id, if declared."""
        package_id, _, _ = self._split_id(resource_id)
        package = self._packages.get(package_id)
        for _, entry in self.entries(resource_id):
            if package is not None and package.key_pool is not None:
                return package.key_pool.get(entry.key_index)
        return None

    def resolve(self, resource_id: int, preferred: ResourceConfiguration) -> ResolvedString:
        """
        Resolve a resource id to a string for the preferred configuration.

        Only the best candidate of the decision table is used. If it cannot
        yield a string (complex entry, non-string value, broken reference)
        the id is unresolved; lower-ranked configurations are not consulted.

        Raises:
            ResourceUnresolved: If the best candidate does not resolve to a
                string
            MalformedResourceTable: If the table data is corrupt
        """
        return self._resolve(resource_id, preferred, depth=0, seen=frozenset())

    # ─────────────────────────────────────────────────────────────────────────
    # Resolution
    # ─────────────────────────────────────────────────────────────────────────

    def _resolve(
        self,
        resource_id: int,
        preferred: ResourceConfiguration,
        depth: int,
        seen: FrozenSet[int],
    ) -> ResolvedString:
        if depth > self._max_reference_depth:
            raise ResourceUnresolved(resource_id, "reference chain too deep")
        if resource_id in seen:
            raise ResourceUnresolved(resource_id, "reference cycle")

        candidates = self.entries(resource_id)
        if not candidates:
            raise ResourceUnresolved(resource_id, "no entry in table")

        ranked: List[ConfigMatch[TableEntry]] = rank_candidates(candidates, preferred)
        if not ranked:
            raise ResourceUnresolved(
                resource_id, f"no configuration matches {preferred.locale_tag}"
            )

        match = ranked[0]
        entry = match.value
        if entry.is_complex:
            raise ResourceUnresolved(resource_id, "complex value requires style resolution")
        value = entry.value
        if value.is_string:
            if self._strings is None:
                raise MalformedResourceTable("Table has no global string pool")
            return ResolvedString(self._strings.get(value.data), match.tier, match.rule.name, match.config)
        if value.is_reference and value.data:
            try:
                inner = self._resolve(value.data, preferred, depth + 1, seen | {resource_id})
            except ResourceUnresolved as e:
                raise ResourceUnresolved(resource_id, f"reference 0x{value.data:08x}: {e.reason}") from e
            return ResolvedString(inner.text, match.tier, match.rule.name, match.config)
        raise ResourceUnresolved(resource_id, f"value type 0x{value.data_type:02x} is not a string")

    def _split_id(self, resource_id: int) -> Tuple[int, int, int]:
        package_id = (resource_id >> 24) & 0xFF
        type_id = (resource_id >> 16) & 0xFF
        entry_id = resource_id & 0xFFFF
        if package_id == 0 and len(self._packages) == 1:
            # Dynamic reference from a shared library: points at this table's package
            package_id = next(iter(self._packages))
        return package_id, type_id, entry_id

    # ─────────────────────────────────────────────────────────────────────────
    # Parsing
    # ─────────────────────────────────────────────────────────────────────────

    def _parse(self) -> None:
        header = read_chunk_header(self._cursor)
        if header.type != RES_TABLE_TYPE:
            raise MalformedResourceTable(f"Not a resource table (chunk type 0x{header.type:04x})")
        if header.header_size < TABLE_HEADER_SIZE:
            raise MalformedResourceTable(f"Table header too small: {header.header_size}")
        package_count = self._cursor.u32()

        body = self._cursor.window(header.offset, header.size)
        body.seek(header.body_offset)
        for chunk_header, chunk in iter_chunks(body, self._max_chunks):
            if chunk_header.type == RES_STRING_POOL_TYPE:
                if self._strings is None:
                    self._strings = StringPool.parse(chunk, chunk_header)
            elif chunk_header.type == RES_TABLE_PACKAGE_TYPE:
                package = self._parse_package(chunk, chunk_header)
                if package.package_id in self._packages:
                    # Same id twice (e.g. overlays merged by tooling): merge type chunks
                    existing = self._packages[package.package_id]
                    for type_id, chunks in package.types.items():
                        existing.types.setdefault(type_id, []).extend(chunks)
                else:
                    self._packages[package.package_id] = package
            else:
                logger.debug(f"Skipping table chunk 0x{chunk_header.type:04x}")

        if package_count != len(self._packages):
            logger.debug(
                f"Table declares {package_count} packages, found {len(self._packages)}"
            )

    def _parse_package(self, chunk: ByteCursor, header: ChunkHeader) -> _Package:
        if header.header_size < PACKAGE_HEADER_MIN_SIZE:
            raise MalformedResourceTable(f"Package header too small: {header.header_size}")
        package_id = chunk.u32()
        name = bytes(chunk.read(256)).decode("utf-16-le", errors="replace").split("\x00", 1)[0]
        _type_strings = chunk.u32()
        _last_public_type = chunk.u32()
        key_strings = chunk.u32()

        key_pool: Optional[StringPool] = None
        types: Dict[int, List[_TypeChunk]] = {}
        body = chunk.window(header.offset, header.size)
        body.seek(header.body_offset)
        for sub_header, sub in iter_chunks(body, self._max_chunks):
            if sub_header.type == RES_STRING_POOL_TYPE:
                if key_strings and sub_header.offset == header.offset + key_strings:
                    key_pool = StringPool.parse(sub, sub_header)
            elif sub_header.type == RES_TABLE_TYPE_TYPE:
                type_id, type_chunk = _read_type_header(sub, sub_header)
                types.setdefault(type_id, []).append(type_chunk)
            elif sub_header.type in (RES_TABLE_TYPE_SPEC_TYPE, RES_TABLE_LIBRARY_TYPE):
                continue
            else:
                logger.debug(f"Skipping package chunk 0x{sub_header.type:04x}")

        logger.debug(
            f"Package 0x{package_id:02x} {name!r}: {sum(len(v) for v in types.values())} type chunks"
        )
        return _Package(package_id, name, key_pool, types)

    def _read_entry(self, chunk: _TypeChunk, entry_id: int) -> Optional[TableEntry]:
        """Decode entry `entry_id` of a type chunk, None if not declared there."""
        cursor = self._cursor.window(chunk.header.offset, chunk.header.size)
        index_cursor = cursor.window(
            chunk.header.body_offset,
            chunk.header.end - chunk.header.body_offset,
        )

        offset: Optional[int] = None
        if chunk.flags & TYPE_FLAG_SPARSE:
            for _ in range(chunk.entry_count):
                idx = index_cursor.u16()
                off16 = index_cursor.u16()
                if idx == entry_id:
                    offset = off16 * 4
                    break
                if idx > entry_id:
                    break
        elif entry_id >= chunk.entry_count:
            return None
        elif chunk.flags & TYPE_FLAG_OFFSET16:
            off16 = index_cursor.u16_at(chunk.header.body_offset + entry_id * 2)
            if off16 != NO_ENTRY16:
                offset = off16 * 4
        else:
            off32 = index_cursor.u32_at(chunk.header.body_offset + entry_id * 4)
            if off32 != NO_ENTRY:
                offset = off32

        if offset is None:
            return None

        entry_at = chunk.header.offset + chunk.entries_start + offset
        cursor.seek(entry_at)
        size_or_key = cursor.u16()
        flags = cursor.u16()
        if flags & ENTRY_FLAG_COMPACT:
            data = cursor.u32()
            return TableEntry(key_index=size_or_key, value=ResValue(flags >> 8, data))
        key_index = cursor.u32()
        if flags & ENTRY_FLAG_COMPLEX:
            return TableEntry(key_index=key_index, value=None)
        if size_or_key < ENTRY_HEADER_SIZE:
            raise MalformedResourceTable(f"Entry size {size_or_key} too small at {entry_at}")
        cursor.seek(entry_at + size_or_key)
        if cursor.remaining < RES_VALUE_SIZE:
            raise MalformedResourceTable(f"Entry value truncated at {entry_at}")
        return TableEntry(key_index=key_index, value=read_res_value(cursor))


def _read_type_header(chunk: ByteCursor, header: ChunkHeader) -> Tuple[int, _TypeChunk]:
    """Read the fixed part of a RES_TABLE_TYPE_TYPE chunk and its config."""
    if header.header_size < TYPE_HEADER_FIXED_SIZE:
        raise MalformedResourceTable(f"Type chunk header too small at {header.offset}")
    chunk.seek(header.offset + 8)
    type_id = chunk.u8()
    flags = chunk.u8()
    chunk.u16()  # reserved
    entry_count = chunk.u32()
    entries_start = chunk.u32()
    if type_id == 0:
        raise MalformedResourceTable(f"Type chunk at {header.offset} has type id 0")
    config_cursor = chunk.window(header.offset + TYPE_HEADER_FIXED_SIZE, header.header_size - TYPE_HEADER_FIXED_SIZE)
    config = read_config(config_cursor)
    if entries_start > header.size:
        raise MalformedResourceTable(
            f"Type chunk at {header.offset}: entries start {entries_start} beyond size {header.size}"
        )
    index_width = 4 if flags & TYPE_FLAG_SPARSE else (2 if flags & TYPE_FLAG_OFFSET16 else 4)
    if header.header_size + entry_count * index_width > header.size:
        raise MalformedResourceTable(
            f"Type chunk at {header.offset}: {entry_count} offsets exceed chunk"
        )
    return type_id, _TypeChunk(header, config, flags, entry_count, entries_start)
