"""
Module: apk.string_pool

Purpose:
    Decode ResStringPool chunks shared by binary XML and resources.arsc.
    Supports both UTF-16 and UTF-8 pools; text is normalized to `str`.

Key Classes:
    - StringPoolEntry: (index, text) pair
    - StringPool: Dense, zero-based pool with O(1) lookup by index

Dependencies:
    - apk.reader: ByteCursor, ChunkHeader

Used By:
    - apk.axml: Element/attribute names and literal values
    - apk.arsc: Global value pool, type and key pools
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional

from .reader import ByteCursor, ChunkHeader

logger = logging.getLogger(__name__)

RES_STRING_POOL_TYPE = 0x0001
STRING_POOL_HEADER_SIZE = 28

SORTED_FLAG = 1 << 0
UTF8_FLAG = 1 << 8

NO_INDEX = 0xFFFFFFFF


@dataclass(frozen=True)
class StringPoolEntry:
    index: int
    text: str


class StringPool:
    """
    Decoded string pool.

    Parsing checks the header and that the string data region lies inside
    the chunk. Individual string offsets are bounds-checked when a string is
    decoded: up front with `eager=True`, otherwise on first access (then
    cached).

    Attributes:
        is_utf8: Whether the pool stores UTF-8 (else UTF-16LE)

    Invariants:
        - indices are dense and zero-based
        - get(i) for i >= len(pool) raises the cursor's MalformedChunk subclass
    """

    def __init__(self, cursor: ByteCursor, offsets: List[int], data_start: int, data_end: int, is_utf8: bool):
        self._cursor = cursor
        self._offsets = offsets
        self._data_start = data_start
        self._data_end = data_end
        self._cache: Dict[int, str] = {}
        self.is_utf8 = is_utf8

    @classmethod
    def parse(cls, chunk: ByteCursor, header: ChunkHeader, *, eager: bool = False) -> StringPool:
        """
        Parse a string pool chunk.

        Args:
            chunk: Cursor whose window is exactly the chunk
            header: The chunk's already-read header
            eager: Decode every string now instead of on demand

        Raises:
            MalformedChunk: If the header, offsets table or string data region
                lies outside the chunk, or (with eager=True) any string does
        """
        error = chunk.error
        if header.type != RES_STRING_POOL_TYPE:
            raise error(f"Expected string pool at {header.offset}, got chunk 0x{header.type:04x}")
        if header.header_size < STRING_POOL_HEADER_SIZE:
            raise error(f"String pool header too small: {header.header_size}")

        chunk.seek(header.offset + 8)
        string_count = chunk.u32()
        style_count = chunk.u32()
        flags = chunk.u32()
        strings_start = chunk.u32()
        styles_start = chunk.u32()

        table = chunk.window(header.body_offset, (string_count + style_count) * 4)
        offsets = [table.u32() for _ in range(string_count)]

        data_start = header.offset + strings_start
        data_end = header.end
        if style_count and styles_start > strings_start:
            data_end = header.offset + styles_start
        if string_count and not (header.body_offset <= data_start < data_end <= header.end):
            raise error(
                f"String data [{strings_start}, {data_end - header.offset}) outside pool chunk"
            )

        pool = cls(chunk, offsets, data_start, data_end, bool(flags & UTF8_FLAG))
        if eager:
            for index in range(string_count):
                pool.get(index)
        logger.debug(
            f"String pool at {header.offset}: {string_count} strings, "
            f"{'utf-8' if pool.is_utf8 else 'utf-16'}"
        )
        return pool

    def __len__(self) -> int:
        return len(self._offsets)

    def get(self, index: int) -> str:
        """
        Text at `index`.

        Raises:
            MalformedChunk: If index is out of range or the string body is
                truncated
        """
        cached = self._cache.get(index)
        if cached is not None:
            return cached
        if not (0 <= index < len(self._offsets)):
            raise self._cursor.error(
                f"String index {index} out of range for pool of {len(self._offsets)}"
            )
        text = self._decode(self._data_start + self._offsets[index])
        self._cache[index] = text
        return text

    def get_optional(self, index: int) -> Optional[str]:
        """Like get(), but the "no string" sentinel 0xFFFFFFFF maps to None."""
        if index == NO_INDEX:
            return None
        return self.get(index)

    def entry(self, index: int) -> StringPoolEntry:
        return StringPoolEntry(index, self.get(index))

    def __iter__(self) -> Iterator[StringPoolEntry]:
        for index in range(len(self._offsets)):
            yield self.entry(index)

    def _decode(self, offset: int) -> str:
        data = self._cursor.window(self._data_start, self._data_end - self._data_start)
        data.seek(offset)
        if self.is_utf8:
            _utf16_length = _read_length8(data)
            byte_length = _read_length8(data)
            raw = data.read(byte_length)
            return bytes(raw).decode("utf-8", errors="replace")
        length = data.u16()
        if length & 0x8000:
            length = ((length & 0x7FFF) << 16) | data.u16()
        raw = data.read(length * 2)
        return bytes(raw).decode("utf-16-le", errors="replace")


def _read_length8(cursor: ByteCursor) -> int:
    """Read a UTF-8 pool length prefix (one byte, or two if the high bit is set)."""
    length = cursor.u8()
    if length & 0x80:
        length = ((length & 0x7F) << 8) | cursor.u8()
    return length
