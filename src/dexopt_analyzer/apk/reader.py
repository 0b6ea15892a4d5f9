"""
Module: apk.reader

Purpose:
    Bounded little-endian reader for the Android binary chunk formats
    (binary XML and resources.arsc). Decoders never index the raw buffer
    directly: every read goes through ByteCursor, which checks the requested
    length against the cursor's window before consuming it.

Key Classes:
    - ByteCursor: Windowed, bounds-checked reader over a byte buffer
    - ChunkHeader: Parsed ResChunk_header (type, header size, total size)

Key Functions:
    - read_chunk_header(): Read and validate a chunk header
    - iter_chunks(): Walk sibling chunks with a chunk budget

Dependencies:
    - struct (std)
    - core.errors: MalformedChunk family

Used By:
    - apk.string_pool, apk.axml, apk.arsc
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Iterator, Optional, Tuple, Type, Union

from dexopt_analyzer.core.errors import MalformedChunk

CHUNK_HEADER_SIZE = 8

_U16 = struct.Struct("<H")
_U32 = struct.Struct("<I")

BytesLike = Union[bytes, bytearray, memoryview]


class ByteCursor:
    """
    Bounds-checked reader over a window [start, end) of a buffer.

    The buffer is borrowed, not copied: sub-windows share the same
    memoryview. Any read that would cross `end` raises the configured
    error class (a MalformedChunk subclass) instead of reading past it.

    Example:
        >>> cur = ByteCursor(b"\\x01\\x00\\x02\\x00\\x00\\x00")
        >>> cur.u16(), cur.u32()
        (1, 2)
        >>> cur.remaining
        0
    """

    __slots__ = ("_view", "_start", "_end", "_pos", "error")

    def __init__(
        self,
        data: BytesLike,
        start: int = 0,
        end: Optional[int] = None,
        *,
        error: Type[MalformedChunk] = MalformedChunk,
    ):
        view = data if isinstance(data, memoryview) else memoryview(data)
        if view.ndim != 1 or view.itemsize != 1:
            view = view.cast("B")
        size = len(view)
        if end is None:
            end = size
        if not (0 <= start <= end <= size):
            raise error(f"Invalid window [{start}, {end}) over {size} bytes")
        self._view = view
        self._start = start
        self._end = end
        self._pos = start
        self.error = error

    # ─────────────────────────────────────────────────────────────────────────
    # Position
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def start(self) -> int:
        return self._start

    @property
    def end(self) -> int:
        return self._end

    @property
    def pos(self) -> int:
        return self._pos

    @property
    def remaining(self) -> int:
        return self._end - self._pos

    def seek(self, offset: int) -> None:
        """Move to an absolute buffer offset inside the window."""
        if not (self._start <= offset <= self._end):
            raise self.error(
                f"Seek to {offset} outside window [{self._start}, {self._end})"
            )
        self._pos = offset

    def skip(self, count: int) -> None:
        self._require(count)
        self._pos += count

    def _require(self, count: int) -> None:
        if count < 0:
            raise self.error(f"Negative length {count} at offset {self._pos}")
        if count > self._end - self._pos:
            raise self.error(
                f"Read of {count} bytes at offset {self._pos} exceeds "
                f"{self._end - self._pos} remaining"
            )

    # ─────────────────────────────────────────────────────────────────────────
    # Reads
    # ─────────────────────────────────────────────────────────────────────────

    def u8(self) -> int:
        self._require(1)
        value = self._view[self._pos]
        self._pos += 1
        return value

    def u16(self) -> int:
        self._require(2)
        (value,) = _U16.unpack_from(self._view, self._pos)
        self._pos += 2
        return value

    def u32(self) -> int:
        self._require(4)
        (value,) = _U32.unpack_from(self._view, self._pos)
        self._pos += 4
        return value

    def read(self, count: int) -> memoryview:
        """Borrow `count` bytes without copying."""
        self._require(count)
        chunk = self._view[self._pos:self._pos + count]
        self._pos += count
        return chunk

    def u16_at(self, offset: int) -> int:
        """Read a u16 at an absolute offset without moving."""
        if not (self._start <= offset and offset + 2 <= self._end):
            raise self.error(f"u16 at {offset} outside window [{self._start}, {self._end})")
        return _U16.unpack_from(self._view, offset)[0]

    def u32_at(self, offset: int) -> int:
        """Read a u32 at an absolute offset without moving."""
        if not (self._start <= offset and offset + 4 <= self._end):
            raise self.error(f"u32 at {offset} outside window [{self._start}, {self._end})")
        return _U32.unpack_from(self._view, offset)[0]

    def window(self, offset: int, length: int) -> ByteCursor:
        """
        Child cursor over [offset, offset + length), which must lie inside
        this cursor's window.
        """
        if length < 0 or offset < self._start or offset + length > self._end:
            raise self.error(
                f"Window [{offset}, {offset + length}) exceeds parent "
                f"[{self._start}, {self._end})"
            )
        return ByteCursor(self._view, offset, offset + length, error=self.error)


@dataclass(frozen=True)
class ChunkHeader:
    """
    ResChunk_header.

    Attributes:
        type: Chunk type code (e.g. 0x0001 for a string pool)
        header_size: Size of the chunk header including these 8 bytes
        size: Total chunk size including header and body
        offset: Absolute offset of the chunk in the buffer
    """
    type: int
    header_size: int
    size: int
    offset: int

    @property
    def end(self) -> int:
        return self.offset + self.size

    @property
    def body_offset(self) -> int:
        return self.offset + self.header_size


def read_chunk_header(cursor: ByteCursor) -> ChunkHeader:
    """
    Read a chunk header at the cursor and validate its sizes.

    The cursor is left just after the 8 fixed header bytes.

    Raises:
        MalformedChunk (cursor's error class): If header_size < 8,
            size < header_size, or size exceeds the remaining window
    """
    offset = cursor.pos
    available = cursor.remaining
    chunk_type = cursor.u16()
    header_size = cursor.u16()
    size = cursor.u32()
    if header_size < CHUNK_HEADER_SIZE:
        raise cursor.error(f"Chunk 0x{chunk_type:04x} at {offset}: header size {header_size} < 8")
    if size < header_size:
        raise cursor.error(
            f"Chunk 0x{chunk_type:04x} at {offset}: size {size} < header size {header_size}"
        )
    if size > available:
        raise cursor.error(
            f"Chunk 0x{chunk_type:04x} at {offset}: size {size} exceeds {available} remaining"
        )
    return ChunkHeader(chunk_type, header_size, size, offset)


def iter_chunks(cursor: ByteCursor, max_chunks: int) -> Iterator[Tuple[ChunkHeader, ByteCursor]]:
    """
    Walk sibling chunks from the cursor position to the end of its window.

    Yields each header with a child cursor covering exactly that chunk
    (positioned after the 8 fixed header bytes). Trailing bytes too short to
    hold a chunk header are ignored.

    Raises:
        MalformedChunk: On an invalid header or when more than `max_chunks`
            chunks are visited
    """
    visited = 0
    while cursor.remaining >= CHUNK_HEADER_SIZE:
        visited += 1
        if visited > max_chunks:
            raise cursor.error(f"Chunk budget of {max_chunks} exceeded at offset {cursor.pos}")
        header = read_chunk_header(cursor)
        child = cursor.window(header.offset, header.size)
        child.seek(header.offset + CHUNK_HEADER_SIZE)
        yield header, child
        cursor.seek(header.end)
