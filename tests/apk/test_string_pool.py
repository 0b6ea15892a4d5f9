"""
Unit Tests for StringPool decoding (UTF-16 and UTF-8 pools).
"""

import struct

import pytest

from dexopt_analyzer.apk.reader import ByteCursor, read_chunk_header
from dexopt_analyzer.apk.string_pool import StringPool
from dexopt_analyzer.core.errors import MalformedChunk

import apk_builder


def _parse(data: bytes, eager: bool = False) -> StringPool:
    cursor = ByteCursor(data)
    header = read_chunk_header(cursor)
    return StringPool.parse(cursor, header, eager=eager)


class TestStringPool:
    """Tests for StringPool.parse() and lookups."""

    @pytest.mark.parametrize("utf8", [False, True], ids=["utf16", "utf8"])
    def test_get_when_valid_pool_then_returns_strings(self, utf8):
        """Both encodings decode to the same str values."""
        pool = _parse(apk_builder.string_pool(["label", "Café", "日本語"], utf8=utf8))
        assert len(pool) == 3
        assert pool.is_utf8 is utf8
        assert [pool.get(i) for i in range(3)] == ["label", "Café", "日本語"]

    def test_get_when_index_out_of_range_then_raises(self):
        pool = _parse(apk_builder.string_pool(["only"]))
        with pytest.raises(MalformedChunk, match="out of range"):
            pool.get(1)

    def test_get_optional_when_no_index_sentinel_then_returns_none(self):
        pool = _parse(apk_builder.string_pool(["only"]))
        assert pool.get_optional(0xFFFFFFFF) is None
        assert pool.get_optional(0) == "only"

    def test_iter_when_pool_then_yields_indexed_entries(self):
        pool = _parse(apk_builder.string_pool(["a", "b"]), eager=True)
        assert [(e.index, e.text) for e in pool] == [(0, "a"), (1, "b")]

    def test_parse_when_empty_pool_then_has_no_strings(self):
        assert len(_parse(apk_builder.string_pool([]))) == 0

    def test_get_when_offset_points_past_data_then_raises(self):
        """A string offset beyond the pool's data is reported, not read."""
        data = bytearray(apk_builder.string_pool(["abc"]))
        struct.pack_into("<I", data, 28, 0x1000)  # first (only) offset
        pool = _parse(bytes(data))
        with pytest.raises(MalformedChunk):
            pool.get(0)

    def test_parse_when_offset_bad_then_checked_on_decode_only(self):
        """Lazy parsing accepts the pool; eager parsing decodes and rejects it."""
        data = bytearray(apk_builder.string_pool(["abc"]))
        struct.pack_into("<I", data, 28, 0x1000)
        assert len(_parse(bytes(data))) == 1
        with pytest.raises(MalformedChunk):
            _parse(bytes(data), eager=True)

    def test_parse_when_strings_start_outside_chunk_then_raises(self):
        data = bytearray(apk_builder.string_pool(["abc"]))
        struct.pack_into("<I", data, 20, 0x4000)  # stringsStart
        with pytest.raises(MalformedChunk, match="outside pool chunk"):
            _parse(bytes(data))

    def test_parse_when_not_a_pool_then_raises(self):
        with pytest.raises(MalformedChunk, match="Expected string pool"):
            _parse(apk_builder.chunk(0x0180, b"\x00" * 20, b""))
