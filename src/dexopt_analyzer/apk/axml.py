"""
Module: apk.axml

Purpose:
    Decode the binary XML manifest (AndroidManifest.xml inside a container)
    far enough to find the application label. Not a general binary XML
    parser: only the root <manifest> element and its direct <application>
    child are materialized.

Key Classes:
    - BinaryXmlDecoder: Walks the manifest chunks
    - LiteralLabel / LabelReference: The two kinds of label value
    - ManifestInfo: Package name, split name and label from the manifest

Dependencies:
    - apk.reader: Bounded chunk walking
    - apk.string_pool: Names and literal values
    - apk.res_value: Typed attribute values
    - core.errors: MalformedBinaryXml, LabelAttributeAbsent

Used By:
    - apk.labels: Label resolution entry point

Format notes:
    File: RES_XML_TYPE chunk wrapping a string pool, an optional resource
    map (attribute name index -> attribute resource id) and a flat sequence
    of namespace / element / CDATA chunks. Tree structure comes from
    START_ELEMENT / END_ELEMENT nesting.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

from dexopt_analyzer.core.errors import LabelAttributeAbsent, MalformedBinaryXml

from .reader import ByteCursor, ChunkHeader, iter_chunks, read_chunk_header
from .res_value import ResValue, read_res_value
from .string_pool import NO_INDEX, RES_STRING_POOL_TYPE, StringPool

logger = logging.getLogger(__name__)

RES_XML_TYPE = 0x0003
RES_XML_START_NAMESPACE_TYPE = 0x0100
RES_XML_END_NAMESPACE_TYPE = 0x0101
RES_XML_START_ELEMENT_TYPE = 0x0102
RES_XML_END_ELEMENT_TYPE = 0x0103
RES_XML_CDATA_TYPE = 0x0104
RES_XML_RESOURCE_MAP_TYPE = 0x0180

ATTR_EXT_SIZE = 20
MIN_ATTRIBUTE_SIZE = 20

ANDROID_LABEL_ATTR = 0x01010001
ANDROID_NAMESPACE = "http://schemas.android.com/apk/res/android"

DEFAULT_MAX_CHUNKS = 200_000


@dataclass(frozen=True)
class LiteralLabel:
    """Label stored inline in the manifest."""
    text: str


@dataclass(frozen=True)
class LabelReference:
    """Label stored as a resource id to look up in resources.arsc."""
    resource_id: int

    def __repr__(self) -> str:
        return f"LabelReference(0x{self.resource_id:08x})"


ManifestLabel = Union[LiteralLabel, LabelReference]


@dataclass(frozen=True)
class XmlAttribute:
    namespace: Optional[str]
    name: str
    resource_id: Optional[int]
    raw_value: Optional[str]
    value: ResValue


@dataclass(frozen=True)
class XmlElement:
    namespace: Optional[str]
    name: str
    attributes: Tuple[XmlAttribute, ...]

    def find(self, resource_id: int, name: str) -> Optional[XmlAttribute]:
        """
        Find an attribute by resource id.

        The plain name is only consulted for attributes that carry no
        resource id (names are optional and often stripped by shrinkers).
        """
        for attr in self.attributes:
            if attr.resource_id == resource_id:
                return attr
        for attr in self.attributes:
            if attr.resource_id is None and attr.name == name:
                return attr
        return None

    def find_plain(self, name: str) -> Optional[XmlAttribute]:
        """Find a non-namespaced attribute (e.g. manifest `package`)."""
        for attr in self.attributes:
            if attr.name == name and not attr.namespace:
                return attr
        return None


@dataclass(frozen=True)
class ManifestInfo:
    """
    What the decoder recovered from a manifest.

    Attributes:
        package: `package` attribute of <manifest>, if present
        split_name: `split` attribute of <manifest> (split containers only)
        label: Label of the top-level <application>, None if absent
        label_absent_reason: Why label is None
    """
    package: Optional[str] = None
    split_name: Optional[str] = None
    label: Optional[ManifestLabel] = None
    label_absent_reason: Optional[str] = None


class BinaryXmlDecoder:
    """
    Decoder for a binary XML manifest.

    The string pool is decoded completely before any element is read, and
    every chunk read is bounded by the enclosing chunk through ByteCursor.

    Example:
        >>> decoder = BinaryXmlDecoder(manifest_bytes)
        >>> decoder.find_label()
        LiteralLabel(text='Example App')
    """

    def __init__(self, data: bytes, *, max_chunks: int = DEFAULT_MAX_CHUNKS):
        self._data = data
        self._max_chunks = max_chunks
        self._info: Optional[ManifestInfo] = None

    def decode(self) -> ManifestInfo:
        """
        Decode the manifest (once; the result is cached).

        Raises:
            MalformedBinaryXml: On any structural problem
        """
        if self._info is None:
            self._info = self._decode()
        return self._info

    def find_label(self) -> ManifestLabel:
        """
        Label attribute of the top-level application element.

        Raises:
            MalformedBinaryXml: If the manifest cannot be decoded
            LabelAttributeAbsent: If there is no usable label attribute
        """
        info = self.decode()
        if info.label is None:
            raise LabelAttributeAbsent(info.label_absent_reason or "no application label")
        return info.label

    # ─────────────────────────────────────────────────────────────────────────
    # Chunk walking
    # ─────────────────────────────────────────────────────────────────────────

    def _decode(self) -> ManifestInfo:
        cursor = ByteCursor(self._data, error=MalformedBinaryXml)
        header = read_chunk_header(cursor)
        if header.type != RES_XML_TYPE:
            raise MalformedBinaryXml(f"Not a binary XML document (chunk type 0x{header.type:04x})")
        body = cursor.window(header.offset, header.size)
        body.seek(header.body_offset)

        pool: Optional[StringPool] = None
        resource_map: List[int] = []
        depth = 0
        root: Optional[XmlElement] = None

        for chunk_header, chunk in iter_chunks(body, self._max_chunks):
            kind = chunk_header.type
            if kind == RES_STRING_POOL_TYPE:
                if pool is None:
                    pool = StringPool.parse(chunk, chunk_header, eager=True)
                continue
            if kind == RES_XML_RESOURCE_MAP_TYPE:
                resource_map = _read_resource_map(chunk, chunk_header)
                continue
            if kind == RES_XML_START_ELEMENT_TYPE:
                if pool is None:
                    raise MalformedBinaryXml("Element chunk before string pool")
                depth += 1
                if depth > 2:
                    continue
                element = _read_element(chunk, chunk_header, pool, resource_map)
                if depth == 1:
                    root = element
                    continue
                if root is not None and root.name == "manifest" and element.name == "application":
                    return _manifest_info(root, element, pool)
                continue
            if kind == RES_XML_END_ELEMENT_TYPE:
                depth -= 1
                if depth < 0:
                    raise MalformedBinaryXml(f"Unbalanced end element at {chunk_header.offset}")
                continue
            if kind in (RES_XML_START_NAMESPACE_TYPE, RES_XML_END_NAMESPACE_TYPE, RES_XML_CDATA_TYPE):
                continue
            logger.debug(f"Skipping unknown XML chunk 0x{kind:04x} ({chunk_header.size} bytes)")

        if pool is None:
            raise MalformedBinaryXml("Manifest has no string pool")
        if root is None:
            raise MalformedBinaryXml("Manifest has no root element")
        return _manifest_info(root, None, pool)


def _read_resource_map(chunk: ByteCursor, header: ChunkHeader) -> List[int]:
    count = (header.size - header.header_size) // 4
    chunk.seek(header.body_offset)
    return [chunk.u32() for _ in range(count)]


def _read_element(
    chunk: ByteCursor,
    header: ChunkHeader,
    pool: StringPool,
    resource_map: List[int],
) -> XmlElement:
    """Read a START_ELEMENT chunk and its attributes."""
    ext = chunk.window(header.body_offset, header.end - header.body_offset)
    ns_index = ext.u32()
    name_index = ext.u32()
    attribute_start = ext.u16()
    attribute_size = ext.u16()
    attribute_count = ext.u16()
    if attribute_count and attribute_size < MIN_ATTRIBUTE_SIZE:
        raise MalformedBinaryXml(f"Attribute size {attribute_size} too small at {header.offset}")

    attrs_cursor = ext.window(
        header.body_offset + attribute_start,
        attribute_count * attribute_size,
    )
    attributes = []
    for i in range(attribute_count):
        attrs_cursor.seek(attrs_cursor.start + i * attribute_size)
        attr_ns = attrs_cursor.u32()
        attr_name = attrs_cursor.u32()
        raw_value = attrs_cursor.u32()
        value = read_res_value(attrs_cursor)
        resource_id = resource_map[attr_name] if attr_name < len(resource_map) else None
        attributes.append(XmlAttribute(
            namespace=pool.get_optional(attr_ns),
            name=pool.get_optional(attr_name) or "",
            resource_id=resource_id or None,
            raw_value=pool.get_optional(raw_value),
            value=value,
        ))

    return XmlElement(
        namespace=pool.get_optional(ns_index),
        name=pool.get_optional(name_index) or "",
        attributes=tuple(attributes),
    )


def _manifest_info(
    root: XmlElement,
    application: Optional[XmlElement],
    pool: StringPool,
) -> ManifestInfo:
    package_attr = root.find_plain("package")
    split_attr = root.find_plain("split")
    package = package_attr.raw_value if package_attr else None
    split_name = split_attr.raw_value if split_attr else None

    if application is None:
        return ManifestInfo(package, split_name, None, "no <application> element")

    attr = application.find(ANDROID_LABEL_ATTR, "label")
    if attr is None:
        return ManifestInfo(package, split_name, None, "<application> has no label attribute")

    value = attr.value
    if value.is_reference:
        if value.data == 0:
            return ManifestInfo(package, split_name, None, "label is a null reference")
        return ManifestInfo(package, split_name, LabelReference(value.data))
    if value.is_attribute:
        return ManifestInfo(package, split_name, None, "label is a theme attribute reference")
    if attr.raw_value is not None:
        return ManifestInfo(package, split_name, LiteralLabel(attr.raw_value))
    if value.is_string and value.data != NO_INDEX:
        return ManifestInfo(package, split_name, LiteralLabel(pool.get(value.data)))
    return ManifestInfo(package, split_name, None, f"label has unsupported type 0x{value.data_type:02x}")
