"""
APK inspection package.

Decodes just enough of an application container to recover its display
label: the binary XML manifest and the resources.arsc resource table.

Main Components:
    - ContainerReader: ZIP entry access
    - BinaryXmlDecoder: Manifest label attribute
    - ResourceTableDecoder: Resource id -> configuration-specific string
    - LabelResolver: Base + split resolution with fallbacks
"""

from .arsc import ResolvedString, ResourceTableDecoder, TableEntry
from .axml import BinaryXmlDecoder, LabelReference, LiteralLabel, ManifestInfo
from .configuration import (
    LOCALE_MATCH_RULES,
    ConfigMatch,
    MatchRule,
    ResourceConfiguration,
    select_best,
)
from .container import MANIFEST_ENTRY, RESOURCES_ENTRY, ContainerReader
from .labels import LabelResolver, resolve_label
from .string_pool import StringPool, StringPoolEntry

__all__ = [
    "BinaryXmlDecoder",
    "ConfigMatch",
    "ContainerReader",
    "LOCALE_MATCH_RULES",
    "LabelReference",
    "LabelResolver",
    "LiteralLabel",
    "MANIFEST_ENTRY",
    "ManifestInfo",
    "MatchRule",
    "RESOURCES_ENTRY",
    "ResolvedString",
    "ResourceConfiguration",
    "ResourceTableDecoder",
    "StringPool",
    "StringPoolEntry",
    "TableEntry",
    "resolve_label",
    "select_best",
]
