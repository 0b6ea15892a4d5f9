"""
Module: apk.labels

Purpose:
    Resolve the display label of one installed package from its containers.
    This is the seam where per-package decode errors stop: resolve() always
    returns a ResolvedLabel and never raises for a package-level problem.

Key Classes:
    - LabelResolver: Label resolution for a host configuration

Key Functions:
    - resolve_label(): One-shot helper around LabelResolver
    - normalize_label_text(): Trim and flatten line breaks

Dependencies:
    - apk.container: Entry access
    - apk.axml: Manifest label attribute
    - apk.arsc: Resource table lookup
    - apk.configuration: Host configuration, split ranking
    - core.models: PackageIdentity, ResolvedLabel

Used By:
    - analysis.scheduler: One resolve() call per package, in a worker
"""

from __future__ import annotations

import logging
import re
from pathlib import PurePosixPath
from typing import List, Optional, Tuple

from dexopt_analyzer.core.errors import (
    ContainerUnreadable,
    EntryMissing,
    LabelAttributeAbsent,
    MalformedChunk,
    ResourceUnresolved,
)
from dexopt_analyzer.core.models import PackageIdentity, ResolvedLabel

from .arsc import DEFAULT_MAX_REFERENCE_DEPTH, ResolvedString, ResourceTableDecoder
from .axml import DEFAULT_MAX_CHUNKS, BinaryXmlDecoder, LabelReference, LiteralLabel
from .configuration import BEST_TIER, LOCALE_MATCH_RULES, ResourceConfiguration, match_rule
from .container import DEFAULT_MAX_ENTRY_BYTES, MANIFEST_ENTRY, RESOURCES_ENTRY, ContainerReader

logger = logging.getLogger(__name__)

# Errors that turn into a package-name fallback instead of propagating
LABEL_ERRORS = (
    ContainerUnreadable,
    EntryMissing,
    MalformedChunk,
    LabelAttributeAbsent,
    ResourceUnresolved,
)

_CLASS_NAME_RE = re.compile(r"^[A-Za-z_$][\w$]*(?:\.[A-Za-z_$][\w$]*)+$")


def normalize_label_text(text: str) -> str:
    """Trim surrounding whitespace and replace CR/LF with spaces."""
    return text.replace("\r\n", " ").replace("\r", " ").replace("\n", " ").strip()


def looks_like_class_name(text: str, package: str) -> bool:
    """
    Check whether a label is really an internal class name.

    Example:
        >>> looks_like_class_name("com.example.MainActivity", "com.example")
        True
        >>> looks_like_class_name("Example App", "com.example")
        False
    """
    return text != package and bool(_CLASS_NAME_RE.match(text))


class LabelResolver:
    """
    Resolves application labels against a host configuration.

    Instances hold only plain settings, so they can be pickled into
    process-pool workers.

    Attributes:
        host: Host locale/density the label is chosen for
        max_entry_bytes: Per-entry decompressed size budget
        max_chunks: Chunk budget per decoded document
        max_reference_depth: Reference chain limit in resource tables

    Example:
        >>> resolver = LabelResolver(ResourceConfiguration.from_locale("en-US"))
        >>> resolver.resolve(identity).text
        'Example App'
    """

    def __init__(
        self,
        host: Optional[ResourceConfiguration] = None,
        *,
        max_entry_bytes: int = DEFAULT_MAX_ENTRY_BYTES,
        max_chunks: int = DEFAULT_MAX_CHUNKS,
        max_reference_depth: int = DEFAULT_MAX_REFERENCE_DEPTH,
    ):
        self.host = host or ResourceConfiguration.default()
        self.max_entry_bytes = max_entry_bytes
        self.max_chunks = max_chunks
        self.max_reference_depth = max_reference_depth

    def resolve(self, identity: PackageIdentity) -> ResolvedLabel:
        """
        Resolve the label of one package.

        Returns:
            ResolvedLabel; decoding failures become a package-name fallback
            carrying the failure as its reason
        """
        try:
            text = self._resolve_text(identity)
        except LABEL_ERRORS as e:
            reason = f"{type(e).__name__}: {e}"
            logger.debug(f"{identity.name}: label fallback ({reason})")
            return ResolvedLabel.fallback(identity.name, reason)

        text = normalize_label_text(text)
        if not text:
            logger.debug(f"{identity.name}: label text is empty")
            return ResolvedLabel.fallback(identity.name, "label text is empty")
        if looks_like_class_name(text, identity.name):
            logger.debug(f"{identity.name}: label {text!r} looks like a class name")
            return ResolvedLabel.partial(identity.name, text, "label looks like a class name")
        return ResolvedLabel.decoded(identity.name, text)

    # ─────────────────────────────────────────────────────────────────────────
    # Base container
    # ─────────────────────────────────────────────────────────────────────────

    def _resolve_text(self, identity: PackageIdentity) -> str:
        base_error: Optional[Exception] = None
        best: Optional[ResolvedString] = None
        with self._reader(identity.base_path) as reader:
            manifest = reader.read_entry(MANIFEST_ENTRY)
            label = BinaryXmlDecoder(manifest, max_chunks=self.max_chunks).find_label()
            if isinstance(label, LiteralLabel):
                return label.text
            assert isinstance(label, LabelReference)

            # The table is only read for referenced labels
            try:
                table = reader.read_entry(RESOURCES_ENTRY)
                best = self._table(table).resolve(label.resource_id, self.host)
                logger.debug(
                    f"{identity.name}: 0x{label.resource_id:08x} resolved in base "
                    f"({best.rule}, {best.config})"
                )
            except (ContainerUnreadable, EntryMissing, MalformedChunk, ResourceUnresolved) as e:
                base_error = e

        if best is not None and best.tier == BEST_TIER:
            return best.text

        split_best = self._probe_splits(identity, label.resource_id, best)
        if split_best is not None:
            return split_best.text
        if best is not None:
            return best.text
        assert base_error is not None
        raise base_error

    # ─────────────────────────────────────────────────────────────────────────
    # Split containers
    # ─────────────────────────────────────────────────────────────────────────

    def rank_splits(self, split_paths: Tuple[str, ...]) -> List[str]:
        """
        Order split containers for probing.

        Locale splits matching the host come first (best tier first), then
        splits whose name declares nothing; splits for another locale or for
        a non-locale qualifier (density, ABI) are left out.
        """
        ranked: List[Tuple[int, int, str]] = []
        unknown_tier = max(rule.tier for rule in LOCALE_MATCH_RULES) + 1
        for order, path in enumerate(split_paths):
            name = PurePosixPath(path).name
            config = ResourceConfiguration.from_split_name(name)
            if config is None:
                if _is_config_split(name):
                    continue
                ranked.append((unknown_tier, order, path))
                continue
            rule = match_rule(config, self.host)
            if rule is None:
                continue
            ranked.append((rule.tier, order, path))
        ranked.sort()
        return [path for _, _, path in ranked]

    def _probe_splits(
        self,
        identity: PackageIdentity,
        resource_id: int,
        base_best: Optional[ResolvedString],
    ) -> Optional[ResolvedString]:
        """Best split result strictly better than the base one, if any."""
        best = base_best
        improved: Optional[ResolvedString] = None
        for path in self.rank_splits(identity.split_paths):
            try:
                found = self._resolve_in_split(path, resource_id)
            except (ContainerUnreadable, MalformedChunk, ResourceUnresolved) as e:
                logger.debug(f"{identity.name}: split {path} skipped ({e})")
                continue
            if found is None:
                continue
            if best is None or found.tier < best.tier:
                logger.debug(
                    f"{identity.name}: split {PurePosixPath(path).name} wins "
                    f"({found.rule}, {found.config})"
                )
                best = improved = found
                if found.tier == BEST_TIER:
                    break
        return improved

    def _resolve_in_split(self, path: str, resource_id: int) -> Optional[ResolvedString]:
        entries = self._reader(path).read_entries([MANIFEST_ENTRY, RESOURCES_ENTRY])
        table = entries[RESOURCES_ENTRY]
        if table is None:
            return None
        manifest = entries[MANIFEST_ENTRY]
        if manifest is not None:
            split_name = BinaryXmlDecoder(manifest, max_chunks=self.max_chunks).decode().split_name
            if split_name:
                config = ResourceConfiguration.from_split_name(split_name)
                if config is not None and match_rule(config, self.host) is None:
                    return None
        return self._table(table).resolve(resource_id, self.host)

    # ─────────────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────────────

    def _reader(self, path: str) -> ContainerReader:
        return ContainerReader(path, max_entry_bytes=self.max_entry_bytes)

    def _table(self, data: bytes) -> ResourceTableDecoder:
        return ResourceTableDecoder(
            data,
            max_chunks=self.max_chunks,
            max_reference_depth=self.max_reference_depth,
        )


def _is_config_split(file_name: str) -> bool:
    name = file_name
    if name.startswith("split_"):
        name = name[len("split_"):]
    return name.startswith("config.")


def resolve_label(
    identity: PackageIdentity,
    host: Optional[ResourceConfiguration] = None,
    **limits: int,
) -> ResolvedLabel:
    """Resolve one package's label with a throwaway LabelResolver."""
    return LabelResolver(host, **limits).resolve(identity)
