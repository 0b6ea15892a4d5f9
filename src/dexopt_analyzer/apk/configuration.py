"""
Module: apk.configuration

Purpose:
    ResourceConfiguration (the subset of ResTable_config used for label
    lookup) and the locale best-match decision table. Matching is expressed
    as an ordered list of rules so the precedence is data, not branching.

Key Classes:
    - ResourceConfiguration: Locale, density and a count of other qualifiers
    - MatchRule: One tier of the decision table
    - ConfigMatch: Winning candidate with its tier

Key Functions:
    - read_config(): Parse a ResTable_config from a chunk
    - select_best(): Pick the best candidate for a preferred configuration

Dependencies:
    - apk.reader: ByteCursor

Used By:
    - apk.arsc: Per-entry configuration and resolution
    - apk.labels: Host configuration and split ranking
    - device.host: Builds the host configuration

Decision table (LOCALE_MATCH_RULES), first matching rule wins:
    tier 0  exact-locale   same language and region (script if both set)
    tier 1  same-language  same language, any region
    tier 2  default        candidate declares no locale
    (none)                 unresolved
Ties inside a tier go to the least specific configuration, then the
closest density, then table order.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Generic, List, Optional, Sequence, Tuple, TypeVar

from .reader import ByteCursor

T = TypeVar("T")

CONFIG_FULL_SIZE = 64
CONFIG_MIN_SIZE = 28

_LOCALE_RE = re.compile(
    r"^(?P<lang>[a-zA-Z]{2,3})"
    r"(?:[-_](?P<script>[a-zA-Z]{4}))?"
    r"(?:[-_]r?(?P<region>[a-zA-Z]{2}|[0-9]{3}))?$"
)


@dataclass(frozen=True)
class ResourceConfiguration:
    """
    Resource configuration, reduced to what label lookup needs.

    Attributes:
        language: Lowercase ISO 639 code, "" when unspecified
        region: Uppercase ISO 3166 code (or UN M.49 digits), "" when unspecified
        script: Title-case ISO 15924 code, "" when unspecified
        density: Screen density in dpi, 0 when unspecified
        other_qualifiers: Number of other qualifiers set (mcc, orientation,
            night mode, sdk version, ...)

    Example:
        >>> ResourceConfiguration.from_locale("fr-FR").language
        'fr'
        >>> ResourceConfiguration.from_locale("es-rUS").region
        'US'
    """

    language: str = ""
    region: str = ""
    script: str = ""
    density: int = 0
    other_qualifiers: int = 0

    @classmethod
    def default(cls) -> ResourceConfiguration:
        return cls()

    @classmethod
    def from_locale(cls, locale: Optional[str], density: int = 0) -> ResourceConfiguration:
        """
        Build a configuration from a locale string.

        Accepts BCP-47 ("zh-Hant-TW"), POSIX ("pt_BR.UTF-8"), Android
        qualifier ("es-rUS") and Android BCP-47 qualifier ("b+sr+Latn")
        forms. Unparsable input yields the default configuration.
        """
        parsed = parse_locale(locale)
        if parsed is None:
            return cls(density=density)
        language, script, region = parsed
        return cls(language=language, region=region, script=script, density=density)

    @classmethod
    def from_split_name(cls, split_name: str) -> Optional[ResourceConfiguration]:
        """
        Locale declared by a configuration split name, if any.

        Example:
            >>> ResourceConfiguration.from_split_name("config.fr").language
            'fr'
            >>> ResourceConfiguration.from_split_name("config.xxhdpi") is None
            True
        """
        name = split_name
        if name.startswith("split_"):
            name = name[len("split_"):]
        if name.endswith(".apk"):
            name = name[:-len(".apk")]
        if not name.startswith("config."):
            return None
        parsed = parse_locale(name[len("config."):])
        if parsed is None:
            return None
        language, script, region = parsed
        return cls(language=language, region=region, script=script)

    @property
    def has_locale(self) -> bool:
        return bool(self.language)

    @property
    def specificity(self) -> int:
        """Number of qualifiers set; lower means more generic."""
        return (
            bool(self.language)
            + bool(self.region)
            + bool(self.script)
            + bool(self.density)
            + self.other_qualifiers
        )

    @property
    def locale_tag(self) -> str:
        parts = [p for p in (self.language, self.script, self.region) if p]
        return "-".join(parts) if parts else "default"

    def __str__(self) -> str:
        tag = self.locale_tag
        if self.density:
            tag = f"{tag}/{self.density}dpi"
        if self.other_qualifiers:
            tag = f"{tag}/+{self.other_qualifiers}"
        return tag


def parse_locale(locale: Optional[str]) -> Optional[Tuple[str, str, str]]:
    """
    Split a locale string into (language, script, region).

    Returns None for empty, "C"/"POSIX" or unparsable input.
    """
    if not locale:
        return None
    text = locale.strip().split(".")[0].split("@")[0]
    if not text or text.upper() in ("C", "POSIX"):
        return None
    if text.startswith("b+"):
        fields = text[2:].split("+")
        language = fields[0]
        script = next((f for f in fields[1:] if len(f) == 4 and f.isalpha()), "")
        region = next((f for f in fields[1:] if len(f) == 2 or (len(f) == 3 and f.isdigit())), "")
        if not (2 <= len(language) <= 3 and language.isalpha()):
            return None
        return language.lower(), script.title(), region.upper()
    match = _LOCALE_RE.match(text)
    if match is None:
        return None
    return (
        match.group("lang").lower(),
        (match.group("script") or "").title(),
        (match.group("region") or "").upper(),
    )


# ─────────────────────────────────────────────────────────────────────────────
# ResTable_config
# ─────────────────────────────────────────────────────────────────────────────

# (offset, width) of every non-locale, non-density qualifier in ResTable_config
_OTHER_QUALIFIER_FIELDS = (
    (4, 2), (6, 2),                   # mcc, mnc
    (12, 1), (13, 1),                 # orientation, touchscreen
    (16, 1), (17, 1), (18, 1),        # keyboard, navigation, inputFlags
    (20, 2), (22, 2),                 # screenWidth, screenHeight
    (24, 2), (26, 2),                 # sdkVersion, minorVersion
    (28, 1), (29, 1),                 # screenLayout, uiMode
    (30, 2), (32, 2), (34, 2),        # smallestScreenWidthDp, screenWidthDp, screenHeightDp
    (48, 1), (49, 1),                 # screenLayout2, colorMode
)


def read_config(cursor: ByteCursor) -> ResourceConfiguration:
    """
    Read a ResTable_config at the cursor.

    The structure is size-prefixed and has grown over platform releases;
    fields beyond the declared size read as zero.

    Raises:
        MalformedChunk: If the declared size is below the oldest layout or
            runs past the cursor's window
    """
    start = cursor.pos
    size = cursor.u32()
    if size < CONFIG_MIN_SIZE:
        raise cursor.error(f"ResTable_config size {size} < {CONFIG_MIN_SIZE} at {start}")
    cursor.seek(start)
    raw = bytes(cursor.read(size))
    if len(raw) < CONFIG_FULL_SIZE:
        raw = raw + bytes(CONFIG_FULL_SIZE - len(raw))

    language = _unpack_locale_code(raw[8], raw[9], ord("a"))
    region = _unpack_locale_code(raw[10], raw[11], ord("0")).upper()
    script = _ascii_field(raw[36:40]).title()
    density = int.from_bytes(raw[14:16], "little")
    other = sum(
        1 for offset, width in _OTHER_QUALIFIER_FIELDS
        if int.from_bytes(raw[offset:offset + width], "little")
    )
    return ResourceConfiguration(
        language=language.lower(),
        region=region,
        script=script,
        density=density,
        other_qualifiers=other,
    )


def _unpack_locale_code(in0: int, in1: int, base: int) -> str:
    """
    Decode a 2-byte language/region field.

    Two ASCII letters are stored as-is; three-letter codes are packed into
    15 bits with the high bit of the first byte set.
    """
    if in0 & 0x80:
        first = in1 & 0x1F
        second = ((in1 & 0xE0) >> 5) + ((in0 & 0x03) << 3)
        third = (in0 & 0x7C) >> 2
        return "".join(chr(base + c) for c in (first, second, third))
    if in0 == 0:
        return ""
    return chr(in0) + (chr(in1) if in1 else "")


def _ascii_field(raw: bytes) -> str:
    return raw.split(b"\x00", 1)[0].decode("ascii", errors="ignore")


# ─────────────────────────────────────────────────────────────────────────────
# Decision table
# ─────────────────────────────────────────────────────────────────────────────

MatchPredicate = Callable[[ResourceConfiguration, ResourceConfiguration], bool]


@dataclass(frozen=True)
class MatchRule:
    """One tier of the best-match decision table (lower tier wins)."""
    tier: int
    name: str
    predicate: MatchPredicate

    def matches(self, candidate: ResourceConfiguration, preferred: ResourceConfiguration) -> bool:
        return self.predicate(candidate, preferred)


def _exact_locale(candidate: ResourceConfiguration, preferred: ResourceConfiguration) -> bool:
    if not preferred.language or candidate.language != preferred.language:
        return False
    if candidate.region != preferred.region:
        return False
    return not (candidate.script and preferred.script and candidate.script != preferred.script)


def _same_language(candidate: ResourceConfiguration, preferred: ResourceConfiguration) -> bool:
    return bool(preferred.language) and candidate.language == preferred.language


def _no_locale(candidate: ResourceConfiguration, preferred: ResourceConfiguration) -> bool:
    return not candidate.language


LOCALE_MATCH_RULES: Tuple[MatchRule, ...] = (
    MatchRule(0, "exact-locale", _exact_locale),
    MatchRule(1, "same-language", _same_language),
    MatchRule(2, "default", _no_locale),
)

BEST_TIER = LOCALE_MATCH_RULES[0].tier


@dataclass(frozen=True)
class ConfigMatch(Generic[T]):
    """Winning candidate of select_best()."""
    rule: MatchRule
    config: ResourceConfiguration
    value: T

    @property
    def tier(self) -> int:
        return self.rule.tier


def match_rule(
    candidate: ResourceConfiguration,
    preferred: ResourceConfiguration,
    rules: Sequence[MatchRule] = LOCALE_MATCH_RULES,
) -> Optional[MatchRule]:
    """First rule the candidate satisfies, or None (unresolved)."""
    for rule in rules:
        if rule.matches(candidate, preferred):
            return rule
    return None


def rank_candidates(
    candidates: Sequence[Tuple[ResourceConfiguration, T]],
    preferred: ResourceConfiguration,
    rules: Sequence[MatchRule] = LOCALE_MATCH_RULES,
) -> List[ConfigMatch[T]]:
    """
    Order the candidates that satisfy some rule, best first.

    Args:
        candidates: (configuration, value) pairs in table order
        preferred: Host configuration
        rules: Decision table, highest priority first

    Returns:
        Matches sorted by (tier, specificity, density gap, table order);
        candidates no rule accepts are dropped
    """
    keyed = []
    for order, (config, value) in enumerate(candidates):
        rule = match_rule(config, preferred, rules)
        if rule is None:
            continue
        density_gap = 0
        if config.density and preferred.density:
            density_gap = abs(config.density - preferred.density)
        key = (rule.tier, config.specificity, density_gap, order)
        keyed.append((key, ConfigMatch(rule, config, value)))
    keyed.sort(key=lambda item: item[0])
    return [match for _, match in keyed]


def select_best(
    candidates: Sequence[Tuple[ResourceConfiguration, T]],
    preferred: ResourceConfiguration,
    rules: Sequence[MatchRule] = LOCALE_MATCH_RULES,
) -> Optional[ConfigMatch[T]]:
    """
    Pick the candidate that best matches `preferred`.

    Returns:
        ConfigMatch for the winner, or None if no rule matches any candidate

    Example:
        >>> fr = ResourceConfiguration.from_locale("fr")
        >>> best = select_best([(ResourceConfiguration(), "A"), (fr, "B")],
        ...                    ResourceConfiguration.from_locale("fr-FR"))
        >>> best.value, best.rule.name
        ('B', 'same-language')
    """
    ranked = rank_candidates(candidates, preferred, rules)
    return ranked[0] if ranked else None
