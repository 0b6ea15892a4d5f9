"""
Tests for LabelResolver: base container decoding, split probing and the
package-name fallback.
"""

import zipfile
from pathlib import Path

import pytest

from dexopt_analyzer.apk.configuration import ResourceConfiguration
from dexopt_analyzer.apk.labels import LabelResolver, looks_like_class_name, normalize_label_text, resolve_label
from dexopt_analyzer.core.models import LabelProvenance, PackageIdentity

import apk_builder
from apk_builder import LABEL_ID

FR_FR = ResourceConfiguration.from_locale("fr-FR")
EN_US = ResourceConfiguration.from_locale("en-US")


def _identity(name: str, base: Path, *splits: Path) -> PackageIdentity:
    return PackageIdentity(name, str(base), tuple(str(s) for s in splits))


def _split(directory: Path, split_name: str, values) -> Path:
    manifest = apk_builder.build_manifest("com.example.beta", split=split_name)
    table = apk_builder.build_label_table(values)
    return apk_builder.write_app(directory, manifest, table, name=f"split_{split_name}.apk")


class TestResolveBase:
    """Labels decoded from the base container alone."""

    def test_resolve_when_literal_label_then_decoded(self, literal_app):
        label = LabelResolver(EN_US).resolve(_identity("com.example.alpha", literal_app))
        assert label.text == "Alpha Notes"
        assert label.provenance is LabelProvenance.DECODED
        assert label.reason is None

    @pytest.mark.parametrize("host,expected", [
        ("fr-FR", "Bêta FR"),
        ("de-AT", "Beta DE"),
        ("en-US", "Beta"),
        (None, "Beta"),
    ])
    def test_resolve_when_referenced_label_then_host_locale_selects(self, localized_app, host, expected):
        resolver = LabelResolver(ResourceConfiguration.from_locale(host))
        assert resolver.resolve(_identity("com.example.beta", localized_app)).text == expected

    def test_resolve_when_label_has_line_breaks_then_normalized(self, tmp_path):
        manifest = apk_builder.build_manifest("com.example.app", label="  Two\r\nLines\n")
        path = apk_builder.write_app(tmp_path, manifest)
        assert LabelResolver().resolve(_identity("com.example.app", path)).text == "Two Lines"

    def test_resolve_when_label_is_class_name_then_partial(self, tmp_path):
        manifest = apk_builder.build_manifest("com.example.app", label="com.example.app.MainActivity")
        path = apk_builder.write_app(tmp_path, manifest)
        label = LabelResolver().resolve(_identity("com.example.app", path))
        assert label.provenance is LabelProvenance.FALLBACK_TO_PARTIAL
        assert label.text == "com.example.app.MainActivity"
        assert label.reason == "label looks like a class name"


class TestFallback:
    """Every package-level failure becomes a package-name fallback."""

    def _assert_fallback(self, label, package, reason_prefix):
        assert label.provenance is LabelProvenance.FALLBACK_TO_PACKAGE_NAME
        assert label.text == package
        assert label.reason.startswith(reason_prefix)

    def test_resolve_when_container_missing_then_fallback(self, tmp_path):
        label = LabelResolver().resolve(_identity("com.gone", tmp_path / "nope.apk"))
        self._assert_fallback(label, "com.gone", "ContainerUnreadable")

    def test_resolve_when_manifest_missing_then_fallback(self, tmp_path):
        path = apk_builder.write_apk(tmp_path / "base.apk", {"classes.dex": b"dex"})
        label = LabelResolver().resolve(_identity("com.example", path))
        self._assert_fallback(label, "com.example", "EntryMissing")

    def test_resolve_when_manifest_corrupt_then_fallback(self, tmp_path):
        path = apk_builder.write_apk(tmp_path / "base.apk", {"AndroidManifest.xml": b"\x03\x00\x08\x00\xff\xff"})
        label = LabelResolver().resolve(_identity("com.example", path))
        self._assert_fallback(label, "com.example", "MalformedBinaryXml")

    def test_resolve_when_no_label_attribute_then_fallback(self, tmp_path):
        path = apk_builder.write_app(tmp_path, apk_builder.build_manifest("com.example"))
        label = LabelResolver().resolve(_identity("com.example", path))
        self._assert_fallback(label, "com.example", "LabelAttributeAbsent")

    def test_resolve_when_reference_without_table_then_fallback(self, tmp_path):
        path = apk_builder.write_app(tmp_path, apk_builder.build_manifest("com.example", label_ref=LABEL_ID))
        label = LabelResolver().resolve(_identity("com.example", path))
        self._assert_fallback(label, "com.example", "EntryMissing")
        assert "resources.arsc" in label.reason

    def test_resolve_when_reference_unresolvable_then_fallback(self, tmp_path):
        manifest = apk_builder.build_manifest("com.example", label_ref=LABEL_ID)
        table = apk_builder.build_label_table([(("ja", "", 0), "日本語")])
        path = apk_builder.write_app(tmp_path, manifest, table)
        label = LabelResolver(EN_US).resolve(_identity("com.example", path))
        self._assert_fallback(label, "com.example", "ResourceUnresolved")

    def test_resolve_when_best_entry_complex_then_fallback(self, tmp_path):
        """The default string is not substituted for a complex exact match."""
        manifest = apk_builder.build_manifest("com.example", label_ref=LABEL_ID)
        package = apk_builder.package_chunk([
            apk_builder.type_chunk(1, apk_builder.config_bytes(), [apk_builder.string_entry(0, 0)]),
            apk_builder.type_chunk(1, apk_builder.config_bytes("fr", "FR"), [apk_builder.complex_entry(0)]),
        ])
        path = apk_builder.write_app(tmp_path, manifest, apk_builder.resource_table(["Default"], [package]))
        label = LabelResolver(FR_FR).resolve(_identity("com.example", path))
        self._assert_fallback(label, "com.example", "ResourceUnresolved")
        assert "complex" in label.reason

    def test_resolve_when_label_blank_then_fallback(self, tmp_path):
        path = apk_builder.write_app(tmp_path, apk_builder.build_manifest("com.example", label="   "))
        label = LabelResolver().resolve(_identity("com.example", path))
        self._assert_fallback(label, "com.example", "label text is empty")

    def test_resolve_when_entry_over_budget_then_fallback(self, literal_app):
        label = LabelResolver(max_entry_bytes=16).resolve(_identity("com.example.alpha", literal_app))
        self._assert_fallback(label, "com.example.alpha", "ContainerUnreadable")


class TestLiteralIgnoresTable:
    """A literal label never depends on resources.arsc."""

    def _literal_with_table(self, tmp_path, table, compression):
        manifest = apk_builder.build_manifest("com.example.app", label="Literal App")
        entries = {"AndroidManifest.xml": manifest, "resources.arsc": table}
        return manifest, apk_builder.write_apk(tmp_path / "base.apk", entries, compression=compression)

    def test_resolve_when_literal_and_table_crc_bad_then_decoded(self, tmp_path):
        table = apk_builder.build_label_table([(("", "", 0), "Unused")])
        _, path = self._literal_with_table(tmp_path, table, zipfile.ZIP_STORED)
        raw = bytearray(path.read_bytes())
        # Stored entries are written verbatim; flip one byte of the table body
        offset = raw.index(table)
        raw[offset + len(table) // 2] ^= 0xFF
        path.write_bytes(bytes(raw))

        label = LabelResolver().resolve(_identity("com.example.app", path))
        assert label.text == "Literal App"
        assert label.provenance is LabelProvenance.DECODED

    def test_resolve_when_literal_and_table_over_limit_then_decoded(self, tmp_path):
        table = apk_builder.build_label_table([(("", "", 0), "Unused " * 200)])
        manifest, path = self._literal_with_table(tmp_path, table, zipfile.ZIP_DEFLATED)
        resolver = LabelResolver(max_entry_bytes=len(manifest) + 10)
        label = resolver.resolve(_identity("com.example.app", path))
        assert label.text == "Literal App"
        assert label.provenance is LabelProvenance.DECODED

    def test_resolve_when_reference_and_table_over_limit_then_fallback(self, tmp_path):
        manifest = apk_builder.build_manifest("com.example.app", label_ref=LABEL_ID)
        table = apk_builder.build_label_table([(("", "", 0), "Referenced " * 200)])
        path = apk_builder.write_app(tmp_path, manifest, table)
        label = LabelResolver(max_entry_bytes=len(manifest) + 10).resolve(_identity("com.example.app", path))
        assert label.provenance is LabelProvenance.FALLBACK_TO_PACKAGE_NAME
        assert label.reason.startswith("ContainerUnreadable")
        assert "resources.arsc" in label.reason


class TestSplits:
    """Split containers can only improve on the base result."""

    def test_resolve_when_locale_split_better_than_base_default_then_split_wins(self, tmp_path):
        manifest = apk_builder.build_manifest("com.example.beta", label_ref=LABEL_ID)
        base = apk_builder.write_app(tmp_path, manifest, apk_builder.build_label_table([(("", "", 0), "Beta")]))
        split = _split(tmp_path, "config.fr", [(("fr", "", 0), "Bêta")])
        label = LabelResolver(FR_FR).resolve(_identity("com.example.beta", base, split))
        assert label.text == "Bêta"
        assert label.provenance is LabelProvenance.DECODED

    def test_resolve_when_base_exact_match_then_split_not_consulted(self, localized_app, tmp_path):
        broken = apk_builder.write_apk(tmp_path / "split_config.fr.apk", {"resources.arsc": b"junk"})
        label = LabelResolver(FR_FR).resolve(_identity("com.example.beta", localized_app, broken))
        assert label.text == "Bêta FR"

    def test_resolve_when_split_no_better_then_base_kept(self, tmp_path):
        """Ties go to the base container."""
        manifest = apk_builder.build_manifest("com.example.beta", label_ref=LABEL_ID)
        base = apk_builder.write_app(tmp_path, manifest, apk_builder.build_label_table([(("fr", "", 0), "Base fr")]))
        split = _split(tmp_path, "config.fr", [(("fr", "", 0), "Split fr")])
        label = LabelResolver(FR_FR).resolve(_identity("com.example.beta", base, split))
        assert label.text == "Base fr"

    def test_resolve_when_base_table_missing_then_split_supplies_label(self, tmp_path):
        manifest = apk_builder.build_manifest("com.example.beta", label_ref=LABEL_ID)
        base = apk_builder.write_app(tmp_path, manifest)
        split = _split(tmp_path, "config.fr", [(("fr", "", 0), "Bêta")])
        label = LabelResolver(FR_FR).resolve(_identity("com.example.beta", base, split))
        assert label.text == "Bêta"

    def test_resolve_when_split_corrupt_then_skipped(self, tmp_path):
        manifest = apk_builder.build_manifest("com.example.beta", label_ref=LABEL_ID)
        base = apk_builder.write_app(tmp_path, manifest, apk_builder.build_label_table([(("", "", 0), "Beta")]))
        broken = tmp_path / "split_config.fr.apk"
        broken.write_bytes(b"not a zip")
        label = LabelResolver(FR_FR).resolve(_identity("com.example.beta", base, broken))
        assert label.text == "Beta"
        assert label.provenance is LabelProvenance.DECODED

    def test_resolve_when_split_manifest_names_other_locale_then_ignored(self, tmp_path):
        """The manifest's split attribute overrides a misleading file name."""
        manifest = apk_builder.build_manifest("com.example.beta", label_ref=LABEL_ID)
        base = apk_builder.write_app(tmp_path, manifest, apk_builder.build_label_table([(("", "", 0), "Beta")]))
        split_manifest = apk_builder.build_manifest("com.example.beta", split="config.de")
        table = apk_builder.build_label_table([(("fr", "", 0), "Bêta")])
        split = apk_builder.write_app(tmp_path, split_manifest, table, name="split_extras.apk")
        label = LabelResolver(FR_FR).resolve(_identity("com.example.beta", base, split))
        assert label.text == "Beta"

    def test_rank_splits_when_mixed_names_then_locale_matches_first(self):
        resolver = LabelResolver(FR_FR)
        ranked = resolver.rank_splits((
            "/d/split_config.de.apk",
            "/d/split_feature_maps.apk",
            "/d/split_config.fr.apk",
            "/d/split_config.xxhdpi.apk",
            "/d/split_config.fr_FR.apk",
        ))
        assert ranked == ["/d/split_config.fr_FR.apk", "/d/split_config.fr.apk", "/d/split_feature_maps.apk"]


class TestRoundTrip:
    """Three packages with literal, referenced and broken labels."""

    def test_resolve_when_three_packages_then_each_gets_expected_label(self, literal_app, localized_app, tmp_path):
        broken = tmp_path / "gamma" / "base.apk"
        broken.parent.mkdir()
        broken.write_bytes(b"\x00" * 64)
        identities = [
            _identity("com.example.alpha", literal_app),
            _identity("com.example.beta", localized_app),
            _identity("com.example.gamma", broken),
        ]

        labels = [resolve_label(identity, FR_FR) for identity in identities]

        assert [label.text for label in labels] == ["Alpha Notes", "Bêta FR", "com.example.gamma"]
        assert [label.provenance for label in labels] == [
            LabelProvenance.DECODED,
            LabelProvenance.DECODED,
            LabelProvenance.FALLBACK_TO_PACKAGE_NAME,
        ]


class TestHelpers:

    def test_normalize_label_text_when_crlf_then_spaces(self):
        assert normalize_label_text("\tA\r\nB\rC\n") == "A B C"

    @pytest.mark.parametrize("text,expected", [
        ("com.example.MainActivity", True),
        ("com.example", False),
        ("Example App", False),
        ("v1.2", False),
        ("Maps", False),
    ])
    def test_looks_like_class_name_when_text_then_classified(self, text, expected):
        assert looks_like_class_name(text, "com.example") is expected
