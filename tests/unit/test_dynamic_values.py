"""
Unit Tests for Dynamic Value Applier
====================================
"""

from adrender.core.manifest import apply_dynamic_values, serialize_manifest
from adrender.core.manifest.dynamic_values import build_injections
from adrender.models.schemas import DynamicValueData, FontDetail, Typography


def default_values(manifest):
    return {entry["name"]: entry["defaultValue"] for entry in manifest.settings["dynamicValues"]}


class TestApplyDynamicValues:
    """Test merging campaign data into manifests."""

    def test_headline_substitution(self, sample_manifest):
        applied = apply_dynamic_values(sample_manifest, DynamicValueData(headline="Summer Sale"))

        assert applied.manifest.find_layer("headline")["content"] == "Summer Sale"
        assert default_values(applied.manifest)["s0_headline"] == "Summer Sale"
        assert sample_manifest.find_layer("headline")["content"] == "Default headline"

    def test_camel_case_aliases(self, sample_manifest):
        data = DynamicValueData.model_validate({"ctaText": "Buy", "imageUrl": "https://cdn.test/p.png"})
        applied = apply_dynamic_values(sample_manifest, data)

        values = default_values(applied.manifest)
        assert values["s0_ctaText"] == "Buy"
        assert values["s0_imageUrl"] == "https://cdn.test/p.png"

    def test_specific_field_wins_over_generic(self, sample_manifest):
        data = DynamicValueData(cta="Generic", cta_text="Specific")
        applied = apply_dynamic_values(sample_manifest, data)
        assert default_values(applied.manifest)["s0_ctaText"] == "Specific"

    def test_empty_values_are_ignored(self, sample_manifest):
        applied = apply_dynamic_values(sample_manifest, DynamicValueData(headline=""))
        assert applied.manifest == sample_manifest

    def test_existing_content_key_is_reused(self, sample_manifest):
        applied = apply_dynamic_values(sample_manifest, DynamicValueData(logo_url="brand.png"))
        logo = applied.manifest.find_layer("logo")
        assert logo["src"] == "brand.png"
        assert "content" not in logo

    def test_layer_modifications_applied(self, sample_manifest):
        data = DynamicValueData.model_validate(
            {"layerModifications": [{"layerName": "logo", "positionDelta": {"x": 5}}]}
        )
        applied = apply_dynamic_values(sample_manifest, data)
        assert applied.manifest.find_layer("logo")["shots"][0]["pos"]["x"] == 15

    def test_deterministic(self, sample_manifest):
        data = DynamicValueData(headline="Same", colors=["111111"])
        first = apply_dynamic_values(sample_manifest, data)
        second = apply_dynamic_values(sample_manifest, data)
        assert serialize_manifest(first.manifest) == serialize_manifest(second.manifest)
        assert first.injections == second.injections

    def test_side_channel_not_serialized(self, sample_manifest):
        data = DynamicValueData(colors=["ABCDEF"], cta_color="123456")
        applied = apply_dynamic_values(sample_manifest, data)
        text = serialize_manifest(applied.manifest)
        assert "ABCDEF" not in text
        assert "123456" not in text


class TestBuildInjections:
    """Test the color and font side channel."""

    def test_colors_joined_and_hash_stripped(self):
        injections = build_injections(
            DynamicValueData(colors=["#FF0000", "00FF00", "#0000FF", "FFFFFF"])
        )
        assert injections.color_override == "FF0000|00FF00|0000FF"
        assert injections.palette == ["FF0000", "00FF00", "0000FF", "FFFFFF"]

    def test_no_colors(self):
        injections = build_injections(DynamicValueData())
        assert injections.color_override is None
        assert injections.extra_data == {}
        assert injections.fonts == []

    def test_extra_color_keys(self):
        injections = build_injections(DynamicValueData(label_color="#F97316", bg_color="FFFFFF"))
        assert injections.extra_data == {"labelColor": "F97316", "bgColor": "FFFFFF"}

    def test_only_embeddable_fonts(self):
        typography = Typography(
            header_font=FontDetail(font_family="Brand", font_file_base64="AAAA", font_format="woff2"),
            body_font=FontDetail(font_family="Arial"),
        )
        injections = build_injections(DynamicValueData(typography=typography))
        assert [font.font_family for font in injections.fonts] == ["Brand"]

    def test_single_font_shape(self):
        typography = Typography.model_validate(
            {"primaryFontFamily": "Legacy", "fontFileBase64": "AAAA", "fontFormat": "ttf"}
        )
        injections = build_injections(DynamicValueData(typography=typography))
        assert injections.fonts[0].font_family == "Legacy"
