"""
Unit Tests for Layer Transformer
================================

Layer classification, summaries and geometric modifications.
"""

import pytest

from adrender.core.manifest import Manifest, parse_manifest
from adrender.core.manifest.layers import (
    MIN_SHOT_DIMENSION,
    apply_modifications,
    available_sizes,
    classify_layer,
    describe,
    summarize,
)
from adrender.models.schemas import LayerModification, LayerType, PositionDelta
from tests.data.sample_manifests import SINGLE_SIZE_MANIFEST_JS


def first_shot(manifest, name):
    return manifest.find_layer(name)["shots"][0]


class TestClassifyLayer:
    """Test layer kind classification."""

    @pytest.mark.parametrize(
        "layer,expected",
        [
            ({"isGroup": True, "fileType": "text"}, LayerType.GROUP),
            ({"fileType": "text"}, LayerType.TEXT),
            ({"fileType": "svg"}, LayerType.SHAPE),
            ({"fileType": "png"}, LayerType.IMAGE),
            ({}, LayerType.IMAGE),
        ],
    )
    def test_classification(self, layer, expected):
        assert classify_layer(layer) == expected


class TestSummarize:
    """Test layer summaries."""

    def test_child_layers_excluded(self, sample_manifest):
        names = [layer.name for layer in summarize(sample_manifest)]
        assert names == ["Headline", "logo", "cta", "bg"]

    def test_first_shot_geometry(self, sample_manifest):
        headline = summarize(sample_manifest)[0]
        assert headline.type == LayerType.TEXT
        assert (headline.pos.x, headline.pos.y) == (10, 20)
        assert (headline.size.w, headline.size.h) == (100, 50)
        assert headline.is_dynamic is True

    def test_layer_without_shots(self, sample_manifest):
        bg = summarize(sample_manifest)[3]
        assert bg.type == LayerType.SHAPE
        assert (bg.size.w, bg.size.h) == (0, 0)

    def test_describe_lines(self, sample_manifest):
        lines = describe(sample_manifest).splitlines()
        assert lines[0] == "- text Headline: pos(10, 20) size(100x50)"
        assert lines[2] == "- group cta: pos(180, 200) size(100x31)"
        assert len(lines) == 4

    def test_describe_empty(self):
        assert describe(Manifest({"layers": []})) == "No layers available."


class TestAvailableSizes:
    """Test size label listing."""

    def test_declared_order(self, sample_manifest):
        assert available_sizes(sample_manifest) == ["300x250", "728x90", "300x600"]

    def test_settings_fallback(self):
        assert available_sizes(parse_manifest(SINGLE_SIZE_MANIFEST_JS)) == ["1080x1080"]

    def test_nothing_declared(self):
        assert available_sizes(Manifest({"layers": []})) == []


class TestApplyModifications:
    """Test geometric layer modifications."""

    def test_scale_preserves_center(self, sample_manifest):
        result = apply_modifications(
            sample_manifest, [LayerModification(layer_name="logo", scale_factor=2.0)]
        )
        shot = first_shot(result, "logo")
        assert shot["pos"] == {"x": -40, "y": -15}
        assert shot["size"]["w"] == 200
        assert shot["size"]["h"] == 100
        assert shot["size"]["initW"] == 200
        assert shot["size"]["initH"] == 100

    def test_input_never_mutated(self, sample_manifest):
        before = sample_manifest.clone()
        apply_modifications(sample_manifest, [LayerModification(layer_name="logo", scale_factor=3)])
        assert sample_manifest == before

    def test_name_match_is_case_insensitive(self, sample_manifest):
        result = apply_modifications(
            sample_manifest,
            [LayerModification(layer_name="HEADLINE", position_delta=PositionDelta(x=5, y=-5))],
        )
        assert first_shot(result, "headline")["pos"] == {"x": 15, "y": 15}

    def test_unknown_layer_is_noop(self, sample_manifest):
        result = apply_modifications(
            sample_manifest, [LayerModification(layer_name="missing", scale_factor=2)]
        )
        assert result == sample_manifest

    def test_partial_delta(self, sample_manifest):
        result = apply_modifications(
            sample_manifest,
            [LayerModification(layer_name="logo", position_delta=PositionDelta(y=10))],
        )
        assert first_shot(result, "logo")["pos"] == {"x": 10, "y": 20}

    def test_sizes_filter(self, sample_manifest):
        result = apply_modifications(
            sample_manifest,
            [
                LayerModification(
                    layer_name="logo", position_delta=PositionDelta(x=1), sizes=["728x90"]
                )
            ],
        )
        xs = [shot["pos"]["x"] for shot in result.find_layer("logo")["shots"]]
        assert xs == [10, 601, 100]

    def test_all_sizes_keyword(self, sample_manifest):
        result = apply_modifications(
            sample_manifest,
            [LayerModification(layer_name="logo", position_delta=PositionDelta(x=1), sizes=["all"])],
        )
        xs = [shot["pos"]["x"] for shot in result.find_layer("logo")["shots"]]
        assert xs == [11, 601, 101]

    def test_shrink_clamps_to_minimum(self, sample_manifest):
        result = apply_modifications(
            sample_manifest, [LayerModification(layer_name="logo", scale_factor=0.001)]
        )
        size = first_shot(result, "logo")["size"]
        assert size["w"] == MIN_SHOT_DIMENSION
        assert size["h"] == MIN_SHOT_DIMENSION

    def test_modifications_compound_in_order(self, sample_manifest):
        result = apply_modifications(
            sample_manifest,
            [
                LayerModification(layer_name="logo", scale_factor=2),
                LayerModification(layer_name="logo", position_delta=PositionDelta(x=40, y=15)),
            ],
        )
        assert first_shot(result, "logo")["pos"] == {"x": 0, "y": 0}

    def test_no_modifications_returns_equal_copy(self, sample_manifest):
        result = apply_modifications(sample_manifest, [])
        assert result == sample_manifest
        assert result is not sample_manifest

    def test_unchanged_shot_gains_no_geometry(self):
        manifest = Manifest({"layers": [{"name": "bare", "shots": [{"index": 0}]}]})
        result = apply_modifications(
            manifest,
            [
                LayerModification(layer_name="bare", scale_factor=1),
                LayerModification(layer_name="bare", position_delta=PositionDelta()),
            ],
        )
        assert first_shot(result, "bare") == {"index": 0}

    def test_move_creates_position_only(self):
        manifest = Manifest({"layers": [{"name": "bare", "shots": [{}]}]})
        result = apply_modifications(
            manifest, [LayerModification(layer_name="bare", position_delta=PositionDelta(x=5))]
        )
        assert first_shot(result, "bare") == {"pos": {"x": 5, "y": 0}}
