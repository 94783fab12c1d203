"""Tests for match confidence estimation."""

import pytest

from config.settings import MatchConfig
from imaging.matcher import (
    DESCRIPTIVE,
    OPAQUE,
    MatchEstimator,
    extract_attributes,
    filename_stem,
    is_descriptive,
)


@pytest.fixture
def matcher():
    return MatchEstimator(MatchConfig())


class TestFilenames:

    def test_stem(self):
        assert filename_stem("https://x.com/a/Harris%20Tip.jpg?w=1") == "Harris Tip"

    @pytest.mark.parametrize("stem,expected", [
        ("harris-acetylene-tip", True),
        ("8f3e2b91", False),
        ("IMG_2041", False),
        ("product-image-1", False),
        ("DSC01234", False),
        ("widget", True),
    ])
    def test_descriptive(self, stem, expected):
        assert is_descriptive(stem) is expected

    def test_attributes(self):
        attrs = extract_attributes("Steel Water Bottle 500ml Blue")
        assert {"500ml", "steel", "blue"} <= attrs
        assert "water" not in attrs


class TestDescriptiveMode:

    def test_brand_and_name_match(self, matcher):
        res = matcher.estimate(
            "https://cdn.example.com/p/harris-acetylene-tip-2nx.jpg",
            "Acetylene Cutting Tip 2NX",
            "HARRIS",
        )
        assert res.mode == DESCRIPTIVE
        assert res.details["brand"] == 1.0
        assert res.details["attributes"] == 1.0
        assert res.is_match
        assert res.confidence >= 0.9

    def test_unrelated_file(self, matcher):
        res = matcher.estimate(
            "https://cdn.example.com/p/garden-hose-reel.jpg",
            "Acetylene Cutting Tip 2NX",
            "HARRIS",
        )
        assert res.mode == DESCRIPTIVE
        assert res.details["brand"] == 0.0
        assert not res.is_match

    def test_partial_brand_word(self, matcher):
        assert MatchEstimator.brand_match(["victor", "tip"], "Victor Technologies") == 0.5

    def test_brand_initials(self, matcher):
        assert MatchEstimator.brand_match(["vt", "tip"], "Victor Technologies") == 0.5

    def test_compact_brand(self, matcher):
        assert MatchEstimator.brand_match(["3m", "tape"], "3 M") == 1.0

    def test_brand_and_one_name_word_is_a_match(self, matcher):
        res = matcher.estimate(
            "https://cdn.example.com/p/harris-tip-1.jpg",
            "Acetylene Cutting Tip 2NX",
            "HARRIS",
        )
        assert res.details["brand"] == 1.0
        assert res.details["name"] == pytest.approx(1.0)
        assert res.confidence == pytest.approx(0.85)
        assert res.is_match

    def test_counters_and_noise_do_not_dilute_name(self, matcher):
        plain = matcher.estimate("https://x.com/harris-cutting-tip.jpg", "Acetylene Cutting Tip", "HARRIS")
        noisy = matcher.estimate("https://x.com/harris-cutting-tip-main-02.jpg", "Acetylene Cutting Tip", "HARRIS")
        assert noisy.details["name"] == plain.details["name"]

    def test_short_brand_needs_whole_word(self, matcher):
        assert MatchEstimator.brand_match(["large", "hinge"], "GE") == 0.0
        assert MatchEstimator.brand_match(["ge", "hinge"], "GE") == 1.0

    def test_brand_split_across_words(self, matcher):
        assert MatchEstimator.brand_match(["de", "walt", "drill"], "DeWalt") == 1.0
        assert MatchEstimator.brand_match(["harrisproducts", "tip"], "HARRIS") == 1.0
        assert MatchEstimator.brand_match(["pharris", "tip"], "HARRIS") == 0.0

    def test_unbranded_weights(self, matcher):
        res = matcher.estimate(
            "https://x.com/steel-water-bottle-500ml-blue.jpg",
            "Steel Water Bottle 500ml Blue",
        )
        assert "brand" not in res.details
        assert res.details["name"] == pytest.approx(1.0)
        assert res.confidence == pytest.approx(1.0)

    def test_no_attributes_is_neutral(self):
        assert MatchEstimator.attribute_overlap(["anything"], "Widget") == 0.5


class TestOpaqueMode:

    def test_branded(self, matcher):
        res = matcher.estimate("https://x.com/8f3e2b91.jpg", "Tip 2NX", "HARRIS")
        assert res.mode == OPAQUE
        assert res.confidence == pytest.approx(0.95)

    def test_branded_descriptive_name_bonus(self, matcher):
        res = matcher.estimate("https://x.com/8f3e2b91.jpg", "Acetylene Cutting Tip", "HARRIS")
        assert res.confidence == pytest.approx(0.98)
        assert res.is_perfect_match

    def test_unbranded_untrusted(self, matcher):
        res = matcher.estimate("https://x.com/8f3e2b91.jpg", "Water Bottle")
        assert res.confidence == pytest.approx(0.75)
        assert res.is_match

    def test_unbranded_trusted_source(self, matcher):
        res = matcher.estimate("https://x.com/8f3e2b91.jpg", "Water Bottle", source="manufacturer")
        assert res.confidence == pytest.approx(0.85)

    def test_confidence_is_clamped(self):
        m = MatchEstimator(MatchConfig(opaque_branded=0.99, descriptive_bonus=0.5))
        res = m.estimate("https://x.com/0001.jpg", "Acetylene Cutting Tip", "HARRIS")
        assert res.confidence == 1.0
