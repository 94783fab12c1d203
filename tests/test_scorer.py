"""Tests for the image quality scorer."""

from io import BytesIO

import numpy as np
import pytest
from PIL import Image

from config.settings import RELAXED, STRICT
from imaging.cache import ScoreCache
from imaging.scorer import ImageQualityScorer, background_whiteness, sharpness, watermark_ratio
from conftest import pattern_image, product_shot


def _png(arr):
    buf = BytesIO()
    Image.fromarray(arr.astype(np.uint8)).save(buf, "PNG")
    return buf.getvalue()


def _dotted():
    """White square whose centre is covered in isolated black dots."""
    arr = np.full((800, 800, 3), 255, dtype=np.uint8)
    arr[200:600:5, 200:600:5] = 0
    return _png(arr)


class TestHeuristics:

    def test_white_border(self):
        rgb = np.asarray(Image.open(BytesIO(product_shot())).convert("RGB"))
        assert background_whiteness(rgb) == pytest.approx(1.0)

    def test_dark_border(self):
        rgb = np.zeros((400, 400, 3), dtype=np.uint8)
        assert background_whiteness(rgb) == 0.0

    def test_noise_is_sharp(self):
        assert sharpness(Image.open(BytesIO(product_shot()))) > 0.3

    def test_flat_is_blurry(self):
        assert sharpness(Image.new("RGB", (400, 400), (120, 120, 120))) == 0.0

    def test_dots_look_like_watermark(self):
        assert watermark_ratio(Image.open(BytesIO(_dotted()))) > 0.1

    def test_clean_shot_has_no_watermark(self):
        assert watermark_ratio(Image.open(BytesIO(product_shot()))) < 0.01


class TestStrictProfile:

    def setup_method(self):
        self.scorer = ImageQualityScorer(STRICT)

    def test_product_shot_passes(self):
        report = self.scorer.score_bytes(product_shot())
        assert report.is_valid, report.reasons
        assert report.has_plain_background
        assert not report.has_watermark
        assert report.score > 0.9

    def test_busy_background_fails(self):
        report = self.scorer.score_bytes(pattern_image("rows"))
        assert not report.is_valid
        assert any(r.startswith("Background not plain") for r in report.reasons)

    def test_small_image_fails(self):
        report = self.scorer.score_bytes(product_shot(side=600))
        assert not report.is_valid
        assert any(r.startswith("Size out of range") for r in report.reasons)

    def test_not_square(self):
        arr = np.full((800, 1000, 3), 255, dtype=np.uint8)
        arr[200:600, 250:750] = np.random.default_rng(0).integers(70, 131, (400, 500, 1))
        report = self.scorer.score_bytes(_png(arr))
        assert "Not square: 1000x800" in report.reasons

    def test_watermark_rejected(self):
        report = self.scorer.score_bytes(_dotted())
        assert report.has_watermark
        assert "Watermark detected" in report.reasons
        assert not report.is_valid

    def test_blurry_and_tiny_file(self):
        arr = np.full((800, 800, 3), 255, dtype=np.uint8)
        arr[200:600, 200:600] = 120
        report = self.scorer.score_bytes(_png(arr))
        assert any(r.startswith("Too blurry") for r in report.reasons)
        assert any(r.startswith("File size out of range") for r in report.reasons)


class TestRelaxedProfile:

    def setup_method(self):
        self.scorer = ImageQualityScorer(RELAXED)

    def test_busy_background_allowed(self):
        report = self.scorer.score_bytes(pattern_image("rows"))
        assert report.is_valid, report.reasons
        assert report.background_confidence == RELAXED.assumed_background

    def test_wider_aspect_band(self):
        arr = np.random.default_rng(3).integers(0, 256, (800, 960, 3))
        report = self.scorer.score_bytes(_png(arr))
        assert report.is_square
        assert report.is_valid, report.reasons

    def test_size_band(self):
        report = self.scorer.score_bytes(product_shot(side=600))
        assert report.meets_size

    def test_score_is_bounded(self):
        report = self.scorer.score_bytes(pattern_image("cols"))
        assert 0.0 <= report.score <= 1.0


class TestScoreCache:

    def test_second_call_hits_cache(self):
        cache = ScoreCache(max_entries=4)
        scorer = ImageQualityScorer(RELAXED, cache=cache)
        data = pattern_image("rows")
        first = scorer.score_bytes(data)
        second = scorer.score_bytes(data)
        assert second is first
        assert cache.stats()["hits"] == 1

    def test_profiles_do_not_share_entries(self):
        cache = ScoreCache()
        data = product_shot()
        ImageQualityScorer(STRICT, cache=cache).score_bytes(data)
        report = ImageQualityScorer(RELAXED, cache=cache).score_bytes(data)
        assert report.profile == "relaxed"
        assert len(cache) == 2

    def test_lru_eviction(self):
        cache = ScoreCache(max_entries=2)
        cache.put("a", 1)
        cache.put("b", 2)
        cache.get("a")
        cache.put("c", 3)
        assert cache.get("b") is None
        assert cache.get("a") == 1
        assert len(cache) == 2
