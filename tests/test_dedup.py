"""Tests for perceptual deduplication."""

from io import BytesIO

import pytest
from PIL import Image

from config.settings import DedupConfig
from imaging.dedup import Deduplicator, compute_fingerprint, hamming_distance_hex, similarity
from conftest import pattern_image


def _open(data):
    return Image.open(BytesIO(data))


class TestHamming:

    def test_identical(self):
        assert hamming_distance_hex("ffff0000ffff0000", "ffff0000ffff0000") == 0
        assert similarity("ffff0000ffff0000", "ffff0000ffff0000") == 1.0

    def test_distance(self):
        assert hamming_distance_hex("0000000000000000", "000000000000003f") == 6
        assert similarity("0000000000000000", "ffffffffffffffff") == 0.0

    def test_prefix_and_case(self):
        assert hamming_distance_hex("0xFF", "ff") == 0

    def test_rejects_non_hex(self):
        with pytest.raises(ValueError):
            hamming_distance_hex("zz", "00")
        with pytest.raises(TypeError):
            similarity(123, "00")


class TestDeduplicator:

    def setup_method(self):
        self.dedup = Deduplicator(DedupConfig())

    def test_six_bits_is_duplicate(self):
        assert self.dedup.is_duplicate("0000000000000000", "000000000000003f")

    def test_seven_bits_is_not(self):
        assert not self.dedup.is_duplicate("0000000000000000", "000000000000007f")

    def test_find_duplicate(self):
        accepted = ["ffffffffffffffff", "0000000000000001"]
        assert self.dedup.find_duplicate("0000000000000000", accepted) == "0000000000000001"
        assert self.dedup.find_duplicate("00000000ffffffff", accepted) is None

    def test_fingerprint_is_64_bits(self):
        fp = compute_fingerprint(_open(pattern_image("rows")))
        assert len(fp) == 16

    def test_same_picture_different_noise(self):
        a = self.dedup.fingerprint(_open(pattern_image("rows", seed=1)))
        b = self.dedup.fingerprint(_open(pattern_image("rows", seed=2)))
        assert self.dedup.is_duplicate(a, b)

    def test_jpeg_reencode_is_duplicate(self):
        a = self.dedup.fingerprint(_open(pattern_image("checker", fmt="PNG")))
        b = self.dedup.fingerprint(_open(pattern_image("checker", fmt="JPEG")))
        assert self.dedup.is_duplicate(a, b)

    def test_different_pictures(self):
        a = self.dedup.fingerprint(_open(pattern_image("rows")))
        b = self.dedup.fingerprint(_open(pattern_image("cols")))
        assert similarity(a, b) == pytest.approx(0.5)
        assert not self.dedup.is_duplicate(a, b)

    def test_rejects_non_image(self):
        with pytest.raises(TypeError):
            compute_fingerprint(b"not an image")
