"""Tests for item classification and folder naming."""

from pathlib import Path

import pytest

from config.settings import StorageConfig
from core.classification import (
    all_folder_names,
    average_confidence,
    classify,
    classify_records,
    folder_name,
)
from core.models import CatalogItem, ImageRecord, ItemStatus


def _record(conf):
    return ImageRecord(Path("x.jpg"), "0" * 16, 0.9, conf, "https://x.com/a.jpg")


class TestClassify:

    def test_nothing_kept(self):
        assert classify(0, 0.99) is ItemStatus.NO_IMAGE_FOUND

    def test_low_confidence(self):
        assert classify(2, 0.69) is ItemStatus.NOT_SURE

    def test_threshold_is_inclusive(self):
        assert classify(2, 0.70) is ItemStatus.FOUND

    def test_opaque_unbranded_pair_is_found(self):
        records = [_record(0.75), _record(0.75)]
        assert average_confidence(records) == pytest.approx(0.75)
        assert classify_records(records) is ItemStatus.FOUND

    def test_average_of_nothing(self):
        assert average_confidence([]) == 0.0


class TestFolderNames:

    def setup_method(self):
        self.cfg = StorageConfig()

    @pytest.mark.parametrize("status,expected", [
        (ItemStatus.FOUND, "HT-100"),
        (ItemStatus.NOT_SURE, "HT-100 (NS)"),
        (ItemStatus.NO_IMAGE_FOUND, "HT-100 (NIF)"),
    ])
    def test_suffixes(self, status, expected):
        assert folder_name("HT-100", status, self.cfg) == expected

    def test_all_names(self):
        assert list(all_folder_names("A", self.cfg)) == ["A", "A (NS)", "A (NIF)"]

    def test_labels(self):
        assert ItemStatus.FOUND.label == "Image found"
        assert ItemStatus.NOT_SURE.label == "NS"
        assert ItemStatus.NO_IMAGE_FOUND.label == "NIF"


class TestCatalogItem:

    def test_none_brand_means_unbranded(self):
        assert CatalogItem("1", "Bottle", "NONE").brand is None
        assert CatalogItem("1", "Bottle", "  ").brand is None
        assert not CatalogItem("1", "Bottle").has_brand

    def test_strips(self):
        item = CatalogItem("  7 ", " Tip ", " HARRIS ")
        assert (item.id, item.name, item.brand) == ("7", "Tip", "HARRIS")
        assert item.status is ItemStatus.PENDING
