"""Tests for the on-disk folder layout."""

import json
from io import BytesIO
from unittest.mock import patch

import pytest
from PIL import Image

from config.settings import STRICT, StorageConfig
from core.models import CatalogItem, ImageRecord, ItemStatus
from core.storage import FolderManager
from utils.exceptions import StorageError
from conftest import product_shot


@pytest.fixture
def folders(tmp_dir):
    return FolderManager(tmp_dir, StorageConfig(), profile=STRICT)


def _image(seed=0):
    return Image.open(BytesIO(product_shot(seed)))


def _keep(folders, item, n):
    records = []
    for i in range(1, n + 1):
        path = folders.write_image(item.id, _image(i), i)
        records.append(ImageRecord(
            file_path=path,
            fingerprint=f"{i:016x}",
            quality_score=0.9,
            match_confidence=0.8,
            source_url=f"https://x.com/{i}.jpg",
            slot=i - 1,
            width=800,
            height=800,
            downloaded_at="2026-01-01T00:00:00+00:00",
        ))
    return records


class TestWriteImage:

    def test_file_name_layout(self, folders, tmp_dir):
        item = CatalogItem("HT-100", "Tip", "HARRIS")
        folders.begin(item)
        path = folders.write_image(item.id, _image(), 1)
        assert path.parent == tmp_dir / "HT-100"
        stem = path.stem.split("_")
        assert stem[0] == "HT-100" and stem[1] == "1" and len(stem[2]) == 8
        assert path.suffix == ".jpg"
        assert Image.open(path).format == "JPEG"

    def test_unsafe_id_is_sanitised(self, folders, tmp_dir):
        item = CatalogItem("A/B:C", "Tip")
        folders.begin(item)
        path = folders.write_image(item.id, _image(), 1)
        assert path.parent == tmp_dir / "A_B_C"

    def test_write_failure_is_storage_error(self, folders):
        item = CatalogItem("HT-100")
        folders.begin(item)
        image = _image()
        with patch("PIL.Image.Image.save", side_effect=OSError("disk full")):
            with pytest.raises(StorageError):
                folders.write_image(item.id, image, 1)


class TestFinalize:

    def test_found_keeps_base_name(self, folders, tmp_dir):
        item = CatalogItem("HT-100", "Tip", "HARRIS", status=ItemStatus.FOUND)
        folders.begin(item)
        records = _keep(folders, item, 2)
        target, moved = folders.finalize(item, records)
        assert target == tmp_dir / "HT-100"
        assert all(r.file_path.exists() for r in moved)
        assert not (target / "README.txt").exists()

        meta = json.loads((target / "metadata.json").read_text())
        assert [m["fileName"] for m in meta] == [r.file_path.name for r in moved]
        assert meta[0]["dimensions"] == {"width": 800, "height": 800}
        assert set(meta[0]) == {
            "fileName", "url", "downloadDate", "qualityScore", "dimensions",
            "backgroundConfidence", "hasWatermark", "matchConfidence",
        }

    def test_not_sure_renames_folder(self, folders, tmp_dir):
        item = CatalogItem("HT-100", "Tip", "HARRIS", status=ItemStatus.NOT_SURE, confidence=0.4)
        folders.begin(item)
        records = _keep(folders, item, 2)
        target, moved = folders.finalize(item, records)

        assert target == tmp_dir / "HT-100 (NS)"
        assert not (tmp_dir / "HT-100").exists()
        assert all(r.file_path.parent == target and r.file_path.exists() for r in moved)
        readme = (target / "README_NS.txt").read_text()
        assert "Not Sure (NS)" in readme and "40.0%" in readme

    def test_nothing_kept_creates_nif_folder(self, folders, tmp_dir):
        item = CatalogItem("WB-200", "Bottle", status=ItemStatus.NO_IMAGE_FOUND)
        folders.begin(item)
        target, moved = folders.finalize(item, [])
        assert target == tmp_dir / "WB-200 (NIF)"
        assert moved == []
        readme = (target / "README.txt").read_text()
        assert "No Image Found (NIF)" in readme
        assert "Image Size: 800x800 to 1200x1200" in readme
        assert not (target / "metadata.json").exists()

    def test_rerun_moves_old_ns_folder(self, folders, tmp_dir):
        item = CatalogItem("HT-100", "Tip", "HARRIS", status=ItemStatus.NOT_SURE)
        folders.begin(item)
        folders.finalize(item, _keep(folders, item, 1))
        folders.end(item.id)

        again = CatalogItem("HT-100", "Tip", "HARRIS", status=ItemStatus.FOUND)
        assert folders.begin(again) == tmp_dir / "HT-100 (NS)"
        target, _ = folders.finalize(again, [])
        assert target == tmp_dir / "HT-100"
        assert not (tmp_dir / "HT-100 (NS)").exists()
        assert not (target / "README_NS.txt").exists()

    def test_existing_target_is_storage_error(self, folders, tmp_dir):
        (tmp_dir / "HT-100").mkdir()
        (tmp_dir / "HT-100 (NS)").mkdir()
        item = CatalogItem("HT-100", status=ItemStatus.NOT_SURE)
        assert folders.begin(item) == tmp_dir / "HT-100"
        with pytest.raises(StorageError):
            folders.finalize(item, [])

    def test_sidecar_disabled(self, tmp_dir):
        folders = FolderManager(tmp_dir, StorageConfig(write_metadata=False))
        item = CatalogItem("HT-100", status=ItemStatus.FOUND)
        folders.begin(item)
        target, _ = folders.finalize(item, _keep(folders, item, 1))
        assert not (target / "metadata.json").exists()


class TestRerun:

    def test_previous_images_cleared_on_reuse(self, folders, tmp_dir):
        item = CatalogItem("HT-100", "Tip", "HARRIS", status=ItemStatus.FOUND)
        folders.begin(item)
        folders.finalize(item, _keep(folders, item, 3))
        folders.end(item.id)
        (tmp_dir / "HT-100" / "notes.txt").write_text("keep me")

        again = CatalogItem("HT-100", "Tip", "HARRIS", status=ItemStatus.FOUND)
        folder = folders.begin(again)
        assert folder == tmp_dir / "HT-100"
        assert not list(folder.glob("*.jpg"))
        assert not (folder / "metadata.json").exists()
        assert (folder / "notes.txt").exists()

        target, moved = folders.finalize(again, _keep(folders, again, 2))
        assert sorted(p.name.split("_")[1] for p in target.glob("*.jpg")) == ["1", "2"]
        assert len(json.loads((target / "metadata.json").read_text())) == 2

    def test_empty_rerun_leaves_no_old_images(self, folders, tmp_dir):
        item = CatalogItem("HT-100", "Tip", "HARRIS", status=ItemStatus.FOUND)
        folders.begin(item)
        folders.finalize(item, _keep(folders, item, 1))
        folders.end(item.id)

        again = CatalogItem("HT-100", "Tip", "HARRIS", status=ItemStatus.NO_IMAGE_FOUND)
        folders.begin(again)
        target, _ = folders.finalize(again, [])
        assert target == tmp_dir / "HT-100 (NIF)"
        assert not list(target.glob("*.jpg"))
        assert (target / "README.txt").exists()

    def test_clear_failure_is_storage_error(self, folders, tmp_dir):
        (tmp_dir / "HT-100").mkdir()
        (tmp_dir / "HT-100" / "HT-100_1_deadbeef.jpg").write_bytes(b"x")
        with patch("pathlib.Path.unlink", side_effect=OSError("read-only")):
            with pytest.raises(StorageError):
                folders.begin(CatalogItem("HT-100"))
