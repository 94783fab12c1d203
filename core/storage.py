"""
On-disk layout for kept images.

    <base>/<folder>/<itemId>_<n>_<suffix>.jpg
    <base>/<folder>/metadata.json          (optional sidecar)
    <base>/<folder>/README.txt|README_NS.txt

``<folder>`` is the sanitised item id, plus " (NS)" or " (NIF)" once
the item is classified.  An item owns at most one directory: a status
change renames it, it is never copied.
"""

from __future__ import annotations

import json
import threading
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from PIL import Image

from config.settings import QualityProfile, StorageConfig
from core.classification import all_folder_names, folder_name
from core.models import CatalogItem, ImageRecord, ItemStatus
from imaging.helpers import flatten_to_rgb
from utils.exceptions import StorageError
from utils.log_config import get_logger
from utils.text import sanitize_filename, unique_suffix

log = get_logger(__name__)

README_NAMES = {
    ItemStatus.NO_IMAGE_FOUND: "README.txt",
    ItemStatus.NOT_SURE:       "README_NS.txt",
}


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class FolderManager:
    """
    Tracks the single directory of every item in flight.

    Workers of one item call :meth:`write_image` concurrently; the
    directory is created lazily on the first write.
    """

    def __init__(
        self,
        base_dir: Path,
        cfg: StorageConfig,
        profile: Optional[QualityProfile] = None,
        match_threshold: float = 0.70,
    ) -> None:
        self.base_dir = Path(base_dir)
        self.cfg = cfg
        self.profile = profile
        self.match_threshold = match_threshold
        self._lock = threading.Lock()
        self._folders: Dict[str, Path] = {}

    # ── naming ──────────────────────────────────────────────
    def base_name(self, item_id: str) -> str:
        # leave room for the longest suffix so a rename never overflows
        room = self.cfg.max_name_length - max(len(self.cfg.ns_suffix), len(self.cfg.nif_suffix))
        return sanitize_filename(item_id, max_length=max(room, 1))

    def locate(self, item_id: str) -> Optional[Path]:
        """Existing directory for *item_id* under any of its names."""
        found = [
            self.base_dir / name
            for name in all_folder_names(self.base_name(item_id), self.cfg)
            if (self.base_dir / name).is_dir()
        ]
        if len(found) > 1:
            log.warning("Item %s has %d folders: %s", item_id, len(found), found)
        return found[0] if found else None

    def begin(self, item: CatalogItem) -> Path:
        """
        Pick the directory new images of *item* go into.

        A folder left by an earlier run is reused, but its images,
        sidecar and README are removed first so the cap and the
        ordinals start afresh.
        """
        existing = self.locate(item.id)
        folder = existing or self.base_dir / self.base_name(item.id)
        with self._lock:
            self._folders[item.id] = folder
        if existing is not None:
            self._clear_previous(existing)
        return folder

    def _clear_previous(self, folder: Path) -> None:
        names = {self.cfg.metadata_name, *README_NAMES.values()}
        try:
            stale = [
                p for p in folder.iterdir()
                if p.is_file() and (p.suffix.lower() in (".jpg", ".tmp") or p.name in names)
            ]
            for path in stale:
                path.unlink()
        except OSError as exc:
            raise StorageError(f"Cannot clear previous run in {folder}: {exc}") from exc
        if stale:
            log.info("Cleared %d files from previous run in %s", len(stale), folder.name)

    def current(self, item_id: str) -> Path:
        with self._lock:
            folder = self._folders.get(item_id)
        return folder if folder is not None else self.base_dir / self.base_name(item_id)

    def end(self, item_id: str) -> None:
        with self._lock:
            self._folders.pop(item_id, None)

    # ── writing ─────────────────────────────────────────────
    def write_image(self, item_id: str, image: Image.Image, ordinal: int) -> Path:
        folder = self.current(item_id)
        safe_id = self.base_name(item_id)
        dest = folder / f"{safe_id}_{ordinal}_{unique_suffix(item_id, ordinal)}.jpg"
        try:
            folder.mkdir(parents=True, exist_ok=True)
            flatten_to_rgb(image).save(dest, "JPEG", quality=self.cfg.jpeg_quality)
        except OSError as exc:
            raise StorageError(f"Cannot write {dest}: {exc}") from exc
        return dest

    # ── classification ──────────────────────────────────────
    def finalize(
        self,
        item: CatalogItem,
        records: Sequence[ImageRecord],
    ) -> tuple[Path, List[ImageRecord]]:
        """
        Move the item's directory to its status name and write the
        README / sidecar.  Returns the final folder and the records with
        their paths rewritten into it.
        """
        current = self.current(item.id)
        target = self.base_dir / folder_name(self.base_name(item.id), item.status, self.cfg)

        try:
            if current.is_dir() and current != target:
                if target.exists():
                    raise StorageError(f"Cannot rename {current} → {target}: target exists")
                current.rename(target)
                log.info("Renamed %s → %s", current.name, target.name)
            else:
                target.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"Folder transition failed for {item.id}: {exc}") from exc

        with self._lock:
            self._folders[item.id] = target

        moved = [replace(r, file_path=target / r.file_path.name) for r in records]

        try:
            self._write_readme(item, target)
            if self.cfg.write_metadata and moved:
                self.write_metadata(target, moved)
        except OSError as exc:
            raise StorageError(f"Writing folder notes for {item.id} failed: {exc}") from exc

        return target, moved

    def write_metadata(self, folder: Path, records: Sequence[ImageRecord]) -> Path:
        entries = [
            {
                "fileName": r.file_path.name,
                "url": r.source_url,
                "downloadDate": r.downloaded_at,
                "qualityScore": round(r.quality_score, 4),
                "dimensions": {"width": r.width, "height": r.height},
                "backgroundConfidence": round(r.background_confidence, 4),
                "hasWatermark": r.has_watermark,
                "matchConfidence": round(r.match_confidence, 4),
            }
            for r in records
        ]
        path = folder / self.cfg.metadata_name
        tmp = path.with_suffix(".tmp")
        tmp.write_text(json.dumps(entries, indent=2), encoding="utf-8")
        tmp.replace(path)
        return path

    def _write_readme(self, item: CatalogItem, folder: Path) -> None:
        for status, name in README_NAMES.items():
            stale = folder / name
            if status is not item.status and stale.exists():
                stale.unlink()

        name = README_NAMES.get(item.status)
        if name is None or not self.cfg.write_readme:
            return
        (folder / name).write_text(self.readme_text(item), encoding="utf-8")

    def readme_text(self, item: CatalogItem) -> str:
        lines = []
        if item.status is ItemStatus.NO_IMAGE_FOUND:
            lines.append(f"No Image Found (NIF) - {item.id}")
        else:
            lines.append(
                f"Not Sure (NS) - Image Matching Confidence Below "
                f"{self.match_threshold:.0%} - {item.id}"
            )
        lines += [
            "",
            "Product Details:",
            f"- Item ID: {item.id}",
            f"- Name: {item.name or 'N/A'}",
            f"- Brand: {item.brand or 'N/A'}",
            "",
            f"Generated: {utc_now()}",
        ]
        if item.status is ItemStatus.NOT_SURE:
            lines += [
                f"Image Matching Confidence: {item.confidence:.1%}",
                f"Threshold Required: {self.match_threshold:.0%}",
                "Reason: Images found but matching confidence below threshold.",
                "Manual verification is recommended before using these images.",
            ]
        else:
            lines.append("Reason: No suitable images found that meet the quality criteria.")

        p = self.profile
        if p is not None:
            lines += [
                "",
                f"Quality Criteria Applied ({p.name}):",
                f"- Image Size: {p.min_side}x{p.min_side} to {p.max_side}x{p.max_side} pixels",
                f"- Aspect Ratio: {p.min_aspect:.2f} - {p.max_aspect:.2f}",
                f"- Plain Background: {'Required' if p.check_background else 'Not checked'}",
                f"- No Watermarks: {'Required' if p.check_watermark and not p.allow_watermark else 'Not checked'}",
            ]
        return "\n".join(lines) + "\n"
