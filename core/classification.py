"""
Terminal classification of an item once all its downloads are done.

    0 kept images                        → NoImageFound
    average confidence < match threshold → NotSure
    otherwise                            → Found
"""

from __future__ import annotations

from typing import Iterable, Sequence

from config.settings import StorageConfig
from core.models import ImageRecord, ItemStatus


def average_confidence(records: Sequence[ImageRecord]) -> float:
    if not records:
        return 0.0
    return sum(r.match_confidence for r in records) / len(records)


def classify(kept: int, avg_confidence: float, threshold: float = 0.70) -> ItemStatus:
    """Pure function of ``(kept count, average confidence)``."""
    if kept <= 0:
        return ItemStatus.NO_IMAGE_FOUND
    if avg_confidence < threshold:
        return ItemStatus.NOT_SURE
    return ItemStatus.FOUND


def classify_records(records: Sequence[ImageRecord], threshold: float = 0.70) -> ItemStatus:
    return classify(len(records), average_confidence(records), threshold)


def folder_suffix(status: ItemStatus, cfg: StorageConfig) -> str:
    if status is ItemStatus.NOT_SURE:
        return cfg.ns_suffix
    if status is ItemStatus.NO_IMAGE_FOUND:
        return cfg.nif_suffix
    return ""


def folder_name(base: str, status: ItemStatus, cfg: StorageConfig) -> str:
    return f"{base}{folder_suffix(status, cfg)}"


def all_folder_names(base: str, cfg: StorageConfig) -> Iterable[str]:
    """Every name an item's directory may carry, base name first."""
    return (base, f"{base}{cfg.ns_suffix}", f"{base}{cfg.nif_suffix}")
