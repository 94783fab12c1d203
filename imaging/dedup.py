"""
Perceptual deduplication with a 64-bit average hash.

Fingerprints are hex strings from :func:`imagehash.average_hash`;
similarity is ``1 - hamming / bits``.
"""

from __future__ import annotations

from typing import Iterable, Optional

import imagehash
from PIL import Image

from config.settings import DedupConfig
from utils.log_config import get_logger

log = get_logger(__name__)


def compute_fingerprint(img: Image.Image, hash_size: int = 8) -> str:
    """Average hash of *img* as a hex string (``hash_size**2`` bits)."""
    if not isinstance(img, Image.Image):
        raise TypeError("compute_fingerprint expects a PIL.Image.Image instance")
    work = img.convert("RGB") if img.mode not in {"RGB", "L"} else img
    return str(imagehash.average_hash(work, hash_size=hash_size))


def hamming_distance_hex(h1: str, h2: str) -> int:
    """Return the Hamming distance between two hexadecimal hash strings."""
    a, b = _normalise_hex(h1), _normalise_hex(h2)
    width = max(len(a), len(b))
    if width == 0:
        return 0
    try:
        xor = int(a.zfill(width), 16) ^ int(b.zfill(width), 16)
    except ValueError as exc:
        raise ValueError("Inputs must be hexadecimal strings") from exc
    return bin(xor).count("1")


def similarity(h1: str, h2: str) -> float:
    """Fraction of equal bits, in ``[0, 1]``."""
    bits = 4 * max(len(_normalise_hex(h1)), len(_normalise_hex(h2)))
    if bits == 0:
        return 1.0
    return 1.0 - hamming_distance_hex(h1, h2) / bits


def _normalise_hex(value: str) -> str:
    if not isinstance(value, str):
        raise TypeError("Hash values must be provided as strings")
    stripped = value.strip().lower()
    return stripped[2:] if stripped.startswith("0x") else stripped


class Deduplicator:
    """Stateless comparator; the accepted set lives in the item context."""

    def __init__(self, cfg: DedupConfig) -> None:
        self.cfg = cfg

    def fingerprint(self, img: Image.Image) -> str:
        return compute_fingerprint(img, self.cfg.hash_size)

    def is_duplicate(self, fp: str, other: str) -> bool:
        return similarity(fp, other) >= self.cfg.duplicate_threshold

    def find_duplicate(self, fp: str, accepted: Iterable[str]) -> Optional[str]:
        """First accepted fingerprint that *fp* duplicates, or ``None``."""
        for other in accepted:
            if self.is_duplicate(fp, other):
                log.debug(
                    "Duplicate fingerprint %s ~ %s (similarity %.3f)",
                    fp, other, similarity(fp, other),
                )
                return other
        return None
