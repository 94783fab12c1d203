"""
Text helpers shared by the URL filter, match estimator and folder layout.
"""

from __future__ import annotations

import hashlib
import re
import time
import unicodedata
from typing import List, Optional

from utils.log_config import get_logger

log = get_logger(__name__)

_TOKEN_RE = re.compile(r"[a-z0-9]+")
_UNSAFE_RE = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
_VOWELS = frozenset("aeiouy")


def normalise(text: Optional[str]) -> str:
    """Lower-case, strip accents and collapse whitespace."""
    if not text:
        return ""
    text = unicodedata.normalize("NFKD", str(text))
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    return " ".join(text.lower().split())


def tokenize(text: Optional[str]) -> List[str]:
    """
    Split *text* into lower-case alphanumeric tokens.

    Examples:
        "Harris-Acetylene_Tip 2NX.jpg" → ["harris", "acetylene", "tip", "2nx", "jpg"]
    """
    return _TOKEN_RE.findall(normalise(text))


def has_vowel(token: str) -> bool:
    return any(ch in _VOWELS for ch in token)


def clean_spaced_text(text: Optional[str]) -> str:
    """
    Fix spreadsheet values where characters are separated by spaces.

    Examples:
        "H A R R I S" → "HARRIS"
        "normal text" → "normal text" (unchanged)
    """
    if not text:
        return ""
    tokens = str(text).split()
    if not tokens:
        return ""

    single = sum(1 for t in tokens if len(t) == 1)
    if len(tokens) > 2 and single / len(tokens) > 0.7:
        groups = re.split(r"\s{2,}", str(text).strip())
        return " ".join("".join(g.split()) for g in groups if g.strip())

    return " ".join(tokens)


def sanitize_filename(name: str, max_length: int = 255) -> str:
    """
    Make *name* safe as a single path component.

    Reserved characters become ``_``, whitespace collapses, and the
    result is trimmed to *max_length* characters.
    """
    cleaned = _UNSAFE_RE.sub("_", str(name))
    cleaned = re.sub(r"\s+", " ", cleaned).strip().strip(".")
    if not cleaned:
        cleaned = "_"
    return cleaned[:max_length]


def unique_suffix(*parts: object, length: int = 8) -> str:
    """Short hex suffix, distinct per call even for identical *parts*."""
    seed = "_".join(str(p) for p in parts) + f"_{time.time_ns()}"
    return hashlib.md5(seed.encode("utf-8")).hexdigest()[:length]
