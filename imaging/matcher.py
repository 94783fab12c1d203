"""
Product-match confidence from the image's originating URL.

Two modes:
    descriptive — the filename carries real words; score brand, fuzzy
                  name similarity and attribute overlap.
    opaque      — the filename is a hash / SKU; fall back to how far we
                  trust the source that produced the candidate.

The descriptive/opaque switch is a tunable heuristic, not a classifier.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set
from urllib.parse import unquote, urlparse

from rapidfuzz import fuzz

from config.settings import MatchConfig
from utils.log_config import get_logger
from utils.text import has_vowel, normalise, tokenize

log = get_logger(__name__)

DESCRIPTIVE = "descriptive"
OPAQUE = "opaque"

NOISE_WORDS = frozenset({
    "img", "image", "images", "product", "products", "photo", "photos",
    "pic", "picture", "main", "large", "big", "file", "default", "original",
    "orig", "zoom", "detail", "details", "hero", "thumb", "front", "back",
    "side", "view", "alt", "primary", "media", "upload", "uploads", "copy",
    "final", "new", "hd", "hires", "jpg", "jpeg", "png", "web", "www",
})

COLOURS = frozenset({
    "red", "blue", "green", "yellow", "black", "white", "gray", "grey",
    "brown", "pink", "purple", "orange", "silver", "gold", "beige", "navy",
    "maroon",
})

MATERIALS = frozenset({
    "cotton", "polyester", "silk", "wool", "leather", "plastic", "metal",
    "wood", "glass", "ceramic", "rubber", "steel", "aluminum", "aluminium",
    "brass", "copper", "nylon", "stainless",
})

_SIZE_PATTERNS = (
    re.compile(r"\b(xs|xl|xxl|xxxl)\b"),
    re.compile(r"\b\d+(?:\.\d+)?\s*(?:cm|mm|m|inch|in|ft|ml|l|kg|g|oz|lb|v|w)\b"),
    re.compile(r"\b\d+\s*x\s*\d+(?:\s*x\s*\d+)?\b"),
    re.compile(r"\b(?:small|medium|large)\b"),
)


@dataclass
class MatchResult:
    confidence:       float
    mode:             str
    is_match:         bool
    is_perfect_match: bool
    details:          Dict[str, float] = field(default_factory=dict)


def filename_stem(url: str) -> str:
    """URL-decoded last path segment without its extension."""
    name = unquote(urlparse(url).path).rstrip("/").rsplit("/", 1)[-1]
    return name.rsplit(".", 1)[0] if "." in name else name


def is_descriptive_token(token: str) -> bool:
    return (
        token.isalpha()
        and len(token) >= 3
        and has_vowel(token)
        and token not in NOISE_WORDS
    )


def is_descriptive(filename: str) -> bool:
    """True when *filename* has at least one word-like, non-generic token."""
    return any(is_descriptive_token(t) for t in tokenize(filename))


def spans_tokens(tokens: List[str], target: str) -> bool:
    """
    True when *target* is one token, a run of adjacent tokens joined
    together ("de", "walt" → "dewalt"), or the start of a single token.

    Matches never begin or end inside a word, so "ge" is not found in
    "large-hinge".  The prefix form needs at least three characters.
    """
    if not target:
        return False
    for i, token in enumerate(tokens):
        if len(target) >= 3 and token.startswith(target):
            return True
        joined = ""
        for nxt in tokens[i:]:
            joined += nxt
            if joined == target:
                return True
            if not target.startswith(joined):
                break
    return False


def extract_attributes(name: str) -> Set[str]:
    """Sizes, model codes, colours and materials mentioned in a product name."""
    text = normalise(name)
    attrs: Set[str] = set()
    for pattern in _SIZE_PATTERNS:
        for m in pattern.finditer(text):
            attrs.add(re.sub(r"[^a-z0-9.]", "", m.group(0)))
    for token in tokenize(text):
        if any(ch.isdigit() for ch in token) and len(token) >= 2:
            attrs.add(token)
        elif token in COLOURS or token in MATERIALS:
            attrs.add(token)
    return {a for a in attrs if a}


class MatchEstimator:
    """Stateless; safe to share across workers."""

    def __init__(self, cfg: MatchConfig) -> None:
        self.cfg = cfg

    # ── public ──────────────────────────────────────────────
    def estimate(
        self,
        url: str,
        name: str,
        brand: Optional[str] = None,
        source: str = "",
    ) -> MatchResult:
        stem = filename_stem(url)
        if is_descriptive(stem):
            confidence, details = self._descriptive(stem, name, brand)
            mode = DESCRIPTIVE
        else:
            confidence, details = self._opaque(name, brand, source)
            mode = OPAQUE

        confidence = max(0.0, min(1.0, confidence))
        result = MatchResult(
            confidence=confidence,
            mode=mode,
            is_match=confidence >= self.cfg.match_threshold,
            is_perfect_match=confidence >= self.cfg.perfect_threshold,
            details=details,
        )
        log.debug("Match %.3f (%s) for %s", confidence, mode, stem)
        return result

    # ── descriptive ─────────────────────────────────────────
    def _descriptive(self, stem: str, name: str, brand: Optional[str]):
        c = self.cfg
        file_tokens = tokenize(stem)
        brand_tokens = set(tokenize(brand)) if brand else set()
        # brand and bare counters ("-1", "-02") say nothing about the name
        name_tokens = [
            t for t in file_tokens
            if t not in brand_tokens and not t.isdigit() and t not in NOISE_WORDS
        ]

        name_score = self.name_similarity(" ".join(name_tokens), name)
        attr_score = self.attribute_overlap(file_tokens, name)

        if brand:
            brand_score = self.brand_match(file_tokens, brand)
            confidence = (
                brand_score * c.w_brand
                + name_score * c.w_name
                + attr_score * c.w_attributes
            )
            if brand_score >= 1.0 and name_score >= c.strong_name:
                confidence += c.strong_bonus
            details = {"brand": brand_score, "name": name_score, "attributes": attr_score}
        else:
            confidence = name_score * c.unbranded_w_name + attr_score * c.unbranded_w_attrs
            details = {"name": name_score, "attributes": attr_score}
        return confidence, details

    @staticmethod
    def name_similarity(file_text: str, name: str) -> float:
        name_text = " ".join(tokenize(name))
        if not file_text or not name_text:
            return 0.0
        return fuzz.token_set_ratio(file_text, name_text) / 100.0

    @staticmethod
    def brand_match(file_tokens: List[str], brand: str) -> float:
        """1.0 exact, 0.5 for a brand word or the initials, 0.0 otherwise."""
        brand_tokens = tokenize(brand)
        if not brand_tokens:
            return 0.0
        if spans_tokens(file_tokens, "".join(brand_tokens)):
            return 1.0
        if any(len(t) >= 3 and t in file_tokens for t in brand_tokens):
            return 0.5
        if len(brand_tokens) > 1:
            initials = "".join(t[0] for t in brand_tokens)
            if initials in file_tokens:
                return 0.5
        return 0.0
    @staticmethod
    def attribute_overlap(file_tokens: List[str], name: str) -> float:
        attrs = extract_attributes(name)
        if not attrs:
            return 0.5
        compact_file = "".join(file_tokens)
        hits = sum(
            1 for a in attrs
            if a in file_tokens or (len(a) >= 3 and a.replace(".", "") in compact_file)
        )
        return hits / len(attrs)

    # ── opaque ──────────────────────────────────────────────
    def _opaque(self, name: str, brand: Optional[str], source: str):
        c = self.cfg
        descriptive = [t for t in tokenize(name) if is_descriptive_token(t)]
        if brand:
            confidence = c.opaque_branded
            if len(descriptive) >= c.descriptive_tokens:
                confidence += c.descriptive_bonus
        elif source in c.trusted_sources:
            confidence = c.opaque_default
        else:
            confidence = c.opaque_unbranded
        return confidence, {"source_trust": confidence, "name_tokens": float(len(descriptive))}
