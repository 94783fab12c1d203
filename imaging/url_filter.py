"""
Cheap, network-free screening of candidate URLs.

A URL is dropped when it is not an absolute http(s) URL, carries a
disallowed file extension, or looks like a logo / banner / thumbnail.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple
from urllib.parse import unquote, urlparse

from config.settings import FilterConfig
from utils.log_config import get_logger
from utils.text import tokenize

log = get_logger(__name__)

_EXT_RE = re.compile(r"\.([a-z0-9]{1,5})$")
_DIMENSION_RE = re.compile(r"(?<![0-9])(\d{2,4})\s*[x×]\s*(\d{2,4})(?![0-9])")


@dataclass(frozen=True)
class FilterDecision:
    keep:   bool
    reason: str = ""


def url_extension(url: str) -> Optional[str]:
    """Lower-case extension of the URL path, or ``None`` when there is none."""
    path = unquote(urlparse(url).path).lower().rstrip("/")
    m = _EXT_RE.search(path.rsplit("/", 1)[-1])
    return m.group(1) if m else None


class UrlFilter:
    """Pure predicate over candidate URLs.  Safe to share across threads."""

    def __init__(self, cfg: FilterConfig) -> None:
        self.cfg = cfg
        self._allowed = frozenset(e.lower().lstrip(".") for e in cfg.allowed_extensions)
        self._deny_terms = frozenset(t.lower() for t in cfg.deny_terms)

    # ── public ──────────────────────────────────────────────
    def check(self, url: str) -> FilterDecision:
        if not isinstance(url, str) or not url.strip():
            return FilterDecision(False, "empty url")

        url = url.strip()
        if any(ch.isspace() for ch in url):
            return FilterDecision(False, "malformed url")

        parsed = urlparse(url)
        if parsed.scheme.lower() not in ("http", "https") or not parsed.netloc:
            return FilterDecision(False, "malformed url")

        ext = url_extension(url)
        if ext is not None and ext not in self._allowed:
            return FilterDecision(False, f"extension .{ext} not allowed")

        low = unquote(url).lower()
        for sub in self.cfg.deny_substrings:
            if sub in low:
                return FilterDecision(False, f"deny pattern '{sub}'")

        for token in tokenize(low):
            if token in self._deny_terms:
                return FilterDecision(False, f"deny term '{token}'")

        for w, h in _DIMENSION_RE.findall(low):
            side = self.cfg.max_thumbnail_side
            if int(w) <= side and int(h) <= side:
                return FilterDecision(False, f"thumbnail size {w}x{h}")

        return FilterDecision(True)

    def allows(self, url: str) -> bool:
        return self.check(url).keep

    def filter(self, urls: Iterable[str]) -> Tuple[List[str], int]:
        """Return ``(kept, rejected_count)`` preserving input order."""
        kept: List[str] = []
        rejected = 0
        for url in urls:
            decision = self.check(url)
            if decision.keep:
                kept.append(url.strip())
            else:
                rejected += 1
                log.debug("URL dropped (%s): %s", decision.reason, url)
        return kept, rejected
