"""
Queries candidate sources in order with cross-source deduplication.
"""

from __future__ import annotations

from typing import List, Sequence, Set

from config.settings import SourceConfig
from core.models import CatalogItem
from sources.base import BaseCandidateSource, CandidateURL
from utils.log_config import get_logger

log = get_logger(__name__)


class SourceManager:
    """Instantiate once → reuse across items."""

    def __init__(self, sources: Sequence[BaseCandidateSource], cfg: SourceConfig) -> None:
        self.cfg = cfg
        self.sources = list(sources)

    def search(self, item: CatalogItem, max_results: int = 100) -> List[CandidateURL]:
        combined: List[CandidateURL] = []
        seen_urls: Set[str] = set()

        for source in self.sources:
            for cand in source.safe_search(item):
                url = cand.url.strip()
                if url and url not in seen_urls:
                    seen_urls.add(url)
                    combined.append(cand)

            if len(combined) >= self.cfg.min_candidates:
                log.debug(
                    "Got %d after %s, skipping remaining sources",
                    len(combined),
                    source.name,
                )
                break

        log.info("%s: %d unique candidates", item.id, len(combined))
        return combined[:max_results]
