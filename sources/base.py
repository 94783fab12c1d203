"""Abstract base class every candidate source inherits from."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List

from config.settings import SourceConfig
from core.models import CatalogItem
from utils.concurrency import CircuitBreaker, RateLimiter
from utils.log_config import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class CandidateURL:
    """One proposed image URL and the source that proposed it."""

    url:    str
    source: str = ""


class BaseCandidateSource:
    """
    Subclass must set ``name`` and implement ``search()``.
    """

    name: str = "base"

    def __init__(self, cfg: SourceConfig) -> None:
        self.cfg = cfg
        self.limiter = RateLimiter(cfg.rate_limit_per_sec)
        self.breaker = CircuitBreaker(
            threshold=cfg.breaker_threshold,
            cooldown=cfg.breaker_cooldown,
        )

    # ── override in subclass ────────────────────────────────
    def search(self, item: CatalogItem) -> List[CandidateURL]:
        raise NotImplementedError

    # ── wrapper with circuit-breaker + rate-limit ───────────
    def safe_search(self, item: CatalogItem) -> List[CandidateURL]:
        if self.breaker.is_open:
            log.debug("Skipping %s, circuit breaker open", self.name)
            return []
        self.limiter.wait()
        try:
            results = self.search(item)
            self.breaker.record_success()
            return results
        except Exception as exc:
            # a broken source must not take the item down with it
            self.breaker.record_failure()
            log.warning("%s search failed for %s: %s", self.name, item.id, exc)
            return []
