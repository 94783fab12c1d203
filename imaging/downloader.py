"""Download, validate, score, and persist a single candidate image."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Optional, TYPE_CHECKING

import requests

from config.settings import DEFAULT_HEADERS, DownloadConfig, FilterConfig
from core.models import CatalogItem, FetchedImage, ImageRecord
from core.storage import FolderManager, utc_now
from imaging.dedup import Deduplicator
from imaging.helpers import decode_image
from imaging.matcher import MatchEstimator, MatchResult
from imaging.scorer import ImageQualityScorer, QualityReport
from utils.concurrency import AtomicCounter
from utils.exceptions import (
    CapReachedError,
    DownloadFailedError,
    DuplicateImageError,
    QualityRejectedError,
    StorageError,
    UnsupportedContentTypeError,
)
from utils.log_config import get_logger
from utils.retry import retry

if TYPE_CHECKING:
    from core.context import ItemContext
    from sources.base import CandidateURL

log = get_logger(__name__)


class TransientHTTPError(requests.RequestException):
    """429 / 5xx answer worth retrying."""


TRANSIENT_ERRORS = (requests.Timeout, requests.ConnectionError, TransientHTTPError)


@dataclass
class Assessment:
    """Everything learned about a fetched image before it is kept."""
    fetched:     FetchedImage
    fingerprint: str
    quality:     QualityReport
    match:       MatchResult


class ImageDownloader:
    """
    Thread-safe per-candidate chain.

    Flow for each candidate:
        1. Cap guard (no network when the item is already full)
        2. HEAD request → declared content-type
        3. GET with retry on transient failures
        4. Decode → real format must be JPEG/PNG
        5. Fingerprint → duplicate pre-check
        6. Quality gate
        7. Match confidence
        8. Atomic reserve (cap + duplicates) → write JPEG
    """

    def __init__(
        self,
        cfg: DownloadConfig,
        filter_cfg: FilterConfig,
        scorer: ImageQualityScorer,
        dedup: Deduplicator,
        matcher: MatchEstimator,
        folders: FolderManager,
    ) -> None:
        self.cfg = cfg
        self.filter_cfg = filter_cfg
        self.scorer = scorer
        self.dedup = dedup
        self.matcher = matcher
        self.folders = folders
        self.retried = AtomicCounter()
        self._allowed_types = frozenset(t.lower() for t in filter_cfg.allowed_content_types)
        self._local = threading.local()

    @property
    def session(self) -> requests.Session:
        s = getattr(self._local, "session", None)
        if s is None:
            s = requests.Session()
            s.headers.update({
                "User-Agent": DEFAULT_HEADERS["User-Agent"],
                "Accept": DEFAULT_HEADERS["Accept"],
            })
            self._local.session = s
        return s

    # ── public ──────────────────────────────────────────────
    def process(
        self,
        candidate: "CandidateURL",
        item: CatalogItem,
        ctx: "ItemContext",
        slot: int,
    ) -> ImageRecord:
        """
        Run one candidate through the whole chain.

        Returns the kept ``ImageRecord`` or raises a
        ``CatalogImageError`` subclass naming the outcome.
        """
        url = candidate.url
        if ctx.is_full:
            raise CapReachedError(f"{item.id}: cap reached before fetch")

        ctx.attempted.increment()
        fetched = self.fetch(url, ctx)
        assessment = self.assess(fetched, item, ctx, candidate.source)

        if ctx.is_full:
            raise CapReachedError(f"{item.id}: cap reached after fetch")

        ordinal = ctx.reserve(assessment.fingerprint)
        try:
            path = self.folders.write_image(item.id, fetched.image, ordinal)
        except StorageError:
            ctx.release(assessment.fingerprint)
            raise

        q, m = assessment.quality, assessment.match
        log.info(
            "[%s] kept #%d %dx%d quality=%.2f match=%.2f (%s)",
            item.id, ordinal, fetched.width, fetched.height,
            q.score, m.confidence, m.mode,
        )
        return ImageRecord(
            file_path=path,
            fingerprint=assessment.fingerprint,
            quality_score=q.score,
            match_confidence=m.confidence,
            source_url=url,
            slot=slot,
            width=fetched.width,
            height=fetched.height,
            background_confidence=q.background_confidence,
            has_watermark=q.has_watermark,
            downloaded_at=utc_now(),
        )

    def fetch(self, url: str, ctx: Optional["ItemContext"] = None) -> FetchedImage:
        declared = ""
        if self.cfg.check_content_type:
            declared = self._head_content_type(url) or ""
            self._check_content_type(url, declared)

        data = self._fetch(url, ctx)
        image = decode_image(data, self.filter_cfg.allowed_formats)
        return FetchedImage(
            url=url,
            data=data,
            declared_content_type=declared,
            decoded_format=image.format or "",
            width=image.width,
            height=image.height,
            image=image,
        )

    def assess(
        self,
        fetched: FetchedImage,
        item: CatalogItem,
        ctx: "ItemContext",
        source: str = "",
    ) -> Assessment:
        image = fetched.image
        if image is None:
            image = decode_image(fetched.data, self.filter_cfg.allowed_formats)
            fetched.image = image

        fp = self.dedup.fingerprint(image)
        match = ctx.find_duplicate(fp)
        if match is not None:
            raise DuplicateImageError(f"{fetched.url} duplicates {match}")

        report = self.scorer.score_bytes(fetched.data, image)
        if not report.is_valid:
            raise QualityRejectedError(
                f"{fetched.url} rejected: {'; '.join(report.reasons) or 'failed checks'}",
                report.reasons,
            )

        result = self.matcher.estimate(fetched.url, item.name, item.brand, source)
        return Assessment(fetched, fp, report, result)

    # ── internals ───────────────────────────────────────────
    def _check_content_type(self, url: str, content_type: str) -> None:
        if not content_type:
            return
        mime = content_type.split(";", 1)[0].strip().lower()
        if mime not in self._allowed_types:
            raise UnsupportedContentTypeError(f"{url}: content-type {mime}")

    def _head_content_type(self, url: str) -> Optional[str]:
        """Declared content-type from a HEAD request; ``None`` if unknown."""
        try:
            resp = self.session.head(url, timeout=self.cfg.head_timeout, allow_redirects=True)
        except requests.RequestException as exc:
            log.debug("HEAD failed for %s (%s), continuing with GET", url, exc)
            return None
        if resp.status_code >= 400:
            return None
        return resp.headers.get("content-type")

    def _fetch(self, url: str, ctx: Optional["ItemContext"] = None) -> bytes:
        def on_retry(attempt: int, exc: BaseException) -> None:
            self.retried.increment()
            if ctx is not None:
                ctx.retries.increment()

        fetch = retry(
            max_attempts=1 + self.cfg.retry_attempts,
            backoff_base=self.cfg.backoff_base,
            exceptions=TRANSIENT_ERRORS,
            multiplier=self.cfg.backoff_multiplier,
            max_delay=self.cfg.max_backoff,
            on_retry=on_retry,
        )(self._fetch_once)
        try:
            return fetch(url)
        except TRANSIENT_ERRORS as exc:
            raise DownloadFailedError(
                f"{url}: gave up after {1 + self.cfg.retry_attempts} attempts ({exc})"
            ) from exc
        except requests.RequestException as exc:
            raise DownloadFailedError(f"{url}: {exc}") from exc

    def _fetch_once(self, url: str) -> bytes:
        resp = self.session.get(url, timeout=self.cfg.timeout, stream=True)
        if resp.status_code == 429 or resp.status_code >= 500:
            resp.close()
            raise TransientHTTPError(f"HTTP {resp.status_code}")
        if resp.status_code != 200:
            resp.close()
            raise DownloadFailedError(f"{url}: HTTP {resp.status_code}")
        self._check_content_type(url, resp.headers.get("content-type", ""))
        self._check_content_length(url, resp)
        data = resp.content
        if not data:
            raise DownloadFailedError(f"{url}: empty body")
        return data

    def _check_content_length(self, url: str, resp: requests.Response) -> None:
        """Reject by declared size before the body is read."""
        cl = resp.headers.get("content-length")
        if not cl or not str(cl).isdigit():
            return
        size = int(cl)
        p = self.scorer.profile
        if not p.min_file_bytes <= size <= p.max_file_bytes:
            resp.close()
            reason = f"File size out of range: {size} bytes"
            raise QualityRejectedError(f"{url} rejected: {reason}", [reason])
