"""
Main pipeline — per-item orchestrator over one shared download pool.

    item → candidates → URL filter → download / assess / keep
         → classify → rename folder → summary row
"""

from __future__ import annotations

import gc
import os
import signal
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, wait
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Union

from config.settings import AppConfig
from core.classification import average_confidence, classify
from core.context import ItemContext
from core.models import CatalogItem, ImageRecord
from core.stats import ItemResult, RunStats
from core.storage import FolderManager
from imaging.cache import ScoreCache
from imaging.dedup import Deduplicator
from imaging.downloader import ImageDownloader
from imaging.matcher import MatchEstimator
from imaging.scorer import ImageQualityScorer, QualityReport
from imaging.url_filter import UrlFilter
from sources.base import CandidateURL
from sources.manager import SourceManager
from utils.concurrency import BoundedExecutor
from utils.exceptions import CatalogImageError, StorageError
from utils.log_config import get_logger

log = get_logger(__name__)

Candidate = Union[CandidateURL, str]

# outcome code → ItemResult bucket
_REJECTED = {"duplicate", "quality_rejected"}
_SKIPPED  = {"cap_reached"}


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  SHUTDOWN
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class ShutdownHandler:
    """
    Ctrl+C handling that works with worker threads.

    Signals only reach the main thread, so the handler just sets an
    event that the item loop polls between items.  A second Ctrl+C
    exits immediately.
    """

    def __init__(self, install: bool = True) -> None:
        self._event = threading.Event()
        self._ctrl_c_count = 0
        self._lock = threading.Lock()

        if install and threading.current_thread() is threading.main_thread():
            try:
                signal.signal(signal.SIGINT, self._handle)
                signal.signal(signal.SIGTERM, self._handle)
            except (OSError, ValueError):
                pass

    def _handle(self, signum: int, frame: Any) -> None:
        with self._lock:
            self._ctrl_c_count += 1
            count = self._ctrl_c_count

        if count == 1:
            log.warning("=" * 50)
            log.warning("⚠️  Ctrl+C detected — finishing the current item...")
            log.warning("   Press Ctrl+C again to force quit")
            log.warning("=" * 50)
            self._event.set()
        else:
            log.warning("🛑 Force quit!")
            os._exit(1)

    @property
    def should_stop(self) -> bool:
        return self._event.is_set()

    def request_stop(self) -> None:
        self._event.set()


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  PIPELINE
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class HarvestPipeline:
    """
    Items are processed one after another; the candidates of the
    current item are fetched concurrently on a pool shared by the
    whole run.
    """

    def __init__(
        self,
        cfg: AppConfig,
        sources: Optional[SourceManager] = None,
        shutdown: Optional[ShutdownHandler] = None,
    ) -> None:
        cfg.validate()
        self.cfg = cfg
        self.sources = sources

        self.url_filter = UrlFilter(cfg.filter)
        self.cache: ScoreCache[QualityReport] = ScoreCache(cfg.pipeline.score_cache_size)
        self.scorer  = ImageQualityScorer(cfg.quality, cache=self.cache)
        self.dedup   = Deduplicator(cfg.dedup)
        self.matcher = MatchEstimator(cfg.match)
        self.folders = FolderManager(
            cfg.paths.output_dir,
            cfg.storage,
            profile=cfg.quality,
            match_threshold=cfg.match.match_threshold,
        )
        self.downloader = ImageDownloader(
            cfg.download,
            cfg.filter,
            scorer=self.scorer,
            dedup=self.dedup,
            matcher=self.matcher,
            folders=self.folders,
        )
        self.executor = BoundedExecutor(
            max_workers=cfg.download.concurrent_downloads,
            queue_size=cfg.download.queue_size,
            thread_name_prefix="fetch",
        )
        self.stats = RunStats()
        self._shutdown = shutdown or ShutdownHandler(install=False)
        self._closed = False

    # ── candidates ──────────────────────────────────────────
    def _candidates(
        self,
        item: CatalogItem,
        candidates: Optional[Iterable[Candidate]],
    ) -> List[CandidateURL]:
        if candidates is None:
            if self.sources is None:
                return []
            raw: Iterable[Candidate] = self.sources.search(
                item, max_results=self.cfg.pipeline.max_candidates_per_item * 2,
            )
        else:
            raw = candidates

        wrapped = [c if isinstance(c, CandidateURL) else CandidateURL(str(c)) for c in raw]
        self.stats.candidates.increment(len(wrapped))

        kept: List[CandidateURL] = []
        for cand in wrapped:
            decision = self.url_filter.check(cand.url)
            if decision.keep:
                kept.append(CandidateURL(cand.url.strip(), cand.source))
            else:
                self.stats.filtered.increment()
                log.debug("[%s] URL dropped (%s): %s", item.id, decision.reason, cand.url)

        limit = self.cfg.pipeline.max_candidates_per_item
        if len(kept) > limit:
            log.debug("[%s] %d candidates, keeping first %d", item.id, len(kept), limit)
            kept = kept[:limit]
        return kept

    # ── single item ─────────────────────────────────────────
    def process_item(
        self,
        item: CatalogItem,
        candidates: Optional[Iterable[Candidate]] = None,
    ) -> ItemResult:
        """
        Run every candidate of *item*, classify it and settle its folder.

        Candidate failures are counted, never raised.  A storage failure
        aborts the item: queued candidates are cancelled and the item is
        classified on what was already kept.
        """
        cap = self.cfg.pipeline.max_images_per_item
        result = ItemResult(
            item_id=item.id,
            name=item.name,
            brand=item.brand or "",
        )

        urls = self._candidates(item, candidates)
        log.info("[%s] %s — %d candidates", item.id, item.name or "?", len(urls))

        ctx = ItemContext(item.id, cap, self.dedup)
        records: List[ImageRecord] = []
        futures: Dict[Future, CandidateURL] = {}
        fatal: Optional[StorageError] = None
        submitted = 0

        try:
            try:
                self.folders.begin(item)
            except StorageError as exc:
                self.stats.count_outcome(exc.outcome)
                fatal = exc

            for slot, cand in enumerate(urls):
                if ctx.is_full or fatal is not None or self._shutdown.should_stop:
                    break
                fut = self.executor.submit(self.downloader.process, cand, item, ctx, slot)
                futures[fut] = cand
                submitted += 1
                fatal = self._harvest_done(futures, records, result, item)

            while futures and fatal is None:
                wait(list(futures), return_when=FIRST_COMPLETED)
                fatal = self._harvest_done(futures, records, result, item)

            if fatal is not None:
                for fut in futures:
                    fut.cancel()
                wait(list(futures))
                self._harvest_done(futures, records, result, item)
                result.error = str(fatal)
                log.error("[%s] aborted: %s", item.id, fatal)

            result.attempted = ctx.attempted.value
            result.skipped += len(urls) - submitted

            records.sort(key=lambda r: r.slot)
            avg = average_confidence(records)
            item.status = classify(len(records), avg, self.cfg.match.match_threshold)
            item.confidence = avg

            try:
                folder, moved = self.folders.finalize(item, records)
                result.folder = str(folder)
                records = moved
            except StorageError as exc:
                self.stats.count_outcome(exc.outcome)
                result.error = result.error or str(exc)
                log.error("[%s] folder finalize failed: %s", item.id, exc)

            item.kept_images = list(records)
            result.downloaded = len(records)
            result.average_confidence = round(avg, 4)
            result.classification = item.status.value
        finally:
            self.folders.end(item.id)

        self.stats.retried.increment(ctx.retries.value)
        self.stats.record(result)
        log.info(
            "[%s] %s — kept %d, avg confidence %.2f",
            item.id, item.status.label, result.downloaded, result.average_confidence,
        )
        return result

    def _harvest_done(
        self,
        futures: Dict[Future, CandidateURL],
        records: List[ImageRecord],
        result: ItemResult,
        item: CatalogItem,
    ) -> Optional[StorageError]:
        """Collect finished futures; return the first storage failure."""
        fatal: Optional[StorageError] = None
        for fut in [f for f in futures if f.done()]:
            cand = futures.pop(fut)
            if fut.cancelled():
                result.skipped += 1
                continue
            try:
                records.append(fut.result())
            except StorageError as exc:
                self.stats.count_outcome(exc.outcome)
                result.failed += 1
                fatal = fatal or exc
            except CatalogImageError as exc:
                self.stats.count_outcome(exc.outcome)
                if exc.outcome in _REJECTED:
                    result.rejected += 1
                    reasons = getattr(exc, "reasons", None) or [exc.outcome]
                    result.rejections.append(f"{cand.url}: {'; '.join(reasons)}")
                elif exc.outcome in _SKIPPED:
                    result.skipped += 1
                else:
                    result.failed += 1
                log.debug("[%s] %s: %s", item.id, exc.outcome, exc)
            except Exception as exc:
                # unexpected worker bug: count it and keep the item going
                self.stats.count_outcome("failed")
                result.failed += 1
                log.exception("[%s] unexpected error for %s: %s", item.id, cand.url, exc)
        return fatal

    # ── main ────────────────────────────────────────────────
    def run(
        self,
        items: Sequence[CatalogItem],
        candidates: Optional[Dict[str, Sequence[Candidate]]] = None,
        on_item: Optional[Callable[[ItemResult], None]] = None,
    ) -> RunStats:
        """
        Process *items* in batches and write the run summary.

        *candidates* maps item id → URLs and bypasses the source manager.
        """
        batch = max(self.cfg.pipeline.batch_size, 1)
        log.info(
            "Pipeline: %d items, %d concurrent downloads, cap %d, profile %s",
            len(items),
            self.cfg.download.concurrent_downloads,
            self.cfg.pipeline.max_images_per_item,
            self.cfg.quality.name,
        )

        try:
            for lo in range(0, len(items), batch):
                if self._shutdown.should_stop:
                    log.warning("Shutdown: skipping remaining batches")
                    break
                chunk = items[lo:lo + batch]
                log.info("── Batch %d–%d ──", lo + 1, lo + len(chunk))
                for item in chunk:
                    if self._shutdown.should_stop:
                        break
                    urls = None if candidates is None else candidates.get(item.id, [])
                    res = self.process_item(item, urls)
                    if on_item is not None:
                        on_item(res)
                    if self.cfg.pipeline.inter_item_delay > 0:
                        time.sleep(self.cfg.pipeline.inter_item_delay)
                gc.collect()
        except KeyboardInterrupt:
            log.warning("KeyboardInterrupt in main loop")
            self._shutdown.request_stop()
        finally:
            self.close()
            try:
                self.stats.save_summary(self.cfg.paths.report_dir)
            except OSError as exc:
                log.error("Summary save failed: %s", exc)
            log.info("Score cache: %s", self.cache.stats())
            log.info(self.stats.report())
            if self._shutdown.should_stop:
                log.info("✅ Graceful shutdown complete")

        return self.stats

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self.executor.shutdown(wait=True, cancel_futures=True)

    @property
    def summary(self) -> Dict[str, float]:
        return self.stats.as_dict()
