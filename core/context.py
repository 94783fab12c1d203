"""
Per-item mutable state shared by the download workers of one item.

The kept-image count and the accepted fingerprints are the only state
workers share, and both live behind one lock.  A context is created
when an item starts and dropped when it ends, so duplicates are never
tracked across items.
"""

from __future__ import annotations

import threading
from typing import List, Optional

from imaging.dedup import Deduplicator
from utils.concurrency import AtomicCounter
from utils.exceptions import CapReachedError, DuplicateImageError
from utils.log_config import get_logger

log = get_logger(__name__)


class ItemContext:

    def __init__(self, item_id: str, cap: int, dedup: Deduplicator) -> None:
        self.item_id = item_id
        self.cap = cap
        self.dedup = dedup
        self._lock = threading.Lock()
        self._fingerprints: List[str] = []
        self._next_ordinal = 0
        self.attempted = AtomicCounter()
        self.retries = AtomicCounter()

    @property
    def kept(self) -> int:
        with self._lock:
            return len(self._fingerprints)

    @property
    def is_full(self) -> bool:
        with self._lock:
            return len(self._fingerprints) >= self.cap

    def find_duplicate(self, fp: str) -> Optional[str]:
        """Optimistic pre-check before the expensive scoring step."""
        with self._lock:
            accepted = list(self._fingerprints)
        return self.dedup.find_duplicate(fp, accepted)

    def reserve(self, fp: str) -> int:
        """
        Atomically claim a slot for *fp*.

        Re-checks the cap and the duplicate set under the lock, so two
        workers can neither exceed the cap nor both keep near-identical
        images.  Returns the 1-based ordinal used in the file name.
        """
        with self._lock:
            if len(self._fingerprints) >= self.cap:
                raise CapReachedError(f"{self.item_id}: cap of {self.cap} reached")
            match = self.dedup.find_duplicate(fp, self._fingerprints)
            if match is not None:
                raise DuplicateImageError(f"{self.item_id}: duplicate of {match}")
            self._fingerprints.append(fp)
            self._next_ordinal += 1
            return self._next_ordinal

    def release(self, fp: str) -> None:
        """Give a reserved slot back after a failed write."""
        with self._lock:
            try:
                self._fingerprints.remove(fp)
            except ValueError:
                log.debug("Release of unknown fingerprint %s", fp)
