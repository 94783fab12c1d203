"""
Bounded in-memory cache for quality reports.

Keyed by MD5 of the image bytes plus the profile name, so the same
picture served from two URLs is scored once.  Thread-safe: a single
lock guards an ``OrderedDict`` used as an LRU.
"""

from __future__ import annotations

import hashlib
import threading
from collections import OrderedDict
from typing import Dict, Generic, Optional, TypeVar

from utils.log_config import get_logger

log = get_logger(__name__)

T = TypeVar("T")


def content_key(data: bytes, namespace: str = "") -> str:
    digest = hashlib.md5(data).hexdigest()
    return f"{namespace}:{digest}" if namespace else digest


class ScoreCache(Generic[T]):
    """LRU map with a hard size bound.  Read-mostly, shared by all workers."""

    def __init__(self, max_entries: int = 1000) -> None:
        self._max = max(1, max_entries)
        self._data: "OrderedDict[str, T]" = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> Optional[T]:
        """Return cached entry or None. Thread-safe."""
        with self._lock:
            value = self._data.get(key)
            if value is None:
                self._misses += 1
                return None
            self._data.move_to_end(key)
            self._hits += 1
            return value

    def put(self, key: str, value: T) -> None:
        with self._lock:
            self._data[key] = value
            self._data.move_to_end(key)
            while len(self._data) > self._max:
                evicted, _ = self._data.popitem(last=False)
                log.debug("Score cache evicted %s", evicted)

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {
                "entries": len(self._data),
                "max_entries": self._max,
                "hits": self._hits,
                "misses": self._misses,
            }

    def clear(self) -> None:
        with self._lock:
            self._data.clear()
            self._hits = 0
            self._misses = 0
        log.info("Score cache cleared")

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)
