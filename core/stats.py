"""
Run aggregator — counters plus one result row per item.

Feeds the console report and the summary files written at the end of
a run.
"""

from __future__ import annotations

import json
import threading
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

from core.models import ItemStatus
from utils.concurrency import AtomicCounter
from utils.log_config import get_logger

log = get_logger(__name__)

OUTCOMES = ("unsupported", "failed", "duplicate", "quality_rejected", "cap_reached", "fatal")


@dataclass
class ItemResult:
    item_id:            str
    name:               str = ""
    brand:              str = ""
    attempted:          int = 0
    downloaded:         int = 0
    failed:             int = 0
    rejected:           int = 0
    skipped:            int = 0
    average_confidence: float = 0.0
    classification:     str = ItemStatus.PENDING.value
    folder:             str = ""
    error:              str = ""
    rejections:         List[str] = field(default_factory=list)

    @property
    def status(self) -> ItemStatus:
        return ItemStatus(self.classification)


class RunStats:
    def __init__(self) -> None:
        self.items        = AtomicCounter()
        self.found        = AtomicCounter()
        self.not_sure     = AtomicCounter()
        self.nif          = AtomicCounter()
        self.aborted      = AtomicCounter()
        self.candidates   = AtomicCounter()
        self.filtered     = AtomicCounter()
        self.attempted    = AtomicCounter()
        self.downloaded   = AtomicCounter()
        self.retried      = AtomicCounter()
        self.outcomes: Dict[str, AtomicCounter] = {o: AtomicCounter() for o in OUTCOMES}

        self._results: List[ItemResult] = []
        self._lock = threading.Lock()
        self._t0 = time.monotonic()

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self._t0

    def count_outcome(self, outcome: str) -> None:
        counter = self.outcomes.get(outcome)
        if counter is None:
            counter = self.outcomes["failed"]
        counter.increment()

    def record(self, result: ItemResult) -> None:
        self.items.increment()
        self.attempted.increment(result.attempted)
        self.downloaded.increment(result.downloaded)
        status = result.status
        if status is ItemStatus.FOUND:
            self.found.increment()
        elif status is ItemStatus.NOT_SURE:
            self.not_sure.increment()
        elif status is ItemStatus.NO_IMAGE_FOUND:
            self.nif.increment()
        if result.error:
            self.aborted.increment()
        with self._lock:
            self._results.append(result)

    @property
    def results(self) -> List[ItemResult]:
        with self._lock:
            return list(self._results)

    def as_dict(self) -> Dict[str, float]:
        d: Dict[str, float] = {
            "items": self.items.value,
            "found": self.found.value,
            "not_sure": self.not_sure.value,
            "nif": self.nif.value,
            "aborted": self.aborted.value,
            "candidates": self.candidates.value,
            "filtered": self.filtered.value,
            "attempted": self.attempted.value,
            "downloaded": self.downloaded.value,
            "retried": self.retried.value,
            "elapsed": self.elapsed,
        }
        for name, counter in self.outcomes.items():
            d[name] = counter.value
        return d

    def report(self) -> str:
        e = self.elapsed
        o = {k: c.value for k, c in self.outcomes.items()}
        return (
            "\n" + "=" * 60
            + "\n📊  RUN REPORT"
            + f"\n{'─' * 60}"
            + f"\n  Items           : {self.items.value}"
            + f"\n  Found           : {self.found.value}"
            + f"\n  Not sure (NS)   : {self.not_sure.value}"
            + f"\n  No image (NIF)  : {self.nif.value}"
            + f"\n  Aborted         : {self.aborted.value}"
            + f"\n{'─' * 60}"
            + f"\n  Candidates      : {self.candidates.value}"
            + f"\n  URL filtered    : {self.filtered.value}"
            + f"\n  Attempted       : {self.attempted.value}"
            + f"\n  Downloaded      : {self.downloaded.value}"
            + f"\n  Retries         : {self.retried.value}"
            + f"\n  Failed          : {o['failed']}"
            + f"\n  Unsupported     : {o['unsupported']}"
            + f"\n  Duplicates      : {o['duplicate']}"
            + f"\n  Quality rejects : {o['quality_rejected']}"
            + f"\n  Cap reached     : {o['cap_reached']}"
            + f"\n  Elapsed         : {e:.1f}s"
            + f"\n  Throughput      : {self.items.value / max(e, 0.1):.2f} items/s"
            + f"\n{'=' * 60}\n"
        )

    # ── exports ─────────────────────────────────────────────
    def to_frame(self) -> pd.DataFrame:
        rows = [asdict(r) for r in self.results]
        columns = list(ItemResult.__dataclass_fields__)
        return pd.DataFrame(rows, columns=columns)

    def summary_frame(self) -> pd.DataFrame:
        """``ID, NAME, BRAND, STATUS, COUNT`` — one row per item."""
        return pd.DataFrame(
            [
                {
                    "ID": r.item_id,
                    "NAME": r.name,
                    "BRAND": r.brand,
                    "STATUS": r.status.label,
                    "COUNT": r.downloaded,
                }
                for r in self.results
            ],
            columns=["ID", "NAME", "BRAND", "STATUS", "COUNT"],
        )

    def save_summary(self, out_dir: Path, stem: Optional[str] = None) -> Dict[str, Path]:
        out_dir.mkdir(parents=True, exist_ok=True)
        stem = stem or time.strftime("%Y%m%d_%H%M%S")
        csv_path = out_dir / f"summary_{stem}.csv"
        json_path = out_dir / f"results_{stem}.json"

        tmp = csv_path.with_suffix(".tmp")
        self.summary_frame().to_csv(tmp, index=False)
        tmp.replace(csv_path)

        payload = {"stats": self.as_dict(), "items": [asdict(r) for r in self.results]}
        tmp = json_path.with_suffix(".tmp")
        tmp.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        tmp.replace(json_path)

        log.info("Summary → %s", csv_path)
        return {"summary": csv_path, "results": json_path}
