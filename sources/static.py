"""
Offline candidate sources: a prepared CSV, or an in-memory mapping.
"""

from __future__ import annotations

from collections import defaultdict
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional

import pandas as pd

from config.settings import SourceConfig
from core.models import CatalogItem
from sources.base import BaseCandidateSource, CandidateURL
from utils.log_config import get_logger

log = get_logger(__name__)

ITEM_COLUMNS = ("item_id", "itemid", "id")


def _pick_column(df: pd.DataFrame, options: Iterable[str]) -> Optional[str]:
    lower = {c.lower().strip(): c for c in df.columns}
    for opt in options:
        if opt in lower:
            return lower[opt]
    return None


class StaticCandidateSource(BaseCandidateSource):
    """Candidates handed over up-front, keyed by item id."""

    name = "static"

    def __init__(
        self,
        candidates: Mapping[str, Iterable[object]],
        cfg: Optional[SourceConfig] = None,
    ) -> None:
        super().__init__(cfg or SourceConfig(rate_limit_per_sec=1000.0))
        self._data: Dict[str, List[CandidateURL]] = {}
        for item_id, entries in candidates.items():
            self._data[str(item_id)] = [
                e if isinstance(e, CandidateURL) else CandidateURL(str(e), self.name)
                for e in entries
            ]

    def search(self, item: CatalogItem) -> List[CandidateURL]:
        return list(self._data.get(item.id, []))


class CsvCandidateSource(StaticCandidateSource):
    """
    Reads ``item_id, url[, source]`` rows.  Row order is kept, so
    earlier rows are tried first.
    """

    name = "csv"

    def __init__(self, path: Path, cfg: Optional[SourceConfig] = None) -> None:
        df = pd.read_csv(path, dtype=str, keep_default_na=False)
        id_col = _pick_column(df, ITEM_COLUMNS)
        url_col = _pick_column(df, ("url", "image_url"))
        if id_col is None or url_col is None:
            raise ValueError(f"{path}: needs an item id column and a url column")
        src_col = _pick_column(df, ("source", "source_tag"))

        grouped: Dict[str, List[CandidateURL]] = defaultdict(list)
        for _, row in df.iterrows():
            url = str(row[url_col]).strip()
            if not url:
                continue
            source = str(row[src_col]).strip() if src_col else ""
            grouped[str(row[id_col]).strip()].append(CandidateURL(url, source or self.name))

        log.info("Loaded %d candidate URLs for %d items from %s", len(df), len(grouped), path)
        super().__init__(grouped, cfg)
