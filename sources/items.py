"""Catalog item ingestion from a CSV sheet."""

from __future__ import annotations

from pathlib import Path
from typing import List

import pandas as pd

from core.models import CatalogItem
from utils.log_config import get_logger
from utils.text import clean_spaced_text

log = get_logger(__name__)

ID_COLUMNS = ("itemid", "item_id", "id")
NAME_COLUMNS = ("name", "product_name", "title")
BRAND_COLUMNS = ("brand", "manufacturer")


def load_items(path: Path) -> List[CatalogItem]:
    """
    One ``CatalogItem`` per row.  Rows without an id are skipped;
    a blank or ``NONE`` brand means the item is unbranded.
    """
    df = pd.read_csv(path, dtype=str, keep_default_na=False)
    lower = {c.lower().strip(): c for c in df.columns}

    def col(options):
        return next((lower[o] for o in options if o in lower), None)

    id_col, name_col, brand_col = col(ID_COLUMNS), col(NAME_COLUMNS), col(BRAND_COLUMNS)
    if id_col is None:
        raise ValueError(f"{path}: no item id column (expected one of {ID_COLUMNS})")

    items: List[CatalogItem] = []
    for _, row in df.iterrows():
        item_id = str(row[id_col]).strip()
        if not item_id:
            continue
        items.append(CatalogItem(
            id=item_id,
            name=clean_spaced_text(row[name_col]) if name_col else "",
            brand=clean_spaced_text(row[brand_col]) if brand_col else None,
        ))

    log.info("Loaded %d items from %s", len(items), path)
    return items
