"""Domain records passed between pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional

from PIL import Image

NO_BRAND = "NONE"


class ItemStatus(str, Enum):
    PENDING        = "Pending"
    FOUND          = "Found"
    NOT_SURE       = "NotSure"
    NO_IMAGE_FOUND = "NoImageFound"

    @property
    def label(self) -> str:
        """Status string used in the summary report."""
        return _LABELS[self]

    @property
    def is_terminal(self) -> bool:
        return self is not ItemStatus.PENDING


_LABELS = {
    ItemStatus.PENDING:        "Pending",
    ItemStatus.FOUND:          "Image found",
    ItemStatus.NOT_SURE:       "NS",
    ItemStatus.NO_IMAGE_FOUND: "NIF",
}


@dataclass(frozen=True)
class ImageRecord:
    """A kept image.  Immutable once written to disk."""
    file_path:             Path
    fingerprint:           str
    quality_score:         float
    match_confidence:      float
    source_url:            str
    slot:                  int   = 0
    width:                 int   = 0
    height:                int   = 0
    background_confidence: float = 0.0
    has_watermark:         bool  = False
    downloaded_at:         str   = ""


@dataclass
class CatalogItem:
    """
    One input row.  Owned by the pipeline while the item is processed
    and never shared across items.
    """
    id:          str
    name:        str = ""
    brand:       Optional[str] = None
    status:      ItemStatus = ItemStatus.PENDING
    confidence:  float = 0.0
    kept_images: List[ImageRecord] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.id = str(self.id).strip()
        self.name = (self.name or "").strip()
        brand = (self.brand or "").strip()
        self.brand = brand if brand and brand.upper() != NO_BRAND else None

    @property
    def has_brand(self) -> bool:
        return self.brand is not None


@dataclass
class FetchedImage:
    """Downloaded bytes plus what we learned about them."""
    url:                   str
    data:                  bytes
    declared_content_type: str = ""
    decoded_format:        str = ""
    width:                 int = 0
    height:                int = 0
    image:                 Optional[Image.Image] = field(default=None, repr=False, compare=False)
