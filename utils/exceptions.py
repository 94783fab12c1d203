"""Custom exception hierarchy.

Every candidate-level failure carries an ``outcome`` code that the run
aggregator counts.  Only :class:`StorageError` is fatal for an item.
"""

from __future__ import annotations

from typing import List, Optional


class CatalogImageError(Exception):
    """Base for every project exception."""

    outcome: str = "failed"


class UnsupportedContentTypeError(CatalogImageError):
    """HEAD request reported a content-type outside the allowed image families."""

    outcome = "unsupported"


class UnsupportedFormatError(CatalogImageError):
    """Decoded bytes are not a JPEG or PNG image."""

    outcome = "unsupported"


class DownloadFailedError(CatalogImageError):
    """Fetch failed permanently or after the retry budget was spent."""

    outcome = "failed"


class CapReachedError(CatalogImageError):
    """The item already holds its maximum number of images."""

    outcome = "cap_reached"


class DuplicateImageError(CatalogImageError):
    """Fingerprint is too close to an image already kept for the item."""

    outcome = "duplicate"


class QualityRejectedError(CatalogImageError):
    """Image failed the quality gate."""

    outcome = "quality_rejected"

    def __init__(self, message: str, reasons: Optional[List[str]] = None) -> None:
        super().__init__(message)
        self.reasons: List[str] = list(reasons or [])


class StorageError(CatalogImageError):
    """Disk write or folder operation failed.  Aborts the current item."""

    outcome = "fatal"


class ConfigurationError(CatalogImageError):
    """Invalid or missing configuration."""

    outcome = "fatal"
