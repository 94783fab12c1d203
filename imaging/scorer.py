"""
Multi-criterion quality gate for product images.

Geometry decides most of the score; the pixel heuristics (plain
background, watermark, sharpness) are cheap numpy passes, not models.
Which checks run and how strict they are comes from one
``QualityProfile``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np
from PIL import Image

from config.settings import QualityProfile
from imaging.cache import ScoreCache, content_key
from imaging.helpers import decode_image, flatten_to_rgb
from utils.log_config import get_logger

log = get_logger(__name__)

EDGE_MARGIN = 10
EDGE_SAMPLES = 50
CORNER_INSET = 20
CORNER_BLOCK = 20

WATERMARK_MAX_SIDE = 800
WATERMARK_BORDER = 10
WATERMARK_STEP = 5
WATERMARK_CONTRAST = 60


@dataclass
class QualityReport:
    """Breakdown of quality metrics for an image."""
    profile:               str   = ""
    width:                 int   = 0
    height:                int   = 0
    file_size:             int   = 0
    aspect_ratio:          float = 0.0
    is_square:             bool  = False
    meets_size:            bool  = False
    background_confidence: float = 0.0
    has_plain_background:  bool  = False
    watermark_ratio:       float = 0.0
    has_watermark:         bool  = False
    sharpness:             float = 0.0
    score:                 float = 0.0
    is_valid:              bool  = False
    reasons:               List[str] = field(default_factory=list)

    def summary(self) -> str:
        return (
            f"score={self.score:.3f} valid={self.is_valid} "
            f"({self.width}x{self.height} bg={self.background_confidence:.2f} "
            f"wm={self.has_watermark} sharp={self.sharpness:.2f})"
            + (f" reasons={'; '.join(self.reasons)}" if self.reasons else "")
        )


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  HEURISTICS
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def background_whiteness(rgb: np.ndarray, white_threshold: int = 240) -> float:
    """
    Fraction of near-white samples along the border.

    50 points per edge inset by ``EDGE_MARGIN``, plus the four corner
    blocks when the image is large enough to hold them.
    """
    h, w = rgb.shape[:2]
    if h == 0 or w == 0:
        return 0.0

    ratios = np.linspace(0.0, 1.0, EDGE_SAMPLES)
    xs = np.clip((w * ratios).astype(int), 0, w - 1)
    ys = np.clip((h * ratios).astype(int), 0, h - 1)
    top = min(EDGE_MARGIN, h - 1)
    bottom = max(h - EDGE_MARGIN - 1, 0)
    left = min(EDGE_MARGIN, w - 1)
    right = max(w - EDGE_MARGIN - 1, 0)

    samples = [
        rgb[top, xs], rgb[bottom, xs],
        rgb[ys, left], rgb[ys, right],
    ]

    lo, hi = CORNER_INSET, CORNER_INSET + CORNER_BLOCK
    if h >= 2 * hi and w >= 2 * hi:
        for block in (
            rgb[lo:hi, lo:hi],
            rgb[lo:hi, w - hi:w - lo],
            rgb[h - hi:h - lo, lo:hi],
            rgb[h - hi:h - lo, w - hi:w - lo],
        ):
            samples.append(block.reshape(-1, 3))

    pts = np.concatenate(samples, axis=0)
    white = np.all(pts >= white_threshold, axis=1)
    return float(white.mean()) if len(white) else 0.0


def watermark_ratio(image: Image.Image) -> float:
    """
    Share of grid points that look like overlay text.

    A point counts when more than half of its 5x5 neighbours differ
    from it by more than ``WATERMARK_CONTRAST`` grey levels.
    """
    grey = image.convert("L")
    grey.thumbnail((WATERMARK_MAX_SIDE, WATERMARK_MAX_SIDE))
    g = np.asarray(grey, dtype=np.int16)
    h, w = g.shape

    ys = np.arange(WATERMARK_BORDER, h - WATERMARK_BORDER, WATERMARK_STEP)
    xs = np.arange(WATERMARK_BORDER, w - WATERMARK_BORDER, WATERMARK_STEP)
    if len(ys) == 0 or len(xs) == 0:
        return 0.0

    centre = g[np.ix_(ys, xs)]
    contrast = np.zeros(centre.shape, dtype=np.int16)
    neighbours = 0
    for dy in range(-2, 3):
        for dx in range(-2, 3):
            if dx == 0 and dy == 0:
                continue
            other = g[np.ix_(ys + dy, xs + dx)]
            contrast += (np.abs(centre - other) > WATERMARK_CONTRAST).astype(np.int16)
            neighbours += 1

    suspicious = contrast / neighbours > 0.5
    return float(suspicious.mean())


def sharpness(image: Image.Image, norm: float = 50.0) -> float:
    """Mean gradient magnitude over the central 25–75 % region, scaled to [0, 1]."""
    g = np.asarray(image.convert("L"), dtype=np.float32)
    h, w = g.shape
    y0, y1 = int(h * 0.25), int(h * 0.75)
    x0, x1 = int(w * 0.25), int(w * 0.75)
    region = g[y0:y1, x0:x1]
    if region.shape[0] < 2 or region.shape[1] < 2:
        return 0.0

    base = region[:-1, :-1]
    gx = np.abs(base - region[:-1, 1:])
    gy = np.abs(base - region[1:, :-1])
    mean_grad = float(np.sqrt(gx * gx + gy * gy).mean())
    return max(0.0, min(1.0, mean_grad / norm))


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  SCORER
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class ImageQualityScorer:
    """
    Scores images on multiple axes:
      - Geometry     (near-square aspect, resolution band)
      - Background   (near-white border samples)
      - Watermark    (local high-contrast grid points)
      - Sharpness    (central gradient magnitude)
    """

    def __init__(
        self,
        profile: QualityProfile,
        cache: Optional[ScoreCache[QualityReport]] = None,
    ) -> None:
        self.profile = profile
        self.cache = cache

    def score_bytes(self, data: bytes, image: Optional[Image.Image] = None) -> QualityReport:
        """Score raw bytes, consulting the shared cache first."""
        key = content_key(data, self.profile.name)
        if self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                return cached

        if image is None:
            image = decode_image(data)
        report = self.score_image(image, file_size=len(data))

        if self.cache is not None:
            self.cache.put(key, report)
        return report

    def score_image(self, image: Image.Image, file_size: Optional[int] = None) -> QualityReport:
        p = self.profile
        w, h = image.size
        report = QualityReport(profile=p.name, width=w, height=h, file_size=file_size or 0)

        # 1. File size
        if file_size is not None and not p.min_file_bytes <= file_size <= p.max_file_bytes:
            report.reasons.append(f"File size out of range: {file_size} bytes")

        # 2. Geometry
        report.aspect_ratio = w / h if h else 0.0
        report.is_square = p.min_aspect <= report.aspect_ratio <= p.max_aspect
        report.meets_size = p.min_side <= w <= p.max_side and p.min_side <= h <= p.max_side
        if not report.is_square:
            report.reasons.append(f"Not square: {w}x{h}")
        if not report.meets_size:
            report.reasons.append(f"Size out of range ({p.min_side}-{p.max_side}): {w}x{h}")

        # 3. Background
        if p.check_background:
            rgb = np.asarray(flatten_to_rgb(image))
            report.background_confidence = background_whiteness(rgb, p.white_threshold)
            report.has_plain_background = report.background_confidence >= p.plain_ratio
            if not report.has_plain_background:
                report.reasons.append(
                    f"Background not plain ({report.background_confidence:.2f})"
                )
        else:
            report.background_confidence = p.assumed_background
            report.has_plain_background = True

        # 4. Watermark
        if p.check_watermark:
            report.watermark_ratio = watermark_ratio(image)
            report.has_watermark = report.watermark_ratio > p.watermark_ratio
            if report.has_watermark and not p.allow_watermark:
                report.reasons.append("Watermark detected")

        # 5. Sharpness
        report.sharpness = sharpness(image, p.sharpness_norm)
        if report.sharpness < p.min_sharpness:
            report.reasons.append(f"Too blurry ({report.sharpness:.2f})")

        report.score = self._composite(report)
        report.is_valid = (
            not report.reasons
            and report.has_plain_background
            and (not report.has_watermark or p.allow_watermark)
            and report.sharpness >= p.min_sharpness
        )

        log.debug("Quality %s", report.summary())
        return report

    def _composite(self, r: QualityReport) -> float:
        p = self.profile
        score = (
            (p.w_square if r.is_square else 0.0)
            + (p.w_size if r.meets_size else 0.0)
            + r.background_confidence * p.w_background
            + (0.0 if r.has_watermark else p.w_no_watermark)
            + r.sharpness * p.w_sharpness
        )
        return max(0.0, min(1.0, score))
