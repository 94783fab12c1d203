"""
All configuration — thresholds, knobs, feature toggles.

One ``AppConfig`` is built per run and handed to every component.
Sub-configs are frozen; overrides go through ``dataclasses.replace``.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Dict, Tuple

from utils.exceptions import ConfigurationError

# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  ROOT PATHS
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

ROOT_DIR = Path(__file__).resolve().parent.parent
DATA_DIR = ROOT_DIR / "data"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  FEATURE FLAGS
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

VERBOSE_LOGGING         = False
WRITE_METADATA_SIDECAR  = True
WRITE_FOLDER_README     = True
CHECK_CONTENT_TYPE      = True
DEFAULT_PROFILE         = "strict"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  PATHS
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@dataclass(frozen=True)
class PathConfig:
    root:           Path = DATA_DIR
    items_csv:      Path = DATA_DIR / "input" / "items.csv"
    candidates_csv: Path = DATA_DIR / "input" / "candidates.csv"
    output_dir:     Path = DATA_DIR / "output" / "images"
    report_dir:     Path = DATA_DIR / "output" / "reports"
    log_file:       Path = DATA_DIR / "logs" / "harvest.log"

    def ensure(self) -> None:
        for d in (self.output_dir, self.report_dir, self.log_file.parent):
            d.mkdir(parents=True, exist_ok=True)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  URL FILTER
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@dataclass(frozen=True)
class FilterConfig:
    allowed_extensions:    Tuple[str, ...] = ("jpg", "jpeg", "png")
    allowed_content_types: Tuple[str, ...] = ("image/jpeg", "image/jpg", "image/png")
    allowed_formats:       Tuple[str, ...] = ("JPEG", "PNG")

    # Matched against whole URL tokens, so "silicone" never trips "icon"
    deny_terms: Tuple[str, ...] = (
        "logo", "logos", "icon", "icons", "favicon", "banner", "banners",
        "avatar", "avatars", "thumbnail", "thumbnails", "thumb",
        "thumbs", "watermark", "watermarked", "placeholder", "sprite",
        "category", "categories", "social", "share", "facebook", "twitter",
        "pinterest", "instagram", "button", "badge", "loading", "spinner",
        "mini", "tiny", "small",
    )
    # Matched as raw substrings of the lower-cased URL
    deny_substrings: Tuple[str, ...] = (
        "brand-logo", "brandlogo", "/brands/", "/brand-listing", "/category/",
        "/categories/", "/social/", "/share/", "/icons/", "/logos/", "/banners/",
        "/profile/", "/profiles/",
        "no-image", "noimage", "coming-soon",
    )
    max_thumbnail_side: int = 200


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  DOWNLOAD
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@dataclass(frozen=True)
class DownloadConfig:
    concurrent_downloads: int   = 5
    queue_size:           int   = 10
    timeout:              float = 15.0
    retry_attempts:       int   = 2       # retries after the first attempt
    backoff_base:         float = 1.0
    backoff_multiplier:   float = 1.5
    max_backoff:          float = 10.0
    check_content_type:   bool  = CHECK_CONTENT_TYPE
    head_timeout:         float = 5.0


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  QUALITY PROFILES
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@dataclass(frozen=True)
class QualityProfile:
    """
    Named bundle of scorer thresholds.

    STRICT demands a near-perfect square on white with no watermark.
    RELAXED widens the geometry bands and turns the pixel heuristics
    off for speed; sharpness is still computed.
    """
    name:                 str   = "strict"

    # ── Geometry ──
    min_aspect:           float = 0.95
    max_aspect:           float = 1.05
    min_side:             int   = 800
    max_side:             int   = 1200
    min_file_bytes:       int   = 10_000
    max_file_bytes:       int   = 8_000_000

    # ── Background ──
    check_background:     bool  = True
    white_threshold:      int   = 240
    plain_ratio:          float = 0.90
    assumed_background:   float = 0.8

    # ── Watermark ──
    check_watermark:      bool  = True
    watermark_ratio:      float = 0.02
    allow_watermark:      bool  = False

    # ── Sharpness ──
    min_sharpness:        float = 0.30
    sharpness_norm:       float = 50.0

    # ── Weights (must sum to 1) ──
    w_square:             float = 0.30
    w_size:               float = 0.25
    w_background:         float = 0.30
    w_no_watermark:       float = 0.10
    w_sharpness:          float = 0.05

    @property
    def weight_sum(self) -> float:
        return (
            self.w_square + self.w_size + self.w_background
            + self.w_no_watermark + self.w_sharpness
        )


STRICT = QualityProfile()

RELAXED = QualityProfile(
    name="relaxed",
    min_aspect=0.80,
    max_aspect=1.25,
    min_side=600,
    max_side=1200,
    check_background=False,
    plain_ratio=0.75,
    check_watermark=False,
    watermark_ratio=0.15,
    allow_watermark=True,
    min_sharpness=0.10,
)

PROFILES: Dict[str, QualityProfile] = {p.name: p for p in (STRICT, RELAXED)}


def get_profile(name: str) -> QualityProfile:
    try:
        return PROFILES[name.lower()]
    except KeyError:
        raise ConfigurationError(
            f"Unknown quality profile: {name!r} (valid: {', '.join(PROFILES)})"
        ) from None


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  MATCHING / DEDUP
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@dataclass(frozen=True)
class MatchConfig:
    match_threshold:     float = 0.70
    perfect_threshold:   float = 0.95

    # ── Descriptive mode ──
    w_brand:             float = 0.40
    w_name:              float = 0.30
    w_attributes:        float = 0.15
    strong_bonus:        float = 0.15
    strong_name:         float = 0.60
    unbranded_w_name:    float = 0.70
    unbranded_w_attrs:   float = 0.30

    # ── Opaque mode (source trust) ──
    opaque_branded:      float = 0.95
    opaque_default:      float = 0.85
    opaque_unbranded:    float = 0.75
    descriptive_bonus:   float = 0.03
    descriptive_tokens:  int   = 3
    trusted_sources:     Tuple[str, ...] = ("brand_site", "manufacturer")


@dataclass(frozen=True)
class DedupConfig:
    hash_size:           int   = 8
    duplicate_threshold: float = 0.90


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  STORAGE / PIPELINE / SOURCES
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@dataclass(frozen=True)
class StorageConfig:
    ns_suffix:        str  = " (NS)"
    nif_suffix:       str  = " (NIF)"
    write_metadata:   bool = WRITE_METADATA_SIDECAR
    write_readme:     bool = WRITE_FOLDER_README
    metadata_name:    str  = "metadata.json"
    jpeg_quality:     int  = 95
    max_name_length:  int  = 255


@dataclass(frozen=True)
class PipelineConfig:
    max_images_per_item:     int   = 5
    max_candidates_per_item: int   = 30
    batch_size:              int   = 10
    inter_item_delay:        float = 0.0
    score_cache_size:        int   = 1000


@dataclass(frozen=True)
class SourceConfig:
    rate_limit_per_sec:  float = 2.0
    breaker_threshold:   int   = 5
    breaker_cooldown:    float = 120.0
    min_candidates:      int   = 10


@dataclass(frozen=True)
class AppConfig:
    paths:     PathConfig     = field(default_factory=PathConfig)
    filter:    FilterConfig   = field(default_factory=FilterConfig)
    download:  DownloadConfig = field(default_factory=DownloadConfig)
    quality:   QualityProfile = field(default_factory=lambda: PROFILES[DEFAULT_PROFILE])
    match:     MatchConfig    = field(default_factory=MatchConfig)
    dedup:     DedupConfig    = field(default_factory=DedupConfig)
    storage:   StorageConfig  = field(default_factory=StorageConfig)
    pipeline:  PipelineConfig = field(default_factory=PipelineConfig)
    sources:   SourceConfig   = field(default_factory=SourceConfig)

    verbose:   bool           = VERBOSE_LOGGING

    def with_overrides(self, **sections) -> "AppConfig":
        """
        Return a copy with whole sections replaced or patched.

        ``cfg.with_overrides(pipeline={"max_images_per_item": 6})`` patches
        one field; passing a dataclass instance replaces the section.
        """
        changes = {}
        for name, value in sections.items():
            current = getattr(self, name)
            if isinstance(value, dict):
                changes[name] = replace(current, **value)
            else:
                changes[name] = value
        return replace(self, **changes)

    def validate(self) -> None:
        d, q, m = self.download, self.quality, self.match
        if d.concurrent_downloads < 1:
            raise ConfigurationError("concurrent_downloads must be >= 1")
        if d.retry_attempts < 0:
            raise ConfigurationError("retry_attempts must be >= 0")
        if d.backoff_multiplier < 1.0:
            raise ConfigurationError("backoff_multiplier must be >= 1")
        if self.pipeline.max_images_per_item < 1:
            raise ConfigurationError("max_images_per_item must be >= 1")
        if not self.filter.allowed_extensions:
            raise ConfigurationError("allowed_extensions must not be empty")
        if q.min_side > q.max_side or q.min_aspect > q.max_aspect:
            raise ConfigurationError(f"Profile {q.name!r} has an inverted band")
        if abs(q.weight_sum - 1.0) > 1e-6:
            raise ConfigurationError(
                f"Profile {q.name!r} weights sum to {q.weight_sum:.3f}, expected 1.0"
            )
        for label, value in (
            ("match_threshold", m.match_threshold),
            ("perfect_threshold", m.perfect_threshold),
            ("duplicate_threshold", self.dedup.duplicate_threshold),
            ("plain_ratio", q.plain_ratio),
            ("watermark_ratio", q.watermark_ratio),
        ):
            if not 0.0 <= value <= 1.0:
                raise ConfigurationError(f"{label} must be within [0, 1], got {value}")
        if m.perfect_threshold < m.match_threshold:
            raise ConfigurationError("perfect_threshold must be >= match_threshold")

    def as_table(self) -> Dict[str, object]:
        """Flat ``section.field → value`` view for display."""
        out: Dict[str, object] = {}
        for section in fields(self):
            value = getattr(self, section.name)
            if hasattr(value, "__dataclass_fields__"):
                for f in fields(value):
                    out[f"{section.name}.{f.name}"] = getattr(value, f.name)
            else:
                out[section.name] = value
        return out


cfg = AppConfig()


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  HTTP
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

DEFAULT_HEADERS: Dict[str, str] = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "image/jpeg,image/png,image/*;q=0.8,*/*;q=0.5",
    "Accept-Language": "en-US,en;q=0.9",
    "DNT": "1",
    "Connection": "keep-alive",
}
