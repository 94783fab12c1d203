"""Shared test fixtures."""

import shutil
import tempfile
from io import BytesIO
from pathlib import Path

import numpy as np
import pandas as pd
import pytest
from PIL import Image

from config.settings import RELAXED, AppConfig, PathConfig

CELL = 100
GRID = 8

# 8x8 on/off masks; any two differ in exactly half of the cells, so their
# average hashes are 32 bits apart
PATTERNS = {
    "rows":     lambda r, c: r % 2,
    "cols":     lambda r, c: c % 2,
    "checker":  lambda r, c: (r + c) % 2,
    "rows2":    lambda r, c: (r // 2) % 2,
    "cols2":    lambda r, c: (c // 2) % 2,
    "checker2": lambda r, c: (r // 2 + c // 2) % 2,
    "top":      lambda r, c: int(r < 4),
    "left":     lambda r, c: int(c < 4),
    "quad":     lambda r, c: (r // 4 + c // 4) % 2,
}


def _encode(arr: np.ndarray, fmt: str) -> bytes:
    buf = BytesIO()
    img = Image.fromarray(arr.astype(np.uint8))
    if fmt == "JPEG":
        img.save(buf, fmt, quality=95)
    else:
        img.save(buf, fmt)
    return buf.getvalue()


def pattern_image(name: str = "rows", seed: int = 0, fmt: str = "PNG") -> bytes:
    """800x800 grid of bright/dark cells with mild per-pixel noise."""
    mask = PATTERNS[name]
    cells = np.array(
        [[200 if mask(r, c) else 50 for c in range(GRID)] for r in range(GRID)],
        dtype=np.int16,
    )
    grey = np.kron(cells, np.ones((CELL, CELL), dtype=np.int16))
    noise = np.random.default_rng(seed).integers(-30, 31, grey.shape)
    grey = np.clip(grey + noise, 0, 255)
    return _encode(np.stack([grey] * 3, axis=-1), fmt)


def product_shot(seed: int = 0, side: int = 800, fmt: str = "PNG") -> bytes:
    """White square with a textured product in the middle; passes STRICT."""
    arr = np.full((side, side), 255, dtype=np.int16)
    lo, hi = side // 4, side * 3 // 4
    noise = np.random.default_rng(seed).integers(-30, 31, (hi - lo, hi - lo))
    arr[lo:hi, lo:hi] = 100 + noise
    return _encode(np.stack([arr] * 3, axis=-1), fmt)


@pytest.fixture
def tmp_dir():
    d = Path(tempfile.mkdtemp())
    yield d
    shutil.rmtree(d, ignore_errors=True)


@pytest.fixture
def test_config(tmp_dir):
    paths = PathConfig(
        root=tmp_dir,
        items_csv=tmp_dir / "input" / "items.csv",
        candidates_csv=tmp_dir / "input" / "candidates.csv",
        output_dir=tmp_dir / "output" / "images",
        report_dir=tmp_dir / "output" / "reports",
        log_file=tmp_dir / "test.log",
    )
    cfg = AppConfig(paths=paths).with_overrides(
        quality=RELAXED,
        download={"backoff_base": 0.0, "check_content_type": False},
    )
    cfg.paths.ensure()
    return cfg


@pytest.fixture
def sample_csvs(tmp_dir):
    items = tmp_dir / "input" / "items.csv"
    items.parent.mkdir(parents=True, exist_ok=True)
    pd.DataFrame({
        "ItemID": ["HT-100", "WB-200"],
        "Name": ["Acetylene Cutting Tip 2NX", "Water Bottle 500ml"],
        "Brand": ["HARRIS", "NONE"],
    }).to_csv(items, index=False)

    candidates = tmp_dir / "input" / "candidates.csv"
    pd.DataFrame({
        "item_id": ["HT-100", "HT-100", "WB-200"],
        "url": [
            "https://cdn.example.com/p/harris-acetylene-tip-2nx-1.jpg",
            "https://cdn.example.com/p/harris-logo.png",
            "https://cdn.example.com/p/8f3e2b91.jpg",
        ],
        "source": ["search", "search", "manufacturer"],
    }).to_csv(candidates, index=False)
    return items, candidates
