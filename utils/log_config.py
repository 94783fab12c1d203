"""
Centralised logging setup.
Every module does:  ``from utils.log_config import get_logger``
"""

from __future__ import annotations

import logging
import sys
import warnings
from pathlib import Path
from typing import Optional

_CONFIGURED = False

# All noisy loggers to silence
NOISY_LOGGERS = [
    # Network
    "urllib3", "urllib3.connectionpool", "requests", "charset_normalizer", "chardet",
    # Image
    "PIL", "PIL.Image", "PIL.PngImagePlugin", "PIL.JpegImagePlugin", "PIL.TiffImagePlugin",
    # Other
    "asyncio", "concurrent", "filelock",
]


def setup_root(log_file: Optional[Path] = None, verbose: bool = False) -> None:
    """Configure logging once at startup."""
    global _CONFIGURED
    if _CONFIGURED:
        return

    level = logging.DEBUG if verbose else logging.INFO
    fmt = "%(asctime)s │ %(levelname)-7s │ %(threadName)-14s │ %(message)s"
    datefmt = "%H:%M:%S"

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(str(log_file), encoding="utf-8"))

    logging.basicConfig(level=level, format=fmt, datefmt=datefmt, handlers=handlers)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.ERROR)
        logging.getLogger(name).propagate = False

    # Pillow warns on palette images with transparency; we flatten them anyway
    warnings.filterwarnings("ignore", message=".*Palette images.*")

    _CONFIGURED = True


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get a logger instance."""
    return logging.getLogger(name or "harvest")
