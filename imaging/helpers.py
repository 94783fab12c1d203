"""Small image utilities shared by the downloader & scorer."""

from __future__ import annotations

from io import BytesIO
from typing import Tuple

from PIL import Image, UnidentifiedImageError

from utils.exceptions import UnsupportedFormatError
from utils.log_config import get_logger

log = get_logger(__name__)


def decode_image(data: bytes, allowed_formats: Tuple[str, ...] = ("JPEG", "PNG")) -> Image.Image:
    """
    Decode *data* and check the real container format.

    Raises ``UnsupportedFormatError`` for anything Pillow cannot read or
    whose decoded format is not in *allowed_formats*.
    """
    try:
        img = Image.open(BytesIO(data))
        fmt = (img.format or "").upper()
        img.load()
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise UnsupportedFormatError(f"Undecodable image: {exc}") from exc

    if fmt not in allowed_formats:
        raise UnsupportedFormatError(f"Decoded format {fmt or 'unknown'} not allowed")
    return img


def flatten_to_rgb(image: Image.Image, background: Tuple[int, int, int] = (255, 255, 255)) -> Image.Image:
    """RGB copy of *image* with any transparency composited onto *background*."""
    if image.mode in ("RGBA", "LA") or (image.mode == "P" and "transparency" in image.info):
        rgba = image.convert("RGBA")
        base = Image.new("RGB", rgba.size, background)
        base.paste(rgba, mask=rgba.split()[-1])
        return base
    return image.convert("RGB")

