"""Pillow-backed raster encoding shared by capture signatures and export."""

from __future__ import annotations

import io
import math
from typing import Tuple

from PIL import Image

from src.datatypes import ImageFormat

__all__ = [
    "COMPARISON_QUALITY",
    "RESAMPLE_FILTER",
    "decode_image",
    "encode_image",
    "map_quality",
    "signature_for",
    "target_dimensions",
]

COMPARISON_QUALITY = 0.90
RESAMPLE_FILTER = Image.Resampling.LANCZOS

_PIL_FORMATS = {
    ImageFormat.JPEG: "JPEG",
    ImageFormat.WEBP: "WEBP",
    ImageFormat.PNG: "PNG",
}


def map_quality(quality: float) -> int:
    """Map a ``(0, 1]`` quality fraction onto Pillow's 1-100 scale."""

    return max(1, min(100, int(math.floor(float(quality) * 100 + 0.5))))


def target_dimensions(width: int, height: int, scale: float) -> Tuple[int, int]:
    """Return the resized ``(width, height)`` for *scale*, never collapsing below one pixel."""

    return (
        max(1, int(math.floor(width * scale))),
        max(1, int(math.floor(height * scale))),
    )


def _prepare_mode(image: Image.Image, fmt: ImageFormat) -> Image.Image:
    if fmt is ImageFormat.JPEG:
        if image.mode != "RGB":
            return image.convert("RGB")
        return image
    if image.mode not in ("RGB", "RGBA"):
        return image.convert("RGBA" if "A" in image.getbands() else "RGB")
    return image


def encode_image(image: Image.Image, fmt: ImageFormat, quality: float) -> bytes:
    """
    Encode *image* as *fmt* and return the bytes.

    JPEG and WebP honour *quality*; PNG is lossless so *quality* is ignored.
    """

    fmt = ImageFormat(fmt)
    prepared = _prepare_mode(image, fmt)
    buffer = io.BytesIO()
    if fmt is ImageFormat.PNG:
        prepared.save(buffer, format=_PIL_FORMATS[fmt])
    else:
        prepared.save(buffer, format=_PIL_FORMATS[fmt], quality=map_quality(quality))
    return buffer.getvalue()


def decode_image(data: bytes) -> Image.Image:
    """Decode encoded raster bytes into a fully loaded Pillow image."""

    with Image.open(io.BytesIO(data)) as handle:
        handle.load()
        return handle.copy()


def signature_for(image: Image.Image, quality: float = COMPARISON_QUALITY) -> bytes:
    """Return the duplicate-detection signature: the JPEG bytes of *image* at *quality*."""

    return encode_image(image, ImageFormat.JPEG, quality)
