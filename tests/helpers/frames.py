"""Builders for stored frames holding real encoded snapshots."""

from __future__ import annotations

import io

from PIL import Image

from src.frame_extract.models import CapturedFrame
from tests.helpers.fake_source import color_for


def encoded_frame(
    timestamp: float,
    *,
    key: int = 0,
    size: tuple[int, int] = (64, 36),
    fmt: str = "JPEG",
) -> CapturedFrame:
    """Build a stored frame whose data is a solid-colour image encoded as *fmt*."""

    buffer = io.BytesIO()
    Image.new("RGB", size, color_for(key)).save(buffer, format=fmt)
    return CapturedFrame(timestamp=timestamp, data=buffer.getvalue(), width=size[0], height=size[1])
