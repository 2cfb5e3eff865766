"""Resize, re-encode, and number captured frames for export."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .models import CapturedFrame, EncodedImage, ExportSettings, SortOrder
from .render import encoders, naming

logger = logging.getLogger(__name__)

__all__ = [
    "ExportEntry",
    "order_frames",
    "plan_filenames",
    "transform_frame",
    "transform_frames",
]


@dataclass(frozen=True)
class ExportEntry:
    """A transformed frame paired with its archive filename."""

    filename: str
    ordinal: int
    image: EncodedImage


def order_frames(frames: Sequence[CapturedFrame], sort_order: SortOrder) -> List[CapturedFrame]:
    """Return *frames* sorted by timestamp in *sort_order* (stable for equal timestamps)."""

    return sorted(
        frames,
        key=lambda frame: frame.timestamp,
        reverse=SortOrder(sort_order) is SortOrder.DESCENDING,
    )


def plan_filenames(frames: Sequence[CapturedFrame], settings: ExportSettings) -> List[tuple[CapturedFrame, str]]:
    """
    Pair every frame with its export filename.

    Ordinals are 1-based positions in the ``settings.sort_order`` ordering of the full frame set
    and keep their value even if a frame later fails to transform.
    """

    ordered = order_frames(frames, settings.sort_order)
    prefix = naming.sanitise_prefix(settings.filename_prefix)
    ext = settings.format.extension
    total = len(ordered)
    return [
        (frame, naming.generate_filename(prefix, ordinal, ext, total))
        for ordinal, frame in enumerate(ordered, start=1)
    ]


def transform_frame(frame: CapturedFrame, settings: ExportSettings) -> Optional[EncodedImage]:
    """
    Resize *frame* by ``settings.scale`` and re-encode it as ``settings.format``.

    Returns ``None`` when the snapshot cannot be decoded or the result cannot be encoded so a
    single bad frame never aborts an export.
    """

    try:
        raster = encoders.decode_image(frame.data)
    except Exception as exc:
        logger.warning("[EXPORT] Skipping frame %s at %.3fs: decode failed: %s", frame.id, frame.timestamp, exc)
        return None

    target = encoders.target_dimensions(frame.width, frame.height, settings.scale)
    try:
        if raster.size != target:
            raster = raster.resize(target, encoders.RESAMPLE_FILTER)
        data = encoders.encode_image(raster, settings.format, settings.quality)
    except Exception as exc:
        logger.warning("[EXPORT] Skipping frame %s at %.3fs: encode failed: %s", frame.id, frame.timestamp, exc)
        return None

    return EncodedImage(
        frame_id=frame.id,
        timestamp=frame.timestamp,
        data=data,
        width=target[0],
        height=target[1],
        format=settings.format,
    )


async def transform_frames(frames: Sequence[CapturedFrame], settings: ExportSettings) -> List[ExportEntry]:
    """
    Transform every frame concurrently and return the successful ones in ordinal order.

    Each transform runs in a worker thread; all of them are joined before returning.
    """

    planned = plan_filenames(frames, settings)
    results = await asyncio.gather(
        *(asyncio.to_thread(transform_frame, frame, settings) for frame, _ in planned)
    )
    entries: List[ExportEntry] = []
    for ordinal, ((_, filename), image) in enumerate(zip(planned, results, strict=True), start=1):
        if image is not None:
            entries.append(ExportEntry(filename=filename, ordinal=ordinal, image=image))
    skipped = len(planned) - len(entries)
    if skipped:
        logger.warning("[EXPORT] %d of %d frames could not be transformed", skipped, len(planned))
    return entries
