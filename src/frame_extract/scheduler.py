"""Seek, capture, and de-duplicate frames across a time range."""

from __future__ import annotations

import asyncio
import logging
import math
from typing import Callable, List, Optional

from src.datatypes import CaptureConfig

from .errors import CaptureError
from .models import CaptureProgress, CaptureRange, CapturedFrame
from .render import encoders
from .source import VideoSource
from .store import FrameStore

logger = logging.getLogger(__name__)

__all__ = [
    "CancelToken",
    "CaptureScheduler",
    "ProgressCallback",
    "capture_current_frame",
    "estimate_sample_count",
    "progress_percent",
    "sample_points",
]

ProgressCallback = Callable[[CaptureProgress], None]

_MAX_RUNNING_PERCENT = 99.0


class CancelToken:
    """
    Cooperative stop request for a capture run.

    The scheduler only looks at the token before starting an iteration; a seek and capture
    already in flight completes and its frame is kept.
    """

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


def estimate_sample_count(capture_range: CaptureRange) -> int:
    """Return ``floor((end - start) / interval) + 1``, the number of scheduled sample points."""

    return int(math.floor(capture_range.span / capture_range.interval)) + 1


def sample_points(capture_range: CaptureRange) -> List[float]:
    """Return the sample times walked by a run, indexed from ``start`` and clamped to ``end``."""

    count = estimate_sample_count(capture_range)
    return [
        min(capture_range.start + index * capture_range.interval, capture_range.end)
        for index in range(count)
    ]


def progress_percent(capture_range: CaptureRange, sample_time: float) -> float:
    """Return running progress for *sample_time*, held at 99 until the run completes."""

    span = capture_range.span
    if span <= 0:
        return _MAX_RUNNING_PERCENT
    percent = ((sample_time - capture_range.start) / span) * 100.0
    return min(_MAX_RUNNING_PERCENT, max(0.0, percent))


def _clamp_timestamp(value: float, duration: float) -> float:
    upper = duration if duration > 0 else value
    return min(max(float(value), 0.0), max(upper, 0.0))


def capture_current_frame(source: VideoSource, quality: float = 1.0) -> CapturedFrame:
    """Snapshot the frame currently decoded by *source* at native resolution."""

    raster = source.current_raster()
    width, height = raster.size
    return CapturedFrame(
        timestamp=_clamp_timestamp(source.current_time, source.duration),
        data=encoders.signature_for(raster, quality),
        width=width,
        height=height,
    )


class CaptureScheduler:
    """Drive seek → capture → compare iterations and merge the accepted batch into a store."""

    def __init__(
        self,
        source: VideoSource,
        store: FrameStore,
        config: Optional[CaptureConfig] = None,
    ) -> None:
        self.source = source
        self.store = store
        self.config = config or CaptureConfig()
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def run(
        self,
        capture_range: CaptureRange,
        cancel_token: Optional[CancelToken] = None,
        *,
        progress: Optional[ProgressCallback] = None,
    ) -> List[CapturedFrame]:
        """
        Walk *capture_range*, keeping each frame whose signature differs from the last kept one.

        Parameters:
            capture_range: Validated range; its end must not exceed the source duration.
            cancel_token: Optional cooperative stop request, checked at the top of each iteration.
            progress: Optional callback receiving percent (0-99 while running, then 100 once the
                loop exits without error, cancellation included) and the running accepted count.

        Returns:
            List[CapturedFrame]: Accepted frames in chronological order. The same batch is
            prepended to the store whether the run completes, is cancelled, or fails.

        Raises:
            CaptureError: When seeking or decoding fails mid-run. The partial batch is still
                merged into the store and exposed as ``exc.frames``.
        """

        if self._running:
            raise CaptureError("A capture run is already in progress")
        capture_range.validate_for(self.source.duration)
        token = cancel_token or CancelToken()
        quality = self.config.comparison_quality
        points = sample_points(capture_range)

        self._running = True
        accepted: List[CapturedFrame] = []
        last_signature: Optional[bytes] = None
        completed = False
        logger.info(
            "[CAPTURE] %.3fs → %.3fs every %.4fs (%d sample points)",
            capture_range.start,
            capture_range.end,
            capture_range.interval,
            len(points),
        )
        try:
            self.source.pause()
            for index, sample_time in enumerate(points):
                if token.cancelled:
                    logger.info("[CAPTURE] Cancelled before sample %d/%d", index + 1, len(points))
                    break
                await self.source.seek(sample_time)
                raster = self.source.current_raster()
                signature = encoders.signature_for(raster, quality)
                if signature != last_signature:
                    width, height = raster.size
                    accepted.append(
                        CapturedFrame(
                            timestamp=_clamp_timestamp(self.source.current_time, self.source.duration),
                            data=signature,
                            width=width,
                            height=height,
                        )
                    )
                    last_signature = signature
                if progress is not None:
                    progress(CaptureProgress(progress_percent(capture_range, sample_time), len(accepted)))
                await asyncio.sleep(0)
            completed = True
        except Exception as exc:
            logger.error("[CAPTURE] Aborted after %d frames: %s", len(accepted), exc)
            raise CaptureError(f"Capture aborted: {exc}", accepted) from exc
        finally:
            try:
                self.store.insert_batch(accepted)
                if completed and progress is not None:
                    progress(CaptureProgress(100.0, len(accepted)))
            finally:
                try:
                    await self._restore_position(capture_range.start)
                finally:
                    self._running = False

        logger.info("[CAPTURE] Accepted %d of %d sample points", len(accepted), len(points))
        return accepted

    async def _restore_position(self, seconds: float) -> None:
        try:
            await self.source.seek(seconds)
        except Exception as exc:
            logger.warning("[CAPTURE] Could not restore position to %.3fs: %s", seconds, exc)
