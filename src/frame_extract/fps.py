"""Native frame-rate estimation from decode-callback timing."""

from __future__ import annotations

import asyncio
import logging
import math
from typing import Final, List, Optional, Sequence

from src.datatypes import FpsConfig

from .source import FrameCallback, VideoSource

logger = logging.getLogger(__name__)

__all__ = [
    "FALLBACK_FPS",
    "FrameRateEstimator",
    "deltas_from_samples",
    "fps_for_interval",
    "fps_from_deltas",
    "interval_for_fps",
]

FALLBACK_FPS: Final[int] = 30


def deltas_from_samples(samples: Sequence[float], min_delta: float = 0.001) -> List[float]:
    """Return positive deltas between consecutive media times, dropping non-advancing callbacks."""

    deltas: List[float] = []
    for previous, current in zip(samples, samples[1:]):
        delta = current - previous
        if delta > min_delta:
            deltas.append(delta)
    return deltas


def fps_from_deltas(deltas: Sequence[float], fallback: int = FALLBACK_FPS) -> int:
    """
    Return the frame rate implied by the median of *deltas*.

    The median is the middle element of the ascending deltas (upper middle for even counts),
    so a stray outlier cannot drag the estimate. Empty input or a non-positive result yields
    *fallback*.
    """

    if not deltas:
        return fallback
    ordered = sorted(deltas)
    median = ordered[len(ordered) // 2]
    if median <= 0:
        return fallback
    fps = int(math.floor(1.0 / median + 0.5))
    return fps if fps > 0 else fallback


def interval_for_fps(fps: float) -> float:
    """Return the sampling interval matching *fps*, rounded to 4 decimals."""

    if fps <= 0:
        raise ValueError("fps must be > 0")
    return round(1.0 / fps, 4)


def fps_for_interval(interval: float) -> float:
    """Return the sampling rate matching *interval*, rounded to 2 decimals."""

    if interval <= 0:
        raise ValueError("interval must be > 0")
    return round(1.0 / interval, 2)


class FrameRateEstimator:
    """One-shot measurement of a source's native frame delivery rate."""

    def __init__(self, config: Optional[FpsConfig] = None) -> None:
        self.config = config or FpsConfig()

    async def estimate(self, source: VideoSource) -> int:
        """
        Play *source* from the start and derive fps from per-frame media times.

        Never raises: missing callback support, rejected playback, a failed seek, or too few
        samples all resolve to the configured fallback. The source's position, mute flag, and
        play state are restored before returning.
        """

        cfg = self.config
        if not source.supports_frame_callbacks:
            logger.info("[FPS] Source lacks per-frame callbacks; using %d fps", cfg.fallback_fps)
            return cfg.fallback_fps

        was_playing = not source.paused
        original_time = source.current_time
        original_muted = source.muted
        samples: List[float] = []
        enough = asyncio.Event()

        def _on_frame(media_time: float) -> None:
            if enough.is_set():
                return
            samples.append(float(media_time))
            if len(samples) >= cfg.max_samples:
                enough.set()

        source.muted = True
        try:
            collected = await self._collect(source, _on_frame, samples, enough)
        except Exception as exc:
            logger.warning("[FPS] Measurement failed; using fallback: %s", exc)
            collected = []
        finally:
            await self._restore(source, original_time, original_muted, was_playing)

        deltas = deltas_from_samples(collected, cfg.min_delta_seconds)
        fps = fps_from_deltas(deltas, cfg.fallback_fps)
        logger.info(
            "[FPS] %d samples, %d valid deltas -> %d fps", len(collected), len(deltas), fps
        )
        return fps

    async def _collect(
        self,
        source: VideoSource,
        on_frame: FrameCallback,
        samples: List[float],
        enough: asyncio.Event,
    ) -> List[float]:
        cfg = self.config
        try:
            await source.seek(0.0)
        except Exception as exc:
            logger.warning("[FPS] Seek to start failed; using fallback: %s", exc)
            return []
        unsubscribe = source.on_frame_delivered(on_frame)
        try:
            try:
                await source.play()
            except Exception as exc:
                logger.warning("[FPS] Playback rejected for analysis: %s", exc)
                return []
            try:
                await asyncio.wait_for(enough.wait(), timeout=cfg.timeout_seconds)
            except asyncio.TimeoutError:
                logger.debug(
                    "[FPS] Deadline of %.2fs reached with %d/%d samples",
                    cfg.timeout_seconds,
                    len(samples),
                    cfg.max_samples,
                )
        finally:
            unsubscribe()
        return list(samples)

    async def _restore(
        self,
        source: VideoSource,
        original_time: float,
        original_muted: bool,
        was_playing: bool,
    ) -> None:
        source.pause()
        try:
            await source.seek(original_time)
        except Exception as exc:
            logger.warning("[FPS] Could not restore position %.3fs: %s", original_time, exc)
        source.muted = original_muted
        if was_playing:
            try:
                await source.play()
            except Exception as exc:
                logger.warning("[FPS] Could not resume playback: %s", exc)
