"""OpenCV-backed decode runtime implementing :class:`VideoSource`."""

from __future__ import annotations

import asyncio
import logging
import threading
from pathlib import Path
from typing import List, Optional

import cv2
import numpy as np
from PIL import Image

from .errors import SourceError
from .source import FrameCallback, Unsubscribe

logger = logging.getLogger(__name__)

__all__ = ["OpenCVVideoSource"]


class OpenCVVideoSource:
    """
    :class:`VideoSource` backed by :class:`cv2.VideoCapture`.

    Blocking decode work runs in a worker thread. Playback is an asyncio task that decodes
    frames sequentially, paced by the container frame rate and ``playback_rate``, and reports
    each frame's container timestamp to the registered callbacks.
    """

    def __init__(self, path: str | Path, *, playback_rate: float = 1.0) -> None:
        self.path = Path(path)
        if not self.path.exists():
            raise SourceError(f"Video not found: {self.path}")
        capture = cv2.VideoCapture(str(self.path))
        if not capture.isOpened():
            capture.release()
            raise SourceError(f"Could not open video: {self.path}")
        self._capture = capture
        self._lock = threading.Lock()
        self._nominal_fps = float(capture.get(cv2.CAP_PROP_FPS) or 0.0)
        self._frame_count = int(capture.get(cv2.CAP_PROP_FRAME_COUNT) or 0)
        self._duration = self._frame_count / self._nominal_fps if self._nominal_fps > 0 else 0.0
        self.width = int(capture.get(cv2.CAP_PROP_FRAME_WIDTH) or 0)
        self.height = int(capture.get(cv2.CAP_PROP_FRAME_HEIGHT) or 0)
        self.playback_rate = float(playback_rate)
        self.muted = False
        self._current_time = 0.0
        self._frame: Optional[np.ndarray] = None
        self._callbacks: List[FrameCallback] = []
        self._playback: Optional[asyncio.Task[None]] = None
        logger.debug(
            "Opened %s: %dx%d, %.3f fps nominal, %.3fs",
            self.path.name,
            self.width,
            self.height,
            self._nominal_fps,
            self._duration,
        )

    @property
    def duration(self) -> float:
        return self._duration

    @property
    def current_time(self) -> float:
        return self._current_time

    @property
    def paused(self) -> bool:
        return self._playback is None or self._playback.done()

    @property
    def supports_frame_callbacks(self) -> bool:
        return True

    @property
    def nominal_fps(self) -> float:
        """Frame rate advertised by the container (may be 0 when unknown)."""
        return self._nominal_fps

    def _read_at(self, seconds: Optional[float]) -> tuple[float, np.ndarray]:
        with self._lock:
            if seconds is not None:
                self._capture.set(cv2.CAP_PROP_POS_MSEC, max(0.0, seconds) * 1000.0)
            ok, frame = self._capture.read()
            # The FFmpeg backend reports the timestamp of the frame just decoded.
            position_ms = float(self._capture.get(cv2.CAP_PROP_POS_MSEC) or 0.0)
        if not ok or frame is None:
            where = "next frame" if seconds is None else f"{seconds:.3f}s"
            raise SourceError(f"Failed to decode {where} of {self.path.name}")
        return position_ms / 1000.0, frame

    @property
    def last_frame_time(self) -> float:
        """Presentation time of the final frame (``duration`` minus one frame)."""
        if self._frame_count <= 0 or self._nominal_fps <= 0:
            return self._duration
        return (self._frame_count - 1) / self._nominal_fps

    def _read_last(self) -> tuple[float, np.ndarray]:
        index = self._frame_count - 1
        with self._lock:
            self._capture.set(cv2.CAP_PROP_POS_FRAMES, float(index))
            ok, frame = self._capture.read()
            position_ms = float(self._capture.get(cv2.CAP_PROP_POS_MSEC) or 0.0)
        if not ok or frame is None:
            raise SourceError(f"Failed to decode the last frame of {self.path.name}")
        if position_ms <= 0 and index > 0:
            position_ms = self.last_frame_time * 1000.0
        return position_ms / 1000.0, frame

    async def seek(self, seconds: float) -> None:
        self.pause()
        if self._frame_count > 0 and seconds >= self.last_frame_time:
            # Targets between the last frame and the end of the stream show the last frame.
            media_time, frame = await asyncio.to_thread(self._read_last)
        else:
            try:
                media_time, frame = await asyncio.to_thread(self._read_at, seconds)
            except SourceError:
                if self._frame_count <= 0:
                    raise
                logger.debug("Decode at %.3fs hit end of stream; using the last frame", seconds)
                media_time, frame = await asyncio.to_thread(self._read_last)
        self._current_time = min(max(media_time, 0.0), self._duration or media_time)
        self._frame = frame

    def current_raster(self) -> Image.Image:
        if self._frame is None:
            raise SourceError("No frame has been decoded yet; seek first")
        rgb = cv2.cvtColor(self._frame, cv2.COLOR_BGR2RGB)
        return Image.fromarray(rgb)

    def on_frame_delivered(self, callback: FrameCallback) -> Unsubscribe:
        self._callbacks.append(callback)

        def _unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return _unsubscribe

    async def play(self) -> None:
        if not self.paused:
            return
        self._playback = asyncio.get_running_loop().create_task(self._play_loop())

    def pause(self) -> None:
        task = self._playback
        self._playback = None
        if task is not None and not task.done():
            task.cancel()

    async def _play_loop(self) -> None:
        frame_delay = 1.0 / (self._nominal_fps * self.playback_rate) if self._nominal_fps > 0 else 0.0
        while True:
            try:
                media_time, frame = await asyncio.to_thread(self._read_at, None)
            except SourceError:
                logger.debug("Playback reached the end of %s", self.path.name)
                return
            self._current_time = media_time
            self._frame = frame
            for callback in list(self._callbacks):
                callback(media_time)
            await asyncio.sleep(frame_delay)

    def close(self) -> None:
        """Stop playback and release the decoder."""
        self.pause()
        with self._lock:
            self._capture.release()
