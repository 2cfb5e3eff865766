"""Single-video extraction session: source, fps cache, frame store, and state machine."""

from __future__ import annotations

import contextlib
import enum
import logging
from typing import Iterator, Optional

from src.datatypes import AppConfig

from .archive import ExportArtifact, write_archive, write_single
from .errors import (
    FrameNotFoundError,
    FrameTransformError,
    NothingToExportError,
    SessionBusyError,
    SourceError,
)
from .export import transform_frames
from .fps import FrameRateEstimator, interval_for_fps
from .models import CaptureRange, CapturedFrame, ExportSettings
from .render import naming
from .scheduler import CancelToken, CaptureScheduler, ProgressCallback, capture_current_frame
from .source import VideoSource
from .store import FrameStore

logger = logging.getLogger(__name__)

__all__ = ["ExtractionSession", "SessionState"]


class SessionState(str, enum.Enum):
    IDLE = "idle"
    DETECTING = "detecting"
    CAPTURING = "capturing"
    EXPORTING = "exporting"


class ExtractionSession:
    """
    Owns everything scoped to one loaded video.

    Detecting, capturing, and exporting are mutually exclusive; each returns the session to
    ``IDLE`` on every exit path so a failed operation can be retried. Loading a new source
    clears the frame store and the cached fps estimate.
    """

    def __init__(self, config: Optional[AppConfig] = None) -> None:
        self.config = config or AppConfig()
        self.store = FrameStore()
        self.estimator = FrameRateEstimator(self.config.fps)
        self._source: Optional[VideoSource] = None
        self._detected_fps: Optional[int] = None
        self._state = SessionState.IDLE

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def transport_enabled(self) -> bool:
        """Whether manual play/seek controls may be offered to the user."""
        return self._state not in (SessionState.DETECTING, SessionState.CAPTURING)

    @property
    def source(self) -> VideoSource:
        if self._source is None:
            raise SourceError("No video source loaded")
        return self._source

    @property
    def detected_fps(self) -> Optional[int]:
        return self._detected_fps

    @contextlib.contextmanager
    def _enter(self, state: SessionState) -> Iterator[None]:
        if self._state is not SessionState.IDLE:
            raise SessionBusyError(f"Cannot start {state.value} while {self._state.value}")
        self._state = state
        try:
            yield
        finally:
            self._state = SessionState.IDLE

    def load_source(self, source: VideoSource) -> None:
        """Replace the current source, discarding frames and the fps estimate tied to it."""

        if self._state is not SessionState.IDLE:
            raise SessionBusyError(f"Cannot load a new source while {self._state.value}")
        previous = self._source
        if previous is not None and previous is not source:
            close = getattr(previous, "close", None)
            if callable(close):
                close()
        self._source = source
        self._detected_fps = None
        self.store.clear()
        logger.debug("Loaded source with duration %.3fs", source.duration)

    def close(self) -> None:
        """Release the loaded source, if any. Captured frames stay in the store."""

        source = self._source
        self._source = None
        if source is None:
            return
        close = getattr(source, "close", None)
        if callable(close):
            close()

    async def detect_fps(self) -> int:
        """Return the cached fps estimate, measuring it on first use."""

        if self._detected_fps is not None:
            return self._detected_fps
        source = self.source
        with self._enter(SessionState.DETECTING):
            fps = await self.estimator.estimate(source)
        self._detected_fps = fps
        return fps

    def default_range(self, fps: Optional[float] = None) -> CaptureRange:
        """
        Full-duration range for the source.

        With *fps* the interval samples one frame per ``1/fps`` seconds ("extract all");
        otherwise the configured capture defaults apply.
        """

        duration = self.source.duration
        if fps is not None:
            return CaptureRange(start=0.0, end=duration, interval=interval_for_fps(fps))
        return CaptureRange.from_config(self.config.capture, duration)

    async def capture_current(self) -> CapturedFrame:
        """Snapshot the currently decoded frame and prepend it to the store."""

        source = self.source
        if self._state is not SessionState.IDLE:
            raise SessionBusyError(f"Cannot capture while {self._state.value}")
        frame = capture_current_frame(source, self.config.capture.snapshot_quality)
        self.store.insert_one(frame)
        logger.info("[CAPTURE] Manual capture at %.3fs", frame.timestamp)
        return frame

    async def run_capture(
        self,
        capture_range: CaptureRange,
        cancel_token: Optional[CancelToken] = None,
        *,
        progress: Optional[ProgressCallback] = None,
    ) -> list[CapturedFrame]:
        """Run one capture batch over *capture_range*; see :meth:`CaptureScheduler.run`."""

        scheduler = CaptureScheduler(self.source, self.store, self.config.capture)
        with self._enter(SessionState.CAPTURING):
            return await scheduler.run(capture_range, cancel_token, progress=progress)

    async def export_all(self, settings: ExportSettings) -> ExportArtifact:
        """
        Transform every stored frame and bundle the results.

        Raises:
            NothingToExportError: The store is empty; no transform or archive is attempted.
            EmptyArchiveError: Every frame failed to transform.
            ArchiveWriteError: The archive could not be assembled.
        """

        frames = self.store.frames()
        if not frames:
            raise NothingToExportError("No frames captured; nothing to export")
        with self._enter(SessionState.EXPORTING):
            entries = await transform_frames(frames, settings)
            artifact = write_archive(
                entries,
                settings.filename_prefix,
                folder=self.config.export.archive_folder,
            )
        logger.info("[EXPORT] %s ready with %d of %d frames", artifact.filename, len(entries), len(frames))
        return artifact

    async def export_single(self, frame_id: str, settings: ExportSettings) -> ExportArtifact:
        """Transform one stored frame into a standalone file numbered ``01``."""

        frame = self.store.get(frame_id)
        if frame is None:
            raise FrameNotFoundError(f"Frame {frame_id!r} is not in the store")
        with self._enter(SessionState.EXPORTING):
            entries = await transform_frames([frame], settings)
        if not entries:
            raise FrameTransformError(f"Frame {frame_id!r} could not be transformed")
        filename = naming.generate_filename(
            naming.sanitise_prefix(settings.filename_prefix),
            1,
            settings.format.extension,
            total=1,
        )
        return write_single(entries[0].image, filename)
