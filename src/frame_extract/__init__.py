"""Frame sampling and export pipeline."""

from __future__ import annotations

from .archive import ExportArtifact, write_archive, write_single
from .errors import (
    ArchiveWriteError,
    CaptureError,
    DuplicateFrameError,
    EmptyArchiveError,
    ExportError,
    FrameExtractError,
    FrameNotFoundError,
    FrameTransformError,
    NothingToExportError,
    SessionBusyError,
    SourceError,
)
from .export import order_frames, transform_frame, transform_frames
from .fps import FrameRateEstimator, fps_from_deltas
from .models import (
    CaptureProgress,
    CaptureRange,
    CapturedFrame,
    EncodedImage,
    ExportSettings,
    ImageFormat,
    SortOrder,
)
from .render.naming import generate_filename
from .scheduler import CancelToken, CaptureScheduler, sample_points
from .session import ExtractionSession, SessionState
from .source import VideoSource
from .store import FrameStore

__all__ = [
    "ArchiveWriteError",
    "CancelToken",
    "CaptureError",
    "CaptureProgress",
    "CaptureRange",
    "CaptureScheduler",
    "CapturedFrame",
    "DuplicateFrameError",
    "EmptyArchiveError",
    "EncodedImage",
    "ExportArtifact",
    "ExportError",
    "ExportSettings",
    "ExtractionSession",
    "FrameExtractError",
    "FrameNotFoundError",
    "FrameRateEstimator",
    "FrameStore",
    "FrameTransformError",
    "ImageFormat",
    "NothingToExportError",
    "SessionBusyError",
    "SessionState",
    "SortOrder",
    "SourceError",
    "VideoSource",
    "fps_from_deltas",
    "generate_filename",
    "order_frames",
    "sample_points",
    "transform_frame",
    "transform_frames",
    "write_archive",
    "write_single",
]
