from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:  # pragma: no cover
    from .models import CapturedFrame

__all__ = [
    "ArchiveWriteError",
    "CaptureError",
    "DuplicateFrameError",
    "EmptyArchiveError",
    "ExportError",
    "FrameExtractError",
    "FrameNotFoundError",
    "FrameTransformError",
    "NothingToExportError",
    "SessionBusyError",
    "SourceError",
]


class FrameExtractError(RuntimeError):
    """Base class for frame extraction issues."""


class SourceError(FrameExtractError):
    """Raised when the video source cannot open, seek, or decode."""


class CaptureError(FrameExtractError):
    """Raised when a capture run aborts; ``frames`` holds what was accepted before the fault."""

    def __init__(self, message: str, frames: Sequence[CapturedFrame] = ()) -> None:
        super().__init__(message)
        self.frames = tuple(frames)


class DuplicateFrameError(FrameExtractError):
    """Raised when a frame id is already present in the store."""


class FrameNotFoundError(FrameExtractError, KeyError):
    """Raised when a frame id is not present in the store."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


class SessionBusyError(FrameExtractError):
    """Raised when an operation starts while another one is still running."""


class ExportError(FrameExtractError):
    """Base class for export failures."""


class NothingToExportError(ExportError):
    """Raised when an export is requested with no captured frames."""


class EmptyArchiveError(ExportError):
    """Raised when every frame failed to transform, leaving nothing to archive."""


class FrameTransformError(ExportError):
    """Raised when a single-frame export cannot transform its frame."""


class ArchiveWriteError(ExportError):
    """Raised when assembling the archive fails."""
