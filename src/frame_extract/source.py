"""Video capability interface consumed by the estimator and scheduler."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Final, Protocol, runtime_checkable

from PIL import Image

__all__ = [
    "FrameCallback",
    "SUPPORTED_EXTS",
    "Unsubscribe",
    "VideoSource",
    "is_supported_media",
]

FrameCallback = Callable[[float], None]
Unsubscribe = Callable[[], None]

SUPPORTED_EXTS: Final[tuple[str, ...]] = (
    ".mkv",
    ".mp4",
    ".webm",
    ".mov",
    ".avi",
    ".m4v",
    ".mpg",
    ".mpeg",
    ".ts",
    ".m2ts",
    ".flv",
    ".wmv",
    ".ogv",
)


def is_supported_media(path: Path) -> bool:
    """Return ``True`` when *path* carries a container extension the decoder understands."""

    return path.suffix.lower() in SUPPORTED_EXTS


@runtime_checkable
class VideoSource(Protocol):
    """
    Capabilities the estimator and scheduler need from a decode runtime.

    ``seek`` completes once the decoder has a frame at (or snapped near) the requested time;
    ``current_time`` then reports where it actually landed. ``on_frame_delivered`` registers a
    callback receiving the media time of every frame decoded during playback and returns a
    function that removes it.
    """

    @property
    def duration(self) -> float: ...

    @property
    def current_time(self) -> float: ...

    @property
    def paused(self) -> bool: ...

    muted: bool

    @property
    def supports_frame_callbacks(self) -> bool: ...

    async def seek(self, seconds: float) -> None: ...

    def current_raster(self) -> Image.Image: ...

    async def play(self) -> None: ...

    def pause(self) -> None: ...

    def on_frame_delivered(self, callback: FrameCallback) -> Unsubscribe: ...
