"""Value types passed between the capture and export stages."""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, field
from typing import Tuple

from src.datatypes import CaptureConfig, ExportConfig, ImageFormat, SortOrder

__all__ = [
    "CaptureProgress",
    "CaptureRange",
    "CapturedFrame",
    "EncodedImage",
    "ExportSettings",
    "ImageFormat",
    "SortOrder",
    "new_frame_id",
]


def new_frame_id() -> str:
    """Return a fresh unique frame identifier."""

    return uuid.uuid4().hex


@dataclass(frozen=True)
class CapturedFrame:
    """
    One still raster extracted from the video.

    Attributes:
        timestamp (float): Source-relative capture time in seconds.
        data (bytes): Encoded snapshot of the raster at capture-time resolution.
        width (int): Snapshot width in pixels.
        height (int): Snapshot height in pixels.
        id (str): Unique identifier, generated when omitted.
    """

    timestamp: float
    data: bytes = field(repr=False)
    width: int
    height: int
    id: str = field(default_factory=new_frame_id)

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Frame dimensions must be positive, got {self.width}x{self.height}")
        if self.timestamp < 0 or not math.isfinite(self.timestamp):
            raise ValueError(f"Frame timestamp must be a finite value >= 0, got {self.timestamp}")


@dataclass(frozen=True)
class CaptureRange:
    """Time window and step walked by a capture run."""

    start: float
    end: float
    interval: float

    def __post_init__(self) -> None:
        if not all(math.isfinite(value) for value in (self.start, self.end, self.interval)):
            raise ValueError("Capture range values must be finite")
        if self.start < 0:
            raise ValueError("Capture range start must be >= 0")
        if self.end < self.start:
            raise ValueError("Capture range end must be >= start")
        if self.interval <= 0:
            raise ValueError("Capture interval must be > 0")

    def validate_for(self, duration: float) -> "CaptureRange":
        """Return ``self`` after checking the range fits inside ``duration`` seconds."""

        if self.end > duration:
            raise ValueError(
                f"Capture range end {self.end:.3f}s exceeds video duration {duration:.3f}s"
            )
        return self

    @property
    def span(self) -> float:
        return self.end - self.start

    @classmethod
    def from_config(cls, cfg: CaptureConfig, duration: float) -> "CaptureRange":
        """Build a range from configured defaults, clamping the end to ``duration``."""

        end = duration if cfg.end_seconds is None else min(float(cfg.end_seconds), duration)
        start = min(float(cfg.start_seconds), end)
        return cls(start=start, end=end, interval=float(cfg.interval_seconds))


@dataclass(frozen=True)
class ExportSettings:
    """Encoding, sizing, and naming options for one export request."""

    format: ImageFormat = ImageFormat.JPEG
    quality: float = 0.9
    scale: float = 1.0
    filename_prefix: str = "image"
    sort_order: SortOrder = SortOrder.ASCENDING

    def __post_init__(self) -> None:
        object.__setattr__(self, "format", ImageFormat(self.format))
        object.__setattr__(self, "sort_order", SortOrder(self.sort_order))
        if not 0 < self.quality <= 1:
            raise ValueError("Export quality must be in (0, 1]")
        if not 0 < self.scale <= 1:
            raise ValueError("Export scale must be in (0, 1]")
        if not self.filename_prefix or not self.filename_prefix.strip():
            raise ValueError("Export filename prefix must be a non-empty string")

    @classmethod
    def from_config(cls, cfg: ExportConfig) -> "ExportSettings":
        return cls(
            format=cfg.format,
            quality=float(cfg.quality),
            scale=float(cfg.scale),
            filename_prefix=cfg.prefix,
            sort_order=cfg.sort_order,
        )


@dataclass(frozen=True)
class EncodedImage:
    """A transformed frame ready for archiving."""

    frame_id: str
    timestamp: float
    data: bytes = field(repr=False)
    width: int
    height: int
    format: ImageFormat

    @property
    def size(self) -> Tuple[int, int]:
        return (self.width, self.height)


@dataclass(frozen=True)
class CaptureProgress:
    """Progress signal emitted during a capture run (display only)."""

    percent: float
    accepted: int
