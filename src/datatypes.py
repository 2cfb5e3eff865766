"""Configuration dataclasses for the frame extraction tool."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class ImageFormat(str, Enum):
    """Output image encodings supported by the export stage."""

    JPEG = "jpeg"
    WEBP = "webp"
    PNG = "png"

    @property
    def extension(self) -> str:
        """Canonical filename extension for the format."""
        return _EXTENSIONS[self]

    @property
    def media_type(self) -> str:
        return f"image/{self.value}"


_EXTENSIONS = {
    ImageFormat.JPEG: "jpg",
    ImageFormat.WEBP: "webp",
    ImageFormat.PNG: "png",
}


class SortOrder(str, Enum):
    """Timestamp ordering applied before export numbering."""

    ASCENDING = "asc"
    DESCENDING = "desc"


@dataclass
class FpsConfig:
    """Frame-rate estimation sampling controls."""

    max_samples: int = 20
    timeout_seconds: float = 1.5
    min_delta_seconds: float = 0.001
    fallback_fps: int = 30


@dataclass
class CaptureConfig:
    """Defaults for batch capture runs."""

    interval_seconds: float = 1.0
    comparison_quality: float = 0.90
    snapshot_quality: float = 1.0
    start_seconds: float = 0.0
    end_seconds: Optional[float] = None


@dataclass
class ExportConfig:
    """Export encoding, sizing, and naming defaults."""

    format: ImageFormat = ImageFormat.JPEG
    quality: float = 0.9
    scale: float = 1.0
    prefix: str = "image"
    sort_order: SortOrder = SortOrder.ASCENDING
    archive_folder: str = "extracted_frames"


@dataclass
class CLIProgressConfig:
    """Presentation preferences for progress indicators."""

    style: str = "bar"


@dataclass
class CLIConfig:
    """CLI presentation controls."""

    color: bool = True
    progress: CLIProgressConfig = field(default_factory=CLIProgressConfig)


@dataclass
class PathsConfig:
    """Filesystem paths configured by the user."""

    output_dir: str = "."


@dataclass
class AppConfig:
    """Aggregated configuration loaded from the user-provided TOML file."""

    fps: FpsConfig = field(default_factory=FpsConfig)
    capture: CaptureConfig = field(default_factory=CaptureConfig)
    export: ExportConfig = field(default_factory=ExportConfig)
    cli: CLIConfig = field(default_factory=CLIConfig)
    paths: PathsConfig = field(default_factory=PathsConfig)
