"""Bundle transformed frames into a zip archive or a single image file."""

from __future__ import annotations

import io
import logging
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence, Tuple

from .errors import ArchiveWriteError, EmptyArchiveError
from .export import ExportEntry
from .models import EncodedImage
from .render import naming

logger = logging.getLogger(__name__)

__all__ = ["ARCHIVE_FOLDER", "ExportArtifact", "write_archive", "write_single"]

ARCHIVE_FOLDER = "extracted_frames"
ARCHIVE_MEDIA_TYPE = "application/zip"

# Fixed entry timestamp so identical input produces identical archive bytes.
_ENTRY_DATE_TIME = (1980, 1, 1, 0, 0, 0)


@dataclass(frozen=True)
class ExportArtifact:
    """Delivered export output: an archive or a single image."""

    filename: str
    data: bytes = field(repr=False)
    media_type: str
    entries: Tuple[str, ...] = ()

    def save(self, directory: str | Path) -> Path:
        """Write the artifact into *directory* (created when missing) and return its path."""

        target_dir = Path(directory)
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ArchiveWriteError(f"Unable to prepare output directory '{target_dir}': {exc}") from exc
        target = target_dir / self.filename
        try:
            target.write_bytes(self.data)
        except OSError as exc:
            raise ArchiveWriteError(f"Unable to write '{target}': {exc.strerror or exc}") from exc
        logger.info("[ARCHIVE] Wrote %s (%d bytes)", target, len(self.data))
        return target


def write_archive(
    entries: Sequence[ExportEntry],
    prefix: str,
    *,
    folder: str = ARCHIVE_FOLDER,
) -> ExportArtifact:
    """
    Package *entries* under *folder* inside ``{prefix}_frames.zip``.

    Raises:
        EmptyArchiveError: When *entries* is empty; an empty bundle is never produced.
        ArchiveWriteError: When zip assembly fails.
    """

    if not entries:
        raise EmptyArchiveError("No frames were transformed successfully; archive not created")

    ordered = sorted(entries, key=lambda entry: entry.ordinal)
    names = tuple(f"{folder}/{entry.filename}" for entry in ordered)
    buffer = io.BytesIO()
    try:
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as bundle:
            for name, entry in zip(names, ordered, strict=True):
                info = zipfile.ZipInfo(name, date_time=_ENTRY_DATE_TIME)
                info.compress_type = zipfile.ZIP_DEFLATED
                info.external_attr = 0o644 << 16
                bundle.writestr(info, entry.image.data)
    except (OSError, ValueError, zipfile.BadZipFile) as exc:
        raise ArchiveWriteError(f"Failed to assemble archive: {exc}") from exc

    filename = naming.archive_filename(naming.sanitise_prefix(prefix))
    logger.info("[ARCHIVE] %s: %d entries", filename, len(names))
    return ExportArtifact(filename=filename, data=buffer.getvalue(), media_type=ARCHIVE_MEDIA_TYPE, entries=names)


def write_single(image: EncodedImage, filename: str) -> ExportArtifact:
    """Wrap one transformed image as a standalone file artifact."""

    return ExportArtifact(
        filename=filename,
        data=image.data,
        media_type=image.format.media_type,
        entries=(filename,),
    )
