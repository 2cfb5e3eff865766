from __future__ import annotations

import os
import re

__all__ = [
    "DEFAULT_PREFIX",
    "INVALID_LABEL_PATTERN",
    "archive_filename",
    "generate_filename",
    "pad_width",
    "sanitise_prefix",
]

DEFAULT_PREFIX = "image"

INVALID_LABEL_PATTERN = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


def sanitise_prefix(prefix: str) -> str:
    """Return a filesystem-safe filename prefix while preserving user intent when possible."""

    cleaned = INVALID_LABEL_PATTERN.sub("_", prefix)
    if os.name == "nt":
        cleaned = cleaned.rstrip(" .")
    cleaned = cleaned.strip()
    return cleaned or DEFAULT_PREFIX


def pad_width(total: int) -> int:
    """Return the zero-padding width for an export of *total* frames (never below 2)."""

    return max(2, len(str(max(int(total), 0))))


def generate_filename(prefix: str, ordinal: int, ext: str, total: int = 1) -> str:
    """
    Return the export filename for the frame at 1-based *ordinal* out of *total*.

    The numeric field grows with the total count so every name in one export sorts lexically:
    ``generate_filename("image", 1, "jpg", total=5)`` is ``image_01.jpg`` while
    ``generate_filename("image", 100, "jpg", total=150)`` is ``image_100.jpg``.
    """

    if ordinal < 1:
        raise ValueError("ordinal must be >= 1")
    width = pad_width(max(total, ordinal))
    return f"{prefix}_{ordinal:0{width}d}.{ext.lower().lstrip('.')}"


def archive_filename(prefix: str) -> str:
    """Return the bundle name for an export using *prefix*."""

    return f"{prefix}_frames.zip"
