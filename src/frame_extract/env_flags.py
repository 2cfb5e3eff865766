"""Environment flag helpers."""

from __future__ import annotations

import os
from typing import Any, Final

DEBUG_ENV_VAR: Final[str] = "FRAME_EXTRACT_DEBUG"
CONFIG_ENV_VAR: Final[str] = "FRAME_EXTRACT_CONFIG"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


def env_flag_enabled(value: Any) -> bool:
    """Return ``True`` when *value* represents an enabled environment flag."""
    if value is None:
        return False
    if isinstance(value, bytes):
        try:
            text = value.decode()
        except UnicodeDecodeError:
            text = value.decode(errors="ignore")
    else:
        text = str(value)
    normalized = text.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    return False


def debug_requested() -> bool:
    """Return ``True`` when ``FRAME_EXTRACT_DEBUG`` asks for debug logging."""
    return env_flag_enabled(os.environ.get(DEBUG_ENV_VAR))


__all__ = ["CONFIG_ENV_VAR", "DEBUG_ENV_VAR", "debug_requested", "env_flag_enabled"]
