"""Pure render-time helper modules shared by capture and export."""

from __future__ import annotations

from . import encoders, naming

__all__ = ["encoders", "naming"]
