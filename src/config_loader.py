"""Configuration loader that parses and validates user-provided TOML."""

from __future__ import annotations

import tomllib
from dataclasses import fields, is_dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict

from .datatypes import (
    AppConfig,
    CaptureConfig,
    CLIConfig,
    ExportConfig,
    FpsConfig,
    ImageFormat,
    PathsConfig,
    SortOrder,
)


class ConfigError(ValueError):
    """Raised when the configuration file is malformed or fails validation."""


def _coerce_bool(value: Any, dotted_key: str) -> bool:
    """Return a bool, coercing simple 0/1 representations when necessary."""

    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"0", "1"}:
            return normalized == "1"
        if normalized in {"true", "false"}:
            return normalized == "true"
    raise ConfigError(f"{dotted_key} must be a boolean (use true/false).")


def _coerce_enum(value: Any, dotted_key: str, enum_cls: type[Enum]) -> Enum:
    """Return the ``enum_cls`` member whose value matches ``value`` case-insensitively."""

    if isinstance(value, enum_cls):
        return value
    normalized = str(value).strip().lower()
    for member in enum_cls:
        if member.value == normalized:
            return member
    choices = ", ".join(repr(member.value) for member in enum_cls)
    raise ConfigError(f"{dotted_key} must be one of {choices}")


def _sanitize_section(raw: dict[str, Any], name: str, cls):
    """
    Coerce a raw TOML table into an instance of ``cls`` with cleaned booleans and enums.

    Parameters:
        raw (dict[str, Any]): Raw TOML section data.
        name (str): Section name used when reporting validation errors.
        cls: Dataclass type used to construct the section object.

    Returns:
        Any: Instantiated dataclass populated with values from ``raw``.

    Raises:
        ConfigError: If the section is not a table or contains invalid keys or values.
    """
    if not isinstance(raw, dict):
        raise ConfigError(f"[{name}] must be a table")
    cleaned: Dict[str, Any] = {}
    cls_fields = {field.name: field for field in fields(cls)}
    bool_fields = {name for name, field in cls_fields.items() if field.type in (bool, "bool")}
    enum_fields = {
        name: field.type
        for name, field in cls_fields.items()
        if isinstance(field.type, type) and issubclass(field.type, Enum)
    }
    nested_fields = {
        name: field.type
        for name, field in cls_fields.items()
        if is_dataclass(field.type)
    }
    for key, value in raw.items():
        if key in bool_fields:
            cleaned[key] = _coerce_bool(value, f"{name}.{key}")
        elif key in enum_fields:
            cleaned[key] = _coerce_enum(value, f"{name}.{key}", enum_fields[key])
        elif key in nested_fields:
            if not isinstance(value, dict):
                raise ConfigError(f"[{name}.{key}] must be a table")
            cleaned[key] = _sanitize_section(value, f"{name}.{key}", nested_fields[key])
        else:
            cleaned[key] = value
    try:
        instance = cls(**cleaned)
    except TypeError as exc:
        raise ConfigError(f"Invalid keys in [{name}]: {exc}") from exc
    return instance


def _require_number(value: Any, dotted_key: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"{dotted_key} must be a number")
    return float(value)


def validate_config(app: AppConfig) -> AppConfig:
    """
    Validate value ranges across every section of ``app`` and normalise string fields.

    Raises:
        ConfigError: If any validation rule is violated.
    """

    fps_cfg = app.fps
    if not isinstance(fps_cfg.max_samples, int) or fps_cfg.max_samples < 2:
        raise ConfigError("fps.max_samples must be an integer >= 2")
    if _require_number(fps_cfg.timeout_seconds, "fps.timeout_seconds") <= 0:
        raise ConfigError("fps.timeout_seconds must be > 0")
    if _require_number(fps_cfg.min_delta_seconds, "fps.min_delta_seconds") < 0:
        raise ConfigError("fps.min_delta_seconds must be >= 0")
    if not isinstance(fps_cfg.fallback_fps, int) or fps_cfg.fallback_fps <= 0:
        raise ConfigError("fps.fallback_fps must be a positive integer")

    capture_cfg = app.capture
    if _require_number(capture_cfg.interval_seconds, "capture.interval_seconds") <= 0:
        raise ConfigError("capture.interval_seconds must be > 0")
    for key in ("comparison_quality", "snapshot_quality"):
        value = _require_number(getattr(capture_cfg, key), f"capture.{key}")
        if value <= 0 or value > 1:
            raise ConfigError(f"capture.{key} must be in (0, 1]")
    if _require_number(capture_cfg.start_seconds, "capture.start_seconds") < 0:
        raise ConfigError("capture.start_seconds must be >= 0")
    if capture_cfg.end_seconds is not None:
        end = _require_number(capture_cfg.end_seconds, "capture.end_seconds")
        if end < capture_cfg.start_seconds:
            raise ConfigError("capture.end_seconds must be >= capture.start_seconds")

    export_cfg = app.export
    quality = _require_number(export_cfg.quality, "export.quality")
    if quality <= 0 or quality > 1:
        raise ConfigError("export.quality must be in (0, 1]")
    scale = _require_number(export_cfg.scale, "export.scale")
    if scale <= 0 or scale > 1:
        raise ConfigError("export.scale must be in (0, 1]")
    prefix = str(export_cfg.prefix).strip()
    if not prefix:
        raise ConfigError("export.prefix must be set")
    export_cfg.prefix = prefix
    folder = str(export_cfg.archive_folder).strip().strip("/")
    if not folder:
        raise ConfigError("export.archive_folder must be set")
    export_cfg.archive_folder = folder

    progress_style = str(app.cli.progress.style).strip().lower()
    if progress_style not in {"bar", "plain"}:
        raise ConfigError("cli.progress.style must be 'bar' or 'plain'")
    app.cli.progress.style = progress_style

    if not str(app.paths.output_dir).strip():
        raise ConfigError("paths.output_dir must be set")

    return app


def load_config(path: str | Path | None = None) -> AppConfig:
    """
    Load and validate an application configuration from a TOML file.

    Reads the file at `path`, parses it as UTF-8 TOML (BOM is accepted), coerces and validates
    all sections, and returns a fully populated AppConfig. When `path` is ``None`` the built-in
    defaults are returned.

    Returns:
        AppConfig: The validated and normalized application configuration.

    Raises:
        ConfigError: If the file is missing, not UTF-8, TOML parsing fails, or any validation rule is violated.
    """

    if path is None:
        return validate_config(AppConfig())

    try:
        with open(path, "rb") as handle:
            raw_bytes = handle.read()
    except FileNotFoundError as exc:
        raise ConfigError(f"Configuration file not found: {path}") from exc
    if raw_bytes.startswith(b"\xef\xbb\xbf"):
        raw_bytes = raw_bytes[3:]
    try:
        raw = tomllib.loads(raw_bytes.decode("utf-8"))
    except UnicodeDecodeError as exc:
        raise ConfigError("Configuration file must be UTF-8 encoded") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Failed to parse TOML: {exc}") from exc

    known_sections = {"fps", "capture", "export", "cli", "paths"}
    unknown = sorted(set(raw) - known_sections)
    if unknown:
        raise ConfigError(f"Unknown configuration sections: {', '.join(unknown)}")

    app = AppConfig(
        fps=_sanitize_section(raw.get("fps", {}), "fps", FpsConfig),
        capture=_sanitize_section(raw.get("capture", {}), "capture", CaptureConfig),
        export=_sanitize_section(raw.get("export", {}), "export", ExportConfig),
        cli=_sanitize_section(raw.get("cli", {}), "cli", CLIConfig),
        paths=_sanitize_section(raw.get("paths", {}), "paths", PathsConfig),
    )
    return validate_config(app)


__all__ = ["ConfigError", "load_config", "validate_config", "ImageFormat", "SortOrder"]
