"""CLI entry point for sampling frames from a video and exporting them."""

from __future__ import annotations

import asyncio
import logging
import os
import signal
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, Optional, cast

import click
from rich import print
from rich.markup import escape

from src.config_loader import ConfigError, load_config
from src.datatypes import AppConfig, ImageFormat, SortOrder
from src.frame_extract.cli_runtime import (
    CLIAppError,
    CaptureProgressDisplay,
    CliOutputManager,
    _format_kv,
    format_time,
)
from src.frame_extract.env_flags import CONFIG_ENV_VAR, debug_requested
from src.frame_extract.errors import (
    CaptureError,
    EmptyArchiveError,
    ExportError,
    FrameExtractError,
    NothingToExportError,
    SourceError,
)
from src.frame_extract.fps import interval_for_fps
from src.frame_extract.models import CaptureRange, ExportSettings
from src.frame_extract.opencv_source import OpenCVVideoSource
from src.frame_extract.scheduler import CancelToken, estimate_sample_count
from src.frame_extract.session import ExtractionSession
from src.frame_extract.source import VideoSource, is_supported_media

logger = logging.getLogger("frame_extract")

EXIT_NOTHING_EXPORTED = 2

__all__ = ("main", "CLIAppError")


def _configure_logging(*, verbose: bool, quiet: bool) -> None:
    level = logging.WARNING
    if verbose:
        level = logging.INFO
    if quiet:
        level = logging.ERROR
    if debug_requested():
        level = logging.DEBUG
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")
    logging.getLogger("src").setLevel(level)
    logger.setLevel(level)


def _open_source(path: Path) -> VideoSource:
    """Open *path* with the OpenCV decode runtime."""

    return OpenCVVideoSource(path)


def _load_app_config(config_path: Optional[str]) -> AppConfig:
    path = config_path or os.environ.get(CONFIG_ENV_VAR) or None
    try:
        return load_config(path)
    except ConfigError as exc:
        raise CLIAppError(
            f"Config error: {exc}",
            rich_message=f"[red]Config error:[/red] {escape(str(exc))}",
        ) from exc


def _params(ctx: click.Context) -> Dict[str, Any]:
    return cast(Dict[str, Any], ctx.ensure_object(dict))


def _output_manager(params: Dict[str, Any], cfg: AppConfig) -> CliOutputManager:
    return CliOutputManager(
        quiet=bool(params.get("quiet", False)),
        verbose=bool(params.get("verbose", False)),
        no_color=bool(params.get("no_color", False)) or not cfg.cli.color,
    )


def _build_session(video: Path, cfg: AppConfig, output: CliOutputManager) -> ExtractionSession:
    if not is_supported_media(video):
        output.warn(f"{video.name} has an unrecognised extension; trying to decode it anyway")
    try:
        source = _open_source(video)
    except SourceError as exc:
        raise CLIAppError(str(exc), rich_message=f"[red]{escape(str(exc))}[/red]") from exc
    output.verbose_line(f"Source: {video} ({format_time(source.duration)})")
    session = ExtractionSession(cfg)
    session.load_source(source)
    return session


def _export_settings(
    cfg: AppConfig,
    *,
    image_format: Optional[str],
    quality: Optional[float],
    scale: Optional[float],
    prefix: Optional[str],
    sort: Optional[str],
) -> ExportSettings:
    settings = ExportSettings.from_config(cfg.export)
    overrides: Dict[str, Any] = {}
    if image_format is not None:
        overrides["format"] = ImageFormat(image_format.lower())
    if quality is not None:
        overrides["quality"] = quality
    if scale is not None:
        overrides["scale"] = scale
    if prefix is not None:
        overrides["filename_prefix"] = prefix
    if sort is not None:
        overrides["sort_order"] = SortOrder(sort.lower())
    try:
        return replace(settings, **overrides) if overrides else settings
    except ValueError as exc:
        raise CLIAppError(str(exc), rich_message=f"[red]Invalid export option:[/red] {escape(str(exc))}") from exc


def _resolve_output_dir(cfg: AppConfig, output_dir: Optional[Path]) -> Path:
    return output_dir if output_dir is not None else Path(cfg.paths.output_dir)


async def _run_capture(
    session: ExtractionSession,
    capture_range: CaptureRange,
    output: CliOutputManager,
) -> int:
    token = CancelToken()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, token.cancel)
        handler_installed = True
    except (NotImplementedError, RuntimeError, ValueError):
        handler_installed = False
    try:
        with CaptureProgressDisplay(output, style=session.config.cli.progress.style) as display:
            frames = await session.run_capture(capture_range, token, progress=display)
    finally:
        if handler_installed:
            loop.remove_signal_handler(signal.SIGINT)
    if token.cancelled:
        output.warn("Capture cancelled; keeping frames captured so far")
    return len(frames)


async def _capture_and_export(
    session: ExtractionSession,
    *,
    start: Optional[float],
    end: Optional[float],
    interval: Optional[float],
    fps: Optional[float],
    all_frames: bool,
    settings: ExportSettings,
    output_dir: Path,
    output: CliOutputManager,
) -> Path:
    source = session.source
    if all_frames:
        detected = await session.detect_fps()
        output.line(_format_kv("Detected fps", detected))
        capture_range = session.default_range(detected)
    else:
        base = session.default_range()
        step = base.interval
        if fps is not None:
            step = interval_for_fps(fps)
        if interval is not None:
            step = interval
        try:
            capture_range = CaptureRange(
                start=base.start if start is None else start,
                end=base.end if end is None else end,
                interval=step,
            ).validate_for(source.duration)
        except ValueError as exc:
            raise CLIAppError(str(exc), rich_message=f"[red]Invalid capture range:[/red] {escape(str(exc))}") from exc

    samples = estimate_sample_count(capture_range)
    output.line(
        "  ".join(
            [
                _format_kv("Range", f"{format_time(capture_range.start)} → {format_time(capture_range.end)}"),
                _format_kv("Interval", f"{capture_range.interval:g}s"),
                _format_kv("Samples", samples),
            ]
        )
    )

    capture_failure: Optional[CaptureError] = None
    try:
        accepted = await _run_capture(session, capture_range, output)
    except CaptureError as exc:
        capture_failure = exc
        accepted = len(exc.frames)
        output.warn(f"{exc}; exporting {accepted} frames captured before the failure")
    output.line(_format_kv("Accepted frames", accepted))
    if capture_failure is None and samples > accepted:
        output.verbose_line(f"Skipped {samples - accepted} samples that repeated the previous frame")

    try:
        artifact = await session.export_all(settings)
    except NothingToExportError as exc:
        raise CLIAppError(str(exc), code=EXIT_NOTHING_EXPORTED, rich_message=f"[yellow]{escape(str(exc))}[/yellow]") from exc
    except EmptyArchiveError as exc:
        raise CLIAppError(str(exc), code=EXIT_NOTHING_EXPORTED, rich_message=f"[red]{escape(str(exc))}[/red]") from exc
    except ExportError as exc:
        raise CLIAppError(f"Error creating ZIP file: {exc}", rich_message=f"[red]Error creating ZIP file:[/red] {escape(str(exc))}") from exc

    path = artifact.save(output_dir)
    output.line(_format_kv("Archive", path))
    if capture_failure is not None:
        raise CLIAppError(str(capture_failure), rich_message=f"[red]{escape(str(capture_failure))}[/red]")
    return path


@click.group()
@click.option(
    "--config",
    "config_path",
    default=None,
    help=f"Path to config.toml. Defaults to ${CONFIG_ENV_VAR} or built-in settings.",
)
@click.option("--quiet", is_flag=True, help="Suppress everything except errors.")
@click.option("--verbose", is_flag=True, help="Show additional diagnostic output during the run.")
@click.option("--no-color", is_flag=True, help="Disable ANSI colour output.")
@click.pass_context
def main(ctx: click.Context, config_path: Optional[str], quiet: bool, verbose: bool, no_color: bool) -> None:
    """Sample still frames from a video and export them as an image bundle."""

    _configure_logging(verbose=verbose, quiet=quiet)
    params = _params(ctx)
    params.update(
        {
            "config_path": config_path,
            "quiet": quiet,
            "verbose": verbose,
            "no_color": no_color,
        }
    )


_video_argument = click.argument(
    "video",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)


@main.command("probe")
@_video_argument
@click.pass_context
def probe(ctx: click.Context, video: Path) -> None:
    """Report duration and the estimated native frame rate of VIDEO."""

    params = _params(ctx)
    session: Optional[ExtractionSession] = None
    try:
        cfg = _load_app_config(params.get("config_path"))
        output = _output_manager(params, cfg)
        session = _build_session(video, cfg, output)
        fps = asyncio.run(session.detect_fps())
        source = session.source
        output.banner(video.name)
        output.line(_format_kv("Duration", format_time(source.duration)))
        width = getattr(source, "width", None)
        height = getattr(source, "height", None)
        if width and height:
            output.line(_format_kv("Resolution", f"{width}x{height}"))
        output.line(_format_kv("Estimated fps", fps))
        if output.quiet:
            click.echo(fps)
    except CLIAppError as exc:
        print(exc.rich_message)
        raise click.exceptions.Exit(exc.code) from exc
    except FrameExtractError as exc:
        print(f"[red]{escape(str(exc))}[/red]")
        raise click.exceptions.Exit(1) from exc
    finally:
        if session is not None:
            session.close()


@main.command("capture")
@_video_argument
@click.option("--start", type=float, default=None, help="Range start in seconds (default [capture].start_seconds).")
@click.option("--end", type=float, default=None, help="Range end in seconds (default: video duration).")
@click.option("--interval", type=float, default=None, help="Seconds between samples.")
@click.option("--fps", "sample_fps", type=float, default=None, help="Samples per second; converted to an interval.")
@click.option("--all", "all_frames", is_flag=True, help="Sample the whole video at its detected frame rate.")
@click.option(
    "--format",
    "image_format",
    type=click.Choice([fmt.value for fmt in ImageFormat], case_sensitive=False),
    default=None,
    help="Override [export].format.",
)
@click.option("--quality", type=float, default=None, help="Override [export].quality (0-1].")
@click.option("--scale", type=float, default=None, help="Override [export].scale (0-1].")
@click.option("--prefix", default=None, help="Override [export].prefix.")
@click.option(
    "--sort",
    type=click.Choice([order.value for order in SortOrder], case_sensitive=False),
    default=None,
    help="Override [export].sort_order.",
)
@click.option(
    "--output",
    "output_dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory receiving the archive (default [paths].output_dir).",
)
@click.pass_context
def capture(
    ctx: click.Context,
    video: Path,
    *,
    start: Optional[float],
    end: Optional[float],
    interval: Optional[float],
    sample_fps: Optional[float],
    all_frames: bool,
    image_format: Optional[str],
    quality: Optional[float],
    scale: Optional[float],
    prefix: Optional[str],
    sort: Optional[str],
    output_dir: Optional[Path],
) -> None:
    """Sample VIDEO over a time range and write PREFIX_frames.zip."""

    if all_frames and (interval is not None or sample_fps is not None):
        raise click.ClickException("Cannot combine --all with --interval or --fps.")
    if interval is not None and sample_fps is not None:
        raise click.ClickException("Use either --interval or --fps, not both.")
    if sample_fps is not None and sample_fps <= 0:
        raise click.ClickException("--fps must be > 0.")

    params = _params(ctx)
    session: Optional[ExtractionSession] = None
    try:
        cfg = _load_app_config(params.get("config_path"))
        output = _output_manager(params, cfg)
        settings = _export_settings(
            cfg,
            image_format=image_format,
            quality=quality,
            scale=scale,
            prefix=prefix,
            sort=sort,
        )
        session = _build_session(video, cfg, output)
        asyncio.run(
            _capture_and_export(
                session,
                start=start,
                end=end,
                interval=interval,
                fps=sample_fps,
                all_frames=all_frames,
                settings=settings,
                output_dir=_resolve_output_dir(cfg, output_dir),
                output=output,
            )
        )
    except CLIAppError as exc:
        print(exc.rich_message)
        raise click.exceptions.Exit(exc.code) from exc
    except FrameExtractError as exc:
        print(f"[red]{escape(str(exc))}[/red]")
        raise click.exceptions.Exit(1) from exc
    finally:
        if session is not None:
            session.close()


async def _grab(session: ExtractionSession, at: float, settings: ExportSettings, output_dir: Path) -> Path:
    source = session.source
    if not 0 <= at <= source.duration:
        raise CLIAppError(
            f"--at must be within 0 and {source.duration:.3f}s",
            rich_message=f"[red]--at must be within 0 and {source.duration:.3f}s[/red]",
        )
    await source.seek(at)
    frame = await session.capture_current()
    artifact = await session.export_single(frame.id, settings)
    return artifact.save(output_dir)


@main.command("grab")
@_video_argument
@click.option("--at", "at_seconds", type=float, required=True, help="Capture time in seconds.")
@click.option(
    "--format",
    "image_format",
    type=click.Choice([fmt.value for fmt in ImageFormat], case_sensitive=False),
    default=None,
    help="Override [export].format.",
)
@click.option("--quality", type=float, default=None, help="Override [export].quality (0-1].")
@click.option("--scale", type=float, default=None, help="Override [export].scale (0-1].")
@click.option("--prefix", default=None, help="Override [export].prefix.")
@click.option(
    "--output",
    "output_dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory receiving the image (default [paths].output_dir).",
)
@click.pass_context
def grab(
    ctx: click.Context,
    video: Path,
    *,
    at_seconds: float,
    image_format: Optional[str],
    quality: Optional[float],
    scale: Optional[float],
    prefix: Optional[str],
    output_dir: Optional[Path],
) -> None:
    """Capture the frame of VIDEO at --at seconds as a single image file."""

    params = _params(ctx)
    session: Optional[ExtractionSession] = None
    try:
        cfg = _load_app_config(params.get("config_path"))
        output = _output_manager(params, cfg)
        settings = _export_settings(
            cfg,
            image_format=image_format,
            quality=quality,
            scale=scale,
            prefix=prefix,
            sort=None,
        )
        session = _build_session(video, cfg, output)
        path = asyncio.run(_grab(session, at_seconds, settings, _resolve_output_dir(cfg, output_dir)))
    except CLIAppError as exc:
        print(exc.rich_message)
        raise click.exceptions.Exit(exc.code) from exc
    except FrameExtractError as exc:
        print(f"[red]{escape(str(exc))}[/red]")
        raise click.exceptions.Exit(1) from exc
    finally:
        if session is not None:
            session.close()
    output.line(_format_kv("Saved", path))


if __name__ == "__main__":
    main()
