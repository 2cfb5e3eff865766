"""Runtime helpers shared between Click wiring and the extraction session."""

from __future__ import annotations

from typing import List, Optional

from rich.console import Console
from rich.markup import escape
from rich.progress import (
    BarColumn,
    Progress,
    ProgressColumn,
    TaskID,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)

from .models import CaptureProgress

__all__ = [
    "CLIAppError",
    "CaptureProgressDisplay",
    "CliOutputManager",
    "_color_text",
    "_format_kv",
    "format_time",
]


def format_time(seconds: float) -> str:
    """
    Format a media position for display.

    Returns ``M:SS.mmm`` for positions under an hour and ``H:MM:SS.mmm`` otherwise.
    """
    total_ms = int(round(max(0.0, float(seconds)) * 1000))
    hours, remainder = divmod(total_ms, 3_600_000)
    minutes, remainder = divmod(remainder, 60_000)
    secs, millis = divmod(remainder, 1000)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}.{millis:03d}"
    return f"{minutes}:{secs:02d}.{millis:03d}"


def _color_text(text: str, style: Optional[str]) -> str:
    """
    Wrap the given text with a Rich style tag if a style is provided.

    Parameters:
        text (str): The text to style.
        style (Optional[str]): A Rich style name or markup; if ``None`` or empty, no styling is applied.

    Returns:
        str: The input text wrapped with Rich style markup (for example ``"[style]text[/]"``) when ``style`` is provided; otherwise
            the original text.
    """
    if style:
        return f"[{style}]{text}[/]"
    return text


def _format_kv(
    label: str,
    value: object,
    *,
    label_style: Optional[str] = "dim",
    value_style: Optional[str] = "bright_white",
    sep: str = "=",
) -> str:
    """Format a label/value pair as a single Rich-markup string."""
    label_text = escape(str(label))
    value_text = escape(str(value))
    return f"{_color_text(label_text, label_style)}{sep}{_color_text(value_text, value_style)}"


class CLIAppError(RuntimeError):
    """Raised when the CLI cannot complete its work."""

    def __init__(self, message: str, *, code: int = 1, rich_message: Optional[str] = None) -> None:
        super().__init__(message)
        self.code = code
        self.rich_message = rich_message or message


class CliOutputManager:
    """Console presentation controller honouring ``--quiet``/``--verbose``/``--no-color``."""

    def __init__(
        self,
        *,
        quiet: bool,
        verbose: bool,
        no_color: bool,
        console: Console | None = None,
    ) -> None:
        self.quiet = quiet
        self.verbose = verbose and not quiet
        self.no_color = no_color
        self.console = console or Console(no_color=no_color, highlight=False)

    def warn(self, text: str) -> None:
        self.console.print(f"[yellow]{escape(text)}[/]")

    def banner(self, text: str) -> None:
        if self.quiet:
            return
        self.console.print(f"[bold bright_cyan]{escape(text)}[/]")

    def line(self, text: str) -> None:
        if self.quiet:
            return
        self.console.print(text)

    def verbose_line(self, text: str) -> None:
        if self.quiet or not self.verbose:
            return
        if not text:
            return
        self.console.print(f"[dim]{escape(text)}[/]")

    def progress(self, *columns: ProgressColumn, transient: bool = False) -> Progress:
        return Progress(*columns, console=self.console, transient=transient, disable=self.quiet)


class CaptureProgressDisplay:
    """Render :class:`CaptureProgress` signals on a Rich progress bar."""

    def __init__(
        self,
        output: CliOutputManager,
        description: str = "Extracting frames",
        *,
        style: str = "bar",
    ) -> None:
        columns: List[ProgressColumn] = [TextColumn("[progress.description]{task.description}")]
        if style == "bar":
            columns.append(BarColumn())
        columns.extend(
            [
                TaskProgressColumn(),
                TextColumn("{task.fields[accepted]} frames"),
                TimeElapsedColumn(),
            ]
        )
        self._progress = output.progress(*columns)
        self._description = description
        self._task: Optional[TaskID] = None
        self.last: Optional[CaptureProgress] = None

    def __enter__(self) -> "CaptureProgressDisplay":
        self._progress.start()
        self._task = self._progress.add_task(self._description, total=100, accepted=0)
        return self

    def __exit__(self, *exc_info: object) -> None:
        self._progress.stop()

    def __call__(self, update: CaptureProgress) -> None:
        self.last = update
        if self._task is None:
            return
        self._progress.update(self._task, completed=update.percent, accepted=update.accepted)
