"""Console rendering and progress helpers for the dvupload CLI."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)
from rich.table import Table

from .models import TransferOutcome
from .utils.progress import FileProgress, ProgressCallback

console = Console()

SIZE_UNITS = ("B", "KB", "MB", "GB", "TB")


def _human_size(num_bytes: int) -> str:
    size = float(max(num_bytes, 0))
    for unit in SIZE_UNITS[:-1]:
        if size < 1024.0:
            break
        size /= 1024.0
    else:
        unit = SIZE_UNITS[-1]
    return f"{int(size)} {unit}" if unit == "B" else f"{size:.2f} {unit}"


def summarize_files(paths: Sequence[Path]) -> str:
    """``"<count> (<total size>)"`` for the configuration panel."""
    total = sum(Path(path).stat().st_size for path in paths)
    return f"{len(paths)} ({_human_size(total)})"


def render_configuration_summary(config: Dict[str, Any]) -> None:
    """Render startup configuration summary."""
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column(style="white")

    for key, value in config.items():
        rendered = "-" if value is None else str(value)
        table.add_row(key, rendered)

    panel = Panel(
        table,
        title="[bold green]dvupload[/bold green]",
        subtitle="[dim]direct upload CLI[/dim]",
        border_style="blue",
    )
    console.print(panel)


class TransferProgressDisplay:
    """
    One progress bar per file, fed by byte increments.

    Callbacks may fire from worker threads; ``Progress.update`` takes its
    own lock.
    """

    def __init__(self, paths: Sequence[Path]):
        self._files: List[FileProgress] = []
        for path in paths:
            path = Path(path)
            try:
                size = path.stat().st_size
            except OSError:
                size = 0
            self._files.append(FileProgress(filename=path.name, file_path=path, total_bytes=size))

        self._task_ids: List[TaskID] = []
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold cyan]{task.fields[filename]}", justify="left"),
            BarColumn(bar_width=42),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            DownloadColumn(),
            TransferSpeedColumn(),
            TimeRemainingColumn(),
            expand=False,
            console=console,
        )

    @property
    def files(self) -> List[FileProgress]:
        return list(self._files)

    def start(self) -> None:
        self._progress.start()
        for item in self._files:
            self._task_ids.append(
                self._progress.add_task(
                    "upload",
                    filename=item.filename[:60],
                    total=max(item.total_bytes, 1),
                )
            )

    def stop(self) -> None:
        self._progress.stop()

    def __enter__(self) -> "TransferProgressDisplay":
        self.start()
        return self

    def __exit__(self, *args) -> None:
        self.stop()

    def callback_for(self, index: int) -> ProgressCallback:
        item = self._files[index]

        def callback(increment: int) -> None:
            item.bytes_uploaded += increment
            item.status = "completed" if item.bytes_uploaded >= item.total_bytes else "uploading"
            if self._task_ids:
                self._progress.update(self._task_ids[index], advance=increment)

        return callback

    def callbacks(self) -> List[ProgressCallback]:
        return [self.callback_for(idx) for idx in range(len(self._files))]


def render_outcomes(outcomes: Sequence[TransferOutcome]) -> None:
    """Print one line per file of a failed batch."""
    for outcome in outcomes:
        if outcome.success:
            console.print(
                f"[yellow]Stored, not registered:[/yellow] {outcome.filename} "
                f"({outcome.storage_identifier})"
            )
        else:
            console.print(
                f"[red]Failed:[/red] {outcome.filename} at {outcome.state.value} - {outcome.error}"
            )


def render_response(payload: Dict[str, Any], error: Optional[str] = None) -> None:
    """Print the origin service envelope as JSON."""
    if error:
        console.print(f"[red]Error:[/red] {error}")
    console.print_json(data=payload)
