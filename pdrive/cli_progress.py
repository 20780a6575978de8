"""Console rendering and progress helpers for the pdrive CLI."""
from __future__ import annotations

from typing import Any, Dict, Optional

from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    TaskID,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)
from rich.table import Table

from .utils.events import TransferProgress

console = Console(stderr=True)


def mask_token(token: Optional[str]) -> str:
    if not token:
        return "(missing)"
    if len(token) <= 8:
        return "*" * len(token)
    return f"{token[:4]}...{token[-4:]}"


def human_size(value: int) -> str:
    size = float(max(value, 0))
    units = ["B", "KB", "MB", "GB", "TB"]
    unit_idx = 0
    while size >= 1024.0 and unit_idx < len(units) - 1:
        size /= 1024.0
        unit_idx += 1
    if unit_idx == 0:
        return f"{int(size)} {units[unit_idx]}"
    return f"{size:.2f} {units[unit_idx]}"


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
        title="[bold green]pdrive-up[/bold green]",
        subtitle="[dim]pdrive client[/dim]",
        border_style="blue",
    )
    console.print(panel)


class UploadProgressDisplay:
    """
    Progress bars for one upload.

    A bar is created lazily for every label seen (the file name for a single
    upload, "Part N" for each multipart part).
    """

    def __init__(self, filename: str, enabled: bool = True):
        self.filename = filename
        self._enabled = enabled
        self._tasks: Dict[str, TaskID] = {}
        self._progress = Progress(
            TextColumn("[bold cyan]{task.description}", justify="left"),
            BarColumn(bar_width=42),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            DownloadColumn(),
            TransferSpeedColumn(),
            TimeRemainingColumn(),
            expand=False,
            console=console,
            disable=not enabled,
        )
        self._started = False

    def start(self) -> None:
        if self._started:
            return
        if self._enabled:
            console.print(f"[cyan]Uploading:[/cyan] {self.filename}")
        self._progress.start()
        self._started = True

    def update(self, event: TransferProgress) -> None:
        if not self._started:
            self.start()

        task_id = self._tasks.get(event.label)
        if task_id is None:
            task_id = self._progress.add_task(event.label[:60], total=event.total_bytes)
            self._tasks[event.label] = task_id
        self._progress.update(task_id, completed=event.uploaded_bytes, total=event.total_bytes)

    def get_callback(self):
        return self.update

    def complete(self, success: bool = True, error: Optional[str] = None) -> None:
        if self._started:
            self._progress.stop()
            self._started = False
        if not self._enabled:
            return
        if success:
            console.print(f"[green]Done:[/green] {self.filename}")
        elif error:
            console.print(f"[red]Failed:[/red] {self.filename}")
