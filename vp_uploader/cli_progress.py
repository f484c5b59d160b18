"""Console rendering and progress helpers for the vp-upload CLI."""
from __future__ import annotations

from typing import Any, Dict, Optional

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


console = Console(stderr=True)


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


def render_configuration_summary(config: Dict[str, Any], target: Optional[Console] = None) -> None:
    """Render startup configuration summary."""
    target = target or console
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column(style="white")

    for key, value in config.items():
        rendered = "-" if value is None else str(value)
        table.add_row(key, rendered)

    panel = Panel(
        table,
        title="[bold green]vp-upload[/bold green]",
        subtitle="[dim]presigned multipart uploader[/dim]",
        border_style="blue",
    )
    target.print(panel)


class BatchProgressDisplay:
    """
    Per-file progress bars driven by transfer engine events.

    Usage:
        display = BatchProgressDisplay()
        engine.on("upload-progress", display.on_file_progress)
        engine.on("upload-success", display.on_file_complete)
        engine.on("upload-error", display.on_file_fail)
        with display:
            ...
    """

    def __init__(self, target: Optional[Console] = None):
        self._console = target or console
        self._tasks: Dict[str, TaskID] = {}
        self._stats = {"uploaded": 0, "failed": 0}
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold cyan]{task.fields[filename]}", justify="left"),
            BarColumn(bar_width=42),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            DownloadColumn(),
            TransferSpeedColumn(),
            TimeRemainingColumn(),
            expand=False,
            console=self._console,
        )

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, *args):
        self.stop()

    def start(self) -> None:
        self._progress.start()

    def stop(self) -> None:
        self._progress.stop()

    @property
    def stats(self) -> Dict[str, int]:
        return dict(self._stats)

    def _task_for(self, file: Any) -> TaskID:
        task_id = self._tasks.get(file.id)
        if task_id is None:
            task_id = self._progress.add_task(
                "upload",
                filename=file.name[:60],
                total=max(file.size, 1),
            )
            self._tasks[file.id] = task_id
        return task_id

    def on_file_progress(self, file: Any, progress: Any) -> None:
        task_id = self._task_for(file)
        self._progress.update(task_id, completed=progress.bytes_uploaded)

    def on_file_complete(self, file: Any, response: Any = None) -> None:
        task_id = self._task_for(file)
        self._progress.update(task_id, completed=max(file.size, 1))
        self._stats["uploaded"] += 1
        self._progress.console.print(f"[green]Uploaded:[/green] {file.name}")

    def on_file_fail(self, file: Any, error: BaseException, response: Any = None) -> None:
        self._stats["failed"] += 1
        task_id = self._tasks.get(file.id)
        if task_id is not None:
            self._progress.update(task_id, visible=False)
        self._progress.console.print(f"[red]Failed:[/red] {file.name} - {error}")

    def render_summary(self, total: int, failures: Dict[str, str]) -> None:
        uploaded = total - len(failures)
        self._console.print(
            f"[bold]{uploaded}/{total}[/bold] uploaded"
            + (f", [red]{len(failures)} failed[/red]" if failures else "")
        )
        for name, error in failures.items():
            self._console.print(f"  [red]x[/red] {name}: {error}")
