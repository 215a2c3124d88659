"""Console rendering and progress helpers for share-up CLI."""
from __future__ import annotations

import time
from typing import Any, Dict, Optional

from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskID, TextColumn
from rich.table import Table

from .utils.formatting import format_bytes

console = Console()


def _echo(message: str) -> None:
    console.print(message)


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
        title="[bold green]share-up[/bold green]",
        subtitle="[dim]asset uploader CLI[/dim]",
        border_style="blue",
    )
    console.print(panel)


class ShareProgressDisplay:
    """
    Progress reporter backed by a rich progress bar.

    The bar pulses until the first update carrying a percent. close() is
    idempotent.
    """

    def __init__(self, title: str = "Sharing"):
        self._text = title
        self._closed = False
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold cyan]{task.fields[label]}", justify="left"),
            BarColumn(bar_width=42),
            TextColumn("{task.fields[percent_label]}"),
            TextColumn("[dim]{task.fields[detail]}", justify="left"),
            expand=False,
            console=console,
        )
        self._task_id: Optional[TaskID] = None

    def _ensure_started(self) -> None:
        if self._task_id is not None:
            return
        self._progress.start()
        self._task_id = self._progress.add_task(
            "share",
            label=self._text,
            total=None,
            percent_label="",
            detail="",
        )

    def update(
        self,
        text: Optional[str] = None,
        percent: Optional[float] = None,
        detail: Optional[str] = None,
    ) -> None:
        if self._closed:
            return
        self._ensure_started()
        if text is not None:
            self._text = text
        if percent is None:
            # rich cannot turn a determinate task back into a pulse; keep the bar
            self._progress.update(self._task_id, label=self._text, detail=detail or "")
            return
        clamped = max(0.0, min(100.0, float(percent)))
        self._progress.update(
            self._task_id,
            label=self._text,
            total=100,
            completed=clamped,
            percent_label=f"{round(clamped)}%",
            detail=detail or "",
        )

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._task_id is not None:
            self._progress.stop()

    def on_asset_complete(self, asset: Any) -> None:
        self._emit_timeline("DONE", getattr(asset, "path", "asset"), getattr(asset, "size_bytes", None))

    def on_chunk_retry(self, asset: Any, index: int, attempt: int, delay: float, error: Exception) -> None:
        name = f"{getattr(asset, 'path', 'asset')}#{index}"
        self._emit_timeline("RTRY", name, error=f"{error} (attempt {attempt}, wait {delay:.1f}s)")

    def _emit_timeline(
        self,
        status: str,
        name: str,
        size_bytes: Optional[int] = None,
        error: Optional[str] = None,
    ) -> None:
        stamp = time.strftime("%H:%M:%S")
        size_label = f" {format_bytes(size_bytes)}" if size_bytes and size_bytes > 0 else ""
        error_label = f" cause={error}" if error else ""
        palette = {
            "DONE": "green",
            "FAIL": "red",
            "RTRY": "yellow",
        }
        color = palette.get(status, "white")
        _echo(f"[dim]{stamp}[/dim] [{color}]{status:<4}[/{color}] asset: {name}{size_label}{error_label}")

    def on_error(self, error: BaseException) -> None:
        self.close()
        self._emit_timeline("FAIL", "batch", error=str(error))
