"""
Manages a Rich progress display for downloads and subtitle processing.
Every operation gets its own bar driven by fractional progress updates.
"""

import asyncio

from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)

from vidsub_cli.utils.formatting import shorten

# Bars are driven in percent so fractional callbacks map directly onto them.
_BAR_TOTAL = 100.0
_MAX_DESCRIPTION = 48


class ProgressManager:
    """A thin wrapper around `rich.progress.Progress`, one bar per operation."""

    def __init__(self, console: Console):
        self.console = console
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}", justify="left"),
            BarColumn(bar_width=30),
            "[progress.percentage]{task.percentage:>3.0f}%",
            "•",
            TextColumn("[dim]{task.fields[stage]}"),
            "•",
            TimeElapsedColumn(),
            "•",
            TimeRemainingColumn(),
            console=console,
            transient=False,
        )

    def add_task(self, description: str, stage: str = "") -> TaskID:
        return self.progress.add_task(
            shorten(description, _MAX_DESCRIPTION),
            total=_BAR_TOTAL,
            stage=stage,
            start=True,
        )

    def update(self, task_id: TaskID, fraction: float, stage: str | None = None) -> None:
        fields = {"stage": stage} if stage is not None else {}
        self.progress.update(task_id, completed=fraction * _BAR_TOTAL, **fields)

    def finish_task(self, task_id: TaskID, success: bool = True) -> None:
        """Marks a task done, leaving its final bar on screen."""
        if success:
            self.progress.update(task_id, completed=_BAR_TOTAL, stage="[green]done")
        else:
            self.progress.update(task_id, stage="[red]failed")
        self.progress.stop_task(task_id)

    async def __aenter__(self):
        self.progress.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await asyncio.sleep(0.1)
        self.progress.stop()
