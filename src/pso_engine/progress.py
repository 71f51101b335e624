"""Progress bar for long runs.

The engine only calls `reporter(evaluations, best_f)` once per generation;
this module supplies the rich-based reporter used when `progress_bar` is on.
"""

from __future__ import annotations

from typing import Optional

from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)


class RichProgress:
    """Context manager wrapping a rich Progress with one task of `total` evaluations."""

    def __init__(self, total: int, console: Optional[Console] = None, transient: bool = False):
        self.total = max(int(total), 1)
        self._progress = Progress(
            SpinnerColumn(spinner_name="dots12"),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(bar_width=None),
            "•",
            TaskProgressColumn(
                text_format="[progress.percentage]{task.percentage:>5.1f}%",
            ),
            "•",
            TimeElapsedColumn(),
            "•",
            TimeRemainingColumn(),
            console=console,
            transient=transient,
        )
        self._task = None

    def __enter__(self) -> "RichProgress":
        self._progress.start()
        self._task = self._progress.add_task("best=inf", total=self.total)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._progress.stop()

    def __call__(self, evaluations: int, best_f: float) -> None:
        if self._task is None:
            return
        self._progress.update(
            self._task,
            completed=min(evaluations, self.total),
            description=f"best={best_f:.4f}",
        )
