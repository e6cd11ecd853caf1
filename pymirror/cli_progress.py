"""CLI progress display for sync runs.

This module provides a Rich-based progress display fed by the
SyncProgress snapshots a SyncEngine emits.
"""

from typing import Callable, Optional

from rich.markup import escape
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)

from .sync.engine import SyncEngine
from .sync.progress import SyncPhase, SyncProgress
from .utils import format_size

_PHASE_LABELS = {
    SyncPhase.SCANNING: "Scanning...",
    SyncPhase.COMPARING: "Comparing...",
    SyncPhase.TRANSFERRING: "Transferring",
    SyncPhase.DELETING: "Removing orphans",
    SyncPhase.DONE: "Sync complete",
    SyncPhase.ERROR: "Sync failed",
}


class SyncProgressDisplay:
    """Rich-based progress display for one sync run.

    The bar follows ``SyncProgress.percent``; the detail column shows the
    file and byte counters.

    Examples:
        >>> with SyncProgressDisplay(engine):
        ...     engine.sync(source, destination)
    """

    def __init__(self, engine: SyncEngine) -> None:
        self.engine = engine
        self._progress: Optional[Progress] = None
        self._task: Optional[TaskID] = None
        self._unsubscribe: Optional[Callable[[], None]] = None

    def _format_details(self, snapshot: SyncProgress) -> str:
        """Format counters like "2/5 files, 1.5 MB/10.0 MB"."""
        files_str = f"{snapshot.processed_files}/{snapshot.total_files} files"
        size_done = format_size(snapshot.transferred_bytes)
        size_total = format_size(snapshot.total_bytes)
        return f"{files_str}, {size_done}/{size_total}"

    def _handle_progress(self, snapshot: SyncProgress) -> None:
        """Update the display from a progress snapshot.

        Runs on the sync thread while ``__exit__`` may run on the main thread.
        """
        progress, task = self._progress, self._task
        if progress is None or task is None:
            return

        description = _PHASE_LABELS.get(snapshot.phase, snapshot.phase.value)
        if snapshot.phase == SyncPhase.TRANSFERRING and snapshot.current_file:
            description = escape(snapshot.current_file)

        progress.update(
            task,
            description=description,
            completed=snapshot.percent,
            details=self._format_details(snapshot),
        )

    def __enter__(self) -> "SyncProgressDisplay":
        """Enter context manager - start progress display."""
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            TextColumn("[cyan]{task.fields[details]}"),
            TimeElapsedColumn(),
            refresh_per_second=4,
        )
        self._progress.__enter__()
        self._task = self._progress.add_task(
            "Preparing sync...", total=100, details="0/0 files, 0 B/0 B"
        )
        self._unsubscribe = self.engine.subscribe(self._handle_progress)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit context manager - stop progress display."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._progress is not None:
            self._progress.__exit__(exc_type, exc_val, exc_tb)
            self._progress = None
            self._task = None
