"""Progress snapshots, results and the tracker that broadcasts them.

The tracker is the single writer of the current :class:`SyncProgress`.
Every change produces a new frozen snapshot which is handed to listeners
by value, so an observer on another thread never sees a half-applied
update.
"""

import dataclasses
import errno
import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Literal

from ..exceptions import PyMirrorError

logger = logging.getLogger(__name__)

PercentMode = Literal["files", "bytes"]


class SyncPhase(str, Enum):
    """Phases a sync run goes through."""

    SCANNING = "scanning"
    COMPARING = "comparing"
    TRANSFERRING = "transferring"
    DELETING = "deleting"
    DONE = "done"
    ERROR = "error"


@dataclass(frozen=True)
class TransferError:
    """One failed file (or a fatal error when ``file`` is empty)."""

    file: str
    message: str
    code: str

    @classmethod
    def from_exception(cls, file: str, exc: BaseException) -> "TransferError":
        """Build a TransferError with a code classifying the exception.

        OS errors use their errno name (``EACCES``, ``EBUSY``...), PyMirror
        errors their ``code`` attribute.
        """
        if isinstance(exc, PyMirrorError):
            code = exc.code
        elif isinstance(exc, OSError) and exc.errno is not None:
            code = errno.errorcode.get(exc.errno, "UNKNOWN")
        else:
            code = "UNKNOWN"

        message = str(exc)
        if isinstance(exc, OSError) and exc.strerror:
            message = exc.strerror
        return cls(file=file, message=message, code=code)

    def to_dict(self) -> dict[str, str]:
        return {"file": self.file, "message": self.message, "code": self.code}


@dataclass(frozen=True)
class SyncProgress:
    """Immutable snapshot of a running sync."""

    phase: SyncPhase = SyncPhase.SCANNING
    total_files: int = 0
    processed_files: int = 0
    total_bytes: int = 0
    transferred_bytes: int = 0
    current_file: str = ""
    percent: int = 0
    errors: tuple[TransferError, ...] = ()


@dataclass(frozen=True)
class SyncResult:
    """Final summary of one sync run."""

    success: bool
    files_created: int = 0
    files_updated: int = 0
    files_deleted: int = 0
    files_skipped: int = 0
    bytes_transferred: int = 0
    errors: tuple[TransferError, ...] = field(default_factory=tuple)
    duration: float = 0.0
    """Elapsed wall-clock time in seconds"""
    canceled: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert the result to a JSON-serialisable dictionary."""
        return {
            "success": self.success,
            "files_created": self.files_created,
            "files_updated": self.files_updated,
            "files_deleted": self.files_deleted,
            "files_skipped": self.files_skipped,
            "bytes_transferred": self.bytes_transferred,
            "errors": [e.to_dict() for e in self.errors],
            "duration": round(self.duration, 3),
            "canceled": self.canceled,
        }


ProgressListener = Callable[[SyncProgress], None]


class ProgressListeners:
    """Thread-safe set of progress subscribers.

    Subscribing and unsubscribing only hold the lock for the list change;
    emission works on a copy, so neither side waits on the other.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._listeners: list[ProgressListener] = []

    def subscribe(self, listener: ProgressListener) -> Callable[[], None]:
        """Register a listener.

        Returns:
            A function that removes the listener again
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def emit(self, snapshot: SyncProgress) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(snapshot)
            except Exception as e:
                logger.warning(f"Progress listener {listener!r} failed: {e}")

    def __len__(self) -> int:
        with self._lock:
            return len(self._listeners)


class SyncProgressTracker:
    """Owns the progress of one run and emits a snapshot on every change.

    Args:
        emit: Called with each new snapshot
        mode: ``"files"`` computes percent from processed files (local
            mirrors), ``"bytes"`` from transferred bytes (remote uploads)
    """

    def __init__(
        self,
        emit: Callable[[SyncProgress], None],
        mode: PercentMode = "files",
    ):
        self._emit = emit
        self.mode = mode
        self._progress = SyncProgress()

    @property
    def progress(self) -> SyncProgress:
        """The latest snapshot."""
        return self._progress

    def _calculate_percent(self, progress: SyncProgress) -> int:
        if self.mode == "bytes":
            done, total = progress.transferred_bytes, progress.total_bytes
        else:
            done, total = progress.processed_files, progress.total_files
        if total <= 0:
            return 0
        return min(100, round(done * 100 / total))

    def update(self, **changes: Any) -> SyncProgress:
        """Apply changes, recompute the percent and emit the new snapshot.

        Args:
            **changes: SyncProgress fields to replace

        Returns:
            The new snapshot
        """
        progress = dataclasses.replace(self._progress, **changes)
        if "percent" not in changes:
            percent = self._calculate_percent(progress)
            # Never move backwards, even if totals are revised upwards
            progress = dataclasses.replace(
                progress, percent=max(percent, self._progress.percent)
            )
        self._progress = progress
        self._emit(progress)
        return progress

    def add_error(self, error: TransferError) -> SyncProgress:
        """Append an error and emit."""
        return self.update(errors=self._progress.errors + (error,))

    def finish(self) -> SyncProgress:
        """Mark the run as done at 100%."""
        return self.update(phase=SyncPhase.DONE, current_file="", percent=100)

    def fail(self, error: TransferError) -> SyncProgress:
        """Mark the run as failed with a fatal error."""
        return self.update(
            phase=SyncPhase.ERROR,
            current_file="",
            errors=self._progress.errors + (error,),
        )
