"""Run state shared between a running sync and the threads controlling it."""

import logging
import threading
from typing import Optional

from ..exceptions import SyncInProgressError

logger = logging.getLogger(__name__)


class SyncControl:
    """Tracks the running, paused and canceled flags of one engine.

    The sync loop calls :meth:`wait_if_paused` before each file, which
    blocks on an event instead of polling. ``cancel()`` also releases a
    pending pause so a paused run can stop.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._running = False
        self._canceled = threading.Event()
        # Set while not paused
        self._resumed = threading.Event()
        self._resumed.set()

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_paused(self) -> bool:
        return self._running and not self._resumed.is_set()

    @property
    def is_canceled(self) -> bool:
        return self._canceled.is_set()

    def start(self) -> None:
        """Mark a run as started and reset the pause and cancel flags.

        Raises:
            SyncInProgressError: If a run is already active
        """
        with self._lock:
            if self._running:
                raise SyncInProgressError("A sync is already running")
            self._running = True
            self._canceled.clear()
            self._resumed.set()

    def finish(self) -> None:
        """Mark the current run as finished."""
        with self._lock:
            self._running = False
            self._resumed.set()

    def pause(self) -> None:
        with self._lock:
            if not self._running:
                return
            logger.debug("Pausing sync")
            self._resumed.clear()

    def resume(self) -> None:
        with self._lock:
            if not self._running:
                return
            logger.debug("Resuming sync")
            self._resumed.set()

    def cancel(self) -> None:
        with self._lock:
            if not self._running:
                return
            logger.debug("Canceling sync")
            self._canceled.set()
            self._resumed.set()

    def wait_if_paused(self, timeout: Optional[float] = None) -> bool:
        """Block while the run is paused.

        Args:
            timeout: Maximum seconds to wait (None waits until resumed or
                canceled)

        Returns:
            False if the run was canceled, True otherwise
        """
        self._resumed.wait(timeout)
        return not self._canceled.is_set()
