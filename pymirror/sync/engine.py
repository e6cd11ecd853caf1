"""Core sync engine for executing mirror, backup and restore runs."""

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Union

from ..api import CloudClient
from ..config import config
from ..exceptions import CloudAPIError, CloudAuthenticationError, SyncSetupError
from ..file_entries_manager import FileEntriesManager
from ..models import BackupInfo
from ..utils import calculate_file_hash
from .comparator import FileComparator, SyncAction, SyncDecision
from .control import SyncControl
from .destination import LocalDestination, RemoteDestination, SyncOptions
from .folders import RemoteFolderCache, ensure_folder
from .operations import SyncOperations
from .progress import (
    PercentMode,
    ProgressListener,
    ProgressListeners,
    SyncPhase,
    SyncProgressTracker,
    SyncResult,
    TransferError,
)
from .scanner import DirectoryScanner, LocalFile, RemoteFile

logger = logging.getLogger(__name__)

Destination = Union[LocalDestination, RemoteDestination]


@dataclass
class _RunStats:
    """Per-run action counters."""

    created: int = 0
    updated: int = 0
    deleted: int = 0
    skipped: int = 0

    def count(self, action: SyncAction) -> None:
        if action == SyncAction.CREATE:
            self.created += 1
        elif action == SyncAction.UPDATE:
            self.updated += 1
        elif action == SyncAction.SKIP:
            self.skipped += 1


class SyncEngine:
    """Core sync engine that mirrors a source directory to a destination.

    One run at a time: the run executes on the calling thread while
    :meth:`pause`, :meth:`resume` and :meth:`cancel` may be called from any
    other thread. Progress snapshots go to every subscribed listener.

    Examples:
        >>> engine = SyncEngine()
        >>> unsubscribe = engine.subscribe(lambda p: print(p.percent))
        >>> result = engine.sync(Path("/home/me/Documents"),
        ...                      LocalDestination(Path("/mnt/usb"), "Documents"))
        >>> print(f"{result.files_created} created")
    """

    def __init__(self, client: Optional[CloudClient] = None):
        """Initialize sync engine.

        Args:
            client: Cloud storage API client (required for remote destinations)
        """
        self.client = client
        self.operations = SyncOperations(client)
        self.comparator = FileComparator()
        self._control = SyncControl()
        self._listeners = ProgressListeners()

    # =========================
    # Control surface
    # =========================

    def subscribe(self, listener: ProgressListener) -> Callable[[], None]:
        """Register a progress listener.

        Returns:
            A function that unsubscribes the listener
        """
        return self._listeners.subscribe(listener)

    def pause(self) -> None:
        """Pause the running sync before its next file (no-op when idle)."""
        self._control.pause()

    def resume(self) -> None:
        """Resume a paused sync (no-op when idle)."""
        self._control.resume()

    def cancel(self) -> None:
        """Stop the running sync after the current file (no-op when idle)."""
        self._control.cancel()

    def is_active(self) -> bool:
        """Whether a sync is currently running."""
        return self._control.is_running

    # =========================
    # Entry points
    # =========================

    def sync(
        self,
        source_root: Path,
        destination: Destination,
        options: Optional[SyncOptions] = None,
    ) -> SyncResult:
        """Run one sync from ``source_root`` to ``destination``.

        Per-file failures are collected in the result. Structural failures
        (missing source, unreachable destination root, authentication) end
        the run early with a single error whose ``file`` is empty.

        Args:
            source_root: Directory to sync
            destination: Local mirror or remote backup destination
            options: Run options (defaults to SyncOptions())

        Returns:
            SyncResult summarising the run

        Raises:
            SyncInProgressError: If this engine is already running a sync
        """
        options = options or SyncOptions()
        source_root = Path(source_root)

        if isinstance(destination, RemoteDestination):
            remote_destination = destination

            def run_remote(tracker: SyncProgressTracker, stats: _RunStats) -> None:
                self._check_source(source_root)
                self._sync_remote(
                    source_root, remote_destination, options, tracker, stats
                )

            return self._run(f"remote sync of {source_root}", "bytes", run_remote)

        local_destination = destination

        def run_local(tracker: SyncProgressTracker, stats: _RunStats) -> None:
            self._check_source(source_root)
            self._sync_local(source_root, local_destination, options, tracker, stats)

        return self._run(f"local sync of {source_root}", "files", run_local)

    def restore(
        self,
        source_name: str,
        destination: Path,
        backup_folder: Optional[str] = None,
        options: Optional[SyncOptions] = None,
    ) -> SyncResult:
        """Download a backed-up source folder into a local directory.

        Files already present with the same content are skipped. Local files
        that have no remote counterpart are left alone.

        Args:
            source_name: Name of the backup below the backup folder
            destination: Directory the files are written into
            backup_folder: Top-level backup folder (defaults to the configured one)
            options: Run options; only the ignore settings apply

        Returns:
            SyncResult summarising the run

        Raises:
            SyncInProgressError: If this engine is already running a sync
        """
        options = options or SyncOptions()
        destination = Path(destination)

        def run_restore(tracker: SyncProgressTracker, stats: _RunStats) -> None:
            self._restore(
                source_name, destination, backup_folder, options, tracker, stats
            )

        return self._run(f"restore of {source_name}", "bytes", run_restore)

    def list_backups(self, backup_folder: Optional[str] = None) -> list[BackupInfo]:
        """List the source folders stored below the backup folder.

        Args:
            backup_folder: Top-level backup folder (defaults to the configured one)

        Returns:
            Backups sorted by name (empty if the backup folder does not exist)

        Raises:
            SyncSetupError: If no API client is configured
            CloudAPIError: If the listing fails
        """
        client = self._require_client()
        manager = FileEntriesManager(client)
        backup_name = backup_folder or config.backup_folder

        backup = manager.find_folder(backup_name, None)
        if backup is None:
            logger.debug(f"Backup folder '{backup_name}' does not exist")
            return []

        backups = [
            BackupInfo(id=entry.id, name=entry.name, modified_time=entry.modified_time)
            for entry in manager.get_all_in_folder(backup.id)
            if entry.is_folder
        ]
        return sorted(backups, key=lambda b: b.name)

    def _run(
        self,
        label: str,
        mode: PercentMode,
        body: Callable[[SyncProgressTracker, _RunStats], None],
    ) -> SyncResult:
        """Run ``body`` under the control flags and build the result."""
        self._control.start()
        start_time = time.monotonic()
        logger.debug(f"Starting {label}")

        tracker = SyncProgressTracker(self._listeners.emit, mode=mode)
        stats = _RunStats()
        try:
            body(tracker, stats)
            tracker.finish()
        except (SyncSetupError, CloudAPIError) as e:
            logger.error(f"{label.capitalize()} failed: {e}")
            code = "AUTH" if isinstance(e, CloudAuthenticationError) else "FATAL"
            tracker.fail(TransferError(file="", message=str(e), code=code))
        finally:
            canceled = self._control.is_canceled
            self._control.finish()

        progress = tracker.progress
        duration = time.monotonic() - start_time
        logger.debug(
            f"Finished {label} in {duration:.2f}s: {stats.created} created, "
            f"{stats.updated} updated, {stats.deleted} deleted, "
            f"{len(progress.errors)} error(s)"
        )
        return SyncResult(
            success=not progress.errors,
            files_created=stats.created,
            files_updated=stats.updated,
            files_deleted=stats.deleted,
            files_skipped=stats.skipped,
            bytes_transferred=progress.transferred_bytes,
            errors=progress.errors,
            duration=duration,
            canceled=canceled,
        )

    def _check_source(self, source_root: Path) -> None:
        if not source_root.exists():
            raise SyncSetupError(f"Source directory does not exist: {source_root}")
        if not source_root.is_dir():
            raise SyncSetupError(f"Source path is not a directory: {source_root}")

    def _require_client(self) -> CloudClient:
        if self.client is None:
            raise SyncSetupError("No API client configured for remote sync")
        return self.client

    def _may_continue(self) -> bool:
        """Gate run before each file: False once canceled, blocks while paused."""
        if self._control.is_canceled:
            return False
        return self._control.wait_if_paused()

    # =========================
    # Local mirror
    # =========================

    def _sync_local(
        self,
        source_root: Path,
        destination: LocalDestination,
        options: SyncOptions,
        tracker: SyncProgressTracker,
        stats: _RunStats,
    ) -> None:
        mirror_root = destination.mirror_root
        try:
            mirror_root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise SyncSetupError(
                f"Cannot create destination folder {mirror_root}: {e}"
            ) from e

        tracker.update(phase=SyncPhase.SCANNING)
        scanner = DirectoryScanner(
            ignore_patterns=options.ignore_patterns,
            exclude_dot_files=options.exclude_dot_files,
        )
        source_files = scanner.scan_local(source_root)
        # Ignored entries are neither copied nor treated as orphans
        destination_files = scanner.scan_local(mirror_root)

        tracker.update(phase=SyncPhase.COMPARING)
        decisions, orphans = self.comparator.compare_local(
            source_files, destination_files
        )
        file_decisions = [d for d in decisions if d.action != SyncAction.MKDIR]
        logger.debug(
            f"{len(file_decisions)} file(s) to process, {len(orphans)} orphan(s)"
        )

        tracker.update(
            phase=SyncPhase.TRANSFERRING,
            total_files=len(file_decisions),
            total_bytes=sum(d.source.size for d in file_decisions),
        )
        for decision in decisions:
            if not self._may_continue():
                logger.debug("Sync canceled, not starting further files")
                break
            if decision.action == SyncAction.MKDIR:
                self._make_directory(decision, mirror_root, tracker, stats)
            else:
                self._process_local_file(
                    decision, mirror_root, options, tracker, stats
                )

        if options.delete_orphans and orphans and not self._control.is_canceled:
            self._delete_orphans(orphans, tracker, stats)

    def _make_directory(
        self,
        decision: SyncDecision,
        mirror_root: Path,
        tracker: SyncProgressTracker,
        stats: _RunStats,
    ) -> None:
        existing = decision.destination
        if existing is not None and existing.is_dir:
            return
        target = mirror_root / decision.relative_path
        try:
            if existing is not None:
                # A file where the source has a directory
                self.operations.delete_local(target)
                stats.deleted += 1
            target.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.warning(f"Cannot create directory {decision.relative_path}: {e}")
            tracker.add_error(TransferError.from_exception(decision.relative_path, e))

    def _process_local_file(
        self,
        decision: SyncDecision,
        mirror_root: Path,
        options: SyncOptions,
        tracker: SyncProgressTracker,
        stats: _RunStats,
    ) -> None:
        path = decision.relative_path
        size = decision.source.size
        base = tracker.progress.transferred_bytes
        tracker.update(current_file=path)
        logger.debug(f"{decision.action.value}: {path} ({decision.reason})")

        if decision.transfers:

            def on_progress(copied: int, total: int) -> None:
                tracker.update(transferred_bytes=base + min(copied, size))

            target = mirror_root / path
            try:
                if decision.destination is not None and decision.destination.is_dir:
                    # A directory where the source has a file
                    self.operations.remove_tree(target)
                    stats.deleted += 1
                self.operations.copy_file(
                    decision.source.path,
                    target,
                    progress_callback=on_progress,
                    chunk_size=options.chunk_size,
                )
                stats.count(decision.action)
            except OSError as e:
                logger.warning(f"Failed to copy {path}: {e}")
                tracker.add_error(TransferError.from_exception(path, e))
        else:
            stats.count(decision.action)

        # Counted at nominal size whether copied, skipped or failed
        tracker.update(
            processed_files=tracker.progress.processed_files + 1,
            transferred_bytes=base + size,
        )

    def _delete_orphans(
        self,
        orphans: list[LocalFile],
        tracker: SyncProgressTracker,
        stats: _RunStats,
    ) -> None:
        tracker.update(phase=SyncPhase.DELETING)
        for orphan in orphans:
            if not self._may_continue():
                break
            tracker.update(current_file=orphan.relative_path)
            try:
                self.operations.delete_local(orphan.path)
                stats.deleted += 1
            except OSError as e:
                logger.warning(f"Failed to delete {orphan.relative_path}: {e}")
                tracker.add_error(
                    TransferError.from_exception(orphan.relative_path, e)
                )

    # =========================
    # Remote backup
    # =========================

    def _sync_remote(
        self,
        source_root: Path,
        destination: RemoteDestination,
        options: SyncOptions,
        tracker: SyncProgressTracker,
        stats: _RunStats,
    ) -> None:
        client = self._require_client()

        tracker.update(phase=SyncPhase.SCANNING)
        client.get_logged_user()

        manager = FileEntriesManager(client)
        backup_name = destination.backup_folder or config.backup_folder
        source_name = destination.source_name or source_root.name
        backup_id = ensure_folder(client, manager, backup_name, None)
        source_id = ensure_folder(client, manager, source_name, backup_id)
        logger.debug(f"Remote target {backup_name}/{source_name} (id={source_id})")

        scanner = DirectoryScanner(
            ignore_patterns=options.ignore_patterns,
            exclude_dot_files=options.exclude_dot_files,
        )
        remote_files = scanner.scan_remote(manager.get_all_recursive(source_id))
        remote_map = {f.relative_path: f for f in remote_files}
        source_files = [f for f in scanner.scan_local(source_root) if not f.is_dir]
        logger.debug(
            f"{len(source_files)} local file(s), {len(remote_map)} remote file(s)"
        )

        folders = RemoteFolderCache(client, manager, source_id)
        tracker.update(
            phase=SyncPhase.TRANSFERRING,
            total_files=len(source_files),
            total_bytes=sum(f.size for f in source_files),
        )
        for local_file in source_files:
            if not self._may_continue():
                logger.debug("Sync canceled, not starting further uploads")
                break
            self._process_remote_file(
                local_file,
                remote_map.get(local_file.relative_path),
                folders,
                tracker,
                stats,
            )

    def _process_remote_file(
        self,
        local_file: LocalFile,
        remote_file: Optional[RemoteFile],
        folders: RemoteFolderCache,
        tracker: SyncProgressTracker,
        stats: _RunStats,
    ) -> None:
        path = local_file.relative_path
        size = local_file.size
        base = tracker.progress.transferred_bytes
        tracker.update(current_file=path)

        def on_progress(sent: int, total: int) -> None:
            tracker.update(transferred_bytes=base + min(sent, size))

        try:
            decision = self.comparator.compare_remote(local_file, remote_file)
            logger.debug(f"{decision.action.value}: {path} ({decision.reason})")
            if decision.transfers:
                parent_id = None
                if decision.remote_file is None:
                    parent_id = folders.resolve_parent(path)
                self.operations.upload_file(
                    local_file,
                    parent_id,
                    existing=decision.remote_file,
                    progress_callback=on_progress,
                )
            stats.count(decision.action)
        except CloudAuthenticationError:
            raise
        except (OSError, CloudAPIError) as e:
            logger.warning(f"Failed to upload {path}: {e}")
            tracker.add_error(TransferError.from_exception(path, e))

        tracker.update(
            processed_files=tracker.progress.processed_files + 1,
            transferred_bytes=base + size,
        )

    # =========================
    # Restore
    # =========================

    def _restore(
        self,
        source_name: str,
        destination: Path,
        backup_folder: Optional[str],
        options: SyncOptions,
        tracker: SyncProgressTracker,
        stats: _RunStats,
    ) -> None:
        client = self._require_client()

        tracker.update(phase=SyncPhase.SCANNING)
        client.get_logged_user()

        manager = FileEntriesManager(client)
        backup_name = backup_folder or config.backup_folder
        backup = manager.find_folder(backup_name, None)
        if backup is None:
            raise SyncSetupError(f"Backup folder not found: {backup_name}")
        source = manager.find_folder(source_name, backup.id)
        if source is None:
            raise SyncSetupError(f"Backup not found: {backup_name}/{source_name}")

        try:
            destination.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise SyncSetupError(
                f"Cannot create destination folder {destination}: {e}"
            ) from e

        scanner = DirectoryScanner(
            ignore_patterns=options.ignore_patterns,
            exclude_dot_files=options.exclude_dot_files,
        )
        remote_files = []
        for remote_file in scanner.scan_remote(manager.get_all_recursive(source.id)):
            if remote_file.entry.is_google_document:
                logger.debug(f"Skipping Google document {remote_file.relative_path}")
                continue
            if scanner.should_ignore(remote_file.relative_path):
                continue
            remote_files.append(remote_file)
        logger.debug(f"{len(remote_files)} remote file(s) to restore")

        tracker.update(
            phase=SyncPhase.TRANSFERRING,
            total_files=len(remote_files),
            total_bytes=sum(f.size for f in remote_files),
        )
        for remote_file in remote_files:
            if not self._may_continue():
                logger.debug("Restore canceled, not starting further downloads")
                break
            self._restore_file(remote_file, destination, tracker, stats)

    def _restore_file(
        self,
        remote_file: RemoteFile,
        destination: Path,
        tracker: SyncProgressTracker,
        stats: _RunStats,
    ) -> None:
        path = remote_file.relative_path
        size = remote_file.size
        base = tracker.progress.transferred_bytes
        target = destination / path
        tracker.update(current_file=path)

        def on_progress(received: int, total: int) -> None:
            tracker.update(transferred_bytes=base + min(received, size))

        try:
            action = SyncAction.CREATE
            if target.is_file():
                action = SyncAction.UPDATE
                if (
                    remote_file.hash
                    and target.stat().st_size == size
                    and calculate_file_hash(target) == remote_file.hash.lower()
                ):
                    action = SyncAction.SKIP
            logger.debug(f"{action.value}: {path}")
            if action != SyncAction.SKIP:
                self.operations.download_file(
                    remote_file, target, progress_callback=on_progress
                )
            stats.count(action)
        except CloudAuthenticationError:
            raise
        except (OSError, CloudAPIError) as e:
            logger.warning(f"Failed to restore {path}: {e}")
            tracker.add_error(TransferError.from_exception(path, e))

        tracker.update(
            processed_files=tracker.progress.processed_files + 1,
            transferred_bytes=base + size,
        )
