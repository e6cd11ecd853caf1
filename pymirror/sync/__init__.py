"""Sync engine for PyMirror - local mirrors, additive cloud backups and restores."""

from .comparator import FileComparator, SyncAction, SyncDecision
from .control import SyncControl
from .destination import LocalDestination, RemoteDestination, SyncOptions
from .engine import SyncEngine
from .folders import RemoteFolderCache, ensure_folder
from .operations import SyncOperations
from .progress import (
    ProgressListeners,
    SyncPhase,
    SyncProgress,
    SyncProgressTracker,
    SyncResult,
    TransferError,
)
from .scanner import DirectoryScanner, LocalFile, RemoteFile, calculate_folder_size

__all__ = [
    "SyncEngine",
    "SyncOptions",
    "LocalDestination",
    "RemoteDestination",
    "SyncOperations",
    "SyncControl",
    "SyncPhase",
    "SyncProgress",
    "SyncProgressTracker",
    "ProgressListeners",
    "SyncResult",
    "TransferError",
    "DirectoryScanner",
    "FileComparator",
    "SyncAction",
    "SyncDecision",
    "LocalFile",
    "RemoteFile",
    "RemoteFolderCache",
    "ensure_folder",
    "calculate_folder_size",
]
