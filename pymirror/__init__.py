"""PyMirror - mirror folders to local drives or a cloud storage backend."""

from .api import CloudClient
from .exceptions import (
    CloudAPIError,
    CloudAuthenticationError,
    CloudConfigError,
    CloudDownloadError,
    CloudInvalidResponseError,
    CloudNetworkError,
    CloudNotFoundError,
    CloudPermissionError,
    CloudRateLimitError,
    CloudUploadError,
    PyMirrorError,
    SyncError,
    SyncInProgressError,
    SyncSetupError,
)
from .models import BackupInfo, FileEntry
from .utils import calculate_file_hash, format_size

__version__ = "0.1.0"

__all__ = [
    "CloudClient",
    "BackupInfo",
    "FileEntry",
    "PyMirrorError",
    "CloudAPIError",
    "CloudAuthenticationError",
    "CloudConfigError",
    "CloudDownloadError",
    "CloudInvalidResponseError",
    "CloudNetworkError",
    "CloudNotFoundError",
    "CloudPermissionError",
    "CloudRateLimitError",
    "CloudUploadError",
    "SyncError",
    "SyncInProgressError",
    "SyncSetupError",
    "calculate_file_hash",
    "format_size",
]
