"""Custom exceptions for PyMirror."""


class PyMirrorError(Exception):
    """Base exception for all PyMirror errors."""

    code = "ERROR"


class CloudConfigError(PyMirrorError):
    """Raised when the storage client is not configured correctly."""

    code = "CONFIG"


class CloudAPIError(PyMirrorError):
    """Base exception for cloud storage API errors."""

    code = "API_ERROR"


class CloudAuthenticationError(CloudAPIError):
    """Raised when the access token is missing, invalid or expired."""

    code = "AUTH"


class CloudPermissionError(CloudAPIError):
    """Raised when access to a resource is forbidden."""

    code = "FORBIDDEN"


class CloudNotFoundError(CloudAPIError):
    """Raised when a remote resource does not exist."""

    code = "NOT_FOUND"


class CloudRateLimitError(CloudAPIError):
    """Raised when the API rate limit is exceeded."""

    code = "RATE_LIMIT"


class CloudNetworkError(CloudAPIError):
    """Raised on connection failures and timeouts."""

    code = "NETWORK"


class CloudInvalidResponseError(CloudAPIError):
    """Raised when the server returns something that is not valid JSON."""

    code = "INVALID_RESPONSE"


class CloudUploadError(CloudAPIError):
    """Raised when streaming a file to the storage backend fails."""

    code = "UPLOAD_FAILED"


class CloudDownloadError(CloudAPIError):
    """Raised when fetching a file from the storage backend fails."""

    code = "DOWNLOAD_FAILED"


class SyncError(PyMirrorError):
    """Base exception for sync engine errors."""

    code = "SYNC_ERROR"


class SyncInProgressError(SyncError):
    """Raised when a sync is started while another one is running."""

    code = "BUSY"


class SyncSetupError(SyncError):
    """Raised when a sync cannot even start (missing source, no destination root).

    These errors abort the whole run, unlike per-file transfer errors.
    """

    code = "FATAL"
