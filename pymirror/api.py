"""API client for the Google Drive v3 REST API."""

from __future__ import annotations

import mimetypes
import random
import time
from collections.abc import Iterator
from pathlib import Path
from typing import Any, Callable

import httpx

from .config import config
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
)
from .models import FOLDER_MIME_TYPE
from .utils import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_DELAY,
    DOWNLOAD_CHUNK_SIZE,
    UPLOAD_CHUNK_SIZE,
)

# Fields requested for every File resource
FILE_FIELDS = "id, name, mimeType, size, md5Checksum, modifiedTime, parents"

# 403 reasons Google uses for throttling instead of 429
_RATE_LIMIT_REASONS = {"rateLimitExceeded", "userRateLimitExceeded"}


def _error_details(response: httpx.Response) -> tuple[str, set[str]]:
    """Extract the message and reasons from a Google error body."""
    try:
        data = response.json() if response.content else None
    except ValueError:
        return "", set()
    if not isinstance(data, dict):
        return "", set()

    error = data.get("error")
    if isinstance(error, dict):
        reasons = {
            e.get("reason", "")
            for e in error.get("errors", [])
            if isinstance(e, dict)
        }
        return str(error.get("message") or ""), reasons
    return str(error or data.get("message") or ""), set()


class CloudClient:
    """Client for the Google Drive API.

    Authenticates with an OAuth access token; acquiring and refreshing the
    token is left to the caller.
    """

    def __init__(
        self,
        access_token: str | None = None,
        api_url: str | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the API client.

        Args:
            access_token: Optional OAuth access token (uses config if not provided)
            api_url: Optional API host URL (uses config if not provided)
            max_retries: Maximum number of retry attempts (default: 3)
            retry_delay: Initial delay between retries in seconds (default: 1.0)
            timeout: Request timeout in seconds (default: 30.0)
            transport: Optional httpx transport (used by tests)
        """
        self.access_token = access_token or config.access_token
        self.api_url = (api_url or config.api_url).rstrip("/")
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout
        self._transport = transport

        if not self.access_token:
            raise CloudConfigError(
                "Access token not configured. "
                "Please set PYMIRROR_ACCESS_TOKEN or run 'pymirror init'."
            )

        self._client: httpx.Client | None = None

    def _get_client(self) -> httpx.Client:
        """Get or create the httpx client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                headers={"Authorization": f"Bearer {self.access_token}"},
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    def close(self) -> None:
        """Close the client and release connections."""
        if self._client is not None and not self._client.is_closed:
            self._client.close()
            self._client = None

    def __enter__(self) -> CloudClient:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def _url(self, endpoint: str) -> str:
        return f"{self.api_url}/{endpoint.lstrip('/')}"

    def _should_retry(self, exception: Exception, attempt: int) -> bool:
        """Determine if a request should be retried.

        Args:
            exception: The exception that occurred
            attempt: Current attempt number (0-based)

        Returns:
            True if the request should be retried, False otherwise
        """
        if attempt >= self.max_retries:
            return False

        # Transient failures only; auth and permission errors never heal
        return isinstance(exception, (CloudNetworkError, CloudRateLimitError))

    def _calculate_retry_delay(self, attempt: int) -> float:
        """Calculate delay before next retry using exponential backoff.

        Args:
            attempt: Current attempt number (0-based)

        Returns:
            Delay in seconds
        """
        base_delay = self.retry_delay * (2**attempt)
        # +/- 25% jitter
        jitter = base_delay * 0.25 * (2 * random.random() - 1)
        return base_delay + jitter

    def _handle_http_error(
        self, e: httpx.HTTPStatusError, attempt: int
    ) -> tuple[Exception, bool]:
        """Map an HTTP error to a PyMirror exception.

        Args:
            e: The HTTP error exception
            attempt: Current attempt number

        Returns:
            Tuple of (exception to raise, should_retry)

        Raises:
            CloudAuthenticationError: On 401
            CloudPermissionError: On 403 (unless it is a rate limit)
            CloudNotFoundError: On 404
        """
        status_code = e.response.status_code
        message, reasons = _error_details(e.response)

        if status_code == 401:
            raise CloudAuthenticationError(
                "Invalid or expired access token"
            ) from e
        elif status_code == 429 or (
            status_code == 403 and reasons & _RATE_LIMIT_REASONS
        ):
            error = CloudRateLimitError("Rate limit exceeded - please try again later")
            return (error, attempt < self.max_retries)
        elif status_code == 403:
            raise CloudPermissionError(
                message or "Access forbidden - check your permissions"
            ) from e
        elif status_code == 404:
            raise CloudNotFoundError(message or "Resource not found") from e

        error_msg = f"API request failed with status {status_code}"
        if message:
            error_msg = f"{error_msg}: {message}"

        should_retry = 500 <= status_code < 600 and attempt < self.max_retries
        return (CloudAPIError(error_msg), should_retry)

    def _parse_response(self, response: httpx.Response) -> Any:
        """Decode a JSON response body.

        Raises:
            CloudAuthenticationError: If the server answered with an HTML page
            CloudInvalidResponseError: If the body is not valid JSON
        """
        content_type = response.headers.get("Content-Type", "")
        if response.content and "application/json" not in content_type:
            # An HTML page usually means a login redirect
            if "text/html" in content_type:
                raise CloudAuthenticationError(
                    "Invalid access token - server returned HTML instead of JSON"
                )
            raise CloudInvalidResponseError(
                f"Unexpected response type: {content_type}"
            )

        if response.content:
            try:
                return response.json()
            except ValueError as e:
                raise CloudInvalidResponseError(
                    "Invalid JSON response from server"
                ) from e
        return {}

    def _send(self, method: str, endpoint: str, **kwargs: Any) -> httpx.Response:
        """Send a request with retry logic and return the raw response.

        Only use this with replayable bodies.

        Raises:
            CloudAPIError: If the request fails after all retries
        """
        url = self._url(endpoint)
        last_exception: Exception | None = None
        client = self._get_client()

        for attempt in range(self.max_retries + 1):
            try:
                response = client.request(method, url, **kwargs)
                response.raise_for_status()
                return response

            except httpx.HTTPStatusError as e:
                error, should_retry = self._handle_http_error(e, attempt)
                last_exception = error

                if should_retry:
                    delay = self._calculate_retry_delay(attempt)
                    if isinstance(error, CloudRateLimitError):
                        retry_after = e.response.headers.get("Retry-After")
                        if retry_after and retry_after.isdigit():
                            delay = float(retry_after)
                    time.sleep(delay)
                    continue
                raise error from e
            except httpx.RequestError as e:
                error = CloudNetworkError(f"Network error: {e}")
                last_exception = error
                if self._should_retry(error, attempt):
                    time.sleep(self._calculate_retry_delay(attempt))
                    continue
                raise error from e

        if last_exception:
            raise last_exception
        raise CloudAPIError("Request failed after all retry attempts")

    def _request(self, method: str, endpoint: str, **kwargs: Any) -> Any:
        """Make an API request with retry logic.

        Args:
            method: HTTP method
            endpoint: API endpoint path
            **kwargs: Additional arguments passed to httpx

        Returns:
            Response JSON data

        Raises:
            CloudAPIError: If the request fails after all retries
        """
        return self._parse_response(self._send(method, endpoint, **kwargs))

    # =========================
    # Account
    # =========================

    def get_logged_user(self) -> Any:
        """Get the user the access token belongs to.

        Returns:
            Response with a 'user' key

        Raises:
            CloudAuthenticationError: If the token is not valid
        """
        return self._request("GET", "/drive/v3/about", params={"fields": "user"})

    # =========================
    # File Operations
    # =========================

    def list_files(
        self,
        parent_id: str | None = None,
        page_token: str | None = None,
        page_size: int = 100,
    ) -> Any:
        """List the non-trashed children of a folder.

        Args:
            parent_id: Folder to list (None for "My Drive")
            page_token: Token of the page to fetch (None for the first page)
            page_size: Maximum number of entries per page

        Returns:
            Response with 'files' and, when more pages exist, 'nextPageToken'
        """
        params: dict[str, Any] = {
            "q": f"'{parent_id or 'root'}' in parents and trashed = false",
            "fields": f"nextPageToken, files({FILE_FIELDS})",
            "pageSize": page_size,
            "spaces": "drive",
        }
        if page_token:
            params["pageToken"] = page_token

        return self._request("GET", "/drive/v3/files", params=params)

    def create_folder(self, name: str, parent_id: str | None = None) -> Any:
        """Create a new folder.

        Args:
            name: Name of the new folder
            parent_id: ID of parent folder (None for "My Drive")

        Returns:
            File resource of the new folder
        """
        data: dict[str, Any] = {
            "name": name,
            "mimeType": FOLDER_MIME_TYPE,
            "parents": [parent_id or "root"],
        }
        return self._request(
            "POST", "/drive/v3/files", params={"fields": FILE_FIELDS}, json=data
        )

    # =========================
    # Upload Operations
    # =========================

    def _start_upload_session(
        self,
        method: str,
        endpoint: str,
        file_path: Path,
        metadata: dict[str, Any],
    ) -> str:
        """Open a resumable upload session and return its URL."""
        file_size = file_path.stat().st_size
        mime_type, _ = mimetypes.guess_type(str(file_path))
        response = self._send(
            method,
            endpoint,
            params={"uploadType": "resumable", "fields": FILE_FIELDS},
            json=metadata,
            headers={
                "X-Upload-Content-Type": mime_type or "application/octet-stream",
                "X-Upload-Content-Length": str(file_size),
            },
        )
        session_url = response.headers.get("Location")
        if not session_url:
            raise CloudUploadError(
                f"Upload of '{file_path.name}' returned no session URL"
            )
        return session_url

    def _stream_upload(
        self,
        session_url: str,
        file_path: Path,
        progress_callback: Callable[[int, int], None] | None = None,
    ) -> Any:
        """Stream a file into an upload session.

        The body is produced by a generator, so the request cannot be
        replayed and is never retried here.

        Args:
            session_url: Resumable session URL
            file_path: Local file to send
            progress_callback: Optional callback function(bytes_uploaded,
                total_bytes)

        Returns:
            File resource of the uploaded file
        """
        file_size = file_path.stat().st_size

        def file_reader() -> Iterator[bytes]:
            bytes_uploaded = 0
            with open(file_path, "rb") as f:
                while True:
                    chunk = f.read(UPLOAD_CHUNK_SIZE)
                    if not chunk:
                        break
                    bytes_uploaded += len(chunk)
                    if progress_callback:
                        progress_callback(bytes_uploaded, file_size)
                    yield chunk

        try:
            response = self._get_client().put(
                session_url,
                content=file_reader(),
                headers={"Content-Length": str(file_size)},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            if status_code == 401:
                raise CloudAuthenticationError(
                    "Invalid or expired access token"
                ) from e
            if status_code == 403:
                raise CloudPermissionError(
                    f"Upload of '{file_path.name}' forbidden"
                ) from e
            raise CloudUploadError(
                f"Upload of '{file_path.name}' failed with status {status_code}"
            ) from e
        except httpx.RequestError as e:
            raise CloudNetworkError(f"Network error during upload: {e}") from e

        return self._parse_response(response)

    def upload_file(
        self,
        file_path: Path,
        parent_id: str | None = None,
        progress_callback: Callable[[int, int], None] | None = None,
    ) -> Any:
        """Upload a new file into a folder.

        Args:
            file_path: Local path to the file
            parent_id: ID of the destination folder (None for "My Drive")
            progress_callback: Optional callback function(bytes_uploaded,
                total_bytes)

        Returns:
            File resource of the new file
        """
        session_url = self._start_upload_session(
            "POST",
            "/upload/drive/v3/files",
            file_path,
            {"name": file_path.name, "parents": [parent_id or "root"]},
        )
        return self._stream_upload(session_url, file_path, progress_callback)

    def update_file_content(
        self,
        file_id: str,
        file_path: Path,
        progress_callback: Callable[[int, int], None] | None = None,
    ) -> Any:
        """Replace the content of an existing file, keeping its ID.

        Args:
            file_id: ID of the remote file
            file_path: Local file holding the new content
            progress_callback: Optional callback function(bytes_uploaded,
                total_bytes)

        Returns:
            Updated file resource
        """
        session_url = self._start_upload_session(
            "PATCH", f"/upload/drive/v3/files/{file_id}", file_path, {}
        )
        return self._stream_upload(session_url, file_path, progress_callback)

    # =========================
    # Download Operations
    # =========================

    def download_file(
        self,
        file_id: str,
        output_path: Path,
        progress_callback: Callable[[int, int], None] | None = None,
        timeout: float = 60.0,
    ) -> Path:
        """Download the content of a file.

        Args:
            file_id: ID of the remote file
            output_path: Path where the content is written
            progress_callback: Optional callback function(bytes_downloaded,
                total_bytes)
            timeout: Request timeout in seconds (default: 60)

        Returns:
            Path where the file was saved

        Raises:
            CloudDownloadError: If the download or the write fails
        """
        url = self._url(f"/drive/v3/files/{file_id}")
        client = self._get_client()

        try:
            with client.stream(
                "GET", url, params={"alt": "media"}, timeout=timeout
            ) as response:
                response.raise_for_status()

                total_size = int(response.headers.get("Content-Length", 0))
                bytes_downloaded = 0

                with open(output_path, "wb") as f:
                    for chunk in response.iter_bytes(chunk_size=DOWNLOAD_CHUNK_SIZE):
                        if chunk:
                            f.write(chunk)
                            bytes_downloaded += len(chunk)
                            if progress_callback:
                                progress_callback(bytes_downloaded, total_size)

                return output_path

        except httpx.HTTPStatusError as e:
            if e.response.status_code == 401:
                raise CloudAuthenticationError(
                    "Invalid or expired access token"
                ) from e
            raise CloudDownloadError(f"Download failed: {e}") from e
        except httpx.RequestError as e:
            raise CloudNetworkError(f"Network error during download: {e}") from e
        except OSError as e:
            raise CloudDownloadError(f"Failed to write file: {e}") from e
