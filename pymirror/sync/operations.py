"""Sync operations wrapper for copy/upload/download/delete with a common interface."""

import logging
import os
import shutil
from pathlib import Path
from typing import Any, Callable, Optional

from ..api import CloudClient
from ..exceptions import CloudConfigError
from ..utils import DEFAULT_CHUNK_SIZE
from .scanner import LocalFile, RemoteFile

logger = logging.getLogger(__name__)


def _temp_sibling(path: Path) -> Path:
    """Name of the partial file written next to ``path`` before it is replaced."""
    return path.with_name(f".{path.name}.pymirror-tmp")


def _discard(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass


class SyncOperations:
    """Unified file operations used by the sync engine."""

    def __init__(self, client: Optional[CloudClient] = None):
        """Initialize sync operations.

        Args:
            client: Cloud storage API client (only needed for uploads and downloads)
        """
        self.client = client

    def _require_client(self) -> CloudClient:
        if self.client is None:
            raise CloudConfigError("No API client configured for remote operations")
        return self.client

    def copy_file(
        self,
        source: Path,
        destination: Path,
        progress_callback: Optional[Callable[[int, int], None]] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> int:
        """Copy a file in bounded chunks.

        The bytes go to a temporary sibling that replaces ``destination``
        only once it is complete, so a failed copy leaves the previous
        destination content in place.

        Args:
            source: File to read
            destination: File to write (parent directories are created)
            progress_callback: Optional progress callback
                function(bytes_copied, total_bytes), called after each chunk
            chunk_size: Bytes read per chunk

        Returns:
            Number of bytes copied

        Raises:
            OSError: If the source cannot be read or the destination written
        """
        total = source.stat().st_size
        destination.parent.mkdir(parents=True, exist_ok=True)
        partial = _temp_sibling(destination)

        copied = 0
        try:
            with open(source, "rb") as src, open(partial, "wb") as dst:
                while True:
                    chunk = src.read(chunk_size)
                    if not chunk:
                        break
                    dst.write(chunk)
                    copied += len(chunk)
                    if progress_callback:
                        progress_callback(copied, total)
            os.replace(partial, destination)
        except BaseException:
            _discard(partial)
            raise

        logger.debug(f"Copied {source} -> {destination} ({copied} bytes)")
        return copied

    def upload_file(
        self,
        local_file: LocalFile,
        parent_id: Optional[str],
        existing: Optional[RemoteFile] = None,
        progress_callback: Optional[Callable[[int, int], None]] = None,
    ) -> Any:
        """Upload a local file to remote storage.

        Args:
            local_file: Local file to upload
            parent_id: Folder the new object is created in
            existing: Remote object whose content is replaced instead
            progress_callback: Optional progress callback
                function(bytes_uploaded, total_bytes)

        Returns:
            Upload response from API
        """
        client = self._require_client()

        if existing is not None:
            return client.update_file_content(
                existing.id,
                local_file.path,
                progress_callback=progress_callback,
            )

        return client.upload_file(
            local_file.path,
            parent_id=parent_id,
            progress_callback=progress_callback,
        )

    def download_file(
        self,
        remote_file: RemoteFile,
        local_path: Path,
        progress_callback: Optional[Callable[[int, int], None]] = None,
    ) -> Path:
        """Download a remote file to local storage.

        Like :meth:`copy_file`, the download lands in a temporary sibling
        first. The saved file takes the remote modification time.

        Args:
            remote_file: Remote file to download
            local_path: Local path where file should be saved
            progress_callback: Optional progress callback
                function(bytes_downloaded, total_bytes)

        Returns:
            Path where file was saved
        """
        client = self._require_client()
        local_path.parent.mkdir(parents=True, exist_ok=True)
        partial = _temp_sibling(local_path)

        try:
            client.download_file(
                remote_file.id,
                partial,
                progress_callback=progress_callback,
            )
            os.replace(partial, local_path)
        except BaseException:
            _discard(partial)
            raise

        mtime = remote_file.mtime
        if mtime is not None:
            os.utime(local_path, (mtime, mtime))
        return local_path

    def delete_local(self, path: Path) -> None:
        """Delete a local file permanently.

        Args:
            path: File to delete
        """
        path.unlink()
        logger.debug(f"Deleted {path}")

    def remove_tree(self, path: Path) -> None:
        """Delete a local directory and everything below it.

        Args:
            path: Directory to delete
        """
        shutil.rmtree(path)
        logger.debug(f"Deleted directory {path}")
