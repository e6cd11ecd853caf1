"""Directory scanning utilities for sync operations."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import pathspec

from ..models import FileEntry
from ..utils import parse_iso_timestamp

logger = logging.getLogger(__name__)


@dataclass
class LocalFile:
    """Represents a local file or directory with metadata."""

    path: Path
    """Absolute path to the entry"""

    relative_path: str
    """Relative path (using forward slashes for cross-platform compatibility)"""

    size: int
    """File size in bytes (0 for directories)"""

    mtime: float
    """Last modification time (Unix timestamp)"""

    is_dir: bool = False
    """Whether this entry is a directory"""

    @classmethod
    def from_path(cls, file_path: Path, base_path: Path) -> "LocalFile":
        """Create LocalFile from a path.

        Args:
            file_path: Absolute path to the file
            base_path: Base path for calculating relative paths

        Returns:
            LocalFile instance

        Raises:
            OSError: If the entry cannot be stat'ed
        """
        stat = file_path.stat()
        is_dir = file_path.is_dir()
        return cls(
            path=file_path,
            relative_path=file_path.relative_to(base_path).as_posix(),
            size=0 if is_dir else stat.st_size,
            mtime=stat.st_mtime,
            is_dir=is_dir,
        )


@dataclass
class RemoteFile:
    """Represents a remote file with metadata."""

    entry: FileEntry
    """Remote file entry from API"""

    relative_path: str
    """Relative path below the source folder on the remote side"""

    @property
    def size(self) -> int:
        """File size in bytes."""
        return self.entry.size

    @property
    def id(self) -> str:
        """Remote file ID."""
        return self.entry.id

    @property
    def hash(self) -> str:
        """Content digest (hex MD5) reported by the backend."""
        return self.entry.md5_checksum

    @property
    def mtime(self) -> Optional[float]:
        """Last modification time (Unix timestamp) reported by the backend."""
        dt = parse_iso_timestamp(self.entry.modified_time)
        return dt.timestamp() if dt is not None else None


class DirectoryScanner:
    """Scans directories and builds file lists.

    Ignore patterns use gitignore syntax: ``*.tmp`` matches at any depth,
    ``build/`` matches directories only, ``/notes.txt`` is anchored to the
    scan root and ``!keep.tmp`` re-includes an entry.

    Examples:
        >>> scanner = DirectoryScanner(ignore_patterns=["*.tmp", "cache/"])
        >>> files = scanner.scan_local(Path("/sync/folder"))
    """

    def __init__(
        self,
        ignore_patterns: Optional[Iterable[str]] = None,
        exclude_dot_files: bool = False,
    ):
        """Initialize directory scanner.

        Args:
            ignore_patterns: gitignore-style patterns (e.g., ["*.log", "temp/"])
            exclude_dot_files: Whether to exclude files/folders starting with dot
        """
        self.ignore_patterns = list(ignore_patterns or [])
        self.exclude_dot_files = exclude_dot_files
        self._spec = pathspec.PathSpec.from_lines(
            "gitwildmatch", self.ignore_patterns
        )

    def should_ignore(self, relative_path: str, is_dir: bool = False) -> bool:
        """Check if an entry should be ignored.

        Args:
            relative_path: Forward-slash path relative to the scan root
            is_dir: Whether the entry is a directory

        Returns:
            True if the entry should be skipped
        """
        name = relative_path.rsplit("/", 1)[-1]
        if self.exclude_dot_files and name.startswith("."):
            return True

        candidate = f"{relative_path}/" if is_dir else relative_path
        if self._spec.match_file(candidate):
            logger.debug(f"Ignoring: {relative_path}")
            return True
        return False

    def scan_local(
        self, directory: Path, base_path: Optional[Path] = None
    ) -> list[LocalFile]:
        """Recursively scan a local directory, depth-first.

        Directories are listed before their contents. Entries that cannot be
        read (permission denied, removed mid-scan) are left out instead of
        failing the scan. An ignored directory is not descended into.

        Args:
            directory: Directory to scan
            base_path: Base path for calculating relative paths (defaults to directory)

        Returns:
            List of LocalFile objects for files and directories

        Examples:
            >>> scanner = DirectoryScanner()
            >>> files = scanner.scan_local(Path("/home/user/documents"))
            >>> for f in files:
            ...     print(f.relative_path)
        """
        if base_path is None:
            base_path = directory

        files: list[LocalFile] = []

        try:
            items = sorted(directory.iterdir())
        except OSError as e:
            logger.debug(f"Skipping unreadable directory {directory}: {e}")
            return files

        for item in items:
            relative_path = item.relative_to(base_path).as_posix()

            try:
                # Symlinked directories are not descended into
                is_dir = item.is_dir() and not item.is_symlink()
                if self.should_ignore(relative_path, is_dir):
                    continue
                if is_dir:
                    files.append(LocalFile.from_path(item, base_path))
                    files.extend(self.scan_local(item, base_path))
                elif item.is_file():
                    files.append(LocalFile.from_path(item, base_path))
            except OSError as e:
                logger.debug(f"Skipping unreadable entry {item}: {e}")
                continue

        return files

    def scan_remote(
        self, entries_with_paths: list[tuple[FileEntry, str]]
    ) -> list[RemoteFile]:
        """Process remote file entries into RemoteFile objects.

        Args:
            entries_with_paths: List of (FileEntry, relative_path) tuples from API

        Returns:
            List of RemoteFile objects
        """
        remote_files: list[RemoteFile] = []

        for entry, rel_path in entries_with_paths:
            # Only include files, not folders
            if not entry.is_folder:
                remote_files.append(RemoteFile(entry=entry, relative_path=rel_path))

        return remote_files


def calculate_folder_size(directory: Path) -> int:
    """Calculate the total size of all readable files below a directory.

    Args:
        directory: Directory to measure

    Returns:
        Size in bytes
    """
    return sum(f.size for f in DirectoryScanner().scan_local(directory) if not f.is_dir)
