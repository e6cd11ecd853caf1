"""Destination descriptors and run options."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from ..utils import DEFAULT_CHUNK_SIZE


@dataclass(frozen=True)
class LocalDestination:
    """A local or network-mounted directory to mirror into.

    Examples:
        >>> LocalDestination(Path("/mnt/backup"), source_name="Documents").mirror_root
        PosixPath('/mnt/backup/Documents')
    """

    path: Path
    """Destination directory"""

    source_name: Optional[str] = None
    """Sub-folder created below ``path`` for this source (None mirrors into ``path``)"""

    @property
    def mirror_root(self) -> Path:
        """Directory that mirrors the source root."""
        if self.source_name:
            return Path(self.path) / self.source_name
        return Path(self.path)


@dataclass(frozen=True)
class RemoteDestination:
    """A folder on the cloud storage backend.

    Files end up below ``<backup_folder>/<source_name>/``.
    """

    source_name: Optional[str] = None
    """Remote sub-folder name (defaults to the source directory name)"""

    backup_folder: Optional[str] = None
    """Top-level backup folder (defaults to the configured backup folder)"""


@dataclass(frozen=True)
class SyncOptions:
    """Options for one sync run."""

    delete_orphans: bool = True
    """Delete destination files missing from the source (local mirrors only)"""

    ignore_patterns: tuple[str, ...] = field(default_factory=tuple)
    """gitignore-style patterns of entries to leave out"""

    exclude_dot_files: bool = False
    """Leave out files and folders whose name starts with a dot"""

    chunk_size: int = DEFAULT_CHUNK_SIZE
    """Bytes per chunk for local copies"""
