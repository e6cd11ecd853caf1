"""File comparison logic for sync operations."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..utils import calculate_file_hash
from .scanner import LocalFile, RemoteFile


class SyncAction(str, Enum):
    """Actions that can be taken during sync."""

    CREATE = "create"
    """Transfer a file that does not exist at the destination"""

    UPDATE = "update"
    """Replace a destination file that differs from the source"""

    SKIP = "skip"
    """File is unchanged (still counted as processed)"""

    MKDIR = "mkdir"
    """Create a destination directory"""


@dataclass
class SyncDecision:
    """Represents a decision about how to sync one entry."""

    action: SyncAction
    """Action to take"""

    reason: str
    """Human-readable reason for this decision"""

    relative_path: str
    """Relative path of the entry"""

    source: LocalFile
    """Source entry"""

    destination: Optional[LocalFile] = None
    """Destination entry of a local mirror (if it exists)"""

    remote_file: Optional[RemoteFile] = None
    """Existing remote object (if it exists)"""

    @property
    def transfers(self) -> bool:
        """Whether this decision moves bytes."""
        return self.action in (SyncAction.CREATE, SyncAction.UPDATE)


def _whole_seconds(mtime: float) -> int:
    return int(mtime)


class FileComparator:
    """Compares source entries with the destination to decide actions.

    Local mirrors compare size and modification time. Remote destinations
    compare content digests and never produce deletions.
    """

    def compare_local(
        self,
        source_files: list[LocalFile],
        destination_files: list[LocalFile],
    ) -> tuple[list[SyncDecision], list[LocalFile]]:
        """Compare a source scan with a destination scan.

        Args:
            source_files: Source scan in traversal order
            destination_files: Destination scan

        Returns:
            Tuple of (decisions in source order, orphaned destination files)
        """
        remaining = {f.relative_path: f for f in destination_files}
        decisions: list[SyncDecision] = []
        # Destination directories that a source file replaces as a whole
        replaced_dirs: list[str] = []

        for source in source_files:
            destination = remaining.pop(source.relative_path, None)
            if destination is not None and destination.is_dir and not source.is_dir:
                replaced_dirs.append(source.relative_path + "/")
            if source.is_dir:
                decisions.append(
                    SyncDecision(
                        action=SyncAction.MKDIR,
                        reason="Directory",
                        relative_path=source.relative_path,
                        source=source,
                        destination=destination,
                    )
                )
                continue
            decisions.append(self._compare_local_file(source, destination))

        orphans = [
            f
            for f in remaining.values()
            if not f.is_dir
            and not any(f.relative_path.startswith(p) for p in replaced_dirs)
        ]
        return decisions, orphans

    def _compare_local_file(
        self, source: LocalFile, destination: Optional[LocalFile]
    ) -> SyncDecision:
        """Decide what to do with one source file of a local mirror."""
        path = source.relative_path

        if destination is None:
            return SyncDecision(
                action=SyncAction.CREATE,
                reason="New file",
                relative_path=path,
                source=source,
            )

        if destination.is_dir:
            return SyncDecision(
                action=SyncAction.UPDATE,
                reason="Directory in the way",
                relative_path=path,
                source=source,
                destination=destination,
            )

        if destination.size != source.size:
            return SyncDecision(
                action=SyncAction.UPDATE,
                reason=f"Size differs ({source.size} vs {destination.size})",
                relative_path=path,
                source=source,
                destination=destination,
            )

        if _whole_seconds(destination.mtime) < _whole_seconds(source.mtime):
            return SyncDecision(
                action=SyncAction.UPDATE,
                reason="Source file is newer",
                relative_path=path,
                source=source,
                destination=destination,
            )

        return SyncDecision(
            action=SyncAction.SKIP,
            reason="Unchanged (same size, destination not older)",
            relative_path=path,
            source=source,
            destination=destination,
        )

    def compare_remote(
        self, source: LocalFile, remote_file: Optional[RemoteFile]
    ) -> SyncDecision:
        """Decide what to do with one source file of a remote sync.

        Args:
            source: Source file
            remote_file: Existing remote object at the same relative path

        Returns:
            SyncDecision with CREATE, UPDATE or SKIP

        Raises:
            OSError: If the source file cannot be read for hashing
        """
        path = source.relative_path

        if remote_file is None:
            return SyncDecision(
                action=SyncAction.CREATE,
                reason="New file",
                relative_path=path,
                source=source,
            )

        local_hash = calculate_file_hash(source.path)
        if remote_file.hash and local_hash == remote_file.hash.lower():
            return SyncDecision(
                action=SyncAction.SKIP,
                reason="Unchanged (same content hash)",
                relative_path=path,
                source=source,
                remote_file=remote_file,
            )

        reason = "Content hash differs"
        remote_mtime = remote_file.mtime
        if remote_mtime is not None and remote_mtime > source.mtime:
            # The source always wins, even against a newer remote copy
            reason = "Content hash differs (remote copy is newer)"

        return SyncDecision(
            action=SyncAction.UPDATE,
            reason=reason,
            relative_path=path,
            source=source,
            remote_file=remote_file,
        )
