"""Data models for Google Drive API responses."""

from dataclasses import dataclass, field
from typing import Any, Optional

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"

# Google Docs, Sheets, ... have no binary content to download
GOOGLE_APPS_MIME_PREFIX = "application/vnd.google-apps."


@dataclass
class FileEntry:
    """A file or folder resource as returned by the Drive API."""

    id: str
    name: str
    mime_type: str = "application/octet-stream"
    size: int = 0
    parent_id: Optional[str] = None
    md5_checksum: str = ""
    """Hex MD5 of the file bytes; empty for folders and Google Apps documents"""
    modified_time: Optional[str] = None

    @property
    def is_folder(self) -> bool:
        """Whether this entry is a folder."""
        return self.mime_type == FOLDER_MIME_TYPE

    @property
    def is_google_document(self) -> bool:
        """Whether this entry is a native Google document without binary content."""
        if self.is_folder:
            return False
        return self.mime_type.startswith(GOOGLE_APPS_MIME_PREFIX)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FileEntry":
        """Create a FileEntry from a Drive ``File`` resource.

        Args:
            data: File resource dictionary from the API

        Returns:
            FileEntry instance
        """
        parents = data.get("parents") or []
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", "")),
            mime_type=str(data.get("mimeType") or "application/octet-stream"),
            size=int(data.get("size") or 0),
            parent_id=str(parents[0]) if parents else None,
            md5_checksum=str(data.get("md5Checksum") or ""),
            modified_time=data.get("modifiedTime"),
        )


@dataclass
class FileEntriesResult:
    """One page of a ``files.list`` response."""

    entries: list[FileEntry] = field(default_factory=list)
    next_page_token: Optional[str] = None

    @classmethod
    def from_api_response(cls, data: Any) -> "FileEntriesResult":
        """Parse a ``files.list`` response (``files`` plus ``nextPageToken``)."""
        if not isinstance(data, dict):
            return cls()

        entries = [FileEntry.from_dict(e) for e in data.get("files", [])]
        return cls(entries=entries, next_page_token=data.get("nextPageToken"))


@dataclass(frozen=True)
class BackupInfo:
    """One backed-up source folder below the backup folder."""

    id: str
    name: str
    modified_time: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "modified_time": self.modified_time}
