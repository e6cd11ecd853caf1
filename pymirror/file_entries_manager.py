"""Manager for fetching file entries with automatic pagination."""

import logging
from typing import Optional

from .api import CloudClient
from .exceptions import CloudAPIError
from .models import FileEntriesResult, FileEntry

logger = logging.getLogger(__name__)


class FileEntriesManager:
    """Manages file entry fetching with automatic pagination and caching."""

    def __init__(self, client: CloudClient):
        """Initialize the file entries manager.

        Args:
            client: Google Drive API client
        """
        self.client = client
        self._cache: dict[str, list[FileEntry]] = {}

    def get_all_in_folder(
        self,
        folder_id: Optional[str] = None,
        use_cache: bool = True,
        per_page: int = 100,
    ) -> list[FileEntry]:
        """Get all file entries in a folder with automatic pagination.

        Args:
            folder_id: Folder ID to query (None for "My Drive")
            use_cache: Whether to use cached results
            per_page: Number of entries per page (default: 100)

        Returns:
            List of all file entries in the folder

        Raises:
            CloudAPIError: If any page cannot be fetched. A partial listing
                would make existing remote files look missing.
        """
        cache_key = f"folder:{folder_id}"

        if use_cache and cache_key in self._cache:
            return self._cache[cache_key]

        all_entries: list[FileEntry] = []
        page_token: Optional[str] = None

        try:
            while True:
                result = self.client.list_files(
                    parent_id=folder_id,
                    page_token=page_token,
                    page_size=per_page,
                )
                page = FileEntriesResult.from_api_response(result)
                all_entries.extend(page.entries)

                page_token = page.next_page_token
                if not page_token:
                    break
        except CloudAPIError as e:
            logger.warning(
                f"API error while fetching folder {folder_id} "
                f"after {len(all_entries)} entries: {e}"
            )
            raise

        if use_cache:
            self._cache[cache_key] = all_entries

        return all_entries

    def get_all_recursive(
        self,
        folder_id: Optional[str] = None,
        path_prefix: str = "",
        visited: Optional[set[str]] = None,
        per_page: int = 100,
    ) -> list[tuple[FileEntry, str]]:
        """Recursively get all files in a folder and its subfolders.

        Folders are descended into but not returned themselves; their names
        only show up as prefixes of the relative paths.

        Args:
            folder_id: Folder ID to start from (None for "My Drive")
            path_prefix: Path prefix for nested folders
            visited: Set of visited folder IDs (for cycle detection)
            per_page: Number of entries per page

        Returns:
            List of (FileEntry, relative_path) tuples
        """
        if visited is None:
            visited = set()

        # Prevent infinite recursion
        if folder_id is not None and folder_id in visited:
            return []
        if folder_id is not None:
            visited.add(folder_id)

        result_entries: list[tuple[FileEntry, str]] = []

        entries = self.get_all_in_folder(
            folder_id=folder_id, use_cache=False, per_page=per_page
        )

        for entry in entries:
            entry_path = f"{path_prefix}/{entry.name}" if path_prefix else entry.name

            if entry.is_folder:
                result_entries.extend(
                    self.get_all_recursive(
                        folder_id=entry.id,
                        path_prefix=entry_path,
                        visited=visited,
                        per_page=per_page,
                    )
                )
            else:
                result_entries.append((entry, entry_path))

        return result_entries

    def find_folder(
        self, folder_name: str, parent_id: Optional[str] = None
    ) -> Optional[FileEntry]:
        """Find a direct child folder by exact name.

        Args:
            folder_name: Folder name to look for
            parent_id: Folder to search in (None for "My Drive")

        Returns:
            FileEntry if found, None otherwise
        """
        entries = self.get_all_in_folder(folder_id=parent_id, use_cache=True)
        for entry in entries:
            if entry.is_folder and entry.name == folder_name:
                logger.debug(f"Found folder '{folder_name}' (id={entry.id})")
                return entry
        return None

    def clear_cache(self) -> None:
        """Clear the internal cache."""
        self._cache.clear()
