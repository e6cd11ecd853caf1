"""Remote folder resolution with per-run memoisation."""

import logging
from typing import Optional

from ..api import CloudClient
from ..exceptions import CloudInvalidResponseError
from ..file_entries_manager import FileEntriesManager
from ..models import FileEntry
from ..utils import relative_parent

logger = logging.getLogger(__name__)


def ensure_folder(
    client: CloudClient,
    manager: FileEntriesManager,
    name: str,
    parent_id: Optional[str],
) -> str:
    """Return the ID of a direct child folder, creating it if missing.

    Args:
        client: Cloud storage API client
        manager: Entries manager used for the lookup
        name: Folder name
        parent_id: Parent folder ID (None for the storage root)

    Returns:
        Folder ID

    Raises:
        CloudAPIError: If the lookup or the creation fails
    """
    existing = manager.find_folder(name, parent_id)
    if existing is not None:
        return existing.id

    logger.debug(f"Creating remote folder '{name}' in {parent_id or 'root'}")
    result = client.create_folder(name, parent_id=parent_id)
    if not isinstance(result, dict) or not result.get("id"):
        raise CloudInvalidResponseError(
            f"Folder creation for '{name}' returned no folder"
        )

    # The cached listing of the parent no longer matches the backend
    manager.clear_cache()
    return FileEntry.from_dict(result).id


class RemoteFolderCache:
    """Maps relative folder paths to remote folder IDs, creating folders on demand.

    The cache is seeded with ``"" -> root_id`` and lives for one sync run,
    so every folder is looked up or created at most once no matter how many
    files it contains.

    Examples:
        >>> cache = RemoteFolderCache(client, manager, root_id="1AbC")
        >>> cache.resolve_parent("photos/2024/img.jpg")  # ID of photos/2024
    """

    def __init__(
        self, client: CloudClient, manager: FileEntriesManager, root_id: str
    ):
        self.client = client
        self.manager = manager
        self._folders: dict[str, str] = {"": root_id}

    def __len__(self) -> int:
        return len(self._folders)

    def resolve_parent(self, relative_path: str) -> str:
        """Resolve (creating as needed) the folder containing a file.

        Args:
            relative_path: Forward-slash path of a file below the root

        Returns:
            ID of the file's immediate parent folder

        Raises:
            CloudAPIError: If a folder cannot be looked up or created
        """
        parent = relative_parent(relative_path)
        parts = parent.split("/") if parent else []

        folder_path = ""
        parent_id = self._folders[""]
        for part in parts:
            folder_path = f"{folder_path}/{part}" if folder_path else part
            cached = self._folders.get(folder_path)
            if cached is None:
                cached = ensure_folder(self.client, self.manager, part, parent_id)
                self._folders[folder_path] = cached
            parent_id = cached

        return parent_id
