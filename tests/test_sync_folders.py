"""Tests for remote folder resolution."""

from unittest.mock import Mock

import pytest

from pymirror.exceptions import CloudAPIError, CloudInvalidResponseError
from pymirror.models import FOLDER_MIME_TYPE, FileEntry
from pymirror.sync.folders import RemoteFolderCache, ensure_folder


def _folder(entry_id: str, name: str) -> FileEntry:
    return FileEntry(id=entry_id, name=name, mime_type=FOLDER_MIME_TYPE)


class TestEnsureFolder:
    """Tests for ensure_folder."""

    def test_existing_folder_is_reused(self):
        """Test that an existing folder is returned without creating one."""
        client = Mock()
        manager = Mock()
        manager.find_folder.return_value = _folder("f5", "Backup")

        assert ensure_folder(client, manager, "Backup", None) == "f5"
        client.create_folder.assert_not_called()

    def test_missing_folder_is_created(self):
        """Test that a missing folder is created and the listing cache dropped."""
        client = Mock()
        client.create_folder.return_value = {
            "id": "f11",
            "name": "Backup",
            "mimeType": FOLDER_MIME_TYPE,
        }
        manager = Mock()
        manager.find_folder.return_value = None

        assert ensure_folder(client, manager, "Backup", "f3") == "f11"
        client.create_folder.assert_called_once_with("Backup", parent_id="f3")
        manager.clear_cache.assert_called_once()

    def test_create_without_id_in_response_raises(self):
        """Test that a response without a file resource is rejected."""
        client = Mock()
        client.create_folder.return_value = {"kind": "drive#file"}
        manager = Mock()
        manager.find_folder.return_value = None

        with pytest.raises(CloudInvalidResponseError):
            ensure_folder(client, manager, "Backup", None)


class TestRemoteFolderCache:
    """Tests for RemoteFolderCache.resolve_parent."""

    @pytest.fixture
    def client(self):
        client = Mock()
        ids = iter(range(100, 200))

        def create_folder(name, parent_id=None):
            return {"id": f"f{next(ids)}", "name": name, "mimeType": FOLDER_MIME_TYPE}

        client.create_folder.side_effect = create_folder
        return client

    @pytest.fixture
    def manager(self):
        manager = Mock()
        manager.find_folder.return_value = None
        return manager

    def test_top_level_file_uses_root(self, client, manager):
        """Test that a file at the root resolves to the root id."""
        cache = RemoteFolderCache(client, manager, root_id="root1")

        assert cache.resolve_parent("a.txt") == "root1"
        manager.find_folder.assert_not_called()
        client.create_folder.assert_not_called()

    def test_nested_folders_created_in_order(self, client, manager):
        """Test that each intermediate folder is created under its parent."""
        cache = RemoteFolderCache(client, manager, root_id="root1")

        parent_id = cache.resolve_parent("a/b/c.txt")

        assert parent_id == "f101"
        assert client.create_folder.call_args_list[0].args == ("a",)
        assert client.create_folder.call_args_list[0].kwargs == {
            "parent_id": "root1"
        }
        assert client.create_folder.call_args_list[1].args == ("b",)
        assert client.create_folder.call_args_list[1].kwargs == {"parent_id": "f100"}
        assert len(cache) == 3

    def test_each_folder_resolved_once(self, client, manager):
        """Test that many files in one folder resolve it only once."""
        cache = RemoteFolderCache(client, manager, root_id="root1")

        results = {cache.resolve_parent(f"photos/2024/img{i}.jpg") for i in range(50)}
        cache.resolve_parent("photos/cover.jpg")

        assert results == {"f101"}
        assert client.create_folder.call_count == 2
        assert manager.find_folder.call_count == 2
        assert len(cache) == 3

    def test_existing_folders_found_not_created(self, client, manager):
        """Test that folders already on the backend are looked up."""
        manager.find_folder.side_effect = lambda name, parent_id: _folder(
            {"docs": "f20", "old": "f21"}[name], name
        )
        cache = RemoteFolderCache(client, manager, root_id="root1")

        assert cache.resolve_parent("docs/old/a.txt") == "f21"
        client.create_folder.assert_not_called()

    def test_failure_propagates_and_is_not_cached(self, client, manager):
        """Test that a failed lookup leaves no cache entry behind."""
        manager.find_folder.side_effect = CloudAPIError("boom")
        cache = RemoteFolderCache(client, manager, root_id="root1")

        with pytest.raises(CloudAPIError):
            cache.resolve_parent("docs/a.txt")
        assert len(cache) == 1
