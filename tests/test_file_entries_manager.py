"""Unit tests for FileEntriesManager."""

from unittest.mock import Mock

import pytest

from pymirror.exceptions import CloudAPIError
from pymirror.file_entries_manager import FileEntriesManager
from pymirror.models import FOLDER_MIME_TYPE


def _entry(entry_id, name, mime_type="text/plain", md5=""):
    return {
        "id": entry_id,
        "name": name,
        "mimeType": mime_type,
        "md5Checksum": md5,
        "size": "100",
        "modifiedTime": "2024-01-01T00:00:00.000Z",
    }


def _folder(entry_id, name):
    return _entry(entry_id, name, FOLDER_MIME_TYPE)


class TestFileEntriesManagerInit:
    """Tests for FileEntriesManager initialization."""

    def test_initialization(self):
        """Test basic initialization."""
        mock_client = Mock()
        manager = FileEntriesManager(mock_client)

        assert manager.client == mock_client
        assert manager._cache == {}


class TestGetAllInFolder:
    """Tests for get_all_in_folder method."""

    def test_get_all_single_page(self):
        """Test fetching all entries in a single page."""
        mock_client = Mock()
        mock_client.list_files.return_value = {
            "files": [_entry("a1", "file1.txt"), _entry("a2", "file2.txt")],
        }

        manager = FileEntriesManager(mock_client)
        entries = manager.get_all_in_folder(folder_id=None)

        assert [e.name for e in entries] == ["file1.txt", "file2.txt"]
        mock_client.list_files.assert_called_once_with(
            parent_id=None, page_token=None, page_size=100
        )

    def test_get_all_follows_page_tokens(self):
        """Test fetching all entries across multiple pages."""
        mock_client = Mock()
        mock_client.list_files.side_effect = [
            {"files": [_entry("a1", "a.txt")], "nextPageToken": "tok2"},
            {"files": [_entry("a2", "b.txt")]},
        ]

        manager = FileEntriesManager(mock_client)
        entries = manager.get_all_in_folder(folder_id="f7")

        assert [e.id for e in entries] == ["a1", "a2"]
        assert mock_client.list_files.call_count == 2
        last_call = mock_client.list_files.call_args_list[1]
        assert last_call.kwargs == {
            "parent_id": "f7",
            "page_token": "tok2",
            "page_size": 100,
        }

    def test_cache_is_used(self):
        """Test that a cached folder is not fetched twice."""
        mock_client = Mock()
        mock_client.list_files.return_value = {"files": [_entry("a1", "a.txt")]}

        manager = FileEntriesManager(mock_client)
        manager.get_all_in_folder(folder_id="f3")
        manager.get_all_in_folder(folder_id="f3")

        mock_client.list_files.assert_called_once()

    def test_clear_cache(self):
        """Test that clear_cache forces a new fetch."""
        mock_client = Mock()
        mock_client.list_files.return_value = {"files": []}

        manager = FileEntriesManager(mock_client)
        manager.get_all_in_folder(folder_id="f3")
        manager.clear_cache()
        manager.get_all_in_folder(folder_id="f3")

        assert mock_client.list_files.call_count == 2

    def test_api_error_propagates(self):
        """Test that a failing page is raised instead of a partial listing."""
        mock_client = Mock()
        mock_client.list_files.side_effect = [
            {"files": [_entry("a1", "a.txt")], "nextPageToken": "tok2"},
            CloudAPIError("boom"),
        ]

        manager = FileEntriesManager(mock_client)
        with pytest.raises(CloudAPIError):
            manager.get_all_in_folder(folder_id="f3")
        assert manager._cache == {}


class TestGetAllRecursive:
    """Tests for get_all_recursive method."""

    def test_nested_paths(self):
        """Test that files in sub-folders get prefixed relative paths."""
        listings = {
            "f10": [_entry("a1", "top.txt"), _folder("f20", "docs")],
            "f20": [_entry("a2", "inner.txt"), _folder("f30", "deep")],
            "f30": [_entry("a3", "bottom.txt")],
        }
        mock_client = Mock()
        mock_client.list_files.side_effect = lambda parent_id, **kw: {
            "files": listings[parent_id]
        }

        manager = FileEntriesManager(mock_client)
        result = manager.get_all_recursive(folder_id="f10")

        assert [(e.id, path) for e, path in result] == [
            ("a1", "top.txt"),
            ("a2", "docs/inner.txt"),
            ("a3", "docs/deep/bottom.txt"),
        ]

    def test_cycle_protection(self):
        """Test that a folder listing itself is not visited twice."""
        mock_client = Mock()
        mock_client.list_files.return_value = {
            "files": [_entry("a1", "a.txt"), _folder("f10", "loop")]
        }

        manager = FileEntriesManager(mock_client)
        result = manager.get_all_recursive(folder_id="f10")

        assert [path for _, path in result] == ["a.txt"]
        mock_client.list_files.assert_called_once()


class TestFindFolder:
    """Tests for find_folder method."""

    def test_find_existing_folder(self):
        """Test that a matching child folder is returned."""
        mock_client = Mock()
        mock_client.list_files.return_value = {
            "files": [_entry("a1", "Backup"), _folder("f2", "Backup")]
        }

        folder = FileEntriesManager(mock_client).find_folder("Backup", parent_id=None)

        assert folder is not None
        assert folder.id == "f2"

    def test_folder_not_found(self):
        """Test that None is returned when no folder matches exactly."""
        mock_client = Mock()
        mock_client.list_files.return_value = {"files": [_folder("f2", "backup")]}

        assert FileEntriesManager(mock_client).find_folder("Backup") is None
