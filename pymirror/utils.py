"""Utility functions for PyMirror."""

import hashlib
from datetime import datetime
from pathlib import Path
from typing import Optional

# =============================================================================
# Constants for file operations
# =============================================================================

# Chunk size for streamed local copies (1 MB)
DEFAULT_CHUNK_SIZE: int = 1024 * 1024

# Chunk size for streamed uploads; small enough for smooth progress (64 KB)
UPLOAD_CHUNK_SIZE: int = 64 * 1024

# Chunk size for streamed downloads (64 KB)
DOWNLOAD_CHUNK_SIZE: int = 64 * 1024

# Retry configuration for transient API errors
DEFAULT_MAX_RETRIES: int = 3
DEFAULT_RETRY_DELAY: float = 1.0  # seconds


# =============================================================================
# Timestamp parsing utilities
# =============================================================================


def parse_iso_timestamp(timestamp_str: Optional[str]) -> Optional[datetime]:
    """Parse ISO format timestamp from the storage API.

    Args:
        timestamp_str: ISO format timestamp string (e.g., "2025-01-15T10:30:00.000000Z")

    Returns:
        datetime object in local timezone or None if parsing fails
    """
    if not timestamp_str:
        return None

    try:
        # The 'Z' suffix indicates UTC time
        if timestamp_str.endswith("Z"):
            timestamp_str = timestamp_str[:-1] + "+00:00"

        dt = datetime.fromisoformat(timestamp_str)
        if dt.tzinfo is not None:
            return datetime.fromtimestamp(dt.timestamp())
        return dt
    except (ValueError, AttributeError):
        return None


# =============================================================================
# Size formatting utilities
# =============================================================================


def format_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB", "256 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / 1024 / 1024:.1f} MB"
    else:
        return f"{size_bytes / 1024 / 1024 / 1024:.1f} GB"


# =============================================================================
# Hash calculation utilities
# =============================================================================


def calculate_file_hash(path: Path, chunk_size: int = DEFAULT_CHUNK_SIZE) -> str:
    """Calculate the content digest the storage API reports for a file.

    The file is read in chunks so memory use stays bounded.

    Args:
        path: File to hash
        chunk_size: Read size in bytes

    Returns:
        Lowercase hex MD5 digest

    Examples:
        >>> calculate_file_hash(Path("empty.txt"))
        'd41d8cd98f00b204e9800998ecf8427e'
    """
    digest = hashlib.md5()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            digest.update(chunk)
    return digest.hexdigest()


def relative_parent(relative_path: str) -> str:
    """Return the parent folder part of a forward-slash relative path.

    Examples:
        >>> relative_parent("a/b/c.txt")
        'a/b'
        >>> relative_parent("c.txt")
        ''
    """
    head, _, _ = relative_path.rpartition("/")
    return head
