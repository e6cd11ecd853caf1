"""Configuration handling for PyMirror.

Values are resolved in this order: environment variables, the JSON config
file in the user's config directory, then built-in defaults.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://www.googleapis.com"
DEFAULT_BACKUP_FOLDER = "PyMirror_Backup"
CONFIG_FILE_NAME = "config.json"


class Config:
    """Lazily loaded PyMirror configuration."""

    def __init__(self, config_dir: Optional[Path] = None):
        """Initialize configuration.

        Args:
            config_dir: Directory holding config.json. Defaults to
                $PYMIRROR_CONFIG_DIR or ~/.config/pymirror
        """
        if config_dir is None:
            env_dir = os.environ.get("PYMIRROR_CONFIG_DIR")
            config_dir = (
                Path(env_dir) if env_dir else Path.home() / ".config" / "pymirror"
            )
        self.config_dir = config_dir
        self._data: Optional[dict[str, Any]] = None

    @property
    def config_file(self) -> Path:
        """Path to the JSON config file."""
        return self.config_dir / CONFIG_FILE_NAME

    def _load(self) -> dict[str, Any]:
        if self._data is None:
            self._data = {}
            if self.config_file.exists():
                try:
                    with open(self.config_file, encoding="utf-8") as f:
                        loaded = json.load(f)
                    if isinstance(loaded, dict):
                        self._data = loaded
                except (OSError, json.JSONDecodeError) as e:
                    logger.warning(f"Failed to read config file: {e}")
        return self._data

    def _get(self, env_name: str, key: str, default: Optional[str]) -> Optional[str]:
        value = os.environ.get(env_name)
        if value:
            return value
        stored = self._load().get(key)
        return str(stored) if stored else default

    @property
    def access_token(self) -> Optional[str]:
        """OAuth access token for the Google Drive API."""
        return self._get("PYMIRROR_ACCESS_TOKEN", "access_token", None)

    @property
    def api_url(self) -> str:
        """Base URL of the Google APIs host."""
        return self._get("PYMIRROR_API_URL", "api_url", None) or DEFAULT_API_URL

    @property
    def backup_folder(self) -> str:
        """Name of the top-level remote folder holding all backups."""
        value = self._get("PYMIRROR_BACKUP_FOLDER", "backup_folder", None)
        return value or DEFAULT_BACKUP_FOLDER

    def is_configured(self) -> bool:
        """Return True if an access token is available."""
        return bool(self.access_token)

    def save_access_token(self, access_token: str) -> None:
        """Persist the access token to the config file (mode 0600).

        Args:
            access_token: Token to store
        """
        data = dict(self._load())
        data["access_token"] = access_token
        self.config_dir.mkdir(parents=True, exist_ok=True)
        with open(self.config_file, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        os.chmod(self.config_file, 0o600)
        self._data = data
        logger.debug(f"Saved access token to {self.config_file}")


config = Config()
