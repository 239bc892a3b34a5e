"""File path resolution using platformdirs.

Persistent data (the default SQLite database and the generated credential
key) lives in the platform user-data directory unless STORELINK_DATA_DIR
overrides it:
  macOS: ~/Library/Application Support/storelink/
  Linux: ~/.local/share/storelink/
  Windows: %LOCALAPPDATA%/storelink/
"""

import os
from pathlib import Path

import platformdirs

APP_NAME = "storelink"


def get_data_dir() -> Path:
    """Return the directory for persistent data (DB, key file)."""
    override = os.environ.get("STORELINK_DATA_DIR", "").strip()
    if override:
        return Path(override)
    return Path(platformdirs.user_data_dir(APP_NAME, appauthor=False))


def get_default_db_path() -> Path:
    """Return the default SQLite database file path."""
    return get_data_dir() / "storelink.db"


def ensure_data_dir() -> Path:
    """Create the data directory if it does not exist and return it."""
    data = get_data_dir()
    data.mkdir(parents=True, exist_ok=True)
    return data
