# foldericon_manager/settings_store.py
"""
Settings store and constants for Folder Icon Manager.

Centralizes QSettings keys, app metadata, user-data locations and log settings.
"""

from __future__ import annotations

import os
from pathlib import Path

from PySide6.QtCore import QSettings, QStandardPaths

# Application metadata
APP_NAME = "Folder Icon Manager"
APP_ORG = "FolderIconTools"
APP_SLUG = "foldericon-manager"
APP_VER = "v0.3"

# Workspace layout
DB_FILENAME = "icon-manager-db.json"
APPLIED_ICONS_DIRNAME = "applied-icons"
CONFIG_FILENAME = "config.json"
DEFAULT_WORKSPACE = Path.home() / "Documents" / "themes" / "Mac-Folder-Icon"

# Logging
DEBUG_MODE = os.getenv("DEBUG", "0").lower() in ("1", "true", "yes", "on")
LOG_LEVEL = "DEBUG" if DEBUG_MODE else "INFO"
LOG_FILENAME = f"{APP_SLUG}.log"
MAX_LOG_SIZE = 1_000_000
BACKUP_COUNT = 5

# Common keys (to avoid typos)
KEYS = {
    "bin": "bin",
}


def get_settings() -> QSettings:
    """
    Factory for QSettings, consistently using org/name.
    """
    return QSettings(APP_ORG, APP_NAME)


def user_data_dir() -> Path:
    """
    Per-user application data directory (config.json and logs live here).
    Falls back to ~/.foldericon-manager when Qt reports no writable location.
    """
    override = os.getenv("FOLDERICON_DATA_DIR", "").strip()
    if override:
        return Path(override).expanduser()
    location = QStandardPaths.writableLocation(QStandardPaths.AppDataLocation)
    if location:
        return Path(location)
    return Path.home() / f".{APP_SLUG}"
