# foldericon_manager/errors.py
"""Exception types raised by Folder Icon Manager."""

from __future__ import annotations


class FolderIconError(Exception):
    """Base class for all application errors."""


class StorageError(FolderIconError):
    """The record store could not be read, created or written."""


class WorkspaceError(FolderIconError):
    """No usable workspace is bound, or the requested one cannot be opened."""


class ConfigError(FolderIconError):
    """The user-data config file could not be written."""


class AssetNotFoundError(FolderIconError):
    """The source icon (and its fallback) could not be read."""


class IconToolError(FolderIconError):
    """The external icon-set tool is missing or exited with an error."""


class IconApplyError(FolderIconError):
    """An apply/reset request was rejected before or during execution."""
