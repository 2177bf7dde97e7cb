# foldericon_manager/controller.py
"""
Application controller.

Owns the user config, the icon tool and exactly one WorkspaceContext (record
store + asset manager for the active workspace). Switching workspaces drops the
old context before the new one is opened.
"""

from __future__ import annotations

import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Union

from PySide6.QtCore import QObject, Signal

from .assets import IconAssetManager, materialize_data_url
from .config_manager import ConfigManager
from .errors import FolderIconError, IconApplyError, StorageError, WorkspaceError
from .icon_tool import FileIconTool, refresh_folder_cache
from .logger import get_logger
from .paths import PathNormalizer, current_normalizer
from .records import Advisory, IconApplication, RemovalResult
from .restore import RestoreResult, restore_all
from .runner import RestoreRunner
from .settings_store import DEFAULT_WORKSPACE
from .store import IconStore

logger = get_logger(__name__)


class WorkspaceContext:
    """Storage bound to one workspace directory."""

    def __init__(self, workspace_root: Union[str, Path], normalizer: Optional[PathNormalizer] = None):
        self.workspace_root = Path(workspace_root)
        self.normalizer = normalizer or current_normalizer()
        self.store = IconStore(self.workspace_root, self.normalizer)
        self.assets = IconAssetManager(self.workspace_root, self.normalizer)

    def open(self) -> "WorkspaceContext":
        self.store.initialize()
        return self

    def close(self) -> None:
        self.store.close()


@dataclass
class ApplyResult:
    record: IconApplication
    advisories: List[Advisory] = field(default_factory=list)


class IconManagerController(QObject):
    icon_applied = Signal(str)
    icon_apply_error = Signal(str)
    icon_reset = Signal(str)
    workspace_changed = Signal(str)

    def __init__(
        self,
        config: Optional[ConfigManager] = None,
        tool=None,
        settings=None,
        normalizer: Optional[PathNormalizer] = None,
        temp_dir: Union[str, Path, None] = None,
        parent=None,
    ):
        super().__init__(parent)
        self.config = config or ConfigManager()
        self.settings = settings
        self.tool = tool or FileIconTool(settings=settings)
        self.normalizer = normalizer or current_normalizer()
        self._temp_dir = Path(temp_dir) if temp_dir else Path(tempfile.gettempdir())
        self._context: Optional[WorkspaceContext] = None

    # ------------------------------------------------------------------
    # Workspace binding
    # ------------------------------------------------------------------
    @property
    def context(self) -> WorkspaceContext:
        if self._context is None:
            raise WorkspaceError("No workspace is active")
        return self._context

    def has_workspace(self) -> bool:
        return self._context is not None

    def get_workspace_path(self) -> str:
        return str(self.context.workspace_root)

    def activate(self) -> WorkspaceContext:
        """Open the configured workspace, falling back to the default one."""
        self.config.load_config()
        configured = self.config.get_workspace_path()
        try:
            self._bind(configured)
        except StorageError as exc:
            if Path(configured) == DEFAULT_WORKSPACE:
                raise WorkspaceError(f"Cannot open workspace {configured}: {exc}") from exc
            logger.warning("Workspace %s unusable (%s), falling back to %s", configured, exc, DEFAULT_WORKSPACE)
            try:
                self._bind(DEFAULT_WORKSPACE)
            except StorageError as fallback_exc:
                raise WorkspaceError(f"Cannot open default workspace: {fallback_exc}") from fallback_exc
            self.config.update_workspace_path(DEFAULT_WORKSPACE)
        self.workspace_changed.emit(self.get_workspace_path())
        return self.context

    def switch_workspace(self, path: Union[str, Path]) -> WorkspaceContext:
        try:
            self._bind(path)
        except StorageError as exc:
            raise WorkspaceError(f"Cannot open workspace {path}: {exc}") from exc
        self.config.update_workspace_path(self.context.workspace_root)
        self.workspace_changed.emit(self.get_workspace_path())
        return self.context

    def _bind(self, path: Union[str, Path]) -> None:
        old, self._context = self._context, None
        if old is not None:
            old.close()
        self._context = WorkspaceContext(Path(path).expanduser(), self.normalizer).open()
        logger.info("Workspace active: %s", self._context.workspace_root)

    # ------------------------------------------------------------------
    # Single-folder operations
    # ------------------------------------------------------------------
    @staticmethod
    def check_path(path: str) -> Dict[str, object]:
        p = Path(path)
        try:
            exists = p.exists()
            is_dir = p.is_dir()
        except OSError:
            exists = is_dir = False
        return {"exists": exists, "isDirectory": is_dir, "path": path}

    def apply_icon(
        self,
        folder_path: str,
        icon_source: str,
        icon_name: Optional[str] = None,
        is_built_in: bool = False,
    ) -> ApplyResult:
        try:
            result = self._apply_icon(folder_path, icon_source, icon_name, is_built_in)
        except FolderIconError as exc:
            logger.error("Applying icon to %s failed: %s", folder_path, exc)
            self.icon_apply_error.emit(str(exc))
            raise
        self.icon_applied.emit(folder_path)
        return result

    def _apply_icon(self, folder_path: str, icon_source: str, icon_name: Optional[str], is_built_in: bool) -> ApplyResult:
        if not folder_path or not icon_source:
            raise IconApplyError("Invalid folder or icon path")
        folder = Path(folder_path)
        if not folder.exists():
            raise IconApplyError(f"Folder not found: {folder_path}")
        if not folder.is_dir():
            raise IconApplyError(f"Not a folder: {folder_path}")

        ctx = self.context
        temp_icon: Optional[Path] = None
        source = icon_source
        if icon_source.startswith("data:"):
            temp_icon = materialize_data_url(icon_source, self._temp_dir)
            source = str(temp_icon)
        display_name = icon_name or (temp_icon.name if temp_icon else Path(icon_source).name)

        try:
            relative = ctx.assets.copy_to_managed(source, Path(display_name).stem)
            managed = ctx.assets.absolute_path(relative)
            # the managed copy must not outlive a failed apply
            try:
                self.tool.set_icon(folder_path, str(managed))
                advisories = [refresh_folder_cache(folder_path)]
                record = ctx.store.record_application(
                    folder_path=folder_path,
                    source_icon_name=display_name,
                    is_built_in=is_built_in,
                    icon_path=relative,
                    original_icon_path=None if temp_icon else source,
                )
            except FolderIconError:
                self._discard(managed)
                raise
        finally:
            if temp_icon is not None:
                self._discard(temp_icon)
        return ApplyResult(record=record, advisories=advisories)

    @staticmethod
    def _discard(path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Could not remove %s: %s", path, exc)

    def reset_icon(self, folder_path: str) -> RemovalResult:
        """Remove the custom icon from a folder and forget its record."""
        try:
            self.tool.remove_icon(folder_path)
        except FolderIconError as exc:
            logger.error("Resetting icon of %s failed: %s", folder_path, exc)
            self.icon_apply_error.emit(str(exc))
            raise
        refresh = refresh_folder_cache(folder_path)
        removal = self.context.store.remove_application(folder_path)
        removal.advisories.append(refresh)
        self.icon_reset.emit(folder_path)
        return removal

    def applied_icons(self) -> List[IconApplication]:
        return self.context.store.get_all()

    def get_record(self, folder_path: str) -> Optional[IconApplication]:
        return self.context.store.get_by_folder(folder_path)

    # ------------------------------------------------------------------
    # Restore-all
    # ------------------------------------------------------------------
    def restore_all(self) -> RestoreResult:
        return restore_all(self.context.store, self.tool)

    def restore_runner(self, parent=None) -> RestoreRunner:
        binary = getattr(self.tool, "configured_binary", None)
        return RestoreRunner(self.context.store, binary=binary, settings=self.settings, parent=parent or self)
