# foldericon_manager/config_manager.py
"""
User-level configuration (not tied to any workspace).

Stored as <user data dir>/config.json:
    {"workspacePath": "/Users/alice/Documents/themes/Mac-Folder-Icon"}
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, Union

from .errors import ConfigError
from .logger import get_logger
from .settings_store import CONFIG_FILENAME, DEFAULT_WORKSPACE, user_data_dir

logger = get_logger(__name__)


def default_config() -> Dict[str, str]:
    return {"workspacePath": str(DEFAULT_WORKSPACE)}


class ConfigManager:
    def __init__(self, config_dir: Union[str, Path, None] = None):
        self.config_dir = Path(config_dir) if config_dir else user_data_dir()
        self.config_path = self.config_dir / CONFIG_FILENAME
        self._config: Dict[str, str] = default_config()

    def load_config(self) -> Dict[str, str]:
        """
        Merge the saved config over the defaults.
        A missing or malformed file falls back to defaults, which are then saved.
        """
        try:
            loaded = json.loads(self.config_path.read_text(encoding="utf-8"))
            if not isinstance(loaded, dict):
                raise ValueError("config root is not an object")
        except (OSError, ValueError) as exc:
            logger.info("Using default config (%s)", exc)
            self._config = default_config()
            self.save_config()
            return self.get_config()

        merged = default_config()
        merged.update({k: v for k, v in loaded.items() if v is not None})
        self._config = merged
        logger.info("Config loaded from %s", self.config_path)
        return self.get_config()

    def save_config(self) -> None:
        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
            self.config_path.write_text(json.dumps(self._config, indent=2), encoding="utf-8")
        except OSError as exc:
            logger.error("Failed to save config %s: %s", self.config_path, exc)
            raise ConfigError(f"Cannot save config {self.config_path}: {exc}") from exc
        logger.debug("Config saved: %s", self._config)

    def update_workspace_path(self, path: Union[str, Path]) -> None:
        self._config["workspacePath"] = str(path)
        self.save_config()

    def get_workspace_path(self) -> str:
        return str(self._config.get("workspacePath") or DEFAULT_WORKSPACE)

    def get_config(self) -> Dict[str, str]:
        return dict(self._config)
