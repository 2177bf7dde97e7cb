# foldericon_manager/store.py
"""
IconStore keeps track of which icon was applied to which folder.

The store is a JSON document inside the workspace directory:

    <workspace>/icon-manager-db.json
    {"iconApplications": {"<normalized folder>": {...}, ...}, "lastId": <int>}

Every mutation is written through to disk before it becomes visible in memory.
"""

from __future__ import annotations

import json
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Union

from .errors import StorageError
from .logger import get_logger
from .paths import PathNormalizer, current_normalizer
from .records import (
    Advisory,
    IconApplication,
    IconAsset,
    RelativeAsset,
    RemovalResult,
    iso_sort_key,
    parse_icon_path,
    resolve_icon_path,
    to_iso,
)
from .settings_store import APPLIED_ICONS_DIRNAME, DB_FILENAME

logger = get_logger(__name__)


def empty_payload() -> dict:
    return {"iconApplications": {}, "lastId": 0}


class IconStore:
    """In-memory record registry bound to one workspace directory."""

    def __init__(self, workspace_root: Union[str, os.PathLike], normalizer: Optional[PathNormalizer] = None):
        self.workspace_root = Path(workspace_root)
        self.applied_icons_dir = self.workspace_root / APPLIED_ICONS_DIRNAME
        self.db_path = self.workspace_root / DB_FILENAME
        self.normalizer = normalizer or current_normalizer()
        self._records: Dict[str, IconApplication] = {}
        self._last_id: int = 0
        self._ready = False

    # ------------- Lifecycle -------------
    def initialize(self) -> None:
        for directory in (self.workspace_root, self.applied_icons_dir):
            try:
                if not directory.is_dir():
                    directory.mkdir(parents=True, exist_ok=True)
                    logger.info("Created directory %s", directory)
            except OSError as exc:
                logger.error("Cannot create workspace directory %s: %s", directory, exc)
                raise StorageError(f"Cannot create directory {directory}: {exc}") from exc
        self._load_state()
        self._ready = True
        logger.info("Record store ready at %s (%d records)", self.db_path, len(self._records))

    def close(self) -> None:
        self._records = {}
        self._ready = False
        logger.debug("Record store closed: %s", self.db_path)

    @property
    def is_ready(self) -> bool:
        return self._ready

    # ------------- Introspection -------------
    @property
    def last_id(self) -> int:
        return self._last_id

    def __len__(self) -> int:
        return len(self._records)

    def get_by_folder(self, folder_path: str) -> Optional[IconApplication]:
        self._require_ready()
        key = self._find_key(folder_path)
        if key is None:
            return None
        return self._records[key].denormalized(self.normalizer)

    def get_all(self) -> List[IconApplication]:
        self._require_ready()
        records = [rec.denormalized(self.normalizer) for rec in self._records.values()]
        # sorted() is stable: equal timestamps keep insertion order
        return sorted(records, key=lambda r: iso_sort_key(r.applied_at), reverse=True)

    # ------------- Mutation -------------
    def record_application(
        self,
        folder_path: str,
        source_icon_name: str,
        is_built_in: bool,
        icon_path: str,
        original_icon_path: Optional[str] = None,
        applied_at: Union[str, datetime, None] = None,
    ) -> IconApplication:
        self._require_ready()
        norm = self.normalizer.normalize
        key = norm(folder_path)
        record = IconApplication(
            id=self._last_id + 1,
            folder_path=key,
            source_icon_name=source_icon_name,
            is_built_in=bool(is_built_in),
            icon=parse_icon_path(norm(icon_path)),
            applied_at=to_iso(applied_at),
            original_icon_path=norm(original_icon_path) if original_icon_path else None,
        )
        logger.debug("Normalized folder path: %s -> %s", folder_path, key)

        records = dict(self._records)
        previous_key = self._find_key(folder_path)
        if previous_key is not None:
            record.superseded_icon_paths = self._superseded_by(records.pop(previous_key), record)
        records[key] = record
        self._persist_state(records, record.id)
        self._records = records
        self._last_id = record.id
        logger.info("Recorded icon application #%d for %s", record.id, key)
        return record.denormalized(self.normalizer)

    def remove_application(self, folder_path: str) -> RemovalResult:
        self._require_ready()
        key = self._find_key(folder_path)
        if key is None:
            logger.info("No icon application recorded for %s", folder_path)
            return RemovalResult(folder_path=folder_path, removed=False)
        if key == folder_path and self.normalizer.normalize(folder_path) != folder_path:
            logger.info("Removing record stored under non-normalized key %s", folder_path)

        records = dict(self._records)
        record = records.pop(key)
        self._persist_state(records, self._last_id)
        self._records = records
        logger.info("Removed icon application record for %s", key)

        advisories = [self._delete_asset(record.icon)]
        for path in record.superseded_icon_paths:
            advisories.append(self._delete_asset(parse_icon_path(path)))
        return RemovalResult(
            folder_path=folder_path,
            removed=True,
            record=record.denormalized(self.normalizer),
            advisories=advisories,
        )

    # ------------- Persistence -------------
    def _payload(self, records: Dict[str, IconApplication], last_id: int) -> dict:
        return {
            "iconApplications": {key: rec.to_dict() for key, rec in records.items()},
            "lastId": last_id,
        }

    def _persist_state(self, records: Dict[str, IconApplication], last_id: int) -> None:
        self._write_payload(self._payload(records, last_id))

    def _write_payload(self, payload: dict) -> None:
        data = json.dumps(payload, ensure_ascii=False, indent=2)
        tmp_path = None
        try:
            fd, tmp_path = tempfile.mkstemp(prefix=".icon-manager-db.", suffix=".tmp", dir=str(self.workspace_root))
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(data)
            os.replace(tmp_path, self.db_path)
        except OSError as exc:
            logger.error("Failed to write record store %s: %s", self.db_path, exc)
            if tmp_path and os.path.exists(tmp_path):
                try:
                    os.unlink(tmp_path)
                except OSError:
                    logger.warning("Could not remove temp file %s", tmp_path)
            raise StorageError(f"Cannot write {self.db_path}: {exc}") from exc

    def _load_state(self) -> None:
        payload = self._read_payload()
        if payload is None:
            self._records = {}
            self._last_id = 0
            self._write_payload(empty_payload())
            return

        records: Dict[str, IconApplication] = {}
        max_id = 0
        for key, record_data in payload["iconApplications"].items():
            try:
                record = IconApplication.from_dict(record_data)
            except (TypeError, ValueError) as exc:
                logger.warning("Skipping malformed record %r: %s", key, exc)
                continue
            records[key] = record
            max_id = max(max_id, record.id)
        try:
            last_id = int(payload.get("lastId", 0))
        except (TypeError, ValueError):
            last_id = 0
        self._records = records
        self._last_id = max(last_id, max_id)

    def _read_payload(self) -> Optional[dict]:
        if not self.db_path.exists():
            logger.info("No record store at %s, creating an empty one", self.db_path)
            return None
        try:
            payload = json.loads(self.db_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Record store %s is unreadable, resetting: %s", self.db_path, exc)
            return None
        if not isinstance(payload, dict) or not isinstance(payload.get("iconApplications", {}), dict):
            logger.warning("Record store %s has an unexpected shape, resetting", self.db_path)
            return None
        payload.setdefault("iconApplications", {})
        return payload

    # ------------- Helpers -------------
    def _find_key(self, folder_path: str) -> Optional[str]:
        key = self.normalizer.normalize(folder_path)
        if key in self._records:
            return key
        if folder_path in self._records:
            return folder_path
        return None

    @staticmethod
    def _superseded_by(old: IconApplication, new: IconApplication) -> List[str]:
        """Managed copies still owned by the folder once `new` replaces `old`."""
        paths = list(old.superseded_icon_paths)
        if isinstance(old.icon, RelativeAsset):
            paths.append(old.icon.path)
        return [p for p in dict.fromkeys(paths) if p != new.icon.path]

    def _delete_asset(self, asset: IconAsset) -> Advisory:
        target = Path(resolve_icon_path(asset, self.workspace_root, self.normalizer))
        try:
            inside = target.resolve().is_relative_to(self.workspace_root.resolve())
        except (OSError, ValueError):
            inside = False
        if not inside:
            logger.warning("Icon %s is outside the workspace, leaving it in place", target)
            return Advisory("delete-asset", False, f"not a managed asset: {target}")
        if not target.exists():
            logger.warning("Icon file already gone: %s", target)
            return Advisory("delete-asset", False, f"icon file not found: {target}")
        try:
            target.unlink()
        except OSError as exc:
            logger.warning("Could not delete icon file %s: %s", target, exc)
            return Advisory("delete-asset", False, str(exc))
        logger.info("Deleted icon file %s", target)
        return Advisory("delete-asset", True, str(target))

    def _require_ready(self) -> None:
        if not self._ready:
            raise StorageError(f"Record store for {self.workspace_root} is not initialized")
