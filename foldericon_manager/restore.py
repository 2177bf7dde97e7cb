# foldericon_manager/restore.py
"""
Restore-all: re-apply every recorded icon for the live workspace.

Each record runs Pending -> Resolving -> Verifying -> Applying -> Succeeded/Failed
on its own; a failing record never stops the batch. Records are processed one at
a time in get_all() order.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Protocol, Union

from .errors import IconToolError
from .icon_tool import refresh_folder_cache
from .logger import get_logger
from .paths import PathNormalizer
from .records import Advisory, IconApplication, resolve_icon_path
from .store import IconStore

logger = get_logger(__name__)


class IconSetter(Protocol):
    def set_icon(self, folder: str, icon: str) -> None: ...


class RestoreState(str, Enum):
    """Lifecycle state of one record during restore-all."""

    PENDING = "pending"
    RESOLVING = "resolving"
    VERIFYING = "verifying"
    APPLYING = "applying"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    def is_terminal(self) -> bool:
        return self in {RestoreState.SUCCEEDED, RestoreState.FAILED}


@dataclass
class RestoreItem:
    record: IconApplication
    state: RestoreState = RestoreState.PENDING
    resolved_icon_path: str = ""
    error: str = ""
    advisories: List[Advisory] = field(default_factory=list)

    @property
    def folder_path(self) -> str:
        return self.record.folder_path

    def fail(self, reason: str) -> None:
        self.state = RestoreState.FAILED
        self.error = reason

    def reason_line(self) -> str:
        return f"{self.folder_path}: {self.error}"


@dataclass
class RestoreResult:
    items: List[RestoreItem] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.items)

    @property
    def success(self) -> int:
        return sum(1 for it in self.items if it.state == RestoreState.SUCCEEDED)

    @property
    def failed(self) -> int:
        return sum(1 for it in self.items if it.state == RestoreState.FAILED)

    @property
    def errors(self) -> List[str]:
        return [it.reason_line() for it in self.items if it.state == RestoreState.FAILED]

    def to_dict(self) -> Dict:
        return {
            "total": self.total,
            "success": self.success,
            "failed": self.failed,
            "errors": self.errors,
        }


def resolve_item(item: RestoreItem, workspace_root: Union[str, os.PathLike], normalizer: PathNormalizer) -> None:
    item.state = RestoreState.RESOLVING
    item.resolved_icon_path = resolve_icon_path(item.record.icon, workspace_root, normalizer)


def verify_item(item: RestoreItem) -> bool:
    item.state = RestoreState.VERIFYING
    if not os.path.isfile(item.resolved_icon_path):
        item.fail(f"icon file not found: {item.resolved_icon_path}")
        return False
    if not os.path.exists(item.folder_path):
        item.fail(f"folder not found: {item.folder_path}")
        return False
    if not os.path.isdir(item.folder_path):
        item.fail(f"not a folder: {item.folder_path}")
        return False
    return True


def restore_all(
    store: IconStore,
    tool: IconSetter,
    refresh: Callable[[str], Advisory] = refresh_folder_cache,
    on_item: Optional[Callable[[RestoreItem], None]] = None,
) -> RestoreResult:
    """
    Re-apply all recorded icons using `tool.set_icon(folder, icon)`.
    `refresh` is the best-effort cache refresh run after each success.
    """
    result = RestoreResult(items=[RestoreItem(record=rec) for rec in store.get_all()])
    for item in result.items:
        if begin_item(item, store):
            apply_item(item, tool, refresh)
        if on_item is not None:
            on_item(item)

    logger.info(
        "Restore finished: %d total, %d succeeded, %d failed",
        result.total,
        result.success,
        result.failed,
    )
    return result


def begin_item(item: RestoreItem, store: IconStore) -> bool:
    """Resolve and verify one record; False when it has already failed."""
    resolve_item(item, store.workspace_root, store.normalizer)
    if not verify_item(item):
        logger.warning("Restore skipped %s", item.reason_line())
        return False
    return True


def apply_item(item: RestoreItem, tool: IconSetter, refresh: Callable[[str], Advisory]) -> None:
    item.state = RestoreState.APPLYING
    try:
        tool.set_icon(item.folder_path, item.resolved_icon_path)
    except IconToolError as exc:
        item.fail(str(exc))
        logger.warning("Restore failed %s", item.reason_line())
        return
    except OSError as exc:
        item.fail(f"cannot run icon tool: {exc}")
        logger.warning("Restore failed %s", item.reason_line())
        return
    complete_item(item, refresh)


def complete_item(item: RestoreItem, refresh: Callable[[str], Advisory]) -> None:
    item.advisories.append(refresh(item.folder_path))
    item.state = RestoreState.SUCCEEDED
    logger.info("Restored icon for %s", item.folder_path)
