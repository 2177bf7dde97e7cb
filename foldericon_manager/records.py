# foldericon_manager/records.py
"""
Record types for the icon application store.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Dict, List, Optional, Union

from .paths import PathNormalizer, is_absolute_path


@dataclass(frozen=True)
class RelativeAsset:
    """Managed icon copy addressed relative to the workspace root."""

    path: str

    def __str__(self) -> str:
        return self.path


@dataclass(frozen=True)
class LegacyAbsoluteAsset:
    """Older records stored the icon as an absolute (possibly normalized) path."""

    path: str

    def __str__(self) -> str:
        return self.path


IconAsset = Union[RelativeAsset, LegacyAbsoluteAsset]


def parse_icon_path(raw: str) -> IconAsset:
    if is_absolute_path(raw):
        return LegacyAbsoluteAsset(raw)
    return RelativeAsset(raw)


def resolve_icon_path(asset: IconAsset, workspace_root: Union[str, os.PathLike], normalizer: PathNormalizer) -> str:
    """Absolute on-disk location of an icon asset for the live workspace."""
    if isinstance(asset, RelativeAsset):
        return os.path.join(os.fspath(workspace_root), *asset.path.split("/"))
    return normalizer.denormalize(asset.path)


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def to_iso(value: Union[str, datetime, None]) -> str:
    if value is None:
        return now_iso()
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.astimezone()
        return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return str(value)


def iso_sort_key(value: str) -> float:
    """Timestamp for ordering; unparseable values sort as oldest."""
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return float("-inf")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()


@dataclass
class IconApplication:
    """One folder that has (or last had) a custom icon applied."""

    id: int
    folder_path: str
    source_icon_name: str
    is_built_in: bool
    icon: IconAsset
    applied_at: str
    original_icon_path: Optional[str] = None
    # managed copies replaced by a later apply; deleted together with the record
    superseded_icon_paths: List[str] = field(default_factory=list)

    @property
    def icon_path(self) -> str:
        return self.icon.path

    @property
    def is_legacy(self) -> bool:
        return isinstance(self.icon, LegacyAbsoluteAsset)

    def to_dict(self) -> Dict:
        data = {
            "id": self.id,
            "folderPath": self.folder_path,
            "sourceIconName": self.source_icon_name,
            "isBuiltIn": self.is_built_in,
            "iconPath": self.icon.path,
            "appliedAt": self.applied_at,
        }
        if self.original_icon_path:
            data["originalIconPath"] = self.original_icon_path
        if self.superseded_icon_paths:
            data["supersededIconPaths"] = list(self.superseded_icon_paths)
        return data

    @classmethod
    def from_dict(cls, payload: Dict) -> "IconApplication":
        if not isinstance(payload, dict):
            raise ValueError("record must be an object")
        folder = payload.get("folderPath")
        icon = payload.get("iconPath")
        if not isinstance(folder, str) or not folder:
            raise ValueError("record has no folderPath")
        if not isinstance(icon, str) or not icon:
            raise ValueError(f"record for {folder} has no iconPath")
        original = payload.get("originalIconPath")
        superseded = payload.get("supersededIconPaths") or []
        if not isinstance(superseded, list):
            superseded = []
        return cls(
            id=int(payload.get("id", 0)),
            folder_path=folder,
            source_icon_name=str(payload.get("sourceIconName", "")),
            is_built_in=bool(payload.get("isBuiltIn", False)),
            icon=parse_icon_path(icon),
            applied_at=str(payload.get("appliedAt", "")),
            original_icon_path=str(original) if original else None,
            superseded_icon_paths=[p for p in superseded if isinstance(p, str) and p],
        )

    def denormalized(self, normalizer: PathNormalizer) -> "IconApplication":
        """Copy with paths expanded for the given user; relative icons unchanged."""
        icon = self.icon
        if isinstance(icon, LegacyAbsoluteAsset):
            icon = LegacyAbsoluteAsset(normalizer.denormalize(icon.path))
        return replace(
            self,
            folder_path=normalizer.denormalize(self.folder_path),
            icon=icon,
            original_icon_path=normalizer.denormalize(self.original_icon_path) if self.original_icon_path else None,
            superseded_icon_paths=list(self.superseded_icon_paths),
        )


@dataclass
class Advisory:
    """Outcome of a best-effort side effect; never raised."""

    operation: str
    ok: bool
    message: str = ""

    def __str__(self) -> str:
        state = "ok" if self.ok else "failed"
        return f"{self.operation} {state}" + (f": {self.message}" if self.message else "")


@dataclass
class RemovalResult:
    folder_path: str
    removed: bool
    record: Optional[IconApplication] = None
    advisories: list = field(default_factory=list)

    @property
    def warnings(self) -> list:
        return [a for a in self.advisories if not a.ok]
