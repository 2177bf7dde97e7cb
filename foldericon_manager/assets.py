# foldericon_manager/assets.py
"""
Managed icon assets.

Every applied icon is copied byte-for-byte into <workspace>/applied-icons/
so the record store never depends on the original file staying around.
Only workspace-relative paths are handed back to callers.
"""

from __future__ import annotations

import base64
import binascii
import os
import re
import sys
import time
from pathlib import Path
from typing import Iterable, Optional, Sequence, Union
from urllib.parse import unquote_to_bytes

from .errors import AssetNotFoundError
from .logger import get_logger
from .paths import USER_PLACEHOLDER, PathNormalizer, current_normalizer
from .settings_store import APPLIED_ICONS_DIRNAME

logger = get_logger(__name__)

_NAME_STRIP_RE = re.compile(r"[^A-Za-z0-9\-_]")
_DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w.+\-/]*)?(?P<params>(;[^,;]*)*),(?P<data>.*)$", re.DOTALL)

if sys.platform == "darwin":
    GENERIC_ICON_CANDIDATES: Sequence[str] = (
        "/System/Library/CoreServices/CoreTypes.bundle/Contents/Resources/GenericDocumentIcon.icns",
    )
elif sys.platform.startswith("linux"):
    GENERIC_ICON_CANDIDATES = (
        "/usr/share/icons/hicolor/256x256/mimetypes/text-x-generic.png",
        "/usr/share/icons/Adwaita/256x256/mimetypes/text-x-generic.png",
        "/usr/share/icons/Adwaita/scalable/mimetypes/text-x-generic.svg",
    )
else:
    GENERIC_ICON_CANDIDATES = ()


def current_millis() -> int:
    return int(time.time() * 1000)


def sanitize_icon_name(name: str) -> str:
    """Keep only [A-Za-z0-9-_]; never returns an empty string."""
    return _NAME_STRIP_RE.sub("", name or "") or "icon"


def source_extension(source_path: str) -> str:
    ext = Path(source_path).suffix.lstrip(".")
    return ext or "png"


def managed_filename(icon_name: str, source_path: str, millis: int) -> str:
    return f"{sanitize_icon_name(icon_name)}-{millis}.{source_extension(source_path)}"


class IconAssetManager:
    """Copies icon files into the workspace's applied-icons directory."""

    def __init__(
        self,
        workspace_root: Union[str, os.PathLike],
        normalizer: Optional[PathNormalizer] = None,
        fallback_icons: Optional[Iterable[str]] = None,
    ):
        self.workspace_root = Path(workspace_root)
        self.applied_icons_dir = self.workspace_root / APPLIED_ICONS_DIRNAME
        self.normalizer = normalizer or current_normalizer()
        self.fallback_icons = tuple(GENERIC_ICON_CANDIDATES if fallback_icons is None else fallback_icons)

    def copy_to_managed(self, source_path: str, icon_name: str) -> str:
        """
        Copy `source_path` into applied-icons and return the workspace-relative
        path (e.g. "applied-icons/sunset-1712345678901.png").
        Raises AssetNotFoundError when neither the source nor a fallback is readable.
        """
        actual_source = self.normalizer.denormalize(source_path) if USER_PLACEHOLDER in source_path else source_path
        data = self._read_source(actual_source)

        try:
            self.applied_icons_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise AssetNotFoundError(f"Cannot create {self.applied_icons_dir}: {exc}") from exc

        millis = current_millis()
        target = self.applied_icons_dir / managed_filename(icon_name, actual_source, millis)
        while target.exists():
            millis += 1
            target = self.applied_icons_dir / managed_filename(icon_name, actual_source, millis)

        try:
            target.write_bytes(data)
        except OSError as exc:
            logger.error("Failed to write managed icon %s: %s", target, exc)
            raise AssetNotFoundError(f"Cannot write icon copy {target}: {exc}") from exc

        logger.info("Copied icon %s -> %s", actual_source, target)
        return f"{APPLIED_ICONS_DIRNAME}/{target.name}"

    def _read_source(self, source_path: str) -> bytes:
        try:
            return Path(source_path).read_bytes()
        except OSError as read_error:
            logger.error("Cannot read source icon %s: %s", source_path, read_error)
            fallback = self._first_fallback()
            if fallback is None:
                raise AssetNotFoundError(f"Icon file not readable: {source_path}") from read_error
            try:
                data = fallback.read_bytes()
            except OSError:
                raise AssetNotFoundError(f"Icon file not readable: {source_path}") from read_error
            logger.warning("Using generic document icon %s instead of %s", fallback, source_path)
            return data

    def _first_fallback(self) -> Optional[Path]:
        for candidate in self.fallback_icons:
            path = Path(candidate)
            if path.is_file():
                return path
        return None

    def absolute_path(self, relative_path: str) -> Path:
        return self.workspace_root.joinpath(*relative_path.split("/"))


def materialize_data_url(data_url: str, temp_dir: Union[str, os.PathLike]) -> Path:
    """
    Decode a `data:image/...;base64,...` icon source into a temp PNG file.
    """
    m = _DATA_URL_RE.match(data_url or "")
    if not m or not m.group("data"):
        raise AssetNotFoundError("Invalid icon data format")
    params = m.group("params") or ""
    try:
        if ";base64" in params:
            payload = base64.b64decode(m.group("data"), validate=True)
        else:
            payload = unquote_to_bytes(m.group("data"))
    except (binascii.Error, ValueError) as exc:
        raise AssetNotFoundError(f"Invalid icon data: {exc}") from exc

    temp_dir = Path(temp_dir)
    target = temp_dir / f"icon_{current_millis()}.png"
    try:
        temp_dir.mkdir(parents=True, exist_ok=True)
        target.write_bytes(payload)
    except OSError as exc:
        raise AssetNotFoundError(f"Cannot create temporary icon file {target}: {exc}") from exc
    logger.debug("Wrote data URL icon to %s (%d bytes)", target, len(payload))
    return target
