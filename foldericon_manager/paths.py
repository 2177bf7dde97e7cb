# foldericon_manager/paths.py
"""
Portable path handling.

Paths under the user's home directory are stored with the username segment
replaced by a placeholder so a workspace (and its record store) can be moved
to another account or machine:

    /home/alice/Projects  ->  /home/{USER}/Projects  ->  /home/bob/Projects

Paths outside a home directory (external volumes, /tmp, ...) are passed
through unchanged in both directions.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Optional

USER_PLACEHOLDER = "{USER}"

_WINDOWS_ABS_RE = re.compile(r"^[A-Za-z]:[\\/]")


def is_absolute_path(path: str) -> bool:
    """POSIX absolute or Windows drive-letter path, independent of the host OS."""
    if not path:
        return False
    return path.startswith("/") or bool(_WINDOWS_ABS_RE.match(path))


class PathNormalizer:
    """Normalizes paths against one user's home directory."""

    def __init__(self, home: Optional[str] = None, sep: str = os.sep):
        home = str(home if home is not None else Path.home()).rstrip("/\\") or sep
        self.sep = sep
        self.home = home
        idx = home.rfind(sep)
        self.username = home[idx + 1:] if idx >= 0 else home
        self.home_parent = home[:idx] if idx >= 0 else ""

    def _segment(self, username: str) -> str:
        return f"{self.home_parent}{self.sep}{username}{self.sep}"

    def normalize(self, path: str) -> str:
        if not path or not self.username:
            return path
        segment = self._segment(self.username)
        if segment in path:
            return path.replace(segment, self._segment(USER_PLACEHOLDER), 1)
        return path

    def denormalize(self, path: str) -> str:
        if not path or USER_PLACEHOLDER not in path:
            return path
        return path.replace(USER_PLACEHOLDER, self.username, 1)

    def __repr__(self) -> str:
        return f"PathNormalizer(home={self.home!r})"


_current: Optional[PathNormalizer] = None


def current_normalizer() -> PathNormalizer:
    """Normalizer for the OS user running this process."""
    global _current
    if _current is None:
        _current = PathNormalizer()
    return _current


def normalize_path(path: str) -> str:
    return current_normalizer().normalize(path)


def denormalize_path(path: str) -> str:
    return current_normalizer().denormalize(path)
