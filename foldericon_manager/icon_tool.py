# foldericon_manager/icon_tool.py
"""
Wrapper around the external `fileicon` command-line tool.

Includes:
- binary resolution (bundled, custom path from settings, PATH)
- blocking set/remove calls used by the controller and the synchronous restore
- the best-effort folder "touch" that makes Finder pick up a new icon
"""

from __future__ import annotations

import os
import subprocess
import sys
from pathlib import Path
from shutil import which as _which
from typing import List, Optional

from .errors import IconToolError
from .logger import get_logger
from .records import Advisory
from .settings_store import KEYS

logger = get_logger(__name__)

TOOL_NAME = "fileicon"
INSTALL_HINT = "Install it with `npm install -g fileicon` or `brew install fileicon`."

VERB_SET = "set"
VERB_REMOVE = "rm"


def which(cmd: str) -> str | None:
    return _which(cmd)


def resolve_fileicon_binary(settings=None) -> str:
    """
    Resolve the fileicon executable path according to priority:
    1) Bundled next to app
    2) Custom path from settings
    3) System PATH
    Raises IconToolError if not found.
    """
    base_dir = Path(sys.executable).parent if getattr(sys, "frozen", False) else Path(__file__).parent
    p = base_dir / TOOL_NAME
    if p.exists() and p.is_file():
        return str(p)

    if settings is not None:
        custom = (settings.value(KEYS["bin"], "") or "").strip()
        if custom:
            cp = Path(custom)
            if cp.exists() and cp.is_file():
                return str(cp)

    exe = which(TOOL_NAME)
    if exe:
        return exe

    raise IconToolError(f"{TOOL_NAME} executable not found. {INSTALL_HINT}")


def build_args(verb: str, folder: str, icon: Optional[str] = None) -> List[str]:
    args = [verb, folder]
    if icon is not None:
        args.append(icon)
    return args


def describe_failure(verb: str, folder: str, code: int, output: str) -> str:
    detail = (output or "").strip().splitlines()
    tail = detail[-1] if detail else "no output"
    return f"{TOOL_NAME} {verb} failed for {folder} (exit {code}): {tail}"


class FileIconTool:
    """Blocking set/remove calls against the fileicon CLI."""

    def __init__(self, binary: Optional[str] = None, settings=None):
        self._binary = binary
        self._settings = settings

    @property
    def configured_binary(self) -> Optional[str]:
        return self._binary

    @property
    def binary(self) -> str:
        if not self._binary:
            self._binary = resolve_fileicon_binary(self._settings)
        return self._binary

    def set_icon(self, folder: str, icon: str) -> None:
        self._run(build_args(VERB_SET, folder, icon), VERB_SET, folder)

    def remove_icon(self, folder: str) -> None:
        self._run(build_args(VERB_REMOVE, folder), VERB_REMOVE, folder)

    def _run(self, args: List[str], verb: str, folder: str) -> None:
        cmd = [self.binary] + args
        logger.debug("Running %s", cmd)
        try:
            proc = subprocess.run(cmd, capture_output=True, text=True)
        except FileNotFoundError as exc:
            raise IconToolError(f"{TOOL_NAME} executable not found. {INSTALL_HINT}") from exc
        except PermissionError as exc:
            raise IconToolError(f"Permission denied running {self.binary}") from exc
        if proc.returncode != 0:
            message = describe_failure(verb, folder, proc.returncode, proc.stderr or proc.stdout)
            logger.error(message)
            raise IconToolError(message)
        logger.info("%s %s %s", TOOL_NAME, verb, folder)


def refresh_folder_cache(folder: str) -> Advisory:
    """Touch the folder so the file manager re-reads its icon."""
    try:
        os.utime(folder, None)
    except OSError as exc:
        logger.warning("Cache refresh failed for %s: %s", folder, exc)
        return Advisory("refresh-cache", False, str(exc))
    return Advisory("refresh-cache", True)
