# foldericon_manager/logger.py
"""
Logging setup for Folder Icon Manager.

Rotating file log under the user data directory plus a console handler.
Set DEBUG=1 in the environment for verbose output.
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from .settings_store import APP_SLUG, BACKUP_COUNT, LOG_FILENAME, LOG_LEVEL, MAX_LOG_SIZE, user_data_dir

ROOT_LOGGER = logging.getLogger(APP_SLUG)
_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def get_logger(name: str) -> logging.Logger:
    """Child logger under the application logger, keyed by module name."""
    short = name.split(".", 1)[1] if name.startswith("foldericon_manager.") else name
    return ROOT_LOGGER.getChild(short)


def setup_logging(log_dir: Optional[Path] = None, console: bool = True) -> Optional[Path]:
    """
    Configure rotating file logs (and console output) once per process.
    Returns the log file path, or None if the log directory is not writable.
    """
    ROOT_LOGGER.setLevel(LOG_LEVEL)
    if ROOT_LOGGER.handlers:
        for handler in ROOT_LOGGER.handlers:
            if isinstance(handler, RotatingFileHandler):
                return Path(handler.baseFilename)
        return None

    fmt = logging.Formatter(_FORMAT)
    if console:
        stream = logging.StreamHandler()
        stream.setFormatter(fmt)
        ROOT_LOGGER.addHandler(stream)

    log_dir = log_dir or (user_data_dir() / "logs")
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        ROOT_LOGGER.warning("File logging disabled, cannot create %s: %s", log_dir, exc)
        return None
    log_file = log_dir / LOG_FILENAME
    handler = RotatingFileHandler(str(log_file), maxBytes=MAX_LOG_SIZE, backupCount=BACKUP_COUNT, encoding="utf-8")
    handler.setFormatter(fmt)
    ROOT_LOGGER.addHandler(handler)
    return log_file
