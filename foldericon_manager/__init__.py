# foldericon_manager/__init__.py
"""
Folder Icon Manager: package init
"""

from __future__ import annotations

__all__ = [
    "__version__",
    "main",
]

__version__ = "0.3"

# Re-export the CLI entry for convenience: `python -m foldericon_manager`
from .main import main  # noqa: E402
