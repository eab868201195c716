"""Storage module for beatcut.

This module provides filesystem storage for exported timelines, EDL
snapshots and cached analysis results.
"""

from typing import Optional

from ..config import settings
from .interface import StorageInterface, StorageError
from .filesystem import FilesystemStorage
from .snapshots import save_edl, load_edl, save_analysis, load_analysis


def get_storage(base_path: Optional[str] = None) -> StorageInterface:
    """Filesystem storage rooted at ``base_path`` or ``settings.storage_path``."""
    return FilesystemStorage(base_path or settings.storage_path)


__all__ = [
    "StorageInterface",
    "StorageError",
    "FilesystemStorage",
    "get_storage",
    "save_edl",
    "load_edl",
    "save_analysis",
    "load_analysis",
]
