"""Filesystem storage implementation."""

import logging
from io import BytesIO
from pathlib import Path
from typing import BinaryIO
import aiofiles
import aiofiles.os

from .interface import StorageInterface, StorageError
from .utils import validate_file_path, validate_file_type, sanitize_filename, validate_file_size


logger = logging.getLogger(__name__)


class FilesystemStorage(StorageInterface):
    """Filesystem-based storage implementation.

    Files live under ``base_path`` in ``exports/``, ``snapshots/`` and
    ``analysis/``.
    """

    def __init__(self, base_path: str):
        """Initialize filesystem storage.

        Args:
            base_path: Base directory for all storage operations
        """
        self.base_path = Path(base_path).resolve()
        self._ensure_directories()

    def _ensure_directories(self):
        """Ensure required directory structure exists."""
        for name in ("exports", "snapshots", "analysis"):
            (self.base_path / name).mkdir(parents=True, exist_ok=True)

    def _get_absolute_path(self, storage_path: str) -> Path:
        """Convert storage path to absolute filesystem path.

        Raises:
            StorageError: If path is invalid or escapes the base directory
        """
        if not validate_file_path(storage_path):
            raise StorageError(f"Invalid storage path: {storage_path}")

        abs_path = (self.base_path / storage_path).resolve()
        try:
            abs_path.relative_to(self.base_path)
        except ValueError:
            raise StorageError(f"Path escapes storage directory: {storage_path}")
        return abs_path

    async def upload(self, file_path: str, content: BinaryIO) -> str:
        """Write ``content`` atomically to ``file_path``.

        Raises:
            StorageError: Invalid path, disallowed type, oversize content or I/O failure
        """
        path_parts = Path(file_path).parts
        if path_parts:
            sanitized_parts = list(path_parts[:-1]) + [sanitize_filename(path_parts[-1])]
            file_path = str(Path(*sanitized_parts))

        abs_path = self._get_absolute_path(file_path)

        content.seek(0)
        file_content = content.read()
        if not validate_file_type(file_path):
            raise StorageError(f"File type not allowed: {file_path}")
        if not validate_file_size(len(file_content)):
            raise StorageError(f"File too large: {len(file_content)} bytes")

        temp_path = abs_path.with_suffix(abs_path.suffix + '.tmp')
        try:
            abs_path.parent.mkdir(parents=True, exist_ok=True)

            # Write to temporary file first (atomic operation)
            async with aiofiles.open(temp_path, 'wb') as f:
                await f.write(file_content)
            await aiofiles.os.rename(temp_path, abs_path)
        except OSError as e:
            if temp_path.exists():
                temp_path.unlink()
            raise StorageError(f"Failed to upload file: {e}") from e

        logger.debug(f"Stored {file_path} ({len(file_content)} bytes)")
        return str(Path(file_path))

    async def download(self, storage_path: str) -> BinaryIO:
        abs_path = self._get_absolute_path(storage_path)
        if not abs_path.exists():
            raise FileNotFoundError(f"File not found: {storage_path}")

        try:
            async with aiofiles.open(abs_path, 'rb') as f:
                content = await f.read()
        except OSError as e:
            raise StorageError(f"Failed to download file: {e}") from e
        return BytesIO(content)

    async def delete(self, storage_path: str) -> bool:
        abs_path = self._get_absolute_path(storage_path)
        if not abs_path.exists():
            return False

        try:
            await aiofiles.os.remove(abs_path)
        except OSError as e:
            raise StorageError(f"Failed to delete file: {e}") from e
        return True

    async def exists(self, storage_path: str) -> bool:
        try:
            abs_path = self._get_absolute_path(storage_path)
        except StorageError:
            return False
        return abs_path.exists()

    async def list_files(self, prefix: str) -> list[str]:
        if not validate_file_path(prefix):
            raise StorageError(f"Invalid prefix: {prefix}")

        prefix_path = self.base_path / prefix
        if not prefix_path.exists():
            return []
        if prefix_path.is_file():
            return [str(prefix_path.relative_to(self.base_path))]
        return sorted(
            str(path.relative_to(self.base_path))
            for path in prefix_path.rglob('*')
            if path.is_file() and not path.name.endswith('.tmp')
        )

    async def get_file_size(self, storage_path: str) -> int:
        abs_path = self._get_absolute_path(storage_path)
        if not abs_path.exists():
            raise FileNotFoundError(f"File not found: {storage_path}")

        stat = await aiofiles.os.stat(abs_path)
        return stat.st_size
