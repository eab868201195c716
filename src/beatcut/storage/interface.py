"""Abstract storage interface for beatcut."""

from abc import ABC, abstractmethod
from io import BytesIO
from typing import BinaryIO


class StorageInterface(ABC):
    """Abstract storage interface for exports, EDL snapshots and analysis results.

    All operations are asynchronous.
    """

    @abstractmethod
    async def upload(self, file_path: str, content: BinaryIO) -> str:
        """Upload file and return storage path.

        Args:
            file_path: Relative path for the file in storage
            content: Binary file content to upload

        Returns:
            Storage path that can be used to retrieve the file

        Raises:
            StorageError: If upload fails
        """
        pass

    @abstractmethod
    async def download(self, storage_path: str) -> BinaryIO:
        """Download file from storage.

        Raises:
            FileNotFoundError: If file doesn't exist
            StorageError: If download fails
        """
        pass

    @abstractmethod
    async def delete(self, storage_path: str) -> bool:
        """Delete file from storage.

        Returns:
            True if file was deleted, False if it didn't exist
        """
        pass

    @abstractmethod
    async def exists(self, storage_path: str) -> bool:
        pass

    @abstractmethod
    async def list_files(self, prefix: str) -> list[str]:
        """List files with given prefix, sorted."""
        pass

    @abstractmethod
    async def get_file_size(self, storage_path: str) -> int:
        pass

    async def write_text(self, file_path: str, text: str) -> str:
        """Upload UTF-8 text; returns the storage path."""
        return await self.upload(file_path, BytesIO(text.encode("utf-8")))

    async def read_text(self, storage_path: str) -> str:
        content = await self.download(storage_path)
        return content.read().decode("utf-8")


class StorageError(Exception):
    """Base exception for storage operations."""
    pass
