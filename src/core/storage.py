"""
Storage Abstraction Layer - The Bridge Pattern

Provides a clean interface for persisting finished sticker assets.
LocalStorage is the only implementation; the batch downloader writes
through the interface so another backend can be dropped in.
"""

import re
from abc import ABC, abstractmethod
from pathlib import Path

_SAFE_NAME_PATTERN = re.compile(r"[^A-Za-z0-9._-]+")


def safe_name(name: str, default: str = "sticker.png") -> str:
    """Strip path components and unsafe characters from a file name."""
    cleaned = _SAFE_NAME_PATTERN.sub("_", Path(name).name).strip("._")
    return cleaned or default


class IStorage(ABC):
    """Interface for storage operations - The Bridge"""

    @abstractmethod
    async def upload(
        self,
        file_data: bytes,
        filename: str,
        folder: str = "stickers",
        content_type: str = "image/png"
    ) -> str:
        """
        Store a file under an exact name and return its storage key.

        Args:
            file_data: Raw bytes of the file
            filename: Name to store the file under (existing files are replaced)
            folder: Subfolder/container prefix
            content_type: MIME type of the file

        Returns:
            Storage key of the form "<folder>/<filename>"
        """
        pass

    @abstractmethod
    async def exists(self, storage_key: str) -> bool:
        """Check if a file exists in storage."""
        pass


class LocalStorage(IStorage):
    """Local filesystem storage implementation."""

    def __init__(self, base_path: str = "./data/storage"):
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)

    def path_for(self, storage_key: str) -> Path:
        return self.base_path / storage_key

    async def upload(
        self,
        file_data: bytes,
        filename: str,
        folder: str = "stickers",
        content_type: str = "image/png"
    ) -> str:
        folder = safe_name(folder, default="stickers")
        folder_path = self.base_path / folder
        folder_path.mkdir(parents=True, exist_ok=True)

        name = safe_name(filename)
        (folder_path / name).write_bytes(file_data)

        return f"{folder}/{name}"

    async def exists(self, storage_key: str) -> bool:
        return self.path_for(storage_key).exists()
