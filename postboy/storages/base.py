"""
Abstract base class for PostBoy storage backends.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class StorageError(Exception):
    """Raised when a storage backend cannot complete a primitive operation."""

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message)
        self.path = path


class BaseStorage(ABC):
    """
    Abstract base class for durable hierarchical storage.

    Every operation is a coroutine. Paths are "/"-separated and relative to
    the storage root; a leading "/" is ignored.

    Missing targets are not errors for the read side: ``read_file`` returns
    None and ``list_children`` returns an empty list. ``create_directory`` is
    idempotent and deleting something that is already gone is a no-op. Any
    other failure raises StorageError.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Prepare the backend for use."""
        pass

    @abstractmethod
    async def cleanup(self) -> None:
        """Release any resources held by the backend."""
        pass

    @abstractmethod
    async def exists(self, path: str) -> bool:
        """Check if a file or directory exists."""
        pass

    @abstractmethod
    async def read_file(self, path: str) -> str | None:
        """
        Read file contents.

        Args:
            path: Relative path within the storage root.

        Returns:
            File contents as string, or None if the file does not exist.

        Raises:
            StorageError: If the file exists but cannot be read.
        """
        pass

    @abstractmethod
    async def write_file(self, path: str, content: str) -> None:
        """
        Write content to a file, creating parent directories as needed.

        Args:
            path: Relative path within the storage root.
            content: Content to write.
        """
        pass

    @abstractmethod
    async def list_children(self, path: str) -> list[str]:
        """
        List the immediate children of a directory.

        Args:
            path: Relative path within the storage root.

        Returns:
            Sorted names of files and directories directly under ``path``.
            Empty if the directory does not exist.
        """
        pass

    @abstractmethod
    async def create_directory(self, path: str) -> None:
        """Create a directory (and parent directories if needed)."""
        pass

    @abstractmethod
    async def delete_file(self, path: str) -> None:
        """Delete a file. Missing files are ignored."""
        pass

    @abstractmethod
    async def delete_directory(self, path: str, recursive: bool = True) -> None:
        """
        Delete a directory.

        Args:
            path: Relative path within the storage root.
            recursive: If True, delete contents recursively.

        Raises:
            StorageError: If the directory is not empty and recursive is False.
        """
        pass

    def normalize_path(self, path: str) -> str:
        """Strip leading/trailing slashes and collapse empty segments."""
        return "/".join(part for part in path.split("/") if part)
