"""
Local directory-tree storage for PostBoy workspaces.
"""

from __future__ import annotations

import asyncio
import os
import shutil
import tempfile

from postboy.storages.base import BaseStorage, StorageError


class LocalStorage(BaseStorage):
    """Storage backed by a real directory on disk."""

    def __init__(self, root_path: str, atomic_writes: bool = True):
        """
        Initialize local storage.

        Args:
            root_path: Directory that holds the workspace. Created on initialize().
            atomic_writes: Write each file through a temp file + rename.
        """
        self._root_path = os.path.abspath(root_path)
        self.atomic_writes = atomic_writes

    @property
    def root_path(self) -> str:
        """Return the absolute root path of the storage."""
        return self._root_path

    async def initialize(self) -> None:
        """Create the root directory if needed."""
        try:
            await asyncio.to_thread(os.makedirs, self._root_path, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create storage root: {e}", self._root_path) from e

    async def cleanup(self) -> None:
        """Nothing to release; files stay on disk."""
        return None

    def _full_path(self, path: str) -> str:
        """Convert relative path to full filesystem path."""
        path = self.normalize_path(path)
        full = os.path.join(self._root_path, path) if path else self._root_path

        # Security: ensure path doesn't escape the storage root
        full = os.path.normpath(full)
        if full != self._root_path and not full.startswith(self._root_path + os.sep):
            raise StorageError(f"Path '{path}' escapes storage root", path)

        return full

    async def exists(self, path: str) -> bool:
        """Check if a path exists."""
        return await asyncio.to_thread(os.path.exists, self._full_path(path))

    async def read_file(self, path: str) -> str | None:
        """Read file contents, or None if missing."""
        full_path = self._full_path(path)

        def _do_read() -> str | None:
            if not os.path.exists(full_path):
                return None
            if os.path.isdir(full_path):
                raise StorageError(f"Path is a directory: {path}", path)
            with open(full_path, "r", encoding="utf-8") as f:
                return f.read()

        try:
            return await asyncio.to_thread(_do_read)
        except OSError as e:
            raise StorageError(f"Failed to read {path}: {e}", path) from e

    async def write_file(self, path: str, content: str) -> None:
        """Write content to a file."""
        full_path = self._full_path(path)

        def _do_write() -> None:
            parent = os.path.dirname(full_path)
            if parent and not os.path.exists(parent):
                os.makedirs(parent, exist_ok=True)

            if not self.atomic_writes:
                with open(full_path, "w", encoding="utf-8") as f:
                    f.write(content)
                return

            fd, tmp_path = tempfile.mkstemp(prefix=".tmp-", dir=parent)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(content)
                os.replace(tmp_path, full_path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
                raise

        try:
            await asyncio.to_thread(_do_write)
        except OSError as e:
            raise StorageError(f"Failed to write {path}: {e}", path) from e

    async def list_children(self, path: str) -> list[str]:
        """List immediate children of a directory (empty if missing)."""
        full_path = self._full_path(path)

        def _scan_dir() -> list[str]:
            if not os.path.exists(full_path):
                return []
            if not os.path.isdir(full_path):
                raise StorageError(f"Path is not a directory: {path}", path)
            return sorted(
                name for name in os.listdir(full_path) if not name.startswith(".tmp-")
            )

        try:
            return await asyncio.to_thread(_scan_dir)
        except OSError as e:
            raise StorageError(f"Failed to list {path}: {e}", path) from e

    async def create_directory(self, path: str) -> None:
        """Create a directory (and parent directories if needed)."""
        full_path = self._full_path(path)
        try:
            await asyncio.to_thread(os.makedirs, full_path, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to create directory {path}: {e}", path) from e

    async def delete_file(self, path: str) -> None:
        """Delete a file."""
        full_path = self._full_path(path)

        def _do_delete() -> None:
            if not os.path.exists(full_path):
                return
            if os.path.isdir(full_path):
                raise StorageError(f"Path is a directory: {path}", path)
            os.remove(full_path)

        try:
            await asyncio.to_thread(_do_delete)
        except OSError as e:
            raise StorageError(f"Failed to delete {path}: {e}", path) from e

    async def delete_directory(self, path: str, recursive: bool = True) -> None:
        """Delete a directory."""
        full_path = self._full_path(path)
        if full_path == self._root_path:
            raise StorageError("Refusing to delete the storage root", path)

        def _do_delete() -> None:
            if not os.path.exists(full_path):
                return
            if not os.path.isdir(full_path):
                raise StorageError(f"Path is not a directory: {path}", path)
            if recursive:
                shutil.rmtree(full_path)
            else:
                os.rmdir(full_path)  # Will fail if not empty

        try:
            await asyncio.to_thread(_do_delete)
        except OSError as e:
            raise StorageError(f"Failed to delete directory {path}: {e}", path) from e
