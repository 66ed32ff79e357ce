"""
In-memory storage for PostBoy, used when no directory is available.

The whole workspace can be exported to and restored from a zip archive.
"""

from __future__ import annotations

import io
import zipfile

from postboy.storages.base import BaseStorage, StorageError


class MemoryStorage(BaseStorage):
    """Dict-backed storage. Directories are implicit in file paths."""

    def __init__(self, files: dict[str, str] | None = None):
        self._files: dict[str, str] = {}
        self._dirs: set[str] = set()
        for path, content in (files or {}).items():
            self._files[self.normalize_path(path)] = content

    async def initialize(self) -> None:
        return None

    async def cleanup(self) -> None:
        self._files.clear()
        self._dirs.clear()

    @property
    def files(self) -> dict[str, str]:
        """Snapshot of every stored file keyed by path."""
        return dict(self._files)

    def _is_dir(self, path: str) -> bool:
        if not path or path in self._dirs:
            return True
        prefix = path + "/"
        return any(key.startswith(prefix) for key in self._files) or any(
            d.startswith(prefix) for d in self._dirs
        )

    async def exists(self, path: str) -> bool:
        path = self.normalize_path(path)
        return path in self._files or self._is_dir(path)

    async def read_file(self, path: str) -> str | None:
        path = self.normalize_path(path)
        if path not in self._files and path and self._is_dir(path):
            raise StorageError(f"Path is a directory: {path}", path)
        return self._files.get(path)

    async def write_file(self, path: str, content: str) -> None:
        path = self.normalize_path(path)
        if not path:
            raise StorageError("Cannot write to the storage root", path)
        if path in self._dirs:
            raise StorageError(f"Path is a directory: {path}", path)
        self._files[path] = content

    async def list_children(self, path: str) -> list[str]:
        path = self.normalize_path(path)
        if path in self._files:
            raise StorageError(f"Path is not a directory: {path}", path)
        prefix = f"{path}/" if path else ""
        names: set[str] = set()
        for key in list(self._files) + list(self._dirs):
            if key.startswith(prefix) and key != path:
                names.add(key[len(prefix):].split("/", 1)[0])
        return sorted(names)

    async def create_directory(self, path: str) -> None:
        path = self.normalize_path(path)
        if path in self._files:
            raise StorageError(f"Path is a file: {path}", path)
        parts = path.split("/")
        for i in range(1, len(parts) + 1):
            self._dirs.add("/".join(parts[:i]))

    async def delete_file(self, path: str) -> None:
        path = self.normalize_path(path)
        if path not in self._files and path in self._dirs:
            raise StorageError(f"Path is a directory: {path}", path)
        self._files.pop(path, None)

    async def delete_directory(self, path: str, recursive: bool = True) -> None:
        path = self.normalize_path(path)
        if not path:
            raise StorageError("Refusing to delete the storage root", path)
        prefix = path + "/"
        nested_files = [key for key in self._files if key.startswith(prefix)]
        nested_dirs = [d for d in self._dirs if d.startswith(prefix)]
        if not recursive and (nested_files or nested_dirs):
            raise StorageError(f"Directory not empty: {path}", path)
        for key in nested_files:
            del self._files[key]
        for d in nested_dirs:
            self._dirs.discard(d)
        self._dirs.discard(path)

    # =========================================================================
    # Archive import/export
    # =========================================================================

    def export_to_zip(self) -> bytes:
        """Return every stored file packed into a zip archive."""
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            for path in sorted(self._files):
                zf.writestr(path, self._files[path])
        return buffer.getvalue()

    def import_from_zip(self, data: bytes) -> None:
        """
        Replace all content with the files found in a zip archive.

        Raises:
            StorageError: If the archive cannot be read.
        """
        try:
            with zipfile.ZipFile(io.BytesIO(data)) as zf:
                files = {
                    self.normalize_path(info.filename): zf.read(info).decode("utf-8")
                    for info in zf.infolist()
                    if not info.is_dir()
                }
        except (zipfile.BadZipFile, UnicodeDecodeError) as e:
            raise StorageError(f"Failed to import archive: {e}") from e

        self._files = files
        self._dirs = set()
