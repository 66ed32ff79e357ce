"""Storage backends for PostBoy workspaces."""

from postboy.storages.base import BaseStorage, StorageError
from postboy.storages.local_storage import LocalStorage
from postboy.storages.memory_storage import MemoryStorage

__all__ = ["BaseStorage", "StorageError", "LocalStorage", "MemoryStorage"]
