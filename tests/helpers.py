from __future__ import annotations

import asyncio
import json
from typing import Any

from postboy.collections_store import CollectionStore
from postboy.paths import collection_json_path, folder_json_path, request_path
from postboy.storages import MemoryStorage, StorageError
from postboy.tree import walk_folders, walk_requests
from postboy.types import Container, Request


class FailingStorage(MemoryStorage):
    """MemoryStorage that raises StorageError for selected calls."""

    def __init__(self) -> None:
        super().__init__()
        self.fail_on: list[tuple[str, str]] = []
        self.calls: list[tuple[str, str]] = []

    def fail(self, method: str, fragment: str = "") -> None:
        """Fail every ``method`` call whose path contains ``fragment``."""
        self.fail_on.append((method, fragment))

    def _check(self, method: str, path: str) -> None:
        self.calls.append((method, path))
        for failing_method, fragment in self.fail_on:
            if failing_method == method and fragment in path:
                raise StorageError(f"injected {method} failure", path)

    async def read_file(self, path: str) -> str | None:
        self._check("read_file", path)
        return await super().read_file(path)

    async def write_file(self, path: str, content: str) -> None:
        self._check("write_file", path)
        await super().write_file(path, content)

    async def list_children(self, path: str) -> list[str]:
        self._check("list_children", path)
        return await super().list_children(path)

    async def delete_file(self, path: str) -> None:
        self._check("delete_file", path)
        await super().delete_file(path)

    async def delete_directory(self, path: str, recursive: bool = True) -> None:
        self._check("delete_directory", path)
        await super().delete_directory(path, recursive)


def shape(container: Container) -> Any:
    """Names and nesting of a tree, for order-sensitive comparisons."""
    return {
        "folders": [(f.name, shape(f)) for f in container.folders],
        "requests": [r.name for r in container.requests],
    }


async def descriptor(store: CollectionStore, collection: str) -> dict[str, Any]:
    content = await store.storage.read_file(collection_json_path(collection))
    assert content is not None
    return json.loads(content)


async def assert_synced(store: CollectionStore) -> None:
    """Every loaded collection matches its descriptor and has its leaf documents."""
    for name, collection in store.collections.items():
        assert await descriptor(store, name) == collection.to_dict()
        for path, request in walk_requests(collection):
            content = await store.storage.read_file(request_path(name, path, request.name))
            assert content is not None, f"missing document for {name}/{path}/{request.name}"
            assert json.loads(content)["name"] == request.name
        for path, folder in walk_folders(collection):
            content = await store.storage.read_file(folder_json_path(name, path))
            assert content is not None, f"missing folder.json for {name}/{path}"
            assert json.loads(content)["name"] == folder.name


async def reloaded(store: CollectionStore) -> CollectionStore:
    """A fresh store loaded from the same storage."""
    fresh = CollectionStore(store.storage, store.config)
    result = await fresh.load_collections()
    assert result.ok
    return fresh


def make_request(name: str, method: str = "GET", url: str = "/") -> Request:
    return Request(name=name, method=method, url=url)


class YieldingStorage(MemoryStorage):
    """MemoryStorage that suspends on every call, so operations can interleave."""

    async def read_file(self, path: str) -> str | None:
        await asyncio.sleep(0)
        return await super().read_file(path)

    async def write_file(self, path: str, content: str) -> None:
        await asyncio.sleep(0)
        await super().write_file(path, content)

    async def list_children(self, path: str) -> list[str]:
        await asyncio.sleep(0)
        return await super().list_children(path)

    async def delete_file(self, path: str) -> None:
        await asyncio.sleep(0)
        await super().delete_file(path)

    async def delete_directory(self, path: str, recursive: bool = True) -> None:
        await asyncio.sleep(0)
        await super().delete_directory(path, recursive)
