from __future__ import annotations

from pathlib import Path

import pytest

from helpers import FailingStorage
from postboy.collections_store import CollectionStore
from postboy.config import PostBoyConfig
from postboy.storages import LocalStorage, MemoryStorage


@pytest.fixture
def config() -> PostBoyConfig:
    return PostBoyConfig.in_memory()


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def store(storage: MemoryStorage, config: PostBoyConfig) -> CollectionStore:
    return CollectionStore(storage, config)


@pytest.fixture
async def local_store(tmp_path: Path) -> CollectionStore:
    storage = LocalStorage(str(tmp_path / "workspace"))
    await storage.initialize()
    return CollectionStore(storage, PostBoyConfig.default_local(str(tmp_path)))


@pytest.fixture
def failing_storage() -> FailingStorage:
    return FailingStorage()


@pytest.fixture
def failing_store(failing_storage: FailingStorage, config: PostBoyConfig) -> CollectionStore:
    return CollectionStore(failing_storage, config)
