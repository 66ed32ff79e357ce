from __future__ import annotations

from pathlib import Path

import pytest

from postboy.storages import BaseStorage, LocalStorage, MemoryStorage, StorageError


@pytest.fixture(params=["memory", "local"])
async def backend(request: pytest.FixtureRequest, tmp_path: Path) -> BaseStorage:
    if request.param == "memory":
        storage: BaseStorage = MemoryStorage()
    else:
        storage = LocalStorage(str(tmp_path / "root"))
    await storage.initialize()
    return storage


async def test_read_missing_returns_none(backend: BaseStorage) -> None:
    assert await backend.read_file("nope/file.json") is None


async def test_list_missing_returns_empty(backend: BaseStorage) -> None:
    assert await backend.list_children("nope") == []


async def test_write_creates_parents_and_lists_sorted(backend: BaseStorage) -> None:
    await backend.write_file("a/b/z.json", "z")
    await backend.write_file("a/b/m.json", "m")
    await backend.create_directory("a/b/sub")

    assert await backend.read_file("a/b/z.json") == "z"
    assert await backend.list_children("a/b") == ["m.json", "sub", "z.json"]
    assert await backend.exists("a/b/sub")


async def test_create_directory_is_idempotent(backend: BaseStorage) -> None:
    await backend.create_directory("x/y")
    await backend.create_directory("x/y")

    assert await backend.list_children("x") == ["y"]


async def test_delete_missing_is_a_noop(backend: BaseStorage) -> None:
    await backend.delete_file("missing.json")
    await backend.delete_directory("missing")


async def test_delete_directory_recursive(backend: BaseStorage) -> None:
    await backend.write_file("d/e/f.json", "1")
    await backend.write_file("d/g.json", "2")

    with pytest.raises(StorageError):
        await backend.delete_directory("d", recursive=False)
    await backend.delete_directory("d")

    assert await backend.list_children("") == []
    assert await backend.read_file("d/g.json") is None


async def test_reading_a_directory_fails(backend: BaseStorage) -> None:
    await backend.create_directory("dir")

    with pytest.raises(StorageError):
        await backend.read_file("dir")


async def test_paths_are_normalized(backend: BaseStorage) -> None:
    await backend.write_file("/a//b.json", "x")

    assert await backend.read_file("a/b.json") == "x"


async def test_local_storage_rejects_escaping_paths(tmp_path: Path) -> None:
    storage = LocalStorage(str(tmp_path / "root"))
    await storage.initialize()

    with pytest.raises(StorageError):
        await storage.write_file("../outside.json", "x")
    with pytest.raises(StorageError):
        await storage.delete_directory("")
    assert not (tmp_path / "outside.json").exists()


async def test_local_storage_atomic_write_leaves_no_temp_files(tmp_path: Path) -> None:
    storage = LocalStorage(str(tmp_path / "root"))
    await storage.initialize()

    await storage.write_file("a.json", "first")
    await storage.write_file("a.json", "second")

    assert (tmp_path / "root" / "a.json").read_text(encoding="utf-8") == "second"
    assert sorted(p.name for p in (tmp_path / "root").iterdir()) == ["a.json"]


async def test_memory_storage_zip_round_trip() -> None:
    source = MemoryStorage({"collections/C/collection.json": "{}", "environments/dev.env.json": "[]"})
    archive = source.export_to_zip()

    target = MemoryStorage({"stale.json": "old"})
    target.import_from_zip(archive)

    assert target.files == source.files
    assert await target.list_children("collections") == ["C"]


def test_memory_storage_rejects_bad_archive() -> None:
    with pytest.raises(StorageError):
        MemoryStorage().import_from_zip(b"not a zip")
