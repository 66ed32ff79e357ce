from __future__ import annotations

import asyncio

from helpers import YieldingStorage, assert_synced, make_request, reloaded
from postboy.collections_store import CollectionStore
from postboy.config import PostBoyConfig
from postboy.locks import KeyedLock


def _store() -> CollectionStore:
    return CollectionStore(YieldingStorage(), PostBoyConfig.in_memory())


async def test_keyed_lock_is_fifo_per_key() -> None:
    locks = KeyedLock()
    order: list[str] = []

    async def worker(name: str, key: str) -> None:
        async with locks.acquire(key):
            order.append(f"{name}:start")
            await asyncio.sleep(0)
            await asyncio.sleep(0)
            order.append(f"{name}:end")

    await asyncio.gather(worker("a", "x"), worker("b", "x"), worker("c", "x"))

    assert order == ["a:start", "a:end", "b:start", "b:end", "c:start", "c:end"]


async def test_keyed_lock_does_not_block_other_keys() -> None:
    locks = KeyedLock()
    entered = asyncio.Event()

    async with locks.acquire("x"):
        async def other() -> None:
            async with locks.acquire("y"):
                entered.set()

        await asyncio.wait_for(other(), timeout=1)

    assert entered.is_set()
    assert not locks.locked("x")


async def test_keyed_lock_multi_key_releases_everything() -> None:
    locks = KeyedLock()

    async with locks.acquire("b", "a", "a"):
        assert locks.locked("a")
        assert locks.locked("b")

    assert not locks.locked("a")
    assert not locks.locked("b")


async def test_competing_renames_are_serialized() -> None:
    store = _store()
    await store.create_collection("C")
    await store.create_folder("C", None, "A")
    await store.create_request("C", ["A"], make_request("r"))

    first, second = await asyncio.gather(
        store.rename_folder("C", ["A"], "B"),
        store.rename_folder("C", ["A"], "Z"),
    )

    assert first.ok
    assert second.status == "noop"
    assert [f.name for f in store.get_collection("C").folders] == ["B"]
    assert await store.find_orphans("C") == []
    await assert_synced(store)


async def test_delete_and_create_in_same_folder_do_not_interleave() -> None:
    store = _store()
    await store.create_collection("C")
    await store.create_folder("C", None, "A")

    deleted, created = await asyncio.gather(
        store.delete_folder("C", ["A"]),
        store.create_request("C", ["A"], make_request("late")),
    )

    assert deleted.ok
    assert created.status == "noop"
    assert await store.find_orphans("C") == []
    fresh = await reloaded(store)
    assert fresh.get_collection("C").folders == []


async def test_many_concurrent_creates_all_land() -> None:
    store = _store()
    await store.create_collection("C")

    results = await asyncio.gather(
        *(store.create_request("C", None, make_request(f"r{i}")) for i in range(20))
    )

    assert all(result.ok for result in results)
    assert [r.name for r in store.get_collection("C").requests] == [f"r{i}" for i in range(20)]
    await assert_synced(store)


async def test_cross_collection_moves_in_both_directions() -> None:
    store = _store()
    for name in ("Left", "Right"):
        await store.create_collection(name)
        await store.create_request(name, None, make_request(f"{name}-req"))

    results = await asyncio.gather(
        store.move_request("Left", None, "Right", None, "Left-req"),
        store.move_request("Right", None, "Left", None, "Right-req"),
    )

    assert all(result.ok for result in results)
    assert [r.name for r in store.get_collection("Left").requests] == ["Right-req"]
    assert [r.name for r in store.get_collection("Right").requests] == ["Left-req"]
    await assert_synced(store)


async def test_keyed_lock_drops_idle_keys() -> None:
    locks = KeyedLock()

    async def worker(key: str) -> None:
        async with locks.acquire(key, "shared"):
            await asyncio.sleep(0)

    await asyncio.gather(*(worker(f"k{i}") for i in range(5)))

    assert len(locks) == 0
    assert not locks.locked("shared")


async def test_keyed_lock_keeps_key_while_waiters_remain() -> None:
    locks = KeyedLock()
    release = asyncio.Event()

    async def holder() -> None:
        async with locks.acquire("x"):
            await release.wait()

    async def waiter() -> None:
        async with locks.acquire("x"):
            pass

    tasks = [asyncio.create_task(holder()), asyncio.create_task(waiter())]
    await asyncio.sleep(0)
    assert len(locks) == 1
    release.set()
    await asyncio.gather(*tasks)

    assert len(locks) == 0


async def test_store_does_not_accumulate_locks() -> None:
    store = _store()
    await store.create_collection("C")
    await store.create_request("C", None, make_request("r"))
    missing = await store.create_request("Ghost", None, make_request("r"))
    await store.rename_collection("C", "D")
    await store.load_collections()

    assert missing.status == "noop"
    assert len(store._locks) == 0


async def test_load_does_not_drop_concurrent_create() -> None:
    for delay in range(3):
        store = _store()
        await store.create_collection("Orders")

        async def create_later() -> object:
            for _ in range(delay):
                await asyncio.sleep(0)
            return await store.create_request("Orders", None, make_request("A"))

        loaded, created = await asyncio.gather(store.load_collections(), create_later())

        assert loaded.ok
        assert created.ok
        assert [r.name for r in store.get_collection("Orders").requests] == ["A"]
        await assert_synced(store)


async def test_load_keeps_collection_created_during_load() -> None:
    for delay in range(3):
        store = _store()
        await store.create_collection("Orders")

        async def create_later() -> object:
            for _ in range(delay):
                await asyncio.sleep(0)
            return await store.create_collection("Billing")

        loaded, created = await asyncio.gather(store.load_collections(), create_later())

        assert loaded.ok
        assert created.ok
        assert sorted(store.collections) == ["Billing", "Orders"]
        await assert_synced(store)
