from __future__ import annotations

import json

from postboy.config import PostBoyConfig
from postboy.environments_store import EnvironmentStore
from postboy.storages import MemoryStorage
from postboy.types import EnvironmentVariable
from postboy.workspace_store import WorkspaceStore


async def _stores() -> tuple[EnvironmentStore, WorkspaceStore, MemoryStorage]:
    storage = MemoryStorage()
    workspace_store = WorkspaceStore(storage)
    await workspace_store.create_workspace("W")
    store = EnvironmentStore(storage, PostBoyConfig.in_memory(), workspace_store=workspace_store)
    return store, workspace_store, storage


def _keys(store: EnvironmentStore, name: str) -> list[str]:
    return [v.key for v in store.get_environment(name).variables]


async def test_new_environment_is_seeded_with_standard_variables() -> None:
    store, _, storage = await _stores()

    result = await store.create_environment("Dev Server")

    assert result.ok
    assert _keys(store, "Dev Server") == [
        "url",
        "username",
        "password",
        "environment",
        "companyCode",
        "time",
    ]
    variables = {v.key: v for v in store.get_environment("Dev Server").variables}
    assert variables["environment"].value == "Dev Server"
    assert variables["password"].type == "secret"
    assert variables["time"].value.endswith("Z")
    saved = json.loads(storage.files["environments/Dev_Server.env.json"])
    assert saved["name"] == "Dev Server"


async def test_duplicate_and_colliding_names_are_rejected() -> None:
    store, _, _ = await _stores()
    await store.create_environment("dev env")

    duplicate = await store.create_environment("dev env")
    collision = await store.create_environment("dev/env")
    empty = await store.create_environment("  ")

    assert duplicate.status == "error"
    assert collision.status == "error"
    assert empty.status == "error"
    assert store.error == "Name must not be empty"
    assert store.list_environment_names() == ["dev env"]


async def test_names_are_listed_sorted() -> None:
    store, _, _ = await _stores()
    for name in ("prod", "dev", "staging"):
        await store.create_environment(name)

    assert store.list_environment_names() == ["dev", "prod", "staging"]


async def test_selection_is_saved_to_workspace() -> None:
    store, workspace_store, storage = await _stores()
    await store.create_environment("dev")

    result = await store.set_current_environment("dev")

    assert result.ok
    assert store.get_current_environment().name == "dev"
    saved = json.loads(storage.files[".apiclient/workspace.json"])
    assert saved["currentEnvironment"] == "dev"
    assert workspace_store.workspace.current_environment == "dev"


async def test_selecting_unknown_environment_is_a_noop() -> None:
    store, _, _ = await _stores()

    result = await store.set_current_environment("ghost")

    assert result.status == "noop"
    assert store.current_environment is None


async def test_rename_follows_selection_and_moves_file() -> None:
    store, _, storage = await _stores()
    await store.create_environment("dev")
    await store.set_current_environment("dev")

    result = await store.rename_environment("dev", "development")

    assert result.ok
    assert store.current_environment == "development"
    assert "environments/dev.env.json" not in storage.files
    assert "environments/development.env.json" in storage.files
    saved = json.loads(storage.files[".apiclient/workspace.json"])
    assert saved["currentEnvironment"] == "development"


async def test_delete_clears_selection() -> None:
    store, _, storage = await _stores()
    await store.create_environment("dev")
    await store.set_current_environment("dev")

    result = await store.delete_environment("dev")

    assert result.ok
    assert store.current_environment is None
    assert store.get_current_environment() is None
    assert "environments/dev.env.json" not in storage.files
    assert json.loads(storage.files[".apiclient/workspace.json"])["currentEnvironment"] is None


async def test_missing_environment_operations_are_noops() -> None:
    store, _, _ = await _stores()

    assert (await store.rename_environment("a", "b")).status == "noop"
    assert (await store.delete_environment("a")).status == "noop"
    assert (await store.add_variable("a", EnvironmentVariable(key="k"))).status == "noop"
    assert store.error is None


async def test_variable_operations() -> None:
    store, _, storage = await _stores()
    await store.create_environment_with_variables("dev", [])

    added = await store.add_variable("dev", EnvironmentVariable(key="token", value="abc"))
    duplicate = await store.add_variable("dev", EnvironmentVariable(key="token"))
    updated = await store.update_variable("dev", "token", {"value": "xyz", "type": "secret"})
    unknown = await store.update_variable("dev", "token", {"colour": "red"})

    assert added.ok
    assert duplicate.status == "error"
    assert updated.ok
    assert unknown.status == "error"
    token = store.get_environment("dev").variables[0]
    assert (token.value, token.type) == ("xyz", "secret")

    deleted = await store.delete_variable("dev", "token")
    missing = await store.delete_variable("dev", "token")

    assert deleted.ok
    assert missing.status == "noop"
    saved = json.loads(storage.files["environments/dev.env.json"])
    assert saved["variables"] == []


async def test_update_environment_replaces_variables() -> None:
    store, _, _ = await _stores()
    await store.create_environment("dev")

    result = await store.update_environment("dev", [EnvironmentVariable(key="only")])

    assert result.ok
    assert _keys(store, "dev") == ["only"]


async def test_load_skips_unreadable_files() -> None:
    storage = MemoryStorage(
        {
            "environments/dev.env.json": json.dumps({"name": "dev", "variables": []}),
            "environments/broken.env.json": "{not json",
            "environments/notes.txt": "ignored",
        }
    )
    store = EnvironmentStore(storage)

    result = await store.load_environments()

    assert result.ok
    assert store.list_environment_names() == ["dev"]
    assert store.is_loading is False


async def test_selection_without_workspace_store_stays_in_memory() -> None:
    store = EnvironmentStore(MemoryStorage())
    await store.create_environment("dev")

    result = await store.set_current_environment("dev")
    cleared = await store.set_current_environment(None)

    assert result.ok
    assert cleared.ok
    assert store.current_environment is None
