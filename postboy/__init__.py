"""
PostBoy - API request collections kept as a tree of JSON files.

A workspace holds collections (nested folders of requests) and environments.
Every edit is applied to the in-memory tree and mirrored to durable storage,
either a directory on disk or an in-memory store.

Usage:
    from postboy import PostBoy, Request

    async with PostBoy("My APIs") as postboy:
        store = postboy.collections
        await store.create_collection("Users")
        await store.create_folder("Users", None, "Admin")
        await store.create_request("Users", ["Admin"], Request(name="List", url="{{url}}/users"))
        await store.move_folder("Users", ["Admin"], ["Administration"])

Ephemeral usage (no persistence):
    from postboy import PostBoyConfig, create_postboy

    postboy = await create_postboy("scratch", PostBoyConfig.in_memory())
"""

from postboy.client import (
    PostBoy,
    WorkspaceError,
    create_postboy,
    list_workspaces,
    open_workspace,
)
from postboy.collections_store import CollectionStore
from postboy.config import PostBoyConfig
from postboy.environments_store import EnvironmentStore
from postboy.storages import BaseStorage, LocalStorage, MemoryStorage, StorageError
from postboy.types import (
    Collection,
    Environment,
    EnvironmentVariable,
    Folder,
    FormDataItem,
    Header,
    HttpMethod,
    ItemType,
    OperationLog,
    OperationResult,
    QueryParam,
    Request,
    RequestAuth,
    RequestBody,
    Workspace,
)
from postboy.workspace_store import WorkspaceStore

__version__ = "0.1.0"

__all__ = [
    # Core classes
    "PostBoy",
    "PostBoyConfig",
    "CollectionStore",
    "EnvironmentStore",
    "WorkspaceStore",
    "WorkspaceError",
    # Factory functions
    "create_postboy",
    "open_workspace",
    "list_workspaces",
    # Storage
    "BaseStorage",
    "LocalStorage",
    "MemoryStorage",
    "StorageError",
    # Entity types
    "Collection",
    "Folder",
    "Request",
    "RequestBody",
    "RequestAuth",
    "Header",
    "QueryParam",
    "FormDataItem",
    "HttpMethod",
    "ItemType",
    "Environment",
    "EnvironmentVariable",
    "Workspace",
    "OperationResult",
    "OperationLog",
]
