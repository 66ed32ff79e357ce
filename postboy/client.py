"""
PostBoy - a workspace of API request collections and environments.

The PostBoy class wires one storage backend to the workspace, collection and
environment stores and handles the open/close lifecycle.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from postboy.collections_store import CollectionStore
from postboy.config import PostBoyConfig
from postboy.environments_store import EnvironmentStore
from postboy.importers.postman import parse_postman_collection, parse_postman_environment
from postboy.paths import workspace_json_path
from postboy.storages.base import BaseStorage
from postboy.storages.local_storage import LocalStorage
from postboy.storages.memory_storage import MemoryStorage
from postboy.types import OperationResult
from postboy.workspace_store import WorkspaceStore

logger = logging.getLogger(__name__)


class WorkspaceError(Exception):
    """Raised when a workspace cannot be opened or created."""


class PostBoy:
    """
    One opened workspace.

    Example:
        ```python
        async with PostBoy("My APIs") as postboy:
            await postboy.collections.create_collection("Users")
            await postboy.collections.create_request(
                "Users", None, Request(name="List users", url="{{url}}/users")
            )
        ```
    """

    def __init__(
        self,
        workspace_name: str,
        config: PostBoyConfig | None = None,
        storage: BaseStorage | None = None,
    ):
        """
        Initialize PostBoy.

        Args:
            workspace_name: Display name of the workspace.
            config: PostBoy configuration. Read from the environment if not provided.
            storage: Custom storage implementation.
        """
        self.config = config or PostBoyConfig.from_env()
        self.workspace_name = workspace_name
        self.storage = storage or self._create_storage()

        self.workspace_store = WorkspaceStore(self.storage)
        self.collections = CollectionStore(self.storage, self.config)
        self.environments = EnvironmentStore(
            self.storage, self.config, workspace_store=self.workspace_store
        )

        self._initialized = False

    def _create_storage(self) -> BaseStorage:
        """Create storage based on config."""
        if self.config.storage.provider == "memory":
            return MemoryStorage()
        return LocalStorage(
            root_path=str(self.config.storage.get_workspace_path(self.workspace_name)),
            atomic_writes=self.config.storage.atomic_writes,
        )

    @property
    def is_open(self) -> bool:
        return self._initialized

    async def initialize(self, create: bool = True) -> None:
        """
        Open the workspace, creating it first if it does not exist yet.

        Loads every collection and environment and restores the selected
        environment.

        Raises:
            WorkspaceError: If the workspace is missing (and ``create`` is
                False) or cannot be read or created.
        """
        if self._initialized:
            return

        await self.storage.initialize()

        exists = await self.storage.read_file(workspace_json_path()) is not None
        if exists:
            result = await self.workspace_store.open_workspace()
        elif create:
            result = await self.workspace_store.create_workspace(self.workspace_name)
        else:
            raise WorkspaceError(f'Workspace "{self.workspace_name}" not found. Please create it first.')
        if not result.ok:
            raise WorkspaceError(result.message)

        await self.collections.load_collections()
        await self.environments.load_environments()

        # Restore the selection without rewriting workspace.json
        workspace = self.workspace_store.workspace
        selected = workspace.current_environment if workspace else None
        if selected and selected in self.environments.environments:
            self.environments.current_environment = selected

        self._initialized = True
        logger.info(
            "Opened workspace %s (%d collections, %d environments)",
            self.workspace_name,
            len(self.collections.collections),
            len(self.environments.environments),
        )

    async def close(self) -> None:
        """Save workspace.json and release the storage."""
        if not self._initialized:
            return

        await self.workspace_store.close_workspace()
        await self.storage.cleanup()
        self._initialized = False

    async def __aenter__(self) -> "PostBoy":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # =========================================================================
    # Import
    # =========================================================================

    async def import_postman_collection(self, text: str) -> OperationResult:
        """Import a Postman v2.1 collection export into a new collection."""
        try:
            collection = parse_postman_collection(text)
        except ValueError as e:
            self.collections.set_error(str(e))
            return OperationResult(status="error", message=str(e))
        return await self.collections.import_collection(collection)

    async def import_postman_environment(self, text: str) -> OperationResult:
        """Import a Postman environment export into a new environment."""
        try:
            name, variables = parse_postman_environment(text)
        except ValueError as e:
            self.environments.set_error(str(e))
            return OperationResult(status="error", message=str(e))
        return await self.environments.create_environment_with_variables(name, variables)


# =============================================================================
# Factories
# =============================================================================


def list_workspaces(config: PostBoyConfig | None = None) -> list[str]:
    """
    Names of the workspaces stored under the project root.

    Only directories holding a readable .apiclient/workspace.json count.
    """
    config = config or PostBoyConfig.from_env()
    root = config.storage.get_workspaces_path()
    if not root.is_dir():
        return []

    names = []
    for entry in sorted(root.iterdir()):
        meta = entry / Path(workspace_json_path())
        if not meta.is_file():
            continue
        try:
            names.append(json.loads(meta.read_text(encoding="utf-8"))["name"])
        except (OSError, ValueError, KeyError) as e:
            logger.warning("Skipping unreadable workspace %s: %s", entry.name, e)
    return names


async def create_postboy(
    workspace_name: str, config: PostBoyConfig | None = None
) -> PostBoy:
    """
    Open a workspace, creating it if needed.

    Args:
        workspace_name: Display name of the workspace.
        config: Optional configuration. Read from the environment if not provided.

    Returns:
        Initialized PostBoy instance.
    """
    postboy = PostBoy(workspace_name, config=config)
    await postboy.initialize(create=True)
    return postboy


async def open_workspace(
    workspace_name: str, config: PostBoyConfig | None = None
) -> PostBoy:
    """Open an existing workspace. Raises WorkspaceError if it does not exist."""
    postboy = PostBoy(workspace_name, config=config)
    await postboy.initialize(create=False)
    return postboy
