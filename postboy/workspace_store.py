"""
WorkspaceStore - workspace metadata (.apiclient/workspace.json) and layout.
"""

from __future__ import annotations

import json
import logging

from postboy.paths import (
    APICLIENT_DIR,
    COLLECTIONS_DIR,
    ENVIRONMENTS_DIR,
    RUNS_DIR,
    index_json_path,
    workspace_json_path,
)
from postboy.storages.base import BaseStorage
from postboy.types import OperationResult, Workspace, WorkspaceIndex

logger = logging.getLogger(__name__)


class WorkspaceStore:
    """Creates, opens and saves the workspace stored in ``storage``."""

    def __init__(self, storage: BaseStorage):
        self.storage = storage
        self.workspace: Workspace | None = None
        self.is_open = False
        self.is_loading = False
        self.error: str | None = None

    def set_error(self, error: str | None) -> None:
        self.error = error

    def _fail(self, message: str) -> OperationResult:
        self.error = message
        logger.error(message)
        return OperationResult(status="error", message=message)

    async def create_workspace(self, name: str) -> OperationResult:
        """Write a fresh workspace layout and open it."""
        self.is_loading = True
        self.error = None
        try:
            if await self.storage.read_file(workspace_json_path()) is not None:
                return self._fail(f"Workspace already exists: {name}")

            for directory in (APICLIENT_DIR, COLLECTIONS_DIR, ENVIRONMENTS_DIR, RUNS_DIR):
                await self.storage.create_directory(directory)
            workspace = Workspace(name=name)
            await self.storage.write_file(
                workspace_json_path(), json.dumps(workspace.to_dict(), indent=2)
            )
            await self.storage.write_file(
                index_json_path(), json.dumps(WorkspaceIndex().to_dict(), indent=2)
            )
        except Exception as e:
            return self._fail(f"Failed to create workspace: {e}")
        finally:
            self.is_loading = False

        self.workspace = workspace
        self.is_open = True
        logger.info("Created workspace %s", name)
        return OperationResult(status="success", message=f"Created workspace: {name}")

    async def open_workspace(self) -> OperationResult:
        self.is_loading = True
        self.error = None
        try:
            content = await self.storage.read_file(workspace_json_path())
            if content is None:
                return self._fail("Workspace file not found in selected directory.")
            workspace = Workspace.from_dict(json.loads(content))
        except Exception as e:
            return self._fail(f"Failed to open workspace: {e}")
        finally:
            self.is_loading = False

        self.workspace = workspace
        self.is_open = True
        return OperationResult(status="success", message=f"Opened workspace: {workspace.name}")

    async def save_workspace(self) -> OperationResult:
        """Persist workspace.json with a fresh updatedAt."""
        if self.workspace is None:
            return OperationResult(status="noop", message="No workspace open")
        self.workspace.touch()
        try:
            await self.storage.write_file(
                workspace_json_path(), json.dumps(self.workspace.to_dict(), indent=2)
            )
        except Exception as e:
            return self._fail(f"Failed to save workspace: {e}")
        return OperationResult(status="success", message=f"Saved workspace: {self.workspace.name}")

    async def close_workspace(self) -> OperationResult:
        result = await self.save_workspace()
        self.workspace = None
        self.is_open = False
        return result
