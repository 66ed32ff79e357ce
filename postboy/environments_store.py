"""
EnvironmentStore - named variable sets stored as environments/<name>.env.json.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import replace
from typing import TYPE_CHECKING, Any

from postboy.config import PostBoyConfig
from postboy.paths import ENVIRONMENT_SUFFIX, ENVIRONMENTS_DIR, environment_path, sanitize_file_name
from postboy.storages.base import BaseStorage
from postboy.types import Environment, EnvironmentVariable, OperationResult, utc_now_iso

if TYPE_CHECKING:
    from postboy.workspace_store import WorkspaceStore

logger = logging.getLogger(__name__)


def _dump(environment: Environment) -> str:
    return json.dumps(environment.to_dict(), indent=2, ensure_ascii=False)


class EnvironmentStore:
    """Loads, edits and persists the environments of one workspace."""

    def __init__(
        self,
        storage: BaseStorage,
        config: PostBoyConfig | None = None,
        workspace_store: WorkspaceStore | None = None,
    ):
        self.storage = storage
        self.config = config or PostBoyConfig()
        self.workspace_store = workspace_store
        self.environments: dict[str, Environment] = {}
        self.current_environment: str | None = None
        self.is_loading = False
        self.error: str | None = None
        self._lock = asyncio.Lock()

    def set_error(self, error: str | None) -> None:
        self.error = error

    def _fail(self, operation: str, message: str) -> OperationResult:
        self.error = message
        logger.error("%s failed: %s", operation, message)
        return OperationResult(status="error", message=message)

    def _conflict(self, name: str, ignore: str | None = None) -> str | None:
        key = sanitize_file_name(name)
        for other in self.environments:
            if other != ignore and (other == name or sanitize_file_name(other) == key):
                return other
        return None

    async def _write(self, environment: Environment) -> None:
        await self.storage.write_file(environment_path(environment.name), _dump(environment))

    def standard_variables(self, name: str) -> list[EnvironmentVariable]:
        """Variables seeded into a new environment."""
        variables = []
        for key, var_type in self.config.environments.standard_variables:
            value = ""
            if key == "environment":
                value = name
            elif key == "time":
                value = utc_now_iso()
            variables.append(EnvironmentVariable(key=key, value=value, type=var_type))
        return variables

    # =========================================================================
    # Loading
    # =========================================================================

    async def load_environments(self) -> OperationResult:
        self.is_loading = True
        self.error = None
        try:
            environments: dict[str, Environment] = {}
            for file_name in await self.storage.list_children(ENVIRONMENTS_DIR):
                if not file_name.endswith(ENVIRONMENT_SUFFIX):
                    continue
                path = f"{ENVIRONMENTS_DIR}/{file_name}"
                content = await self.storage.read_file(path)
                if content is None:
                    continue
                try:
                    environment = Environment.from_dict(json.loads(content))
                except (ValueError, KeyError, TypeError) as e:
                    logger.warning("Skipping unreadable environment %s: %s", path, e)
                    continue
                environments[environment.name] = environment
            self.environments = environments
            if self.current_environment not in environments:
                self.current_environment = None
            return OperationResult(
                status="success",
                message=f"Loaded {len(environments)} environments",
                data={"environments": self.list_environment_names()},
            )
        except Exception as e:
            return self._fail("load_environments", f"Failed to load environments: {e}")
        finally:
            self.is_loading = False

    def list_environment_names(self) -> list[str]:
        return sorted(self.environments)

    def get_environment(self, name: str) -> Environment | None:
        return self.environments.get(name)

    # =========================================================================
    # Environments
    # =========================================================================

    async def create_environment(self, name: str) -> OperationResult:
        """Create an environment seeded with the standard variables."""
        return await self.create_environment_with_variables(
            name, self.standard_variables(name)
        )

    async def create_environment_with_variables(
        self, name: str, variables: list[EnvironmentVariable]
    ) -> OperationResult:
        async with self._lock:
            if not isinstance(name, str) or not name.strip():
                return self._fail("create_environment", "Name must not be empty")
            clash = self._conflict(name)
            if clash is not None:
                return self._fail("create_environment", f"Environment already exists: {clash}")

            environment = Environment(name=name, variables=list(variables))
            try:
                await self.storage.create_directory(ENVIRONMENTS_DIR)
                await self._write(environment)
            except Exception as e:
                return self._fail("create_environment", f"Failed to create environment: {e}")

            self.environments[name] = environment
            logger.debug("Created environment %s", name)
            return OperationResult(status="success", message=f"Created environment: {name}")

    async def update_environment(
        self, name: str, variables: list[EnvironmentVariable]
    ) -> OperationResult:
        """Replace the variable list of an environment."""
        async with self._lock:
            environment = self.environments.get(name)
            if environment is None:
                return OperationResult(status="noop", message=f"Environment not found: {name}")
            updated = replace(environment, variables=list(variables))
            return await self._store(updated, "update_environment")

    async def rename_environment(self, old_name: str, new_name: str) -> OperationResult:
        async with self._lock:
            environment = self.environments.get(old_name)
            if environment is None:
                return OperationResult(status="noop", message=f"Environment not found: {old_name}")
            if new_name == old_name:
                return OperationResult(status="noop", message="Environment name unchanged")
            if not isinstance(new_name, str) or not new_name.strip():
                return self._fail("rename_environment", "Name must not be empty")
            clash = self._conflict(new_name, ignore=old_name)
            if clash is not None:
                return self._fail("rename_environment", f"Environment already exists: {clash}")

            renamed = replace(environment, name=new_name)
            try:
                await self._write(renamed)
                if environment_path(old_name) != environment_path(new_name):
                    await self.storage.delete_file(environment_path(old_name))
            except Exception as e:
                return self._fail("rename_environment", f"Failed to rename environment: {e}")

            del self.environments[old_name]
            self.environments[new_name] = renamed
            if self.current_environment == old_name:
                await self._select(new_name)
            return OperationResult(
                status="success", message=f"Renamed environment {old_name} to {new_name}"
            )

    async def delete_environment(self, name: str) -> OperationResult:
        async with self._lock:
            if name not in self.environments:
                return OperationResult(status="noop", message=f"Environment not found: {name}")
            try:
                await self.storage.delete_file(environment_path(name))
            except Exception as e:
                return self._fail("delete_environment", f"Failed to delete environment: {e}")
            del self.environments[name]
            if self.current_environment == name:
                await self._select(None)
            return OperationResult(status="success", message=f"Deleted environment: {name}")

    # =========================================================================
    # Selection
    # =========================================================================

    async def _select(self, name: str | None) -> None:
        self.current_environment = name
        workspace_store = self.workspace_store
        if workspace_store is None or workspace_store.workspace is None:
            return
        workspace_store.workspace.current_environment = name
        result = await workspace_store.save_workspace()
        if not result.ok:
            # Selection still applies in memory
            logger.warning("Could not save selected environment: %s", result.message)

    async def set_current_environment(self, name: str | None) -> OperationResult:
        """Select an environment (None clears the selection)."""
        if name is not None and name not in self.environments:
            return OperationResult(status="noop", message=f"Environment not found: {name}")
        await self._select(name)
        return OperationResult(
            status="success",
            message=f"Current environment: {name}" if name else "Cleared current environment",
        )

    def get_current_environment(self) -> Environment | None:
        if not self.current_environment:
            return None
        return self.environments.get(self.current_environment)

    # =========================================================================
    # Variables
    # =========================================================================

    async def _store(self, updated: Environment, operation: str) -> OperationResult:
        try:
            await self._write(updated)
        except Exception as e:
            return self._fail(operation, f"Failed to save environment: {e}")
        self.environments[updated.name] = updated
        return OperationResult(status="success", message=f"Saved environment: {updated.name}")

    async def add_variable(
        self, environment_name: str, variable: EnvironmentVariable
    ) -> OperationResult:
        async with self._lock:
            environment = self.environments.get(environment_name)
            if environment is None:
                return OperationResult(
                    status="noop", message=f"Environment not found: {environment_name}"
                )
            if any(v.key == variable.key for v in environment.variables):
                return self._fail("add_variable", f"Variable already exists: {variable.key}")
            updated = replace(environment, variables=[*environment.variables, variable])
            return await self._store(updated, "add_variable")

    async def update_variable(
        self, environment_name: str, key: str, updates: dict[str, Any]
    ) -> OperationResult:
        async with self._lock:
            environment = self.environments.get(environment_name)
            if environment is None:
                return OperationResult(
                    status="noop", message=f"Environment not found: {environment_name}"
                )
            index = next(
                (i for i, v in enumerate(environment.variables) if v.key == key), None
            )
            if index is None:
                return OperationResult(status="noop", message=f"Variable not found: {key}")
            unknown = set(updates) - {"key", "value", "type", "enabled"}
            if unknown:
                return self._fail("update_variable", f"Unknown variable fields: {sorted(unknown)}")

            variables = list(environment.variables)
            variables[index] = replace(variables[index], **updates)
            updated = replace(environment, variables=variables)
            return await self._store(updated, "update_variable")

    async def delete_variable(self, environment_name: str, key: str) -> OperationResult:
        async with self._lock:
            environment = self.environments.get(environment_name)
            if environment is None:
                return OperationResult(
                    status="noop", message=f"Environment not found: {environment_name}"
                )
            if not any(v.key == key for v in environment.variables):
                return OperationResult(status="noop", message=f"Variable not found: {key}")
            updated = replace(
                environment, variables=[v for v in environment.variables if v.key != key]
            )
            return await self._store(updated, "delete_variable")
