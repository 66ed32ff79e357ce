"""
CollectionStore - keeps the in-memory collection tree and its durable files in sync.

Structure (names, order, nesting) is owned by each collection's aggregate
descriptor (collection.json). Request documents and folder.json files are the
leaf documents. Every operation that changes a node's position copies the
leaf documents to the new location, persists the descriptor, and only then
removes the old location, so a failure part-way leaves the content reachable
at one of the two paths. Structural operations finish with a reload of the
affected collection(s) from their descriptor.

Every mutating coroutine returns an OperationResult and never raises; failures
are also recorded in ``CollectionStore.error``.
"""

from __future__ import annotations

import copy
import json
import logging
from collections import deque
from collections.abc import Sequence
from dataclasses import fields, replace
from typing import Any

from postboy.config import PostBoyConfig
from postboy.locks import KeyedLock
from postboy.paths import (
    COLLECTION_FILE,
    COLLECTIONS_DIR,
    FOLDER_FILE,
    FOLDERS_DIR,
    REQUESTS_DIR,
    collection_folders_path,
    collection_json_path,
    collection_path,
    folder_json_path,
    folder_path,
    is_same_or_descendant,
    request_file_name,
    request_path,
    requests_dir_path,
    sanitize_file_name,
)
from postboy.storages.base import BaseStorage
from postboy.tree import (
    TreeIndex,
    find_child_folder,
    find_child_request,
    walk_folders,
    walk_requests,
)
from postboy.types import (
    Collection,
    Container,
    Folder,
    Header,
    ItemType,
    OperationLog,
    OperationResult,
    QueryParam,
    Request,
    RequestAuth,
    RequestBody,
)

logger = logging.getLogger(__name__)

FolderPath = Sequence[str]

_REQUEST_FIELDS = {f.name for f in fields(Request)} - {"name", "extra"}
_REQUEST_CAMEL_FIELDS = {
    "queryParams": "query_params",
    "preRequestScript": "pre_request_script",
    "postResponseScript": "post_response_script",
}


def _dump(data: dict[str, Any]) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False)


def _storage_key(name: str) -> str:
    return sanitize_file_name(name)


def _path_label(collection: str, folders: FolderPath | None, name: str | None = None) -> str:
    parts = [collection, *(folders or ())]
    if name is not None:
        parts.append(name)
    return "/".join(parts)


def _invalid_name(name: Any) -> str | None:
    """Return a reason if ``name`` cannot be used as a node name."""
    if not isinstance(name, str) or not name.strip():
        return "Name must not be empty"
    if sanitize_file_name(name) in (".", ".."):
        return f"Invalid name: {name!r}"
    return None


def _conflicting_name(existing: list[str], name: str, ignore: str | None = None) -> str | None:
    """
    Return the sibling name that clashes with ``name``.

    A clash is an equal display name or an equal storage key, because two
    names that sanitize to the same key would share one file.
    """
    key = _storage_key(name)
    for other in existing:
        if ignore is not None and other == ignore:
            continue
        if other == name or _storage_key(other) == key:
            return other
    return None


def _coerce_request_field(name: str, value: Any) -> Any:
    """Accept plain dicts for the structured request fields."""
    if name == "headers":
        return [v if isinstance(v, Header) else Header.from_dict(v) for v in value or []]
    if name == "query_params":
        return [
            v if isinstance(v, QueryParam) else QueryParam.from_dict(v) for v in value or []
        ]
    if name == "body" and isinstance(value, dict):
        return RequestBody.from_dict(value)
    if name == "auth" and isinstance(value, dict):
        return RequestAuth.from_dict(value)
    return value


class CollectionStore:
    """
    Collection tree synchronization engine.

    Holds the Tree Index of every loaded collection, mirrors each mutation to
    the storage backend, and serializes mutations per collection.
    """

    def __init__(self, storage: BaseStorage, config: PostBoyConfig | None = None):
        """
        Initialize the store.

        Args:
            storage: Durable storage rooted at the workspace directory.
            config: PostBoy configuration. Uses defaults if not provided.
        """
        self.storage = storage
        self.config = config or PostBoyConfig()
        self.index = TreeIndex()
        self.is_loading = False
        self.error: str | None = None
        self.logs: deque[OperationLog] = deque(maxlen=self.config.tree.max_log_entries)
        self._locks = KeyedLock()

    @property
    def collections(self) -> dict[str, Collection]:
        """All loaded collections keyed by name. Read-only for consumers."""
        return self.index.collections

    def set_error(self, error: str | None) -> None:
        self.error = error

    def _debug_log(self, message: str) -> None:
        """Log a debug message if debug mode is enabled."""
        if self.config.debug:
            logger.debug("[PostBoy DEBUG] %s", message)

    def _lock(self, *collections: str):
        return self._locks.acquire(*(_storage_key(c) for c in collections))

    # =========================================================================
    # Result helpers
    # =========================================================================

    def _log_operation(
        self,
        operation: str,
        path: str,
        details: dict[str, Any] | None = None,
        success: bool = True,
        error_message: str | None = None,
    ) -> None:
        """Record a mutation in the in-memory operation log."""
        if not self.config.auto_log:
            return
        self.logs.append(
            OperationLog.create(
                operation=operation,
                path=path,
                details=details,
                success=success,
                error_message=error_message,
            )
        )

    def _ok(
        self,
        operation: str,
        path: str,
        message: str,
        data: Any = None,
        details: dict[str, Any] | None = None,
    ) -> OperationResult:
        logger.debug("%s %s: %s", operation, path, message)
        self._log_operation(operation, path, details)
        return OperationResult(status="success", message=message, data=data)

    def _fail(self, operation: str, path: str, message: str) -> OperationResult:
        self.error = message
        logger.error("%s %s failed: %s", operation, path, message)
        self._log_operation(operation, path, success=False, error_message=message)
        return OperationResult(status="error", message=message)

    @staticmethod
    def _noop(message: str) -> OperationResult:
        return OperationResult(status="noop", message=message)

    async def _recover(self, *collections: str) -> None:
        """After a failed mutation, re-read the affected descriptors."""
        for name in dict.fromkeys(collections):
            try:
                await self._reload_collection(name)
            except Exception as e:
                logger.warning("Could not reload collection %s after failure: %s", name, e)

    # =========================================================================
    # Read API
    # =========================================================================

    def get_collection(self, name: str) -> Collection | None:
        return self.index.get(name)

    def get_folder(self, collection: str, folder_path: FolderPath) -> Folder | None:
        return self.index.find_folder(collection, folder_path)

    def get_request(
        self, collection: str, folder_path: FolderPath | None, name: str
    ) -> Request | None:
        """Look up a request by its path. Returns None when any part is missing."""
        return self.index.find_request(collection, folder_path, name)

    # =========================================================================
    # Persistence helpers
    # =========================================================================

    async def _persist(self, collection: Collection) -> None:
        """Write the aggregate descriptor of ``collection``."""
        path = collection_json_path(collection.name)
        self._debug_log(f"write descriptor {path}")
        await self.storage.write_file(path, _dump(collection.to_dict()))

    async def _write_request(
        self, collection: str, folder_path: FolderPath | None, request: Request
    ) -> None:
        path = request_path(collection, folder_path, request.name)
        await self.storage.create_directory(
            requests_dir_path(collection, folder_path)
        )
        self._debug_log(f"write request {path}")
        await self.storage.write_file(path, _dump(request.to_dict()))

    async def _write_subtree(
        self, collection: str, path: tuple[str, ...], container: Container
    ) -> None:
        """Write the leaf documents of ``container`` and everything beneath it."""
        for request in container.requests:
            await self._write_request(collection, path, request)
        for folder in container.folders:
            child_path = path + (folder.name,)
            await self.storage.create_directory(
                requests_dir_path(collection, child_path)
            )
            await self.storage.write_file(
                folder_json_path(collection, child_path), _dump(folder.to_leaf_dict())
            )
            await self._write_subtree(collection, child_path, folder)

    async def _list_tree(
        self, root: str, rel: str = ""
    ) -> tuple[list[str], list[str]]:
        """
        List the documents beneath a collection or folder directory.

        Returns:
            (file paths, folder directory paths), both relative to ``root``.
        """
        base = f"{root}/{rel}" if rel else root
        files: list[str] = []
        dirs: list[str] = []
        for name in await self.storage.list_children(base):
            child_rel = f"{rel}/{name}" if rel else name
            if name == REQUESTS_DIR:
                for file_name in await self.storage.list_children(f"{base}/{name}"):
                    files.append(f"{child_rel}/{file_name}")
            elif name == FOLDERS_DIR:
                for sub in await self.storage.list_children(f"{base}/{name}"):
                    sub_rel = f"{child_rel}/{sub}"
                    dirs.append(sub_rel)
                    sub_files, sub_dirs = await self._list_tree(root, sub_rel)
                    files.extend(sub_files)
                    dirs.extend(sub_dirs)
            else:
                files.append(child_rel)
        return files, dirs

    async def _copy_tree(
        self, src: str, dst: str, descriptor_file: str, descriptor: dict[str, Any]
    ) -> int:
        """
        Copy every document under ``src`` to ``dst``.

        The descriptor at the top of the tree is replaced by ``descriptor``.
        Returns the number of files written.
        """
        files, _ = await self._list_tree(src)
        contents: list[tuple[str, str]] = []
        for rel in files:
            if rel == descriptor_file:
                continue
            content = await self.storage.read_file(f"{src}/{rel}")
            if content is not None:
                contents.append((rel, content))

        self._debug_log(f"copy {len(contents) + 1} files {src} -> {dst}")
        await self.storage.create_directory(f"{dst}/{REQUESTS_DIR}")
        await self.storage.create_directory(f"{dst}/{FOLDERS_DIR}")
        for rel, content in contents:
            await self.storage.write_file(f"{dst}/{rel}", content)
        await self.storage.write_file(f"{dst}/{descriptor_file}", _dump(descriptor))
        return len(contents) + 1

    async def _delete_tree(self, path: str) -> None:
        self._debug_log(f"delete tree {path}")
        await self.storage.delete_directory(path, recursive=True)

    # =========================================================================
    # Reconciliation
    # =========================================================================

    async def _read_descriptor(self, name: str) -> Collection | None:
        content = await self.storage.read_file(collection_json_path(name))
        if content is None:
            return None
        return Collection.from_dict(json.loads(content))

    async def _reload_collection(self, name: str) -> Collection | None:
        """Replace the in-memory collection wholesale with its descriptor."""
        collection = await self._read_descriptor(name)
        self.index.remove(name)
        if collection is not None:
            self.index.put(collection)
        self._debug_log(f"reloaded {name}")
        return collection

    async def load_collections(self) -> OperationResult:
        """
        Rehydrate every collection from its descriptor.

        Collections whose descriptor is missing or unreadable are skipped;
        the rest still load. Runs under the lock of every listed collection
        and every loaded one, so it never overwrites a mutation in flight.
        """
        self.is_loading = True
        self.error = None
        try:
            dir_names = await self.storage.list_children(COLLECTIONS_DIR)
            keys = set(dir_names) | {_storage_key(name) for name in self.index}
            async with self._locks.acquire(*keys):
                collections: dict[str, Collection] = {}
                for dir_name in dir_names:
                    path = f"{COLLECTIONS_DIR}/{dir_name}/{COLLECTION_FILE}"
                    try:
                        content = await self.storage.read_file(path)
                        if content is None:
                            logger.debug("No descriptor in %s, skipping", dir_name)
                            continue
                        collection = Collection.from_dict(json.loads(content))
                    except (ValueError, KeyError, TypeError) as e:
                        logger.warning("Skipping unreadable collection %s: %s", path, e)
                        continue
                    collections[collection.name] = collection

                # Collections created after the listing hold keys outside this load
                kept = {
                    name: coll
                    for name, coll in self.index.collections.items()
                    if _storage_key(name) not in keys
                }
                self.index.replace_all({**kept, **collections})
            return OperationResult(
                status="success",
                message=f"Loaded {len(collections)} collections",
                data={"collections": list(collections)},
            )
        except Exception as e:
            return self._fail("load_collections", COLLECTIONS_DIR, f"Failed to load collections: {e}")
        finally:
            self.is_loading = False

    async def reload_collection(self, name: str) -> OperationResult:
        """Re-read one collection's descriptor, replacing the in-memory copy."""
        async with self._lock(name):
            try:
                collection = await self._reload_collection(name)
            except Exception as e:
                return self._fail("reload_collection", name, f"Failed to reload collection: {e}")
            if collection is None:
                return self._noop(f"Collection not found on storage: {name}")
            return OperationResult(status="success", message=f"Reloaded collection: {name}")

    # =========================================================================
    # Collections
    # =========================================================================

    async def create_collection(
        self, name: str, description: str | None = None
    ) -> OperationResult:
        """Create an empty collection with its descriptor and containers."""
        async with self._lock(name):
            reason = _invalid_name(name)
            if reason:
                return self._fail("create_collection", str(name), reason)
            clash = _conflicting_name(list(self.index), name)
            if clash is not None:
                return self._fail(
                    "create_collection", name, f"Collection already exists: {clash}"
                )

            collection = Collection(name=name, description=description)
            base = collection_path(name)
            try:
                await self.storage.create_directory(base)
                await self.storage.create_directory(requests_dir_path(name, None))
                await self.storage.create_directory(collection_folders_path(name))
                await self._persist(collection)
            except Exception as e:
                return self._fail("create_collection", name, f"Failed to create collection: {e}")

            self.index.put(collection)
            return self._ok("create_collection", name, f"Created collection: {name}")

    async def update_collection(self, name: str, updates: dict[str, Any]) -> OperationResult:
        """
        Update a collection's description and/or name.

        A name change is carried out by rename_collection().
        """
        unknown = set(updates) - {"name", "description"}
        if unknown:
            return self._fail(
                "update_collection", name, f"Unknown collection fields: {sorted(unknown)}"
            )

        if "description" in updates:
            async with self._lock(name):
                collection = self.index.get(name)
                if collection is None:
                    return self._noop(f"Collection not found: {name}")
                previous = collection.description
                collection.description = updates["description"]
                try:
                    await self._persist(collection)
                except Exception as e:
                    collection.description = previous
                    return self._fail(
                        "update_collection", name, f"Failed to update collection: {e}"
                    )

        new_name = updates.get("name")
        if new_name is not None and new_name != name:
            return await self.rename_collection(name, new_name)

        if self.index.get(name) is None:
            return self._noop(f"Collection not found: {name}")
        return self._ok("update_collection", name, f"Updated collection: {name}")

    async def rename_collection(self, old_name: str, new_name: str) -> OperationResult:
        """
        Move a collection to a new storage key.

        Reads every document under the old collection directory, writes them
        all under the new one with the updated descriptor, deletes the old
        directory, then reloads.
        """
        async with self._lock(old_name, new_name):
            collection = self.index.get(old_name)
            if collection is None:
                return self._noop(f"Collection not found: {old_name}")
            if new_name == old_name:
                return self._noop("Collection name unchanged")
            reason = _invalid_name(new_name)
            if reason:
                return self._fail("rename_collection", old_name, reason)
            clash = _conflicting_name(list(self.index), new_name, ignore=old_name)
            if clash is not None:
                return self._fail(
                    "rename_collection", old_name, f"Collection already exists: {clash}"
                )

            renamed = copy.deepcopy(collection)
            renamed.name = new_name
            src, dst = collection_path(old_name), collection_path(new_name)
            try:
                if src != dst:
                    await self._copy_tree(src, dst, COLLECTION_FILE, renamed.to_dict())
                else:
                    await self._persist(renamed)
                self.index.remove(old_name)
                self.index.put(renamed)
                if src != dst:
                    await self._delete_tree(src)
                await self._reload_collection(new_name)
            except Exception as e:
                await self._recover(old_name, new_name)
                return self._fail(
                    "rename_collection", old_name, f"Failed to rename collection: {e}"
                )

            return self._ok(
                "rename_collection",
                old_name,
                f"Renamed collection {old_name} to {new_name}",
                details={"new_name": new_name},
            )

    async def delete_collection(self, name: str) -> OperationResult:
        """Remove a collection from the index and (unless disabled) from storage."""
        async with self._lock(name):
            if self.index.get(name) is None:
                return self._noop(f"Collection not found: {name}")
            self.index.remove(name)
            if self.config.tree.purge_on_delete:
                try:
                    await self._delete_tree(collection_path(name))
                except Exception as e:
                    await self._recover(name)
                    return self._fail(
                        "delete_collection", name, f"Failed to delete collection: {e}"
                    )
            return self._ok("delete_collection", name, f"Deleted collection: {name}")

    async def import_collection(self, collection: Collection) -> OperationResult:
        """
        Create a whole collection tree in one go.

        Requests and folders keep the order they have in ``collection``.
        """
        async with self._lock(collection.name):
            name = collection.name
            reason = _invalid_name(name)
            if reason:
                return self._fail("import_collection", str(name), reason)
            clash = _conflicting_name(list(self.index), name)
            if clash is not None:
                return self._fail(
                    "import_collection", name, f"Collection already exists: {clash}"
                )
            problem = _find_tree_problem(collection)
            if problem:
                return self._fail("import_collection", name, problem)

            imported = copy.deepcopy(collection)
            base = collection_path(name)
            try:
                await self.storage.create_directory(base)
                await self.storage.create_directory(requests_dir_path(name, None))
                await self.storage.create_directory(collection_folders_path(name))
                await self._write_subtree(name, (), imported)
                await self._persist(imported)
                await self._reload_collection(name)
            except Exception as e:
                await self._recover(name)
                return self._fail("import_collection", name, f"Failed to import collection: {e}")

            request_count = sum(1 for _ in walk_requests(imported))
            return self._ok(
                "import_collection",
                name,
                f"Imported collection {name} ({request_count} requests)",
                data={"name": name, "requests": request_count},
            )

    # =========================================================================
    # Folders
    # =========================================================================

    async def create_folder(
        self, collection: str, parent_path: FolderPath | None, name: str
    ) -> OperationResult:
        """Create an empty folder at the end of the parent's folder list."""
        parent_path = tuple(parent_path or ())
        label = _path_label(collection, parent_path, name)
        async with self._lock(collection):
            coll = self.index.get(collection)
            parent = self.index.resolve(collection, parent_path)
            if coll is None or parent is None:
                return self._noop(f"Folder not found: {_path_label(collection, parent_path)}")
            reason = _invalid_name(name)
            if reason:
                return self._fail("create_folder", label, reason)
            clash = _conflicting_name([f.name for f in parent.folders], name)
            if clash is not None:
                return self._fail("create_folder", label, f"Folder already exists: {clash}")

            folder = Folder(name=name)
            new_path = parent_path + (name,)
            try:
                await self.storage.create_directory(folder_path(collection, new_path))
                await self.storage.create_directory(
                    requests_dir_path(collection, new_path)
                )
                await self.storage.write_file(
                    folder_json_path(collection, new_path), _dump(folder.to_leaf_dict())
                )
                parent.folders.append(folder)
                await self._persist(coll)
            except Exception as e:
                await self._recover(collection)
                return self._fail("create_folder", label, f"Failed to create folder: {e}")

            return self._ok("create_folder", label, f"Created folder: {label}")

    async def rename_folder(
        self, collection: str, path: FolderPath, new_name: str
    ) -> OperationResult:
        """
        Rename a folder in place (same parent, same position).

        The folder's whole durable subtree is copied to the new directory, the
        descriptor is persisted, the old directory is removed and the
        collection is reloaded.
        """
        path = tuple(path)
        label = _path_label(collection, path)
        async with self._lock(collection):
            coll = self.index.get(collection)
            found = self.index.find_parent(collection, path)
            if coll is None or found is None:
                return self._noop(f"Folder not found: {label}")
            parent, folder = found
            if new_name == folder.name:
                return self._noop("Folder name unchanged")
            reason = _invalid_name(new_name)
            if reason:
                return self._fail("rename_folder", label, reason)
            clash = _conflicting_name(
                [f.name for f in parent.folders], new_name, ignore=folder.name
            )
            if clash is not None:
                return self._fail("rename_folder", label, f"Folder already exists: {clash}")

            new_path = path[:-1] + (new_name,)
            src, dst = folder_path(collection, path), folder_path(collection, new_path)
            descriptor = replace(folder, name=new_name).to_leaf_dict()
            try:
                if src != dst:
                    await self._copy_tree(src, dst, FOLDER_FILE, descriptor)
                else:
                    await self.storage.write_file(f"{dst}/{FOLDER_FILE}", _dump(descriptor))
                folder.name = new_name
                await self._persist(coll)
                if src != dst:
                    await self._delete_tree(src)
                await self._reload_collection(collection)
            except Exception as e:
                await self._recover(collection)
                return self._fail("rename_folder", label, f"Failed to rename folder: {e}")

            return self._ok(
                "rename_folder",
                label,
                f"Renamed folder {label} to {new_name}",
                details={"new_name": new_name},
            )

    async def delete_folder(self, collection: str, path: FolderPath) -> OperationResult:
        """Remove a folder and everything beneath it."""
        path = tuple(path)
        label = _path_label(collection, path)
        async with self._lock(collection):
            coll = self.index.get(collection)
            found = self.index.find_parent(collection, path)
            if coll is None or found is None:
                return self._noop(f"Folder not found: {label}")
            parent, folder = found
            try:
                parent.folders.remove(folder)
                await self._persist(coll)
                if self.config.tree.purge_on_delete:
                    await self._delete_tree(folder_path(collection, path))
            except Exception as e:
                await self._recover(collection)
                return self._fail("delete_folder", label, f"Failed to delete folder: {e}")

            return self._ok("delete_folder", label, f"Deleted folder: {label}")

    async def move_folder(
        self, collection: str, from_path: FolderPath, to_path: FolderPath
    ) -> OperationResult:
        """
        Move a folder to a new position inside the same collection.

        Args:
            collection: Collection name.
            from_path: Current path of the folder.
            to_path: Full new path (destination parent path + folder name).
                The last segment may differ from the current name.
        """
        from_path, to_path = tuple(from_path), tuple(to_path)
        label = _path_label(collection, from_path)
        async with self._lock(collection):
            if from_path and is_same_or_descendant(to_path, from_path):
                return self._fail(
                    "move_folder",
                    label,
                    f"Cannot move folder {label} into itself or one of its subfolders",
                )
            coll = self.index.get(collection)
            found = self.index.find_parent(collection, from_path)
            if coll is None or found is None:
                return self._noop(f"Folder not found: {label}")
            if not to_path:
                return self._fail("move_folder", label, "Destination path must not be empty")
            source_parent, folder = found
            dest_parent = self.index.resolve(collection, to_path[:-1])
            if dest_parent is None:
                return self._noop(
                    f"Destination folder not found: {_path_label(collection, to_path[:-1])}"
                )
            new_name = to_path[-1]
            reason = _invalid_name(new_name)
            if reason:
                return self._fail("move_folder", label, reason)
            clash = _conflicting_name(
                [f.name for f in dest_parent.folders if f is not folder], new_name
            )
            if clash is not None:
                return self._fail(
                    "move_folder", label, f"Folder already exists at destination: {clash}"
                )

            src, dst = folder_path(collection, from_path), folder_path(collection, to_path)
            descriptor = replace(folder, name=new_name).to_leaf_dict()
            try:
                if src != dst:
                    await self._copy_tree(src, dst, FOLDER_FILE, descriptor)
                else:
                    await self.storage.write_file(f"{dst}/{FOLDER_FILE}", _dump(descriptor))
                if dest_parent is not source_parent:
                    source_parent.folders.remove(folder)
                    dest_parent.folders.append(folder)
                folder.name = new_name
                await self._persist(coll)
                if src != dst:
                    await self._delete_tree(src)
                await self._reload_collection(collection)
            except Exception as e:
                await self._recover(collection)
                return self._fail("move_folder", label, f"Failed to move folder: {e}")

            to_label = _path_label(collection, to_path)
            return self._ok(
                "move_folder",
                label,
                f"Moved folder {label} to {to_label}",
                details={"destination": to_label},
            )

    # =========================================================================
    # Requests
    # =========================================================================

    async def create_request(
        self, collection: str, folder_path: FolderPath | None, request: Request
    ) -> OperationResult:
        """Write a new request document and append it to its owner."""
        label = _path_label(collection, folder_path, getattr(request, "name", None))
        async with self._lock(collection):
            coll = self.index.get(collection)
            node = self.index.resolve(collection, folder_path)
            if coll is None or node is None:
                return self._noop(f"Folder not found: {_path_label(collection, folder_path)}")
            reason = _invalid_name(request.name)
            if reason:
                return self._fail("create_request", label, reason)
            clash = _conflicting_name([r.name for r in node.requests], request.name)
            if clash is not None:
                return self._fail("create_request", label, f"Request already exists: {clash}")

            created = request.clone()
            try:
                await self._write_request(collection, folder_path, created)
                node.requests.append(created)
                await self._persist(coll)
            except Exception as e:
                await self._recover(collection)
                return self._fail("create_request", label, f"Failed to create request: {e}")

            return self._ok("create_request", label, f"Created request: {label}")

    async def update_request(
        self,
        collection: str,
        folder_path: FolderPath | None,
        name: str,
        updates: dict[str, Any],
    ) -> OperationResult:
        """
        Merge a partial update into a request (content only, no path change).

        Keys are Request field names (the camelCase document names are also
        accepted). Use rename_request() to change the name.
        """
        label = _path_label(collection, folder_path, name)
        async with self._lock(collection):
            coll = self.index.get(collection)
            node = self.index.resolve(collection, folder_path)
            request = find_child_request(node, name) if node is not None else None
            if coll is None or node is None or request is None:
                return self._noop(f"Request not found: {label}")

            changes: dict[str, Any] = {}
            for key, value in updates.items():
                field_name = _REQUEST_CAMEL_FIELDS.get(key, key)
                if field_name == "name":
                    if value != name:
                        return self._fail(
                            "update_request", label, "Use rename_request to change a request name"
                        )
                    continue
                if field_name not in _REQUEST_FIELDS:
                    return self._fail("update_request", label, f"Unknown request field: {key}")
                changes[field_name] = _coerce_request_field(field_name, value)

            try:
                updated = replace(request, **changes)
                await self._write_request(collection, folder_path, updated)
                node.requests[node.requests.index(request)] = updated
                await self._persist(coll)
            except Exception as e:
                await self._recover(collection)
                return self._fail("update_request", label, f"Failed to update request: {e}")

            return self._ok(
                "update_request",
                label,
                f"Updated request: {label}",
                details={"fields": sorted(changes)},
            )

    async def rename_request(
        self,
        collection: str,
        folder_path: FolderPath | None,
        old_name: str,
        new_name: str,
    ) -> OperationResult:
        """Move a request document to the path of its new name, then reload."""
        label = _path_label(collection, folder_path, old_name)
        async with self._lock(collection):
            coll = self.index.get(collection)
            node = self.index.resolve(collection, folder_path)
            request = find_child_request(node, old_name) if node is not None else None
            if coll is None or node is None or request is None:
                return self._noop(f"Request not found: {label}")
            if new_name == old_name:
                return self._noop("Request name unchanged")
            reason = _invalid_name(new_name)
            if reason:
                return self._fail("rename_request", label, reason)
            clash = _conflicting_name(
                [r.name for r in node.requests], new_name, ignore=old_name
            )
            if clash is not None:
                return self._fail("rename_request", label, f"Request already exists: {clash}")

            old_path = request_path(collection, folder_path, old_name)
            new_path = request_path(collection, folder_path, new_name)
            try:
                content = await self.storage.read_file(old_path)
                data = json.loads(content) if content is not None else request.to_dict()
                data["name"] = new_name
                await self.storage.write_file(new_path, _dump(data))
                request.name = new_name
                await self._persist(coll)
                if new_path != old_path:
                    await self.storage.delete_file(old_path)
                await self._reload_collection(collection)
            except Exception as e:
                await self._recover(collection)
                return self._fail("rename_request", label, f"Failed to rename request: {e}")

            return self._ok(
                "rename_request",
                label,
                f"Renamed request {label} to {new_name}",
                details={"new_name": new_name},
            )

    async def delete_request(
        self, collection: str, folder_path: FolderPath | None, name: str
    ) -> OperationResult:
        label = _path_label(collection, folder_path, name)
        async with self._lock(collection):
            coll = self.index.get(collection)
            node = self.index.resolve(collection, folder_path)
            request = find_child_request(node, name) if node is not None else None
            if coll is None or node is None or request is None:
                return self._noop(f"Request not found: {label}")
            try:
                node.requests.remove(request)
                await self._persist(coll)
                if self.config.tree.purge_on_delete:
                    await self.storage.delete_file(request_path(collection, folder_path, name))
            except Exception as e:
                await self._recover(collection)
                return self._fail("delete_request", label, f"Failed to delete request: {e}")

            return self._ok("delete_request", label, f"Deleted request: {label}")

    async def move_request(
        self,
        from_collection: str,
        from_folder: FolderPath | None,
        to_collection: str,
        to_folder: FolderPath | None,
        name: str,
    ) -> OperationResult:
        """Move a request to another folder, possibly in another collection."""
        label = _path_label(from_collection, from_folder, name)
        to_label = _path_label(to_collection, to_folder)
        async with self._lock(from_collection, to_collection):
            source_coll = self.index.get(from_collection)
            source = self.index.resolve(from_collection, from_folder)
            request = find_child_request(source, name) if source is not None else None
            if source_coll is None or source is None or request is None:
                return self._noop(f"Request not found: {label}")
            if from_collection == to_collection and tuple(from_folder or ()) == tuple(
                to_folder or ()
            ):
                return self._noop("Request is already at the destination")
            dest_coll = self.index.get(to_collection)
            dest = self.index.resolve(to_collection, to_folder)
            if dest_coll is None or dest is None:
                return self._noop(f"Destination folder not found: {to_label}")
            clash = _conflicting_name([r.name for r in dest.requests], name)
            if clash is not None:
                return self._fail(
                    "move_request", label, f"Request already exists at destination: {clash}"
                )

            old_path = request_path(from_collection, from_folder, name)
            new_path = request_path(to_collection, to_folder, name)
            try:
                content = await self.storage.read_file(old_path)
                if content is None:
                    content = _dump(request.to_dict())
                await self.storage.create_directory(
                    requests_dir_path(to_collection, to_folder)
                )
                await self.storage.write_file(new_path, content)
                source.requests.remove(request)
                dest.requests.append(request)
                await self._persist(source_coll)
                if dest_coll is not source_coll:
                    await self._persist(dest_coll)
                await self.storage.delete_file(old_path)
                await self._reload_collection(from_collection)
                if to_collection != from_collection:
                    await self._reload_collection(to_collection)
            except Exception as e:
                await self._recover(from_collection, to_collection)
                return self._fail("move_request", label, f"Failed to move request: {e}")

            return self._ok(
                "move_request",
                label,
                f"Moved request {label} to {to_label}",
                details={"destination": to_label},
            )

    # =========================================================================
    # Ordering
    # =========================================================================

    async def reorder_items(
        self,
        collection: str,
        folder_path: FolderPath | None,
        item_type: ItemType | str,
        from_index: int,
        to_index: int,
    ) -> OperationResult:
        """
        Move the child at ``from_index`` to ``to_index`` (a stable array move).

        Args:
            item_type: "folder" or "request" - which child list to reorder.
        """
        label = _path_label(collection, folder_path)
        async with self._lock(collection):
            try:
                kind = ItemType(item_type)
            except ValueError:
                return self._fail("reorder_items", label, f"Unknown item type: {item_type}")
            coll = self.index.get(collection)
            node = self.index.resolve(collection, folder_path)
            if coll is None or node is None:
                return self._noop(f"Folder not found: {label}")

            items: list[Any] = node.folders if kind is ItemType.FOLDER else node.requests
            for index in (from_index, to_index):
                if not isinstance(index, int) or not 0 <= index < len(items):
                    return self._fail(
                        "reorder_items", label, f"Index out of range: {index} (size {len(items)})"
                    )
            if from_index == to_index:
                return self._noop("Item already at that position")

            try:
                moved = items.pop(from_index)
                items.insert(to_index, moved)
                await self._persist(coll)
                await self._reload_collection(collection)
            except Exception as e:
                await self._recover(collection)
                return self._fail("reorder_items", label, f"Failed to reorder items: {e}")

            return self._ok(
                "reorder_items",
                label,
                f"Moved {kind.value} from {from_index} to {to_index}",
                details={"item_type": kind.value, "from": from_index, "to": to_index},
            )

    # =========================================================================
    # Orphans
    # =========================================================================

    def _expected_documents(self, coll: Collection) -> tuple[set[str], set[str]]:
        """Relative (files, folder dirs) the descriptor accounts for."""
        files = {COLLECTION_FILE}
        dirs: set[str] = set()
        for request in coll.requests:
            files.add(f"{REQUESTS_DIR}/{request_file_name(request.name)}")
        for path, folder in walk_folders(coll):
            rel = "/".join(f"{FOLDERS_DIR}/{sanitize_file_name(p)}" for p in path)
            dirs.add(rel)
            files.add(f"{rel}/{FOLDER_FILE}")
            for request in folder.requests:
                files.add(f"{rel}/{REQUESTS_DIR}/{request_file_name(request.name)}")
        return files, dirs

    async def _scan_orphans(self, name: str) -> tuple[list[str], list[str]]:
        coll = self.index.get(name)
        if coll is None:
            return [], []
        root = collection_path(name)
        files, dirs = await self._list_tree(root)
        expected_files, expected_dirs = self._expected_documents(coll)
        # Only the topmost unreferenced folder directory; its contents go with it
        orphan_dirs: list[str] = []
        for d in dirs:
            if d in expected_dirs or any(d.startswith(o + "/") for o in orphan_dirs):
                continue
            orphan_dirs.append(d)
        orphan_files = [
            f
            for f in files
            if f not in expected_files and not any(f.startswith(d + "/") for d in orphan_dirs)
        ]
        return [f"{root}/{f}" for f in orphan_files], [f"{root}/{d}" for d in orphan_dirs]

    async def find_orphans(self, collection: str) -> list[str]:
        """
        List documents stored under a collection that its descriptor does
        not reference (left behind by interrupted or tree-only deletes).

        Returns:
            Storage paths of orphaned files and orphaned folder directories.
        """
        async with self._lock(collection):
            files, dirs = await self._scan_orphans(collection)
            return sorted(dirs + files)

    async def purge_orphans(self, collection: str) -> OperationResult:
        """Delete every orphaned document found by find_orphans()."""
        async with self._lock(collection):
            if self.index.get(collection) is None:
                return self._noop(f"Collection not found: {collection}")
            try:
                files, dirs = await self._scan_orphans(collection)
                for path in dirs:
                    await self._delete_tree(path)
                for path in files:
                    await self.storage.delete_file(path)
            except Exception as e:
                return self._fail("purge_orphans", collection, f"Failed to purge orphans: {e}")

            deleted = sorted(dirs + files)
            if not deleted:
                return self._noop("No orphaned documents")
            return self._ok(
                "purge_orphans",
                collection,
                f"Deleted {len(deleted)} orphaned documents",
                data={"deleted": deleted},
            )


def _find_tree_problem(container: Container, prefix: str = "") -> str | None:
    """Return a description of the first invalid or clashing name, if any."""
    for kind, names in (
        ("Folder", [f.name for f in container.folders]),
        ("Request", [r.name for r in container.requests]),
    ):
        for i, name in enumerate(names):
            reason = _invalid_name(name)
            if reason:
                return f"{reason} ({prefix or '/'})"
            clash = _conflicting_name(names[:i], name)
            if clash is not None:
                return f"Duplicate {kind.lower()} name {name!r} in {prefix or '/'}"
    for folder in container.folders:
        problem = _find_tree_problem(folder, f"{prefix}/{folder.name}")
        if problem:
            return problem
    return None
