"""
In-memory index of loaded collections.

Pure structural navigation; no I/O. Folder paths are sequences of folder names
starting below the collection; None or an empty sequence addresses the
collection itself.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence

from postboy.types import Collection, Container, Folder, Request


def find_child_folder(container: Container, name: str) -> Folder | None:
    """Return the direct child folder called ``name``."""
    for folder in container.folders:
        if folder.name == name:
            return folder
    return None


def find_child_request(container: Container, name: str) -> Request | None:
    """Return the direct child request called ``name``."""
    for request in container.requests:
        if request.name == name:
            return request
    return None


def count_requests(container: Container) -> int:
    """Number of requests anywhere beneath ``container``."""
    return len(container.requests) + sum(count_requests(f) for f in container.folders)


def walk_folders(
    container: Container, prefix: tuple[str, ...] = ()
) -> Iterator[tuple[tuple[str, ...], Folder]]:
    """Yield (path, folder) for every folder beneath ``container``, depth-first."""
    for folder in container.folders:
        path = prefix + (folder.name,)
        yield path, folder
        yield from walk_folders(folder, path)


def walk_requests(
    container: Container, prefix: tuple[str, ...] = ()
) -> Iterator[tuple[tuple[str, ...], Request]]:
    """Yield (folder path, request) for every request beneath ``container``."""
    for request in container.requests:
        yield prefix, request
    for folder in container.folders:
        yield from walk_requests(folder, prefix + (folder.name,))


class TreeIndex:
    """Map from collection name to its loaded Collection tree."""

    def __init__(self) -> None:
        self.collections: dict[str, Collection] = {}

    def __contains__(self, name: object) -> bool:
        return name in self.collections

    def __len__(self) -> int:
        return len(self.collections)

    def __iter__(self) -> Iterator[str]:
        return iter(self.collections)

    def get(self, name: str) -> Collection | None:
        return self.collections.get(name)

    def put(self, collection: Collection) -> None:
        """Insert or replace a collection under its own name."""
        self.collections[collection.name] = collection

    def remove(self, name: str) -> Collection | None:
        return self.collections.pop(name, None)

    def replace_all(self, collections: dict[str, Collection]) -> None:
        self.collections = dict(collections)

    def resolve(
        self, collection: str, folder_path: Sequence[str] | None
    ) -> Container | None:
        """
        Walk the folder-name chain one segment at a time.

        Returns:
            The collection (empty path) or the addressed folder, or None if
            the collection or any segment is missing.
        """
        node: Container | None = self.collections.get(collection)
        for name in folder_path or ():
            if node is None:
                return None
            node = find_child_folder(node, name)
        return node

    def find_folder(self, collection: str, folder_path: Sequence[str]) -> Folder | None:
        """Resolve a non-empty folder path to its Folder."""
        if not folder_path:
            return None
        node = self.resolve(collection, folder_path)
        return node if isinstance(node, Folder) else None

    def find_parent(
        self, collection: str, folder_path: Sequence[str]
    ) -> tuple[Container, Folder] | None:
        """Return (parent container, folder) for a non-empty folder path."""
        if not folder_path:
            return None
        parent = self.resolve(collection, folder_path[:-1])
        if parent is None:
            return None
        folder = find_child_folder(parent, folder_path[-1])
        if folder is None:
            return None
        return parent, folder

    def find_request(
        self, collection: str, folder_path: Sequence[str] | None, name: str
    ) -> Request | None:
        node = self.resolve(collection, folder_path)
        if node is None:
            return None
        return find_child_request(node, name)

    def count_requests(self) -> int:
        """Total number of requests across every loaded collection."""
        return sum(count_requests(c) for c in self.collections.values())
