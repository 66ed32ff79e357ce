"""
Workspace layout: maps collections, folder chains, requests and environments
to storage paths.

    collections/<C>/collection.json
    collections/<C>/requests/<R>.request.json
    collections/<C>/folders/<F1>/folder.json
    collections/<C>/folders/<F1>/requests/<R>.request.json
    collections/<C>/folders/<F1>/folders/<F2>/folder.json
    environments/<E>.env.json
    .apiclient/workspace.json
    .apiclient/index.json

Every segment is passed through sanitize_file_name(). Sibling order is never
encoded in a path; it lives only in the collection descriptor.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

COLLECTIONS_DIR = "collections"
ENVIRONMENTS_DIR = "environments"
APICLIENT_DIR = ".apiclient"
RUNS_DIR = f"{APICLIENT_DIR}/runs"

COLLECTION_FILE = "collection.json"
FOLDER_FILE = "folder.json"
REQUESTS_DIR = "requests"
FOLDERS_DIR = "folders"
REQUEST_SUFFIX = ".request.json"
ENVIRONMENT_SUFFIX = ".env.json"

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")
_WORKSPACE_UNSAFE_CHARS = re.compile(r"[^a-z0-9]")

FolderPath = Sequence[str]


def sanitize_file_name(name: str) -> str:
    """
    Replace every character outside [A-Za-z0-9._-] with "_".

    Idempotent, but not injective: "a b" and "a/b" both map to "a_b".
    """
    return _UNSAFE_CHARS.sub("_", name)


def workspace_dir_name(name: str) -> str:
    """Directory name for a workspace under <project root>/workspaces/."""
    return _WORKSPACE_UNSAFE_CHARS.sub("-", name.lower())


def collection_path(collection: str) -> str:
    return f"{COLLECTIONS_DIR}/{sanitize_file_name(collection)}"


def collection_json_path(collection: str) -> str:
    return f"{collection_path(collection)}/{COLLECTION_FILE}"


def collection_folders_path(collection: str) -> str:
    return f"{collection_path(collection)}/{FOLDERS_DIR}"


def folder_path(collection: str, folders: FolderPath) -> str:
    """Directory of the folder addressed by the chain of folder names."""
    path = collection_path(collection)
    for name in folders:
        path = f"{path}/{FOLDERS_DIR}/{sanitize_file_name(name)}"
    return path


def folder_json_path(collection: str, folders: FolderPath) -> str:
    return f"{folder_path(collection, folders)}/{FOLDER_FILE}"


def container_path(collection: str, folders: FolderPath | None) -> str:
    """Directory of the collection itself, or of a folder inside it."""
    return folder_path(collection, folders or ())


def request_path(collection: str, folders: FolderPath | None, name: str) -> str:
    """Path of a request document; ``folders`` None or empty means the collection root."""
    return f"{requests_dir_path(collection, folders)}/{request_file_name(name)}"


def requests_dir_path(collection: str, folders: FolderPath | None) -> str:
    """The requests/ directory of the collection root or of a folder."""
    return f"{container_path(collection, folders)}/{REQUESTS_DIR}"


def request_file_name(name: str) -> str:
    return f"{sanitize_file_name(name)}{REQUEST_SUFFIX}"


def environment_path(environment: str) -> str:
    return f"{ENVIRONMENTS_DIR}/{sanitize_file_name(environment)}{ENVIRONMENT_SUFFIX}"


def workspace_json_path() -> str:
    return f"{APICLIENT_DIR}/workspace.json"


def index_json_path() -> str:
    return f"{APICLIENT_DIR}/index.json"


def is_same_or_descendant(path: FolderPath, ancestor: FolderPath) -> bool:
    """True if ``path`` equals ``ancestor`` or lies anywhere beneath it."""
    return len(path) >= len(ancestor) and list(path[: len(ancestor)]) == list(ancestor)
