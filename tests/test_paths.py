from __future__ import annotations

import pytest

from postboy.paths import (
    collection_json_path,
    collection_path,
    container_path,
    environment_path,
    folder_json_path,
    folder_path,
    is_same_or_descendant,
    request_path,
    requests_dir_path,
    sanitize_file_name,
    workspace_dir_name,
)


@pytest.mark.parametrize(
    "name, expected",
    [
        ("Orders", "Orders"),
        ("Create Order", "Create_Order"),
        ("v1.2-beta_x", "v1.2-beta_x"),
        ("a/b\\c", "a_b_c"),
        ("Café", "Caf_"),
        ("{{url}}", "__url__"),
        ("", ""),
    ],
)
def test_sanitize_file_name(name: str, expected: str) -> None:
    assert sanitize_file_name(name) == expected


@pytest.mark.parametrize("name", ["Orders", "a b/c", "ünï cödé", "..", "tab\there", "🚀 launch"])
def test_sanitize_is_idempotent(name: str) -> None:
    once = sanitize_file_name(name)
    assert sanitize_file_name(once) == once


def test_sanitize_is_not_injective() -> None:
    assert sanitize_file_name("a b") == sanitize_file_name("a/b") == "a_b"


def test_layout_paths() -> None:
    assert collection_path("My API") == "collections/My_API"
    assert collection_json_path("My API") == "collections/My_API/collection.json"
    assert folder_path("C", ["Admin", "Sub Folder"]) == "collections/C/folders/Admin/folders/Sub_Folder"
    assert folder_json_path("C", ["Admin"]) == "collections/C/folders/Admin/folder.json"
    assert container_path("C", None) == "collections/C"
    assert request_path("C", None, "Get user") == "collections/C/requests/Get_user.request.json"
    assert (
        request_path("C", ["Admin"], "Ban")
        == "collections/C/folders/Admin/requests/Ban.request.json"
    )
    assert environment_path("Dev / Local") == "environments/Dev___Local.env.json"


def test_paths_do_not_encode_order() -> None:
    assert request_path("C", ["A"], "x") == request_path("C", ("A",), "x")
    assert folder_path("C", ["A", "B"]) != folder_path("C", ["B", "A"])


def test_requests_dir_is_shared_by_root_and_folders() -> None:
    assert requests_dir_path("My API", None) == "collections/My_API/requests"
    assert requests_dir_path("My API", ["A b"]) == "collections/My_API/folders/A_b/requests"
    assert request_path("C", ["A"], "x").startswith(requests_dir_path("C", ["A"]) + "/")


def test_workspace_dir_name() -> None:
    assert workspace_dir_name("My APIs 2024") == "my-apis-2024"


def test_is_same_or_descendant_compares_segments() -> None:
    assert is_same_or_descendant(["A"], ["A"])
    assert is_same_or_descendant(["A", "B", "C"], ["A"])
    assert not is_same_or_descendant(["AB"], ["A"])
    assert not is_same_or_descendant(["A"], ["A", "B"])
    assert not is_same_or_descendant(["B", "A"], ["A"])
