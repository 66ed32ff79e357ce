from __future__ import annotations

import re

from postboy.types import (
    Collection,
    Environment,
    Folder,
    FormDataItem,
    Header,
    HttpMethod,
    OperationResult,
    Request,
    RequestAuth,
    RequestBody,
    Workspace,
    utc_now_iso,
)


def test_request_document_uses_camel_case_keys() -> None:
    request = Request(
        name="Login",
        method="post",
        url="{{url}}/login",
        headers=[Header("Accept", "application/json")],
        body=RequestBody(mode="formdata", formdata=[FormDataItem("avatar", "a.png", type="file")]),
        auth=RequestAuth(type="oauth2", oauth2_grant_type="client_credentials", oauth2_client_id="id"),
        post_response_script="pm.test()",
    )

    doc = request.to_dict()

    assert doc["method"] == "POST"
    assert doc["queryParams"] == []
    assert doc["body"] == {
        "mode": "formdata",
        "formdata": [{"key": "avatar", "value": "a.png", "type": "file", "enabled": True}],
    }
    assert doc["auth"] == {
        "type": "oauth2",
        "oauth2GrantType": "client_credentials",
        "oauth2ClientId": "id",
    }
    assert doc["postResponseScript"] == "pm.test()"
    assert "description" not in doc
    assert Request.from_dict(doc) == request


def test_unknown_keys_survive_a_rewrite() -> None:
    doc = {
        "name": "R",
        "method": "GET",
        "url": "/",
        "headers": [],
        "queryParams": [],
        "tests": ["status is 200"],
        "body": {"mode": "graphql", "graphql": {"query": "{ me }"}},
    }

    assert Request.from_dict(doc).to_dict() == doc


def test_unknown_method_is_kept() -> None:
    assert Request(name="R", method="options").method == "options"
    assert Request(name="R", method=HttpMethod.DELETE).method == "DELETE"


def test_collection_descriptor_round_trip() -> None:
    collection = Collection(
        name="C",
        description="desc",
        folders=[Folder(name="F", folders=[Folder(name="G")], requests=[Request(name="r")])],
        requests=[Request(name="top", method="PUT")],
    )

    assert Collection.from_dict(collection.to_dict()) == collection


def test_folder_leaf_document_has_no_children() -> None:
    folder = Folder(name="F", description="d", folders=[Folder(name="G")], requests=[Request(name="r")])

    assert folder.to_leaf_dict() == {"name": "F", "description": "d", "folders": [], "requests": []}


def test_environment_and_workspace_documents() -> None:
    env = Environment.from_dict(
        {"name": "Dev", "variables": [{"key": "token", "value": "x", "type": "secret"}]}
    )
    assert env.variables[0].type == "secret"
    assert env.variables[0].enabled is True

    workspace = Workspace(name="W")
    doc = workspace.to_dict()
    assert doc["currentEnvironment"] is None
    assert Workspace.from_dict(doc) == workspace


def test_timestamps_are_utc_milliseconds() -> None:
    assert re.fullmatch(r"\d{4}-\d\d-\d\dT\d\d:\d\d:\d\d\.\d{3}Z", utc_now_iso())


def test_operation_result() -> None:
    assert OperationResult(status="success", message="done").ok
    assert not OperationResult(status="noop", message="nothing").ok
    assert OperationResult(status="error", message="x", data={"a": 1}).to_dict() == {
        "status": "error",
        "message": "x",
        "data": {"a": 1},
    }
