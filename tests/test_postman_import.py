from __future__ import annotations

import json

import pytest

from helpers import shape
from postboy.importers import convert_collection, parse_postman_collection, parse_postman_environment
from postboy.importers.postman import PostmanCollection


def _export(items: list, **info) -> str:
    return json.dumps({"info": {"name": "Shop", **info}, "item": items})


def test_nested_folders_keep_order() -> None:
    text = _export(
        [
            {"name": "Health", "request": {"method": "get", "url": "https://shop.test/health"}},
            {
                "name": "Orders",
                "item": [
                    {"name": "List", "request": {"method": "GET"}},
                    {"name": "Admin", "item": [{"name": "Purge", "request": {"method": "DELETE"}}]},
                    {"name": "Create", "request": {"method": "POST"}},
                ],
            },
            {"name": "Empty", "item": []},
        ],
        description="Shop API",
    )

    collection = parse_postman_collection(text)

    assert collection.name == "Shop"
    assert collection.description == "Shop API"
    assert shape(collection) == {
        "folders": [
            (
                "Orders",
                {
                    "folders": [("Admin", {"folders": [], "requests": ["Purge"]})],
                    "requests": ["List", "Create"],
                },
            ),
            ("Empty", {"folders": [], "requests": []}),
        ],
        "requests": ["Health"],
    }
    assert collection.requests[0].method == "GET"


def test_url_object_is_rebuilt_and_query_converted() -> None:
    text = _export(
        [
            {
                "name": "Search",
                "request": {
                    "method": "GET",
                    "url": {
                        "host": ["api", "shop", "test"],
                        "path": ["v1", "search"],
                        "query": [
                            {"key": "q", "value": "shoes"},
                            {"key": "debug", "value": "1", "disabled": True},
                        ],
                    },
                    "header": [
                        {"key": "Accept", "value": "application/json"},
                        {"key": "X-Trace", "value": "on", "disabled": True},
                    ],
                },
            },
            {"name": "Raw", "request": {"url": {"raw": "http://x.test/a?b=1", "protocol": "ftp"}}},
        ]
    )

    search, raw = parse_postman_collection(text).requests

    assert search.url == "https://api.shop.test/v1/search"
    assert [(q.key, q.value, q.enabled) for q in search.query_params] == [
        ("q", "shoes", True),
        ("debug", "1", False),
    ]
    assert [(h.key, h.enabled) for h in search.headers] == [("Accept", True), ("X-Trace", False)]
    assert raw.url == "http://x.test/a?b=1"
    assert raw.method == "GET"


def test_body_modes() -> None:
    text = _export(
        [
            {"name": "Raw", "request": {"method": "POST", "body": {"mode": "raw", "raw": "{}"}}},
            {
                "name": "Form",
                "request": {
                    "method": "POST",
                    "body": {
                        "mode": "formdata",
                        "formdata": [
                            {"key": "file", "type": "file", "src": "/tmp/a"},
                            {"key": "note", "value": "hi", "disabled": True},
                        ],
                    },
                },
            },
            {
                "name": "Encoded",
                "request": {
                    "method": "POST",
                    "body": {"mode": "urlencoded", "urlencoded": [{"key": "a", "value": 1, "type": "file"}]},
                },
            },
            {"name": "Graph", "request": {"method": "POST", "body": {"mode": "graphql"}}},
        ]
    )

    raw, form, encoded, graph = parse_postman_collection(text).requests

    assert (raw.body.mode, raw.body.raw, raw.body.raw_language) == ("raw", "{}", "json")
    assert [(f.key, f.value, f.type, f.enabled) for f in form.body.formdata] == [
        ("file", "", "file", True),
        ("note", "hi", "text", False),
    ]
    assert [(f.key, f.value, f.type) for f in encoded.body.urlencoded] == [("a", "1", "text")]
    assert graph.body is None


@pytest.mark.parametrize(
    ("text", "message"),
    [
        ("not json", "Invalid JSON file"),
        (json.dumps({"item": []}), "Invalid Postman collection format: missing info"),
        (json.dumps({"info": {"name": "X"}}), "Invalid Postman collection format: missing items"),
        (json.dumps([1, 2]), "Invalid Postman collection format: missing info"),
    ],
)
def test_invalid_collection_exports(text: str, message: str) -> None:
    with pytest.raises(ValueError) as excinfo:
        parse_postman_collection(text)

    assert str(excinfo.value) == message


def test_item_without_name_is_rejected() -> None:
    with pytest.raises(ValueError, match="Invalid Postman collection format"):
        parse_postman_collection(_export([{"request": {"method": "GET"}}]))


def test_convert_collection_from_model() -> None:
    postman = PostmanCollection.model_validate(
        {"info": {"name": "M"}, "item": [{"name": "Ping", "request": {"url": "https://m.test"}}]}
    )

    collection = convert_collection(postman)

    assert [r.url for r in collection.requests] == ["https://m.test"]


def test_environment_export() -> None:
    name, variables = parse_postman_environment(
        json.dumps(
            {
                "name": "prod",
                "values": [
                    {"key": "url", "value": "https://shop.test", "enabled": False},
                    {"key": "token", "value": "s3cret", "type": "secret"},
                    {"key": "retries", "value": 3, "type": "default"},
                ],
            }
        )
    )

    assert name == "prod"
    assert [(v.key, v.value, v.type, v.enabled) for v in variables] == [
        ("url", "https://shop.test", "string", True),
        ("token", "s3cret", "secret", True),
        ("retries", "3", "string", True),
    ]


@pytest.mark.parametrize(
    "text",
    ["{", json.dumps({"values": []}), json.dumps({"name": "", "values": []}), json.dumps({"name": "x"})],
)
def test_invalid_environment_exports(text: str) -> None:
    with pytest.raises(ValueError, match="Invalid"):
        parse_postman_environment(text)
