"""
Postman v2.1 import.

Parses Postman collection and environment exports with pydantic models and
converts them into PostBoy types. Items carrying a ``request`` become
requests; items carrying ``item`` become folders, at any depth.
"""

from __future__ import annotations

import json
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from postboy.types import (
    Collection,
    Container,
    EnvironmentVariable,
    Folder,
    FormDataItem,
    Header,
    HttpMethod,
    QueryParam,
    Request,
    RequestBody,
)


class _PostmanModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class PostmanInfo(_PostmanModel):
    name: str
    description: str | None = None


class PostmanKeyValue(_PostmanModel):
    """Header, query parameter or body field row."""

    key: str = ""
    value: Any = None
    type: str | None = None
    disabled: bool = False


class PostmanUrl(_PostmanModel):
    raw: str | None = None
    protocol: str | None = None
    host: list[str] | None = None
    path: list[str] | None = None
    query: list[PostmanKeyValue] | None = None


class PostmanBody(_PostmanModel):
    mode: str | None = None
    raw: str | None = None
    urlencoded: list[PostmanKeyValue] | None = None
    formdata: list[PostmanKeyValue] | None = None


class PostmanRequest(_PostmanModel):
    method: str | None = None
    header: list[PostmanKeyValue] | None = None
    url: Union[PostmanUrl, str, None] = None
    body: PostmanBody | None = None
    description: str | None = None


class PostmanItem(_PostmanModel):
    name: str
    description: str | None = None
    request: PostmanRequest | None = None
    item: list[PostmanItem] | None = None


PostmanItem.model_rebuild()


class PostmanCollection(_PostmanModel):
    info: PostmanInfo
    item: list[PostmanItem]


class PostmanVariable(_PostmanModel):
    key: str
    value: Any = None
    type: str | None = None


class PostmanEnvironment(_PostmanModel):
    name: str = Field(min_length=1)
    values: list[PostmanVariable]


# =============================================================================
# Conversion
# =============================================================================


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _convert_url(url: PostmanUrl | str | None) -> tuple[str, list[QueryParam]]:
    if url is None:
        return "", []
    if isinstance(url, str):
        return url, []

    if url.raw:
        text = url.raw
    else:
        protocol = url.protocol or "https"
        host = ".".join(url.host or [])
        path = "/".join(url.path or [])
        text = f"{protocol}://{host}/{path}"
    query = [
        QueryParam(key=q.key, value=_text(q.value), enabled=not q.disabled)
        for q in url.query or []
    ]
    return text, query


def _convert_fields(items: list[PostmanKeyValue] | None, keep_type: bool) -> list[FormDataItem]:
    return [
        FormDataItem(
            key=item.key,
            value=_text(item.value),
            type="file" if keep_type and item.type == "file" else "text",
            enabled=not item.disabled,
        )
        for item in items or []
    ]


def _convert_body(body: PostmanBody | None) -> RequestBody | None:
    if body is None:
        return None
    if body.mode == "raw":
        return RequestBody(mode="raw", raw=body.raw or "", raw_language="json")
    if body.mode == "urlencoded":
        return RequestBody(mode="urlencoded", urlencoded=_convert_fields(body.urlencoded, False))
    if body.mode == "formdata":
        return RequestBody(mode="formdata", formdata=_convert_fields(body.formdata, True))
    # Other modes (file, graphql) are not carried over
    return None


def convert_request(item: PostmanItem) -> Request:
    """Convert a Postman request item."""
    pm_request = item.request or PostmanRequest()
    url, query_params = _convert_url(pm_request.url)
    return Request(
        name=item.name,
        description=item.description,
        method=HttpMethod.normalize(pm_request.method or "GET"),
        url=url,
        headers=[
            Header(key=h.key, value=_text(h.value), enabled=not h.disabled)
            for h in pm_request.header or []
        ],
        query_params=query_params,
        body=_convert_body(pm_request.body),
    )


def convert_collection(postman: PostmanCollection) -> Collection:
    """Convert a validated Postman collection, keeping item order."""
    collection = Collection(name=postman.info.name, description=postman.info.description)

    def process(items: list[PostmanItem], parent: Container) -> None:
        for item in items:
            if item.request is not None:
                parent.requests.append(convert_request(item))
            elif item.item is not None:
                folder = Folder(name=item.name, description=item.description)
                parent.folders.append(folder)
                process(item.item, folder)

    process(postman.item, collection)
    return collection


def _load_json(text: str) -> Any:
    try:
        return json.loads(text)
    except ValueError:
        raise ValueError("Invalid JSON file") from None


def parse_postman_collection(text: str) -> Collection:
    """
    Parse a Postman v2.1 collection export.

    Raises:
        ValueError: If the text is not JSON or not a Postman collection.
    """
    data = _load_json(text)
    if not isinstance(data, dict) or not data.get("info"):
        raise ValueError("Invalid Postman collection format: missing info")
    if not isinstance(data.get("item"), list):
        raise ValueError("Invalid Postman collection format: missing items")
    try:
        postman = PostmanCollection.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Invalid Postman collection format: {e.error_count()} errors") from e
    return convert_collection(postman)


def parse_postman_environment(text: str) -> tuple[str, list[EnvironmentVariable]]:
    """
    Parse a Postman environment export.

    Returns:
        (environment name, variables). Every variable is enabled; ``secret``
        variables keep their type.
    """
    data = _load_json(text)
    try:
        postman = PostmanEnvironment.model_validate(data)
    except ValidationError:
        raise ValueError("Invalid Postman environment format") from None
    variables = [
        EnvironmentVariable(
            key=v.key,
            value=_text(v.value),
            type="secret" if v.type == "secret" else "string",
        )
        for v in postman.values
    ]
    return postman.name, variables
