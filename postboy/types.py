"""
Core types for PostBoy - workspaces, collections, folders, requests and environments.

Python attributes are snake_case. The durable JSON documents keep the
camelCase keys written by earlier PostBoy versions, and any key a type does
not know about is carried in ``extra`` so it survives a rewrite.
"""

from __future__ import annotations

import copy
import datetime
import time
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Literal, Union


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string with millisecond precision."""
    now = datetime.datetime.now(datetime.timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _to_camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def _split_extra(data: dict[str, Any], known: set[str]) -> dict[str, Any]:
    return {k: copy.deepcopy(v) for k, v in data.items() if k not in known}


def _merge_extra(result: dict[str, Any], extra: dict[str, Any]) -> dict[str, Any]:
    for key, value in extra.items():
        if key not in result:
            result[key] = copy.deepcopy(value)
    return result


# =============================================================================
# Enums
# =============================================================================


class HttpMethod(str, Enum):
    """HTTP methods offered by the request editor."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"

    @classmethod
    def normalize(cls, value: str) -> str:
        """Upper-case a method name; unknown methods are kept as given."""
        upper = str(value.value if isinstance(value, Enum) else value).upper()
        return upper if upper in cls._value2member_map_ else str(value)


class ItemType(str, Enum):
    """Kind of child list addressed by a reorder."""

    FOLDER = "folder"
    REQUEST = "request"


BodyMode = Literal["none", "formdata", "urlencoded", "raw", "file"]
RawLanguage = Literal["json", "xml", "text", "javascript"]
AuthType = Literal["inherit", "none", "basic", "bearer", "oauth2", "api-key"]
OAuth2GrantType = Literal["manual", "authorization_code", "client_credentials"]
VariableType = Literal["string", "secret"]


# =============================================================================
# Request parts
# =============================================================================


@dataclass
class Header:
    """A request header row."""

    key: str
    value: str = ""
    enabled: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {"key": self.key, "value": self.value, "enabled": self.enabled}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Header":
        return cls(
            key=data.get("key", ""),
            value=data.get("value", ""),
            enabled=data.get("enabled", True),
        )


@dataclass
class QueryParam:
    """A query-string parameter row."""

    key: str
    value: str = ""
    enabled: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {"key": self.key, "value": self.value, "enabled": self.enabled}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "QueryParam":
        return cls(
            key=data.get("key", ""),
            value=data.get("value", ""),
            enabled=data.get("enabled", True),
        )


@dataclass
class FormDataItem:
    """A url-encoded or multipart body field."""

    key: str
    value: str = ""
    type: Literal["text", "file"] = "text"
    enabled: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "value": self.value,
            "type": self.type,
            "enabled": self.enabled,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FormDataItem":
        return cls(
            key=data.get("key", ""),
            value=data.get("value", ""),
            type="file" if data.get("type") == "file" else "text",
            enabled=data.get("enabled", True),
        )


@dataclass
class RequestBody:
    """Request body. Only the fields relevant to ``mode`` are normally set."""

    mode: BodyMode = "none"
    formdata: list[FormDataItem] | None = None
    urlencoded: list[FormDataItem] | None = None
    raw: str | None = None
    raw_language: RawLanguage | None = None
    file: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    _KEYS = {"mode", "formdata", "urlencoded", "raw", "rawLanguage", "file"}

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"mode": self.mode}
        if self.formdata is not None:
            result["formdata"] = [item.to_dict() for item in self.formdata]
        if self.urlencoded is not None:
            result["urlencoded"] = [item.to_dict() for item in self.urlencoded]
        if self.raw is not None:
            result["raw"] = self.raw
        if self.raw_language is not None:
            result["rawLanguage"] = self.raw_language
        if self.file is not None:
            result["file"] = self.file
        return _merge_extra(result, self.extra)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RequestBody":
        formdata = data.get("formdata")
        urlencoded = data.get("urlencoded")
        return cls(
            mode=data.get("mode", "none"),
            formdata=[FormDataItem.from_dict(i) for i in formdata]
            if formdata is not None
            else None,
            urlencoded=[FormDataItem.from_dict(i) for i in urlencoded]
            if urlencoded is not None
            else None,
            raw=data.get("raw"),
            raw_language=data.get("rawLanguage"),
            file=data.get("file"),
            extra=_split_extra(data, cls._KEYS),
        )


@dataclass
class RequestAuth:
    """Authorization settings for a request. Unset fields are not persisted."""

    type: AuthType = "none"
    # Basic Auth
    username: str | None = None
    password: str | None = None
    # Bearer Token
    token: str | None = None
    # OAuth 2.0
    oauth2_grant_type: OAuth2GrantType | None = None
    oauth2_token: str | None = None
    oauth2_refresh_token: str | None = None
    oauth2_auth_url: str | None = None
    oauth2_token_url: str | None = None
    oauth2_client_id: str | None = None
    oauth2_scope: str | None = None
    oauth2_callback_url: str | None = None
    oauth2_client_secret: str | None = None
    oauth2_expires_at: str | None = None
    # API Key
    api_key_key: str | None = None
    api_key_value: str | None = None
    api_key_add_to: Literal["header", "query"] | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for f in fields(self):
            if f.name == "extra":
                continue
            value = getattr(self, f.name)
            if value is not None:
                result[_to_camel(f.name)] = value
        return _merge_extra(result, self.extra)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RequestAuth":
        names = {_to_camel(f.name): f.name for f in fields(cls) if f.name != "extra"}
        kwargs = {names[k]: v for k, v in data.items() if k in names}
        kwargs.setdefault("type", "none")
        return cls(**kwargs, extra=_split_extra(data, set(names)))


# =============================================================================
# Tree nodes
# =============================================================================


@dataclass
class Request:
    """A request leaf document. Its name doubles as its storage key."""

    name: str
    method: str = HttpMethod.GET.value
    url: str = ""
    headers: list[Header] = field(default_factory=list)
    query_params: list[QueryParam] = field(default_factory=list)
    body: RequestBody | None = None
    auth: RequestAuth | None = None
    description: str | None = None
    pre_request_script: str | None = None
    post_response_script: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    _KEYS = {
        "name",
        "description",
        "method",
        "url",
        "headers",
        "queryParams",
        "body",
        "auth",
        "preRequestScript",
        "postResponseScript",
    }

    def __post_init__(self) -> None:
        self.method = HttpMethod.normalize(self.method)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the request document shape."""
        result: dict[str, Any] = {"name": self.name}
        if self.description is not None:
            result["description"] = self.description
        result["method"] = self.method
        result["url"] = self.url
        result["headers"] = [h.to_dict() for h in self.headers]
        result["queryParams"] = [q.to_dict() for q in self.query_params]
        if self.body is not None:
            result["body"] = self.body.to_dict()
        if self.auth is not None:
            result["auth"] = self.auth.to_dict()
        if self.pre_request_script is not None:
            result["preRequestScript"] = self.pre_request_script
        if self.post_response_script is not None:
            result["postResponseScript"] = self.post_response_script
        return _merge_extra(result, self.extra)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Request":
        """Create from a request document."""
        body = data.get("body")
        auth = data.get("auth")
        return cls(
            name=data["name"],
            method=data.get("method", HttpMethod.GET.value),
            url=data.get("url", ""),
            headers=[Header.from_dict(h) for h in data.get("headers") or []],
            query_params=[
                QueryParam.from_dict(q) for q in data.get("queryParams") or []
            ],
            body=RequestBody.from_dict(body) if body else None,
            auth=RequestAuth.from_dict(auth) if auth else None,
            description=data.get("description"),
            pre_request_script=data.get("preRequestScript"),
            post_response_script=data.get("postResponseScript"),
            extra=_split_extra(data, cls._KEYS),
        )

    def clone(self) -> "Request":
        """Deep copy, detached from any tree."""
        return copy.deepcopy(self)


@dataclass
class Folder:
    """A folder. Its identity is its position (path) in the collection tree."""

    name: str
    description: str | None = None
    folders: list[Folder] = field(default_factory=list)
    requests: list[Request] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)

    _KEYS = {"name", "description", "folders", "requests"}

    def to_dict(self) -> dict[str, Any]:
        """Convert to the recursive descriptor shape."""
        result: dict[str, Any] = {"name": self.name}
        if self.description is not None:
            result["description"] = self.description
        result["folders"] = [f.to_dict() for f in self.folders]
        result["requests"] = [r.to_dict() for r in self.requests]
        return _merge_extra(result, self.extra)

    def to_leaf_dict(self) -> dict[str, Any]:
        """The folder's own metadata, written to its folder.json."""
        result = self.to_dict()
        result["folders"] = []
        result["requests"] = []
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Folder":
        return cls(
            name=data["name"],
            description=data.get("description"),
            folders=[Folder.from_dict(f) for f in data.get("folders") or []],
            requests=[Request.from_dict(r) for r in data.get("requests") or []],
            extra=_split_extra(data, cls._KEYS),
        )


@dataclass
class Collection:
    """Top-level container. Its name is also its storage key."""

    name: str
    description: str | None = None
    folders: list[Folder] = field(default_factory=list)
    requests: list[Request] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)

    _KEYS = {"name", "description", "folders", "requests"}

    def to_dict(self) -> dict[str, Any]:
        """Convert to the aggregate descriptor shape (collection.json)."""
        result: dict[str, Any] = {"name": self.name}
        if self.description is not None:
            result["description"] = self.description
        result["folders"] = [f.to_dict() for f in self.folders]
        result["requests"] = [r.to_dict() for r in self.requests]
        return _merge_extra(result, self.extra)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Collection":
        return cls(
            name=data["name"],
            description=data.get("description"),
            folders=[Folder.from_dict(f) for f in data.get("folders") or []],
            requests=[Request.from_dict(r) for r in data.get("requests") or []],
            extra=_split_extra(data, cls._KEYS),
        )


# A node that owns child folders and requests
Container = Union[Collection, Folder]


# =============================================================================
# Environments and workspace
# =============================================================================


@dataclass
class EnvironmentVariable:
    """A single environment variable."""

    key: str
    value: str = ""
    type: VariableType = "string"
    enabled: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "value": self.value,
            "type": self.type,
            "enabled": self.enabled,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EnvironmentVariable":
        return cls(
            key=data.get("key", ""),
            value=data.get("value", ""),
            type="secret" if data.get("type") == "secret" else "string",
            enabled=data.get("enabled", True),
        )


@dataclass
class Environment:
    """A named, flat list of variables."""

    name: str
    variables: list[EnvironmentVariable] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        result = {
            "name": self.name,
            "variables": [v.to_dict() for v in self.variables],
        }
        return _merge_extra(result, self.extra)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Environment":
        return cls(
            name=data["name"],
            variables=[
                EnvironmentVariable.from_dict(v) for v in data.get("variables") or []
            ],
            extra=_split_extra(data, {"name", "variables"}),
        )


@dataclass
class Workspace:
    """Root metadata of an opened workspace (.apiclient/workspace.json)."""

    name: str
    version: str = "1.0.0"
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: str = field(default_factory=utc_now_iso)
    current_environment: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def touch(self) -> None:
        """Update the modification timestamp."""
        self.updated_at = utc_now_iso()

    def to_dict(self) -> dict[str, Any]:
        result = {
            "name": self.name,
            "version": self.version,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "currentEnvironment": self.current_environment,
        }
        return _merge_extra(result, self.extra)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Workspace":
        now = utc_now_iso()
        return cls(
            name=data["name"],
            version=data.get("version", "1.0.0"),
            created_at=data.get("createdAt", now),
            updated_at=data.get("updatedAt", now),
            current_environment=data.get("currentEnvironment"),
            extra=_split_extra(
                data,
                {"name", "version", "createdAt", "updatedAt", "currentEnvironment"},
            ),
        )


@dataclass
class WorkspaceIndex:
    """Workspace index file (.apiclient/index.json)."""

    collections: list[str] = field(default_factory=list)
    environments: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"collections": self.collections, "environments": self.environments}


# =============================================================================
# Operation results and logs
# =============================================================================


ResultStatus = Literal["success", "error", "noop"]


@dataclass
class OperationResult:
    """Standard result format for every mutating store operation."""

    status: ResultStatus
    message: str
    data: Any = None

    @property
    def ok(self) -> bool:
        return self.status == "success"

    def to_dict(self) -> dict[str, Any]:
        result = {"status": self.status, "message": self.message}
        if self.data is not None:
            result["data"] = self.data
        return result


@dataclass
class OperationLog:
    """Log entry for a store mutation."""

    timestamp: float
    operation: str
    path: str
    details: dict[str, Any] = field(default_factory=dict)
    success: bool = True
    error_message: str | None = None

    @classmethod
    def create(
        cls,
        operation: str,
        path: str,
        details: dict[str, Any] | None = None,
        success: bool = True,
        error_message: str | None = None,
    ) -> "OperationLog":
        return cls(
            timestamp=time.time(),
            operation=operation,
            path=path,
            details=details or {},
            success=success,
            error_message=error_message,
        )
