"""Plain data carried by the client-side workspace."""

import time
import uuid
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional, Tuple, Union


def new_id() -> str:
    return uuid.uuid4().hex


# ----- Auth configuration -----


@dataclass(frozen=True)
class NoAuth:
    type = "none"


@dataclass(frozen=True)
class BasicAuth:
    username: str = ""
    password: str = ""
    type = "basic"


@dataclass(frozen=True)
class BearerAuth:
    token: str = ""
    type = "bearer"


AuthConfig = Union[NoAuth, BasicAuth, BearerAuth]


def auth_from_dict(data: Optional[Dict[str, Any]]) -> AuthConfig:
    """Build an auth variant from its wire form; unknown types mean no auth."""
    if isinstance(data, (NoAuth, BasicAuth, BearerAuth)):
        return data
    data = data or {}
    kind = data.get("type")
    if kind == "basic":
        return BasicAuth(username=data.get("username") or "", password=data.get("password") or "")
    if kind == "bearer":
        return BearerAuth(token=data.get("token") or "")
    return NoAuth()


def auth_to_dict(auth: AuthConfig) -> Dict[str, Any]:
    if isinstance(auth, BasicAuth):
        return {"type": "basic", "username": auth.username, "password": auth.password}
    if isinstance(auth, BearerAuth):
        return {"type": "bearer", "token": auth.token}
    return {"type": "none"}


# ----- Collection tree -----


@dataclass
class ApiRequest:
    id: str
    name: str
    collection_id: str
    method: str = "GET"
    url: str = ""
    headers: Dict[str, str] = field(default_factory=dict)
    query_params: Dict[str, str] = field(default_factory=dict)
    body: Optional[str] = None
    auth: AuthConfig = field(default_factory=NoAuth)
    order: int = 0

    EDITABLE = ("name", "method", "url", "headers", "query_params", "body", "auth")

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "ApiRequest":
        return cls(
            id=data["id"],
            name=data["name"],
            collection_id=data["collection_id"],
            method=(data.get("method") or "GET").upper(),
            url=data.get("url") or "",
            headers=dict(data.get("headers") or {}),
            query_params=dict(data.get("query_params") or {}),
            body=data.get("body"),
            auth=auth_from_dict(data.get("auth")),
            order=data.get("order", 0),
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "method": self.method,
            "url": self.url,
            "headers": dict(self.headers),
            "query_params": dict(self.query_params),
            "body": self.body,
            "auth": auth_to_dict(self.auth),
        }


@dataclass
class CollectionNode:
    """One folder of the arena; links are ids, never object references."""

    id: str
    name: str
    description: Optional[str] = None
    parent_id: Optional[str] = None
    order: int = 0
    child_ids: list = field(default_factory=list)
    request_ids: list = field(default_factory=list)


@dataclass(frozen=True)
class SearchResult:
    type: str  # "collection" or "request"
    id: str
    name: str
    path: Tuple[str, ...]
    url: Optional[str] = None


# ----- Responses -----


@dataclass(frozen=True)
class ResponseSnapshot:
    status: int
    status_text: str
    headers: Dict[str, str]
    data: Any
    duration: int
    error: bool = False

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


@dataclass(frozen=True)
class ErrorResponse:
    """Synthetic response stored when the proxy call itself failed."""

    message: str
    status: int
    duration: int = 0
    error: bool = True


# ----- Workspace -----


@dataclass
class Tab:
    id: str
    name: str = "Untitled Request"
    url: str = ""
    method: str = "GET"
    params: Dict[str, str] = field(default_factory=dict)
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[str] = None
    auth: AuthConfig = field(default_factory=NoAuth)
    is_saved: bool = False
    is_modified: bool = False
    request_id: Optional[str] = None
    collection_id: Optional[str] = None
    response: Union[ResponseSnapshot, ErrorResponse, None] = None

    @classmethod
    def from_request(cls, request: ApiRequest) -> "Tab":
        return cls(
            id=new_id(),
            name=request.name,
            url=request.url,
            method=request.method,
            params=dict(request.query_params),
            headers=dict(request.headers),
            body=request.body,
            auth=request.auth,
            is_saved=True,
            is_modified=False,
            request_id=request.id,
            collection_id=request.collection_id,
        )

    def request_fields(self) -> Dict[str, Any]:
        """The tab's draft in the shape ``CollectionStore`` request calls take."""
        return {
            "name": self.name,
            "method": self.method,
            "url": self.url,
            "headers": dict(self.headers),
            "query_params": dict(self.params),
            "body": self.body,
            "auth": self.auth,
        }

    def snapshot(self) -> "Tab":
        return replace(self, params=dict(self.params), headers=dict(self.headers))


# ----- History / favorites -----


@dataclass(frozen=True)
class HistoryItem:
    id: str
    url: str
    method: str
    headers: Dict[str, str]
    body: Optional[str]
    timestamp: float
    response: Union[ResponseSnapshot, None] = None

    @classmethod
    def record(cls, url, method, headers, body, response=None) -> "HistoryItem":
        return cls(
            id=new_id(),
            url=url,
            method=method,
            headers=dict(headers),
            body=body,
            timestamp=time.time(),
            response=response,
        )


@dataclass(frozen=True)
class FavoriteRequest:
    """Copy of a request taken at favoriting time; outlives its source."""

    id: str
    name: str
    method: str
    url: str
    headers: Dict[str, str]
    query_params: Dict[str, str]
    body: Optional[str]
    auth: AuthConfig
    folder: str = "Default"
    source_request_id: Optional[str] = None
    created_at: float = field(default_factory=time.time)

    @classmethod
    def from_request(cls, request: ApiRequest, folder: str = "Default") -> "FavoriteRequest":
        return cls(
            id=new_id(),
            name=request.name,
            method=request.method,
            url=request.url,
            headers=dict(request.headers),
            query_params=dict(request.query_params),
            body=request.body,
            auth=request.auth,
            folder=folder,
            source_request_id=request.id,
        )


@dataclass(frozen=True)
class ExecutionResult:
    tab_id: str
    response: Union[ResponseSnapshot, ErrorResponse]
    history_item: HistoryItem

    @property
    def failed(self) -> bool:
        return isinstance(self.response, ErrorResponse)
