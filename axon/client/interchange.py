"""Collection documents in the native XH-Axon format and Postman v2.1.

Parsing turns a document into a draft tree of plain dicts
(``{"name", "description", "requests", "children"}``) whose request entries
are accepted as-is by ``CollectionStore.create_request``. Rendering goes the
other way, from an exported draft tree to a document.
"""

import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

import pydantic
from pydantic import BaseModel, ConfigDict, Field, constr

from ..errors import ValidationError

NATIVE = "xh-axon"
POSTMAN = "postman-v2.1"
FORMATS = (NATIVE, POSTMAN)

NATIVE_VERSION = "1.0.0"
POSTMAN_SCHEMA = "https://schema.getpostman.com/json/collection/v2.1.0/collection.json"


# ----- native documents -----


class NativeRequest(BaseModel):
    name: constr(strip_whitespace=True, min_length=1) = "Untitled request"
    method: str = "GET"
    url: str = ""
    headers: Dict[str, str] = Field(default_factory=dict)
    query_params: Dict[str, str] = Field(default_factory=dict)
    body: Optional[str] = None
    auth: Optional[Dict[str, Any]] = None


class NativeCollection(BaseModel):
    name: constr(strip_whitespace=True, min_length=1) = "Imported collection"
    description: Optional[str] = None
    requests: List[NativeRequest] = Field(default_factory=list)
    children: List["NativeCollection"] = Field(default_factory=list)


class NativeDocument(BaseModel):
    format: str = NATIVE
    version: str = NATIVE_VERSION
    exported: Optional[str] = None
    collection: NativeCollection


# ----- Postman v2.1 documents -----


class PostmanPair(BaseModel):
    """``header``, ``query``, ``urlencoded`` and auth entries share this shape."""

    model_config = ConfigDict(extra="ignore")

    key: str = ""
    value: Any = ""
    disabled: bool = False


class PostmanUrl(BaseModel):
    model_config = ConfigDict(extra="ignore")

    raw: str = ""
    query: List[PostmanPair] = Field(default_factory=list)


class PostmanBody(BaseModel):
    model_config = ConfigDict(extra="ignore")

    mode: Optional[str] = None
    raw: Optional[str] = None
    urlencoded: List[PostmanPair] = Field(default_factory=list)


class PostmanAuth(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: str = "noauth"
    basic: List[PostmanPair] = Field(default_factory=list)
    bearer: List[PostmanPair] = Field(default_factory=list)


class PostmanRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    method: str = "GET"
    header: List[PostmanPair] = Field(default_factory=list)
    url: Union[str, PostmanUrl] = ""
    body: Optional[PostmanBody] = None
    auth: Optional[PostmanAuth] = None


class PostmanItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = ""
    description: Any = None
    request: Optional[PostmanRequest] = None
    item: Optional[List["PostmanItem"]] = None


class PostmanInfo(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str = "Imported collection"
    description: Any = None
    schema_url: str = Field(default="", alias="schema")


class PostmanCollection(BaseModel):
    model_config = ConfigDict(extra="ignore")

    info: PostmanInfo
    item: List[PostmanItem] = Field(default_factory=list)
    auth: Optional[PostmanAuth] = None


def _enabled(pairs: List[PostmanPair]) -> Dict[str, str]:
    return {pair.key: str(pair.value) for pair in pairs if pair.key and not pair.disabled}


def _description(value: Any) -> Optional[str]:
    # Postman allows either a string or {"content": ..., "type": ...}.
    if isinstance(value, dict):
        return value.get("content")
    return value


def _auth_from_postman(auth: Optional[PostmanAuth]) -> Optional[Dict[str, str]]:
    if auth is None:
        return None
    if auth.type == "basic":
        values = _enabled(auth.basic)
        return {"type": "basic", "username": values.get("username", ""), "password": values.get("password", "")}
    if auth.type == "bearer":
        return {"type": "bearer", "token": _enabled(auth.bearer).get("token", "")}
    return {"type": "none"}


def _auth_to_postman(auth: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    kind = auth.get("type")
    if kind == "basic":
        return {
            "type": "basic",
            "basic": [
                {"key": "username", "value": auth.get("username", ""), "type": "string"},
                {"key": "password", "value": auth.get("password", ""), "type": "string"},
            ],
        }
    if kind == "bearer":
        return {"type": "bearer", "bearer": [{"key": "token", "value": auth.get("token", ""), "type": "string"}]}
    return None


def _body_from_postman(body: Optional[PostmanBody]) -> Optional[str]:
    if body is None:
        return None
    if body.mode == "raw":
        return body.raw or None
    if body.mode == "urlencoded":
        return "&".join(f"{pair.key}={pair.value}" for pair in body.urlencoded if not pair.disabled) or None
    return None


def _request_from_postman(item: PostmanItem, inherited_auth: Optional[PostmanAuth]) -> Dict[str, Any]:
    request = item.request
    if isinstance(request.url, str):
        url, query = request.url, {}
    else:
        url, query = request.url.raw, _enabled(request.url.query)
    if query and "?" in url:
        # The raw URL already carries the query; keep it as the only copy.
        url = url.split("?", 1)[0]
    return {
        "name": item.name or "Untitled request",
        "method": request.method,
        "url": url,
        "headers": _enabled(request.header),
        "query_params": query,
        "body": _body_from_postman(request.body),
        "auth": _auth_from_postman(request.auth or inherited_auth),
    }


def _folder_from_postman(name: str, description: Any, items: List[PostmanItem],
                         inherited_auth: Optional[PostmanAuth]) -> Dict[str, Any]:
    draft = {"name": name, "description": _description(description), "requests": [], "children": []}
    for item in items:
        if item.request is not None:
            draft["requests"].append(_request_from_postman(item, inherited_auth))
        elif item.item is not None:
            draft["children"].append(
                _folder_from_postman(item.name or "Untitled folder", item.description, item.item, inherited_auth)
            )
    return draft


def _native_draft(collection: NativeCollection) -> Dict[str, Any]:
    return {
        "name": collection.name,
        "description": collection.description,
        "requests": [request.model_dump() for request in collection.requests],
        "children": [_native_draft(child) for child in collection.children],
    }


def detect_format(document: Dict[str, Any]) -> str:
    if isinstance(document.get("info"), dict) and "item" in document:
        return POSTMAN
    return NATIVE


def parse(document: Union[str, Dict[str, Any]], fmt: str = None) -> Dict[str, Any]:
    """Validate ``document`` and return its draft tree.

    ``document`` may be the raw JSON text. The format is detected when
    ``fmt`` is not given.

    Raises:
        ValidationError: the text is not JSON, the format is unknown, or the
            document does not match the format.
    """
    if isinstance(document, str):
        try:
            document = json.loads(document)
        except ValueError as exc:
            raise ValidationError(f"Invalid collection document: {exc}") from exc
    if not isinstance(document, dict):
        raise ValidationError("Collection document must be a JSON object")

    fmt = fmt or detect_format(document)
    try:
        if fmt == POSTMAN:
            parsed = PostmanCollection.model_validate(document)
            return _folder_from_postman(parsed.info.name, parsed.info.description, parsed.item, parsed.auth)
        if fmt == NATIVE:
            if "collection" in document:
                return _native_draft(NativeDocument.model_validate(document).collection)
            return _native_draft(NativeCollection.model_validate(document))
    except pydantic.ValidationError as exc:
        raise ValidationError(f"Invalid {fmt} collection: {exc.errors()[0]['msg']}") from exc
    raise ValidationError(f"Unsupported collection format: {fmt}")


def _postman_items(draft: Dict[str, Any]) -> List[Dict[str, Any]]:
    items = []
    for child in draft["children"]:
        folder = {"name": child["name"], "item": _postman_items(child)}
        if child.get("description"):
            folder["description"] = child["description"]
        items.append(folder)
    for request in draft["requests"]:
        entry = {
            "method": request["method"],
            "header": [{"key": key, "value": value, "type": "text"} for key, value in request["headers"].items()],
            "url": {
                "raw": request["url"],
                "query": [{"key": key, "value": value} for key, value in request["query_params"].items()],
            },
        }
        if request.get("body"):
            entry["body"] = {"mode": "raw", "raw": request["body"]}
        auth = _auth_to_postman(request.get("auth") or {})
        if auth:
            entry["auth"] = auth
        items.append({"name": request["name"], "request": entry})
    return items


def render(draft: Dict[str, Any], fmt: str = NATIVE, collection_id: str = None) -> Dict[str, Any]:
    """Build a document in ``fmt`` from an exported draft tree."""
    if fmt == NATIVE:
        return {
            "format": NATIVE,
            "version": NATIVE_VERSION,
            "exported": datetime.now(timezone.utc).isoformat(),
            "collection": draft,
        }
    if fmt == POSTMAN:
        info = {"name": draft["name"], "schema": POSTMAN_SCHEMA}
        if collection_id:
            info["_postman_id"] = collection_id
        if draft.get("description"):
            info["description"] = draft["description"]
        return {"info": info, "item": _postman_items(draft)}
    raise ValidationError(f"Unsupported collection format: {fmt}")
