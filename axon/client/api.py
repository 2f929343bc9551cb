"""HTTP client for the Axon backend.

``BackendClient`` keeps the caller's session (anonymous until a register or
login succeeds) and turns every backend envelope into either a payload dict
or one of the ``axon.errors`` classes. It is also the remote collaborator of
``CollectionStore`` and ``History`` and the ``proxy`` callable of the
execution pipeline.
"""

import enum
import logging
from typing import Any, Dict, List, Optional, Tuple

import httpx

from ..errors import (
    ConnectionFailed,
    InvalidToken,
    NetworkError,
    OperationFailed,
    ProxyTimeout,
    Unauthorized,
    error_for_status,
)
from .models import ResponseSnapshot

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:3001"


class SessionState(enum.Enum):
    ANONYMOUS = "anonymous"
    AUTHENTICATED = "authenticated"


class BackendClient:
    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        http: httpx.Client = None,
        async_http: httpx.AsyncClient = None,
        timeout: float = 35.0,
    ):
        # The proxy call itself may take up to the backend's upstream timeout.
        self.http = http or httpx.Client(base_url=base_url, timeout=timeout)
        self.async_http = async_http or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self.token: Optional[str] = None
        self.user: Optional[Dict[str, Any]] = None

    # ----- session -----

    @property
    def state(self) -> SessionState:
        return SessionState.AUTHENTICATED if self.token else SessionState.ANONYMOUS

    def _start_session(self, body: Dict[str, Any]) -> Dict[str, Any]:
        self.token = body["token"]
        self.user = body["user"]
        logger.info("Signed in as %s", self.user.get("username"))
        return self.user

    def logout(self) -> None:
        self.token = None
        self.user = None

    def register(self, username: str, email: str, password: str, phone: str = None):
        payload = {"username": username, "email": email, "password": password}
        if phone:
            payload["phone"] = phone
        return self._start_session(self._call("POST", "/api/auth/register", json=payload))

    def login(self, username=None, email=None, password=None, phone=None, verification_code=None):
        if phone:
            payload = {"phone": phone, "verificationCode": verification_code}
        else:
            payload = {"username": username, "email": email, "password": password}
        return self._start_session(self._call("POST", "/api/auth/login", json=payload))

    def send_code(self, phone: str) -> None:
        self._call("POST", "/api/auth/send-code", json={"phone": phone})

    def profile(self) -> Dict[str, Any]:
        self.user = self._call("GET", "/api/auth/profile")["user"]
        return self.user

    # ----- transport -----

    def _headers(self) -> Dict[str, str]:
        if self.token:
            return {"Authorization": f"Bearer {self.token}"}
        return {}

    def _unwrap(self, response: httpx.Response) -> Dict[str, Any]:
        body = self._json_object(response)
        if response.status_code < 400:
            return body
        if response.status_code in (Unauthorized.status_code, InvalidToken.status_code):
            self.logout()
        raise error_for_status(
            response.status_code,
            body.get("error") or response.reason_phrase or "Request failed",
            body.get("code"),
        )

    def _call(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        try:
            response = self.http.request(method, path, headers=self._headers(), **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("Backend call %s %s failed: %s", method, path, exc)
            raise OperationFailed(f"Backend unavailable: {exc}") from exc
        return self._unwrap(response)

    # ----- proxy -----

    async def proxy(self, request: Dict[str, Any]) -> ResponseSnapshot:
        """Send a resolved request through ``/api/proxy``.

        Upstream 4xx/5xx come back as ordinary snapshots; only transport
        failures (either leg) raise a ``TransportError``.
        """
        try:
            response = await self.async_http.post(
                "/api/proxy", json=request, headers=self._headers()
            )
        except httpx.TimeoutException as exc:
            raise ProxyTimeout("Request timeout") from exc
        except httpx.ConnectError as exc:
            raise ConnectionFailed(str(exc) or "Connection failed") from exc
        except httpx.HTTPError as exc:
            raise NetworkError(str(exc) or "Network error") from exc

        if response.status_code >= 400:
            body = self._json_object(response)
            if response.status_code in (Unauthorized.status_code, InvalidToken.status_code):
                self.logout()
            raise error_for_status(
                response.status_code,
                body.get("message") or body.get("error") or response.reason_phrase,
                body.get("code"),
            )

        body = self._json_object(response)
        if "status" not in body:
            raise NetworkError("Malformed proxy response from backend")
        return ResponseSnapshot(
            status=body["status"],
            status_text=body.get("statusText", ""),
            headers=body.get("headers") or {},
            data=body.get("data"),
            duration=body.get("duration", 0),
        )

    @staticmethod
    def _json_object(response: httpx.Response) -> Dict[str, Any]:
        """The response body when it is a JSON object, otherwise ``{}``."""
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}

    # ----- collections -----

    def list_collections(self) -> Tuple[List[Dict], List[Dict]]:
        body = self._call("GET", "/api/collections")
        return body["collections"], body["requests"]

    def create_collection(self, name: str, description: str = None, parent_id: str = None) -> Dict:
        payload = {"name": name, "description": description, "parent_id": parent_id}
        return self._call("POST", "/api/collections", json=payload)["collection"]

    def update_collection(self, collection_id: str, patch: Dict) -> Dict:
        return self._call("PUT", f"/api/collections/{collection_id}", json=patch)["collection"]

    def delete_collection(self, collection_id: str) -> List[str]:
        return self._call("DELETE", f"/api/collections/{collection_id}")["deleted"]

    def move_collection(self, collection_id: str, parent_id: str = None, order: int = None) -> Dict:
        payload = {"parent_id": parent_id, "order": order}
        return self._call("POST", f"/api/collections/{collection_id}/move", json=payload)["collection"]

    def create_request(self, collection_id: str, payload: Dict) -> Dict:
        return self._call("POST", f"/api/collections/{collection_id}/requests", json=payload)["request"]

    def update_request(self, request_id: str, patch: Dict) -> Dict:
        return self._call("PUT", f"/api/requests/{request_id}", json=patch)["request"]

    def delete_request(self, request_id: str) -> None:
        self._call("DELETE", f"/api/requests/{request_id}")

    def move_request(self, request_id: str, collection_id: str, order: int = None) -> Dict:
        payload = {"collection_id": collection_id, "order": order}
        return self._call("POST", f"/api/requests/{request_id}/move", json=payload)["request"]

    def duplicate_request(self, request_id: str, collection_id: str = None) -> Dict:
        payload = {"collection_id": collection_id}
        return self._call("POST", f"/api/requests/{request_id}/duplicate", json=payload)["request"]

    # ----- environments / history / favorites -----

    def list_environments(self) -> List[Dict]:
        return self._call("GET", "/api/environments")["environments"]

    def create_environment(self, name: str, variables: Dict[str, str]) -> Dict:
        payload = {"name": name, "variables": variables}
        return self._call("POST", "/api/environments", json=payload)["environment"]

    def activate_environment(self, environment_id: int) -> Dict:
        return self._call("POST", f"/api/environments/{environment_id}/activate")["environment"]

    def record_history(self, entry: Dict) -> Dict:
        return self._call("POST", "/api/history", json=entry)["item"]

    def add_favorite(self, payload: Dict) -> Dict:
        return self._call("POST", "/api/requests/favorite", json=payload)["favorite"]

    def close(self) -> None:
        self.http.close()

    async def aclose(self) -> None:
        """Close both the sync and the async connection pools."""
        await self.async_http.aclose()
        self.http.close()
