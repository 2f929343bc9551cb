"""Forward arbitrary HTTP requests on behalf of an authenticated user."""

import base64
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

import httpx

from ..config import settings
from ..errors import ConnectionFailed, NetworkError, ProxyTimeout, Unauthorized

logger = logging.getLogger(__name__)

BODY_METHODS = {"POST", "PUT", "PATCH", "DELETE"}


@dataclass
class ProxyResult:
    status: int
    status_text: str
    headers: Dict[str, str]
    data: Any
    duration_ms: int

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


@dataclass
class OutboundRequest:
    url: str
    method: str = "GET"
    headers: Dict[str, str] = field(default_factory=dict)
    params: Dict[str, str] = field(default_factory=dict)
    body: Any = None
    auth: Optional[Any] = None
    timeout_ms: Optional[int] = None


def inject_auth(headers: Dict[str, str], auth) -> Dict[str, str]:
    """Return ``headers`` with an Authorization header for basic/bearer auth.

    ``auth`` is one of the ``schemas`` auth variants (or ``None``); anything
    other than a complete basic or bearer config leaves headers untouched.
    """
    headers = dict(headers)
    kind = getattr(auth, "type", "none")
    if kind == "basic" and auth.username and auth.password:
        raw = f"{auth.username}:{auth.password}".encode("utf-8")
        headers["Authorization"] = "Basic " + base64.b64encode(raw).decode("ascii")
    elif kind == "bearer" and auth.token:
        headers["Authorization"] = f"Bearer {auth.token}"
    return headers


def _timed(error, start: float):
    error.duration_ms = int((time.perf_counter() - start) * 1000)
    return error


def _decode_body(response: httpx.Response) -> Any:
    content_type = (response.headers.get("content-type") or "").lower()
    if "json" in content_type:
        try:
            return response.json()
        except ValueError:
            return response.text
    return response.text


class ProxyService:
    """Performs the outbound call; never raises on upstream 4xx/5xx.

    ``verify_token`` is the Auth Service check applied to the caller's token
    before anything is dispatched. ``transport`` lets tests swap the network.
    """

    def __init__(
        self,
        verify_token: Callable[[str], Any],
        timeout_seconds: float = None,
        max_redirects: int = None,
        transport: httpx.AsyncBaseTransport = None,
    ):
        self.verify_token = verify_token
        self.timeout_seconds = timeout_seconds or settings.proxy_timeout_seconds
        self.max_redirects = max_redirects if max_redirects is not None else settings.proxy_max_redirects
        self.transport = transport

    async def forward(self, request: OutboundRequest, caller_token: Optional[str]) -> ProxyResult:
        if not caller_token:
            raise Unauthorized("Access token is required")
        user = self.verify_token(caller_token)

        method = request.method.upper()
        headers = {"User-Agent": settings.proxy_user_agent}
        headers.update(request.headers or {})
        headers = inject_auth(headers, request.auth)
        timeout = request.timeout_ms / 1000.0 if request.timeout_ms else self.timeout_seconds

        send_kwargs: Dict[str, Any] = {}
        if method in BODY_METHODS and request.body not in (None, ""):
            if isinstance(request.body, (dict, list)):
                send_kwargs["json"] = request.body
            else:
                send_kwargs["content"] = str(request.body)

        logger.info(
            "Proxying %s %s for user %s", method, request.url, getattr(user, "username", user)
        )
        start = time.perf_counter()
        try:
            async with httpx.AsyncClient(
                timeout=timeout,
                follow_redirects=True,
                max_redirects=self.max_redirects,
                transport=self.transport,
            ) as client:
                response = await client.request(
                    method,
                    request.url,
                    headers=headers,
                    params=request.params or None,
                    **send_kwargs,
                )
        except httpx.TimeoutException as exc:
            logger.warning("Proxy timeout for %s %s", method, request.url)
            raise _timed(ProxyTimeout(f"Request timed out after {int(timeout * 1000)}ms"), start) from exc
        except httpx.ConnectError as exc:
            logger.warning("Proxy connection failed for %s %s: %s", method, request.url, exc)
            raise _timed(ConnectionFailed(str(exc) or "Connection failed"), start) from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.warning("Proxy network error for %s %s: %s", method, request.url, exc)
            raise _timed(NetworkError(str(exc) or "Network error"), start) from exc
        duration_ms = int((time.perf_counter() - start) * 1000)

        return ProxyResult(
            status=response.status_code,
            status_text=response.reason_phrase,
            headers=dict(response.headers),
            data=_decode_body(response),
            duration_ms=duration_ms,
        )
