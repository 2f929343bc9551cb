"""Turn a tab's draft into a wire request, run it through the proxy, record it.

Every execution that reaches the proxy yields exactly one history item,
whether the proxy answered or failed. Only an empty URL fails before that,
with a ``ValidationError`` and no history.
"""

import logging
import time
from typing import Any, Awaitable, Callable, Dict
from urllib.parse import urlencode

from ..errors import AxonError, NetworkError, ValidationError
from .environments import EnvironmentSet
from .history import History
from .models import (
    BasicAuth,
    BearerAuth,
    ErrorResponse,
    ExecutionResult,
    HistoryItem,
    NoAuth,
    ResponseSnapshot,
    Tab,
    auth_to_dict,
)
from .workspace import Workspace

logger = logging.getLogger(__name__)

ProxyCall = Callable[[Dict[str, Any]], Awaitable[ResponseSnapshot]]


def build_url(url: str, params: Dict[str, str]) -> str:
    """Append non-empty ``params`` to ``url`` with ``?`` or ``&`` as needed."""
    query = {key: value for key, value in (params or {}).items() if key and value not in (None, "")}
    if not query:
        return url
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}{urlencode(query)}"


def resolve_auth(auth):
    """Incomplete basic/bearer configs collapse to ``NoAuth``."""
    if isinstance(auth, BasicAuth):
        return auth if auth.username and auth.password else NoAuth()
    if isinstance(auth, BearerAuth):
        return auth if auth.token else NoAuth()
    return NoAuth()


class ExecutionPipeline:
    def __init__(self, workspace: Workspace, environments: EnvironmentSet, history: History, proxy: ProxyCall):
        self.workspace = workspace
        self.environments = environments
        self.history = history
        self.proxy = proxy

    def resolve(self, tab: Tab) -> Dict[str, Any]:
        """The proxy payload for ``tab`` with environment variables applied."""
        env = self.environments
        params = {key: env.substitute(value) for key, value in tab.params.items()}
        url = build_url(env.substitute(tab.url or "").strip(), params)
        if not url:
            raise ValidationError("Request URL is required")

        auth = tab.auth
        if isinstance(auth, BasicAuth):
            auth = BasicAuth(username=env.substitute(auth.username), password=env.substitute(auth.password))
        elif isinstance(auth, BearerAuth):
            auth = BearerAuth(token=env.substitute(auth.token))

        return {
            "url": url,
            "method": tab.method.upper(),
            "headers": {key: env.substitute(value) for key, value in tab.headers.items()},
            "body": env.substitute(tab.body),
            "auth": auth_to_dict(resolve_auth(auth)),
        }

    async def execute(self, tab_id: str) -> ExecutionResult:
        # Snapshot so edits made while the call is in flight do not leak in.
        tab = self.workspace.get(tab_id).snapshot()
        request = self.resolve(tab)

        started = time.perf_counter()
        try:
            response = await self.proxy(request)
        except Exception as exc:
            duration = int((time.perf_counter() - started) * 1000)
            if isinstance(exc, AxonError):
                error = exc
                logger.info("%s %s failed: %s", request["method"], request["url"], exc.message)
            else:
                error = NetworkError(str(exc) or type(exc).__name__)
                logger.warning(
                    "%s %s failed unexpectedly", request["method"], request["url"], exc_info=exc
                )
            stored = ErrorResponse(message=error.message, status=error.status_code, duration=duration)
            recorded = ResponseSnapshot(
                status=error.status_code,
                status_text=type(error).__name__,
                headers={},
                data={"error": error.message},
                duration=duration,
                error=True,
            )
        else:
            duration = int((time.perf_counter() - started) * 1000)
            stored = recorded = ResponseSnapshot(
                status=response.status,
                status_text=response.status_text,
                headers=dict(response.headers),
                data=response.data,
                duration=duration,
            )

        self.workspace.set_response(tab_id, stored)
        item = await self.history.append_async(
            HistoryItem.record(request["url"], request["method"], request["headers"], request["body"], recorded)
        )
        return ExecutionResult(tab_id=tab_id, response=stored, history_item=item)
