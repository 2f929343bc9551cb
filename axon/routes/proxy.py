from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from .. import schemas
from ..dependencies import get_bearer_token, get_proxy_service
from ..errors import ConnectionFailed, NetworkError, ProxyTimeout, TransportError
from ..services.proxy import OutboundRequest, ProxyService

router = APIRouter(prefix="/api", tags=["proxy"])

_FAILURE_LABELS = {
    ProxyTimeout: "Request timeout",
    ConnectionFailed: "Connection failed",
    NetworkError: "Network error",
}


@router.post("/proxy", response_model=schemas.ProxyResponse)
async def proxy(
    payload: schemas.ProxyRequestIn,
    token: Optional[str] = Depends(get_bearer_token),
    service: ProxyService = Depends(get_proxy_service),
):
    """Forward ``payload`` upstream.

    Upstream 4xx/5xx answers are normal results (HTTP 200, ``success`` false);
    only transport failures use 408/502/500.
    """
    outbound = OutboundRequest(
        url=payload.url,
        method=payload.method,
        headers=payload.headers,
        params=payload.params,
        body=payload.body,
        auth=payload.auth,
        timeout_ms=payload.timeout,
    )
    try:
        result = await service.forward(outbound, token)
    except TransportError as exc:
        return JSONResponse(
            {
                "success": False,
                "error": _FAILURE_LABELS.get(type(exc), "Proxy request failed"),
                "code": type(exc).__name__,
                "message": exc.message,
                "duration": getattr(exc, "duration_ms", 0),
            },
            status_code=exc.status_code,
        )

    return {
        "success": result.ok,
        "status": result.status,
        "statusText": result.status_text,
        "headers": result.headers,
        "data": result.data,
        "duration": result.duration_ms,
    }
