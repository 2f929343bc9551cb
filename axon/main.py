import logging
import time
from datetime import datetime, timezone

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import settings
from .database import Base, engine
from .errors import AxonError
from .routes import auth as auth_routes
from .routes import collections as collections_routes
from .routes import environments as environments_routes
from .routes import history as history_routes
from .routes import proxy as proxy_routes
from .routes import requests as requests_routes

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

started_at = time.monotonic()

app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    description="Saved requests, collections and a CORS-free HTTP proxy for the Axon client.",
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def on_startup() -> None:
    Base.metadata.create_all(bind=engine)
    logger.info("%s %s ready", settings.app_name, settings.version)


@app.get("/health")
def health():
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": round(time.monotonic() - started_at, 3),
        "version": settings.version,
    }


def _failure(status_code: int, message: str, code: str = None) -> JSONResponse:
    body = {"success": False, "error": message}
    if code:
        body["code"] = code
    return JSONResponse(body, status_code=status_code)


@app.exception_handler(AxonError)
async def axon_error_handler(request: Request, exc: AxonError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return _failure(exc.status_code, exc.message, type(exc).__name__)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"] if part != "body")
        messages.append(f"{location}: {error['msg']}" if location else error["msg"])
    return _failure(400, "; ".join(messages) or "Invalid request", "ValidationError")


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return _failure(exc.status_code, str(exc.detail))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled application error", exc_info=exc)
    return _failure(500, "Internal server error")


app.include_router(auth_routes.router)
app.include_router(requests_routes.router)
app.include_router(collections_routes.router)
app.include_router(environments_routes.router)
app.include_router(history_routes.router)
app.include_router(proxy_routes.router)


def run() -> None:
    uvicorn.run("axon.main:app", host=settings.host, port=settings.port, log_level=settings.log_level.lower())
