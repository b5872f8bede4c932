from __future__ import annotations

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from backoffice.api.envelope import failure
from backoffice.api.router import api_router
from backoffice.clients.leancloud import LeanCloudClient
from backoffice.clients.notifications import NotificationClient
from backoffice.config import DEFAULT_CORS_ORIGINS, load_settings
from backoffice.errors import (
    DuplicateEntry,
    InternalError,
    InvalidArgument,
    NotFound,
    RecordError,
    ValidationFailed,
)
from backoffice.services.registry import build_registry
from backoffice.services.response_cache import build_cache

logger = logging.getLogger(__name__)

STATUS_BY_ERROR = {
    InvalidArgument: 400,
    ValidationFailed: 400,
    NotFound: 404,
    DuplicateEntry: 409,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = load_settings()
    client = LeanCloudClient(
        app_id=settings.lean_app_id,
        app_key=settings.lean_app_key,
        master_key=settings.lean_master_key,
        server_url=settings.lean_server_url,
    )
    cache = build_cache(settings.response_cache_enabled)
    await cache.connect()
    notifier = NotificationClient(
        base_url=settings.notification_service_url,
        enabled=settings.notification_enabled,
        timeout=settings.notification_timeout,
    )
    app.state.settings = settings
    app.state.registry = build_registry(
        client,
        cache=cache,
        cache_ttl_seconds=settings.response_cache_ttl_seconds,
        notifier=notifier,
    )
    app.state.lifespan_started = True
    try:
        yield
    finally:
        await notifier.close()
        await cache.close()
        await client.close()
        app.state.lifespan_shutdown = True


def _development(request: Request) -> bool:
    settings = getattr(request.app.state, "settings", None)
    if settings is None:
        settings = load_settings()
    return settings.is_development


async def handle_record_error(request: Request, exc: RecordError) -> JSONResponse:
    if isinstance(exc, ValidationFailed):
        return JSONResponse(status_code=400, content=failure(exc.message, details=exc.details))
    if isinstance(exc, DuplicateEntry):
        return JSONResponse(
            status_code=409, content=failure(exc.message, details={"field": exc.field})
        )
    status_code = next(
        (code for kind, code in STATUS_BY_ERROR.items() if isinstance(exc, kind)), 500
    )
    if status_code != 500:
        return JSONResponse(status_code=status_code, content=failure(exc.message))

    logger.error("Internal error on %s %s: %s", request.method, request.url.path, exc)
    body = failure(exc.message)
    detail = exc.detail if isinstance(exc, InternalError) else None
    if detail and _development(request):
        body["details"] = detail
    return JSONResponse(status_code=500, content=body)


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    body = failure("Internal server error")
    if _development(request):
        body["details"] = str(exc)
    return JSONResponse(status_code=500, content=body)


async def handle_request_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    details = [
        {
            "field": ".".join(str(part) for part in error.get("loc", ())[1:]) or "body",
            "message": error.get("msg", "Invalid value"),
        }
        for error in exc.errors()
    ]
    return JSONResponse(status_code=400, content=failure("Validation failed", details=details))


async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=failure(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


def _cors_origins() -> list[str]:
    try:
        return list(load_settings().cors_origins)
    except ValueError:
        return list(DEFAULT_CORS_ORIGINS)


def create_app() -> FastAPI:
    application = FastAPI(lifespan=lifespan)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.add_exception_handler(RecordError, handle_record_error)
    application.add_exception_handler(RequestValidationError, handle_request_validation_error)
    application.add_exception_handler(StarletteHTTPException, handle_http_error)
    application.add_exception_handler(Exception, handle_unexpected_error)
    application.include_router(api_router, prefix="/api")
    return application


app = create_app()
