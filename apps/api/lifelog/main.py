"""FastAPI application entrypoint."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from lifelog.core.config import DEFAULT_JWT_SECRET, Settings, get_settings
from lifelog.core.logging_safety import configure_logging
from lifelog.errors import ApiError
from lifelog.repositories.base import RecordStore, StoreError
from lifelog.routes import admin_router, auth_router, dashboard_router, record_routers
from lifelog.routes.dependencies import build_store, build_token_service
from lifelog.schemas.error import ErrorResponse

logger = logging.getLogger(__name__)

API_PREFIX = "/api"
CORS_ALLOW_METHODS = "GET, POST, PUT, DELETE, OPTIONS"
CORS_ALLOW_HEADERS = "Content-Type, Authorization"
CORS_MAX_AGE = "86400"

_HTTP_ERROR_CODES: dict[int, str] = {
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
}


def _cors_headers(settings: Settings) -> dict[str, str]:
    return {
        "Access-Control-Allow-Origin": settings.cors_allow_origin,
        "Access-Control-Allow-Methods": CORS_ALLOW_METHODS,
        "Access-Control-Allow-Headers": CORS_ALLOW_HEADERS,
        "Access-Control-Max-Age": CORS_MAX_AGE,
    }


def _error_response(
    status_code: int,
    payload: ErrorResponse,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=payload.model_dump(mode="json", exclude_none=True),
        headers=headers,
    )


def _first_validation_error(exc: RequestValidationError) -> str | None:
    errors = exc.errors()
    if not errors:
        return None
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = first.get("msg", "Invalid value")
    return f"{location}: {message}" if location else message


def _mark_store_unavailable(app: FastAPI, exc: Exception) -> None:
    logger.error("store.init_failed error_type=%s error=%s", type(exc).__name__, exc)
    app.state.store = None
    app.state.store_error = str(exc)


def create_app(settings: Settings | None = None, store: RecordStore | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)
    if settings.jwt_secret == DEFAULT_JWT_SECRET:
        logger.warning("config.insecure_default jwt_secret uses the development default")

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # Open store connections once per process.
        if app.state.store is not None:
            try:
                await app.state.store.connect()
            except StoreError as exc:
                _mark_store_unavailable(app, exc)
        try:
            yield
        finally:
            if app.state.store is not None:
                await app.state.store.close()

    app = FastAPI(title="Lifelog API", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.token_service = build_token_service(settings)
    app.state.store = None
    app.state.store_error = None
    if store is not None:
        app.state.store = store
    else:
        try:
            app.state.store = build_store(settings)
        except StoreError as exc:
            _mark_store_unavailable(app, exc)

    cors_headers = _cors_headers(settings)

    @app.middleware("http")
    async def apply_cors(request: Request, call_next) -> Response:
        # Browser preflights and bare OPTIONS alike get an empty 204, on any path.
        if request.method == "OPTIONS":
            return Response(status_code=204, headers=cors_headers)
        response = await call_next(request)
        response.headers.update(cors_headers)
        return response

    @app.exception_handler(ApiError)
    async def handle_api_error(_, exc: ApiError) -> JSONResponse:
        return _error_response(exc.status_code, exc.payload)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(_, exc: RequestValidationError) -> JSONResponse:
        payload = ErrorResponse(
            code="VALIDATION_ERROR",
            message="Invalid request",
            details=_first_validation_error(exc),
        )
        return _error_response(400, payload)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(_, exc: StarletteHTTPException) -> JSONResponse:
        payload = ErrorResponse(
            code=_HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR"),
            message=str(exc.detail),
        )
        return _error_response(exc.status_code, payload)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("request.unhandled method=%s path=%s", request.method, request.url.path)
        # Rendered outside the http middleware stack, so CORS headers are set here.
        payload = ErrorResponse(code="INTERNAL_ERROR", message="Internal server error", details=str(exc))
        return _error_response(500, payload, headers=cors_headers)

    app.include_router(auth_router, prefix=API_PREFIX)
    app.include_router(admin_router, prefix=API_PREFIX)
    app.include_router(dashboard_router, prefix=API_PREFIX)
    for router in record_routers:
        app.include_router(router, prefix=API_PREFIX)

    return app


app = create_app()
