"""Dependency wiring for routes."""

from __future__ import annotations

import logging
from typing import Annotated
from uuid import uuid4

from fastapi import Depends, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from lifelog.adapters.auth import InvalidToken, JwtTokenService, TokenService
from lifelog.core.config import Settings, get_settings
from lifelog.core.logging_safety import safe_log_identifier
from lifelog.core.query_params import parse_query
from lifelog.errors import AuthenticationError, AuthorizationError, InitializationError
from lifelog.repositories.base import RecordStore, StoreError
from lifelog.repositories.memory import InMemoryStore
from lifelog.repositories.postgres import PostgresStore
from lifelog.schemas.auth import AuthPrincipal
from lifelog.services.users import UserService

bearer_scheme = HTTPBearer(auto_error=False, scheme_name="bearerAuth")
logger = logging.getLogger(__name__)


def build_store(settings: Settings) -> RecordStore:
    """Construct the configured backing store; connections open on startup."""
    if settings.store_backend == "postgres":
        return PostgresStore(
            settings.database_url or "",
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
            command_timeout=settings.db_command_timeout_s,
        )
    return InMemoryStore()


def build_token_service(settings: Settings) -> TokenService:
    return JwtTokenService(
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
        default_ttl_seconds=settings.token_ttl_seconds,
    )


def _request_correlation_id(request: Request) -> str:
    existing = getattr(request.state, "correlation_id", None)
    if isinstance(existing, str) and existing:
        return existing

    correlation_id = request.headers.get("X-Correlation-Id")
    if correlation_id:
        request.state.correlation_id = correlation_id
        return correlation_id

    generated = f"req-{uuid4()}"
    request.state.correlation_id = generated
    return generated


def get_app_settings(request: Request) -> Settings:
    settings = getattr(request.app.state, "settings", None)
    return settings if settings is not None else get_settings()


def get_store(request: Request) -> RecordStore:
    store = getattr(request.app.state, "store", None)
    if store is None:
        reason = getattr(request.app.state, "store_error", None) or "Backing store is not initialized"
        logger.error(
            "store.unavailable correlation_id=%s method=%s path=%s",
            safe_log_identifier(_request_correlation_id(request), prefix="cid"),
            request.method,
            request.url.path,
        )
        raise InitializationError("Service unavailable", details=reason)
    return store


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


def get_query_params(request: Request) -> dict[str, str | list[str]]:
    return parse_query(request.url.query)


def get_user_service(
    store: Annotated[RecordStore, Depends(get_store)],
    tokens: Annotated[TokenService, Depends(get_token_service)],
) -> UserService:
    return UserService(store, tokens)


def _reject(request: Request, reason: str, safe_correlation_id: str) -> None:
    logger.warning(
        "auth.rejected correlation_id=%s method=%s path=%s reason=%s",
        safe_correlation_id,
        request.method,
        request.url.path,
        reason,
    )


async def get_authenticated_principal(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Security(bearer_scheme)],
    tokens: Annotated[TokenService, Depends(get_token_service)],
    users: Annotated[UserService, Depends(get_user_service)],
) -> AuthPrincipal:
    """Verify the bearer token, confirm the subject still exists and attach it to the request."""
    correlation_id = _request_correlation_id(request)
    safe_correlation_id = safe_log_identifier(correlation_id, prefix="cid")
    if credentials is None or credentials.scheme.lower() != "bearer" or not credentials.credentials:
        _reject(request, "invalid_or_missing_bearer", safe_correlation_id)
        raise AuthenticationError("Invalid or missing bearer token", code="MISSING_TOKEN")

    verification = tokens.verify_and_decode(credentials.credentials)
    if isinstance(verification, InvalidToken):
        _reject(request, f"token_{verification.reason}", safe_correlation_id)
        raise AuthenticationError("Invalid or expired token", code="INVALID_TOKEN")

    subject_id = verification.claims.subject_id
    safe_principal_id = safe_log_identifier(subject_id, prefix="pid")
    try:
        principal = await users.find_principal(subject_id)
    except StoreError as exc:
        logger.warning(
            "auth.rejected correlation_id=%s method=%s path=%s principal_id=%s reason=subject_lookup_failed",
            safe_correlation_id,
            request.method,
            request.url.path,
            safe_principal_id,
        )
        raise AuthenticationError("Could not verify user", code="SUBJECT_LOOKUP_FAILED") from exc

    if principal is None:
        logger.warning(
            "auth.rejected correlation_id=%s method=%s path=%s principal_id=%s reason=subject_not_found",
            safe_correlation_id,
            request.method,
            request.url.path,
            safe_principal_id,
        )
        raise AuthenticationError("User no longer exists", code="SUBJECT_NOT_FOUND")

    logger.info(
        "auth.accepted correlation_id=%s method=%s path=%s principal_id=%s is_admin=%s",
        safe_correlation_id,
        request.method,
        request.url.path,
        safe_principal_id,
        principal.is_admin,
    )
    request.state.auth_principal = principal
    return principal


async def require_admin(
    request: Request,
    principal: Annotated[AuthPrincipal, Depends(get_authenticated_principal)],
) -> AuthPrincipal:
    if not principal.is_admin:
        logger.warning(
            "auth.forbidden correlation_id=%s method=%s path=%s principal_id=%s reason=not_admin",
            safe_log_identifier(_request_correlation_id(request), prefix="cid"),
            request.method,
            request.url.path,
            safe_log_identifier(principal.user_id, prefix="pid"),
        )
        raise AuthorizationError("Administrator privileges required", code="NOT_ADMIN")
    return principal
