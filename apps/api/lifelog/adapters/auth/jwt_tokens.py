"""HS256 JWT implementation of the session token service."""

from __future__ import annotations

import time
from datetime import UTC, datetime

import jwt

from lifelog.adapters.auth.base import InvalidToken, TokenClaims, TokenService, TokenVerification, ValidToken

DEFAULT_TOKEN_TTL_SECONDS = 3600


class JwtTokenService(TokenService):
    """Signs ``{sub, is_admin, iat, exp}`` with a server-held secret."""

    def __init__(
        self,
        secret: str,
        *,
        algorithm: str = "HS256",
        default_ttl_seconds: int = DEFAULT_TOKEN_TTL_SECONDS,
    ) -> None:
        if not secret:
            raise ValueError("Token signing secret is empty")
        self._secret = secret
        self._algorithm = algorithm
        self._default_ttl_seconds = default_ttl_seconds

    def issue(self, claims: TokenClaims, ttl_seconds: int | None = None) -> str:
        ttl = self._default_ttl_seconds if ttl_seconds is None else ttl_seconds
        issued_at = int(time.time())
        payload = {
            "sub": claims.subject_id,
            "is_admin": bool(claims.is_admin),
            "iat": issued_at,
            "exp": issued_at + max(ttl, 0),
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify_and_decode(self, token: str) -> TokenVerification:
        if not isinstance(token, str):
            raise TypeError("token must be a string")

        raw = token.strip()
        if not raw:
            return InvalidToken(reason="malformed")

        try:
            payload = jwt.decode(
                raw,
                self._secret,
                algorithms=[self._algorithm],
                options={"require": ["exp", "sub"]},
            )
        except jwt.ExpiredSignatureError:
            return InvalidToken(reason="expired")
        except jwt.InvalidSignatureError:
            return InvalidToken(reason="bad_signature")
        except jwt.MissingRequiredClaimError:
            return InvalidToken(reason="missing_claims")
        except jwt.InvalidTokenError:
            return InvalidToken(reason="malformed")

        expires_at = int(payload["exp"])
        # A zero-ttl token is expired the moment it is issued.
        if expires_at <= time.time():
            return InvalidToken(reason="expired")

        subject_id = str(payload.get("sub") or "").strip()
        if not subject_id:
            return InvalidToken(reason="missing_claims")

        claims = TokenClaims(subject_id=subject_id, is_admin=bool(payload.get("is_admin", False)))
        return ValidToken(claims=claims, expires_at=datetime.fromtimestamp(expires_at, tz=UTC))


__all__ = ["DEFAULT_TOKEN_TTL_SECONDS", "JwtTokenService"]
