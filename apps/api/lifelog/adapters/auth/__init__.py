"""Session token adapters."""

from .base import InvalidToken, TokenClaims, TokenService, TokenVerification, ValidToken
from .jwt_tokens import JwtTokenService

__all__ = [
    "InvalidToken",
    "JwtTokenService",
    "TokenClaims",
    "TokenService",
    "TokenVerification",
    "ValidToken",
]
