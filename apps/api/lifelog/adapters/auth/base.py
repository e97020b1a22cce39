"""Session token interfaces."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Literal


@dataclass(frozen=True, slots=True)
class TokenClaims:
    subject_id: str
    is_admin: bool = False


@dataclass(frozen=True, slots=True)
class ValidToken:
    claims: TokenClaims
    expires_at: datetime


@dataclass(frozen=True, slots=True)
class InvalidToken:
    reason: Literal["malformed", "expired", "bad_signature", "missing_claims"]


TokenVerification = ValidToken | InvalidToken


class TokenService(ABC):
    """Issues signed bearer tokens and checks them in a single step.

    Verification never hands out claims from a token whose signature or
    expiry did not check out; callers branch on the returned variant.
    """

    @abstractmethod
    def issue(self, claims: TokenClaims, ttl_seconds: int | None = None) -> str:
        """Sign claims into a token that expires ``ttl_seconds`` from now."""

    @abstractmethod
    def verify_and_decode(self, token: str) -> TokenVerification:
        """Return ``ValidToken`` or ``InvalidToken``; never raises for bad tokens."""


__all__ = ["InvalidToken", "TokenClaims", "TokenService", "TokenVerification", "ValidToken"]
