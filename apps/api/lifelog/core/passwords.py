"""Salted PBKDF2 password hashing.

Stored credentials are two hex strings: the derived key and the salt it was
derived with. Iteration count and digest are process-wide constants, so a
stored pair can always be re-derived for comparison.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
from dataclasses import dataclass

PBKDF2_HASH_NAME = "sha256"
PBKDF2_ITERATIONS = 100_000
SALT_BYTES = 16
KEY_BYTES = 32


class CryptoError(RuntimeError):
    """Raised when the key derivation primitive cannot run."""


@dataclass(frozen=True, slots=True)
class PasswordHash:
    hash: str
    salt: str


def _derive(password: str, salt: bytes) -> bytes:
    try:
        return hashlib.pbkdf2_hmac(
            PBKDF2_HASH_NAME,
            password.encode("utf-8"),
            salt,
            PBKDF2_ITERATIONS,
            dklen=KEY_BYTES,
        )
    except (TypeError, ValueError) as exc:
        raise CryptoError("Password key derivation failed") from exc


def hash_password(password: str) -> PasswordHash:
    salt = secrets.token_bytes(SALT_BYTES)
    derived = _derive(password, salt)
    return PasswordHash(hash=derived.hex(), salt=salt.hex())


def verify_password(password: str, stored_hash: str, stored_salt: str) -> bool:
    try:
        salt = bytes.fromhex(stored_salt)
    except (TypeError, ValueError) as exc:
        raise CryptoError("Stored salt is not valid hex") from exc

    derived = _derive(password, salt).hex()
    return hmac.compare_digest(derived, str(stored_hash or ""))
