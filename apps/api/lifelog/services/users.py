"""Account registration, login and administration."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from lifelog.adapters.auth import TokenClaims, TokenService
from lifelog.core.logging_safety import safe_log_identifier
from lifelog.core.passwords import CryptoError, hash_password, verify_password
from lifelog.errors import (
    AuthenticationError,
    ConflictError,
    DependencyError,
    NotFoundError,
    ValidationError,
)
from lifelog.repositories.base import AnyOf, Condition, RecordStore, StoreError, UniqueViolation, is_row_id
from lifelog.schemas.auth import AdminUserUpdate, AuthPrincipal

logger = logging.getLogger(__name__)

USERS_TABLE = "users"
PROFILE_COLUMNS = ("user_id", "username", "email", "is_admin", "created_at", "updated_at")


def _store_failure(action: str, exc: StoreError) -> DependencyError:
    logger.exception("users.store_failed action=%s error_type=%s", action, type(exc).__name__)
    return DependencyError(f"Could not {action}")


def _profile(row: dict[str, Any]) -> dict[str, Any]:
    return {column: row.get(column) for column in PROFILE_COLUMNS}


class UserService:
    def __init__(self, store: RecordStore, tokens: TokenService | None = None) -> None:
        self._store = store
        self._tokens = tokens

    async def _find_one(self, action: str, *filters: Condition | AnyOf) -> dict[str, Any] | None:
        try:
            result = await self._store.select(USERS_TABLE, filters=filters, limit=1)
        except StoreError as exc:
            raise _store_failure(action, exc) from exc
        return result.rows[0] if result.rows else None

    @staticmethod
    def _check_user_id(user_id: str) -> None:
        if not is_row_id(user_id):
            raise NotFoundError("User not found")

    async def _require_user(self, user_id: str, action: str) -> dict[str, Any]:
        row = await self._find_one(action, Condition("user_id", "eq", user_id))
        if row is None:
            raise NotFoundError("User not found")
        return row

    async def find_principal(self, user_id: str) -> AuthPrincipal | None:
        """Look up the subject behind a token; store failures propagate as ``StoreError``."""
        result = await self._store.select(
            USERS_TABLE,
            filters=[Condition("user_id", "eq", user_id)],
            columns=["user_id", "is_admin"],
            limit=1,
        )
        if not result.rows:
            return None
        row = result.rows[0]
        return AuthPrincipal(user_id=str(row["user_id"]), is_admin=bool(row.get("is_admin")))

    async def register(self, *, username: str, email: str, password: str) -> dict[str, Any]:
        username = username.strip()
        email = email.strip().lower()
        try:
            result = await self._store.select(
                USERS_TABLE,
                filters=[
                    AnyOf((Condition("username", "eq", username), Condition("email", "eq", email))),
                ],
                columns=["username", "email"],
            )
        except StoreError as exc:
            raise _store_failure("check existing users", exc) from exc

        username_taken = any(row.get("username") == username for row in result.rows)
        email_taken = any(row.get("email") == email for row in result.rows)
        if username_taken and email_taken:
            raise ConflictError("Username and email already exist", code="USERNAME_AND_EMAIL_TAKEN")
        if username_taken:
            raise ConflictError("Username already exists", code="USERNAME_TAKEN")
        if email_taken:
            raise ConflictError("Email already exists", code="EMAIL_TAKEN")

        try:
            credential = hash_password(password)
        except CryptoError as exc:
            logger.exception("users.hash_failed action=register")
            raise DependencyError("Could not hash password") from exc

        now = datetime.now(UTC)
        values = {
            "user_id": str(uuid4()),
            "username": username,
            "email": email,
            "hashed_password": credential.hash,
            "salt": credential.salt,
            "is_admin": False,
            "created_at": now,
            "updated_at": now,
        }
        try:
            row = await self._store.insert(USERS_TABLE, values)
        except UniqueViolation as exc:
            raise ConflictError("Username or email already exists") from exc
        except StoreError as exc:
            raise _store_failure("register user", exc) from exc

        logger.info("users.registered user_id=%s", safe_log_identifier(row["user_id"], prefix="uid"))
        return _profile(row)

    async def login(self, *, identifier: str, password: str) -> tuple[str, dict[str, Any]]:
        """Authenticate by username or email and issue a session token."""
        if self._tokens is None:
            raise DependencyError("Token service is not configured")

        identifier = identifier.strip()
        row = await self._find_one(
            "look up user",
            AnyOf((Condition("username", "eq", identifier), Condition("email", "eq", identifier.lower()))),
        )
        if row is None:
            logger.warning("users.login_rejected reason=unknown_user")
            raise AuthenticationError("Invalid credentials", code="INVALID_CREDENTIALS")

        try:
            matches = verify_password(password, row.get("hashed_password") or "", row.get("salt") or "")
        except CryptoError as exc:
            logger.exception("users.verify_failed user_id=%s", safe_log_identifier(row["user_id"], prefix="uid"))
            raise DependencyError("Could not verify password") from exc
        if not matches:
            logger.warning(
                "users.login_rejected user_id=%s reason=wrong_password",
                safe_log_identifier(row["user_id"], prefix="uid"),
            )
            raise AuthenticationError("Invalid credentials", code="INVALID_CREDENTIALS")

        token = self._tokens.issue(TokenClaims(subject_id=str(row["user_id"]), is_admin=bool(row.get("is_admin"))))
        return token, _profile(row)

    async def _set_password(self, user_id: str, password: str, action: str) -> int:
        try:
            credential = hash_password(password)
        except CryptoError as exc:
            logger.exception("users.hash_failed action=%s", action)
            raise DependencyError("Could not hash password") from exc

        try:
            rows = await self._store.update(
                USERS_TABLE,
                filters=[Condition("user_id", "eq", user_id)],
                values={
                    "hashed_password": credential.hash,
                    "salt": credential.salt,
                    "updated_at": datetime.now(UTC),
                },
            )
        except StoreError as exc:
            raise _store_failure(action, exc) from exc
        return len(rows)

    async def change_password(
        self,
        *,
        user_id: str,
        old_password: str,
        new_password: str,
        confirm_password: str,
    ) -> None:
        if new_password != confirm_password:
            raise ValidationError("New password and confirmation do not match", code="PASSWORD_MISMATCH")

        row = await self._require_user(user_id, "look up user")
        try:
            matches = verify_password(old_password, row.get("hashed_password") or "", row.get("salt") or "")
        except CryptoError as exc:
            logger.exception("users.verify_failed user_id=%s", safe_log_identifier(user_id, prefix="uid"))
            raise DependencyError("Could not verify password") from exc
        if not matches:
            raise ValidationError("Old password is incorrect", code="WRONG_PASSWORD")

        if await self._set_password(user_id, new_password, "change password") == 0:
            raise NotFoundError("User not found")

    async def list_users(self) -> list[dict[str, Any]]:
        try:
            result = await self._store.select(USERS_TABLE, columns=list(PROFILE_COLUMNS))
        except StoreError as exc:
            raise _store_failure("list users", exc) from exc
        return [_profile(row) for row in result.rows]

    async def get_user(self, user_id: str) -> dict[str, Any]:
        self._check_user_id(user_id)
        return _profile(await self._require_user(user_id, "look up user"))

    async def _ensure_unique(self, column: str, value: str, user_id: str) -> None:
        clash = await self._find_one(
            f"check {column} uniqueness",
            Condition(column, "eq", value),
            Condition("user_id", "neq", user_id),
        )
        if clash is not None:
            raise ConflictError(f"{column.capitalize()} already exists", code=f"{column.upper()}_TAKEN")

    async def update_user(self, user_id: str, changes: AdminUserUpdate) -> tuple[bool, dict[str, Any]]:
        """Apply admin edits; returns ``(changed, profile)``."""
        self._check_user_id(user_id)
        current = await self._require_user(user_id, "look up user")
        values: dict[str, Any] = {}

        if changes.username and changes.username != current.get("username"):
            await self._ensure_unique("username", changes.username, user_id)
            values["username"] = changes.username
        if changes.email:
            email = changes.email.strip().lower()
            if email != current.get("email"):
                await self._ensure_unique("email", email, user_id)
                values["email"] = email
        if changes.is_admin is not None and changes.is_admin != bool(current.get("is_admin")):
            values["is_admin"] = changes.is_admin

        if not values:
            return False, _profile(current)

        values["updated_at"] = datetime.now(UTC)
        try:
            rows = await self._store.update(
                USERS_TABLE,
                filters=[Condition("user_id", "eq", user_id)],
                values=values,
            )
        except UniqueViolation as exc:
            raise ConflictError("Username or email already exists") from exc
        except StoreError as exc:
            raise _store_failure("update user", exc) from exc

        if not rows:
            raise NotFoundError("User not found")
        return True, _profile(rows[0])

    async def delete_user(self, user_id: str) -> None:
        self._check_user_id(user_id)
        try:
            removed = await self._store.delete(USERS_TABLE, filters=[Condition("user_id", "eq", user_id)])
        except StoreError as exc:
            raise _store_failure("delete user", exc) from exc
        if removed == 0:
            raise NotFoundError("User not found")

    async def reset_password(self, user_id: str, new_password: str) -> None:
        self._check_user_id(user_id)
        if await self._set_password(user_id, new_password, "reset password") == 0:
            raise NotFoundError("User not found")


__all__ = ["PROFILE_COLUMNS", "USERS_TABLE", "UserService"]
