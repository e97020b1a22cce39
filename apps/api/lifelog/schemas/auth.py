"""Authentication and account schemas."""

from pydantic import BaseModel, Field

from lifelog.schemas.common import CamelModel, UtcDatetime

EMAIL_PATTERN = r"^[\w-]+(?:\.[\w-]+)*@(?:[\w-]+\.)+[a-zA-Z]{2,7}$"


class AuthPrincipal(BaseModel):
    """Normalized authenticated principal used by business services."""

    user_id: str = Field(min_length=1)
    is_admin: bool = False


class RegisterRequest(CamelModel):
    username: str = Field(min_length=1)
    email: str = Field(pattern=EMAIL_PATTERN)
    password: str = Field(min_length=1)


class LoginRequest(CamelModel):
    """``username`` may hold either the username or the email address."""

    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class LoginResponse(CamelModel):
    token: str
    user_id: str
    is_admin: bool
    message: str


class ChangePasswordRequest(CamelModel):
    old_password: str = Field(min_length=1)
    new_password: str = Field(min_length=1)
    confirm_password: str = Field(min_length=1)


class UserProfile(CamelModel):
    user_id: str
    username: str
    email: str
    is_admin: bool = False
    created_at: UtcDatetime | None = None
    updated_at: UtcDatetime | None = None


class RegisterResponse(CamelModel):
    message: str
    user: UserProfile


class AdminUserUpdate(CamelModel):
    username: str | None = Field(default=None, min_length=1)
    email: str | None = Field(default=None, pattern=EMAIL_PATTERN)
    is_admin: bool | None = None


class UserEnvelope(CamelModel):
    message: str
    user: UserProfile | None = None


class DashboardResponse(CamelModel):
    message: str
    user_id: str
