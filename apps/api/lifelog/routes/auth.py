"""Account routes: register, login, logout and password change."""

from typing import Annotated

from fastapi import APIRouter, Depends, status

from lifelog.routes.dependencies import get_authenticated_principal, get_user_service
from lifelog.schemas.auth import (
    AuthPrincipal,
    ChangePasswordRequest,
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    RegisterResponse,
    UserProfile,
)
from lifelog.schemas.common import MessageResponse
from lifelog.schemas.error import ErrorResponse
from lifelog.services.users import UserService

router = APIRouter(tags=["Accounts"])


@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def register(
    payload: RegisterRequest,
    service: Annotated[UserService, Depends(get_user_service)],
) -> RegisterResponse:
    user = await service.register(username=payload.username, email=payload.email, password=payload.password)
    return RegisterResponse(message="User registered", user=UserProfile.model_validate(user))


@router.post(
    "/login",
    response_model=LoginResponse,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
)
async def login(
    payload: LoginRequest,
    service: Annotated[UserService, Depends(get_user_service)],
) -> LoginResponse:
    token, user = await service.login(identifier=payload.username, password=payload.password)
    return LoginResponse(
        token=token,
        user_id=user["user_id"],
        is_admin=bool(user.get("is_admin")),
        message="Login successful",
    )


@router.get("/logout", response_model=MessageResponse)
async def logout() -> MessageResponse:
    # Tokens are stateless; the client discards its copy.
    return MessageResponse(message="Logged out")


@router.post(
    "/change-password",
    response_model=MessageResponse,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
)
async def change_password(
    payload: ChangePasswordRequest,
    principal: Annotated[AuthPrincipal, Depends(get_authenticated_principal)],
    service: Annotated[UserService, Depends(get_user_service)],
) -> MessageResponse:
    await service.change_password(
        user_id=principal.user_id,
        old_password=payload.old_password,
        new_password=payload.new_password,
        confirm_password=payload.confirm_password,
    )
    return MessageResponse(message="Password changed")
