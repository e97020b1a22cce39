"""Administrator-only user management routes."""

from typing import Annotated

from fastapi import APIRouter, Depends, Path

from lifelog.core.config import Settings
from lifelog.routes.dependencies import get_app_settings, get_user_service, require_admin
from lifelog.schemas.auth import AdminUserUpdate, AuthPrincipal, UserEnvelope, UserProfile
from lifelog.schemas.common import MessageResponse
from lifelog.schemas.error import ErrorResponse
from lifelog.services.users import UserService

router = APIRouter(prefix="/admin/users", tags=["Administration"])

Admin = Annotated[AuthPrincipal, Depends(require_admin)]
Users = Annotated[UserService, Depends(get_user_service)]
UserId = Annotated[str, Path(alias="userId")]

_ADMIN_RESPONSES = {401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}}
_USER_RESPONSES = {**_ADMIN_RESPONSES, 404: {"model": ErrorResponse}}


@router.get("", response_model=list[UserProfile], responses=_ADMIN_RESPONSES)
async def list_users(_: Admin, service: Users) -> list[UserProfile]:
    return [UserProfile.model_validate(user) for user in await service.list_users()]


@router.post("/reset-password/{userId}", response_model=MessageResponse, responses=_USER_RESPONSES)
async def reset_password(
    user_id: UserId,
    _: Admin,
    service: Users,
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> MessageResponse:
    await service.reset_password(user_id, settings.default_reset_password)
    return MessageResponse(message="Password reset")


@router.get("/{userId}", response_model=UserProfile, responses=_USER_RESPONSES)
async def get_user(user_id: UserId, _: Admin, service: Users) -> UserProfile:
    return UserProfile.model_validate(await service.get_user(user_id))


@router.put(
    "/{userId}",
    response_model=UserEnvelope,
    responses={**_USER_RESPONSES, 409: {"model": ErrorResponse}},
)
async def update_user(user_id: UserId, payload: AdminUserUpdate, _: Admin, service: Users) -> UserEnvelope:
    changed, user = await service.update_user(user_id, payload)
    message = "User updated" if changed else "Nothing to update"
    return UserEnvelope(message=message, user=UserProfile.model_validate(user))


@router.delete("/{userId}", response_model=MessageResponse, responses=_USER_RESPONSES)
async def delete_user(user_id: UserId, _: Admin, service: Users) -> MessageResponse:
    await service.delete_user(user_id)
    return MessageResponse(message="User deleted")
