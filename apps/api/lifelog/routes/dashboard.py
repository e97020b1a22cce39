"""Authenticated landing routes."""

from typing import Annotated

from fastapi import APIRouter, Depends

from lifelog.routes.dependencies import get_authenticated_principal
from lifelog.schemas.auth import AuthPrincipal, DashboardResponse
from lifelog.schemas.error import ErrorResponse

router = APIRouter(tags=["Dashboard"])


@router.get("/", response_model=DashboardResponse, responses={401: {"model": ErrorResponse}})
@router.get("/dashboard", response_model=DashboardResponse, responses={401: {"model": ErrorResponse}})
async def dashboard(
    principal: Annotated[AuthPrincipal, Depends(get_authenticated_principal)],
) -> DashboardResponse:
    return DashboardResponse(message="Authenticated", user_id=principal.user_id)
