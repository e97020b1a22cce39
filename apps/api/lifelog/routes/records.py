"""Router factory for the owner-scoped record resources."""

import time
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Path, Response, status

from lifelog.domain.resources import RESOURCES, DistinctEndpoint, ResourceDefinition
from lifelog.repositories.base import RecordStore
from lifelog.routes.dependencies import get_authenticated_principal, get_query_params, get_store
from lifelog.schemas.auth import AuthPrincipal
from lifelog.schemas.common import MessageResponse
from lifelog.schemas.error import ErrorResponse, NoLeakNotFoundError
from lifelog.schemas.records import RecordEnvelope, RecordPage, StatisticsReport
from lifelog.services.records import RecordService

QueryParams = Annotated[dict[str, str | list[str]], Depends(get_query_params)]
Principal = Annotated[AuthPrincipal, Depends(get_authenticated_principal)]

_AUTH_RESPONSES: dict[int | str, dict[str, Any]] = {401: {"model": ErrorResponse}}
_RECORD_RESPONSES: dict[int | str, dict[str, Any]] = {
    401: {"model": ErrorResponse},
    404: {"model": NoLeakNotFoundError},
}


def _add_distinct_route(router: APIRouter, resource: ResourceDefinition, endpoint: DistinctEndpoint, service_dep) -> None:
    async def list_distinct(principal: Principal, params: QueryParams, service: service_dep) -> list[str]:
        return await service.distinct_values(
            owner_id=principal.user_id,
            source=endpoint.source,
            params=params,
            narrow_by=endpoint.narrow_by,
        )

    router.add_api_route(
        f"/{endpoint.path}",
        list_distinct,
        methods=["GET"],
        response_model=list[str],
        responses=_AUTH_RESPONSES,
        name=f"{resource.name}_{endpoint.path}",
        summary=f"Distinct {endpoint.path} of {resource.name}",
    )


def build_record_router(resource: ResourceDefinition) -> APIRouter:
    """Create list/CRUD/export/statistics/distinct routes for one resource."""
    router = APIRouter(prefix=f"/{resource.name}", tags=[resource.name.capitalize()])
    payload_model = resource.payload_model
    record_model = resource.record_model

    def get_record_service(store: Annotated[RecordStore, Depends(get_store)]) -> RecordService:
        return RecordService(store, resource)

    Service = Annotated[RecordService, Depends(get_record_service)]

    # Fixed paths are registered before "/{recordId}" so they are matched first.
    @router.get("/export", responses=_AUTH_RESPONSES, response_class=Response)
    async def export_records(principal: Principal, params: QueryParams, service: Service) -> Response:
        document = await service.export_csv(owner_id=principal.user_id, params=params)
        filename = f"{resource.name}_export_{int(time.time() * 1000)}.csv"
        return Response(
            content=document,
            media_type="text/csv; charset=utf-8",
            headers={"Content-Disposition": f"attachment; filename={filename}"},
        )

    @router.get(
        "/statistics",
        response_model=StatisticsReport,
        response_model_exclude_none=True,
        responses=_AUTH_RESPONSES,
    )
    async def record_statistics(principal: Principal, params: QueryParams, service: Service) -> dict[str, Any]:
        return await service.statistics(owner_id=principal.user_id, params=params)

    for endpoint in resource.distinct_endpoints:
        _add_distinct_route(router, resource, endpoint, Service)

    @router.get("", response_model=RecordPage[record_model], responses=_AUTH_RESPONSES)
    async def list_records(principal: Principal, params: QueryParams, service: Service) -> dict[str, Any]:
        return await service.list_records(owner_id=principal.user_id, params=params)

    @router.post(
        "",
        response_model=RecordEnvelope[record_model],
        status_code=status.HTTP_201_CREATED,
        responses=_AUTH_RESPONSES,
    )
    async def create_record(payload: payload_model, principal: Principal, service: Service) -> dict[str, Any]:
        item = await service.create_record(owner_id=principal.user_id, payload=payload)
        return {"message": f"{resource.label} created", "item": item}

    @router.get("/{recordId}", response_model=record_model, responses=_RECORD_RESPONSES)
    async def get_record(
        record_id: Annotated[str, Path(alias="recordId")],
        principal: Principal,
        service: Service,
    ) -> dict[str, Any]:
        return await service.get_record(owner_id=principal.user_id, record_id=record_id)

    @router.put("/{recordId}", response_model=RecordEnvelope[record_model], responses=_RECORD_RESPONSES)
    async def update_record(
        record_id: Annotated[str, Path(alias="recordId")],
        payload: payload_model,
        principal: Principal,
        service: Service,
    ) -> dict[str, Any]:
        item = await service.update_record(owner_id=principal.user_id, record_id=record_id, payload=payload)
        return {"message": f"{resource.label} updated", "item": item}

    @router.delete("/{recordId}", response_model=MessageResponse, responses=_RECORD_RESPONSES)
    async def delete_record(
        record_id: Annotated[str, Path(alias="recordId")],
        principal: Principal,
        service: Service,
    ) -> MessageResponse:
        await service.delete_record(owner_id=principal.user_id, record_id=record_id)
        return MessageResponse(message=f"{resource.label} deleted")

    return router


record_routers: list[APIRouter] = [build_record_router(resource) for resource in RESOURCES]
