from datetime import datetime

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse, Response

from app.api.v1.responses import result_response
from app.models.enums import ListingAction, ListingStatus
from app.schemas.audit import AuditFilter, ExportFormat
from app.services.auth import Actor, get_actor
from app.services.container import ServiceContainer, get_services

router = APIRouter()

_MEDIA_TYPES = {
    ExportFormat.CSV: "text/csv; charset=utf-8",
    ExportFormat.JSON: "application/json",
}


def audit_filter(
    unit_id: str | None = Query(default=None),
    listing_id: str | None = Query(default=None),
    property_id: str | None = Query(default=None),
    actor_id: str | None = Query(default=None),
    action: ListingAction | None = Query(default=None),
    status: ListingStatus | None = Query(default=None),
    date_from: datetime | None = Query(default=None),
    date_to: datetime | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
) -> AuditFilter:
    return AuditFilter(
        unit_id=unit_id,
        listing_id=listing_id,
        property_id=property_id,
        actor_id=actor_id,
        action=action,
        status=status,
        date_from=date_from,
        date_to=date_to,
        limit=limit,
        offset=offset,
    )


@router.get("/audit/trail")
async def get_audit_trail(
    filters: AuditFilter = Depends(audit_filter),
    actor: Actor = Depends(get_actor),
    services: ServiceContainer = Depends(get_services),
) -> JSONResponse:
    return result_response(await services.audit.get_audit_trail(filters, actor.organization_id))


@router.get("/audit/statistics")
async def get_audit_statistics(
    filters: AuditFilter = Depends(audit_filter),
    actor: Actor = Depends(get_actor),
    services: ServiceContainer = Depends(get_services),
) -> JSONResponse:
    return result_response(await services.audit.get_audit_statistics(filters, actor.organization_id))


@router.get("/audit/export")
async def export_audit(
    filters: AuditFilter = Depends(audit_filter),
    fmt: ExportFormat = Query(default=ExportFormat.JSON, alias="format"),
    include_metadata: bool = Query(default=False),
    actor: Actor = Depends(get_actor),
    services: ServiceContainer = Depends(get_services),
) -> Response:
    result = await services.audit.export_audit_data(filters, actor.organization_id, fmt, include_metadata)
    if not result.success:
        return result_response(result)
    filename = f"listing-audit.{fmt.value}"
    return Response(
        content=result.data,
        media_type=_MEDIA_TYPES[fmt],
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/properties/{property_id}/audit-history")
async def get_property_audit_history(
    property_id: str,
    limit: int = Query(default=100, ge=1, le=500),
    actor: Actor = Depends(get_actor),
    services: ServiceContainer = Depends(get_services),
) -> JSONResponse:
    return result_response(
        await services.audit.get_property_audit_history(property_id, actor.organization_id, limit)
    )
