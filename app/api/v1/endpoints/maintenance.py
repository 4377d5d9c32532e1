from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.api.v1.responses import result_response
from app.api.v1.scope import enforce_unit_scope
from app.schemas.maintenance import MaintenanceEndIn, MaintenanceModeConfig, MaintenanceStartIn
from app.services.auth import Actor, get_actor
from app.services.container import ServiceContainer, get_services

router = APIRouter()


@router.post("/units/{unit_id}/maintenance/start")
async def start_maintenance(
    unit_id: str,
    payload: MaintenanceStartIn,
    actor: Actor = Depends(get_actor),
    services: ServiceContainer = Depends(get_services),
) -> JSONResponse:
    await enforce_unit_scope(services, actor, unit_id)
    config = MaintenanceModeConfig(
        unit_id=unit_id,
        reason=payload.reason,
        maintenance_request_id=payload.maintenance_request_id,
        estimated_end_date=payload.estimated_end_date,
        notify_tenants=payload.notify_tenants,
        auto_restore=payload.auto_restore,
    )
    return result_response(await services.listings.start_maintenance_mode(config, actor.user_id))


@router.post("/units/{unit_id}/maintenance/end")
async def end_maintenance(
    unit_id: str,
    payload: MaintenanceEndIn,
    actor: Actor = Depends(get_actor),
    services: ServiceContainer = Depends(get_services),
) -> JSONResponse:
    await enforce_unit_scope(services, actor, unit_id)
    result = await services.listings.end_maintenance_mode(
        unit_id, actor.user_id, payload.restore_status, payload.reason,
    )
    return result_response(result)


@router.get("/units/{unit_id}/maintenance")
async def get_maintenance(
    unit_id: str,
    actor: Actor = Depends(get_actor),
    services: ServiceContainer = Depends(get_services),
) -> JSONResponse:
    await enforce_unit_scope(services, actor, unit_id)
    return result_response(await services.listings.get_maintenance_status(unit_id))
