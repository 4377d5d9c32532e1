from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from app.api.v1.responses import envelope, result_response
from app.api.v1.scope import enforce_unit_scope
from app.schemas.listing import ListingCreate
from app.services.auth import Actor, get_actor
from app.services.container import ServiceContainer, get_services

router = APIRouter()


@router.get("/units/{unit_id}/listing")
async def get_unit_listing(
    unit_id: str,
    actor: Actor = Depends(get_actor),
    services: ServiceContainer = Depends(get_services),
) -> JSONResponse:
    await enforce_unit_scope(services, actor, unit_id)
    return result_response(await services.listings.get_unit_listing_status(unit_id))


@router.post("/units/{unit_id}/listing")
async def create_unit_listing(
    unit_id: str,
    payload: ListingCreate,
    actor: Actor = Depends(get_actor),
    services: ServiceContainer = Depends(get_services),
) -> JSONResponse:
    await enforce_unit_scope(services, actor, unit_id)
    result = await services.listings.create_listing(unit_id, payload, actor.user_id, actor.organization_id)
    return result_response(result, success_status=201)


@router.delete("/units/{unit_id}/listing")
async def remove_unit_listing(
    unit_id: str,
    reason: str | None = Query(default=None, max_length=500),
    actor: Actor = Depends(get_actor),
    services: ServiceContainer = Depends(get_services),
) -> JSONResponse:
    await enforce_unit_scope(services, actor, unit_id)
    return result_response(await services.listings.remove_listing(unit_id, actor.user_id, reason))


@router.get("/units/{unit_id}/listing-history")
async def get_unit_listing_history(
    unit_id: str,
    actor: Actor = Depends(get_actor),
    services: ServiceContainer = Depends(get_services),
) -> JSONResponse:
    # ownership is checked by the service (PERMISSION_DENIED)
    return result_response(await services.listings.get_listing_history(unit_id, actor.organization_id))


@router.get("/units/{unit_id}/application-eligibility")
async def get_application_eligibility(
    unit_id: str,
    actor: Actor = Depends(get_actor),
    services: ServiceContainer = Depends(get_services),
) -> JSONResponse:
    await enforce_unit_scope(services, actor, unit_id)
    eligibility = await services.applications.check_application_eligibility(unit_id)
    return envelope(success=True, data=eligibility)
