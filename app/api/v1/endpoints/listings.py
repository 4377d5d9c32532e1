from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from app.api.v1.responses import result_response
from app.api.v1.scope import enforce_listing_scope
from app.schemas.bulk import BulkRequest
from app.schemas.listing import ListingExpirationExtend, ListingStatusUpdate, ListingUpdate
from app.services.auth import Actor, get_actor
from app.services.container import ServiceContainer, get_services

router = APIRouter()


@router.get("/listings/expiring-soon")
async def expiring_soon(
    days: int | None = Query(default=None, ge=1, le=365),
    actor: Actor = Depends(get_actor),
    services: ServiceContainer = Depends(get_services),
) -> JSONResponse:
    result = await services.listings.get_expiring_soon_listings(days, organization_id=actor.organization_id)
    return result_response(result)


@router.post("/listings/bulk")
async def bulk_listings(
    payload: BulkRequest,
    actor: Actor = Depends(get_actor),
    services: ServiceContainer = Depends(get_services),
) -> JSONResponse:
    result = await services.bulk.bulk_apply(payload.operations, actor.user_id, actor.organization_id)
    return result_response(result)


@router.patch("/listings/{listing_id}")
async def update_listing(
    listing_id: str,
    payload: ListingUpdate,
    actor: Actor = Depends(get_actor),
    services: ServiceContainer = Depends(get_services),
) -> JSONResponse:
    await enforce_listing_scope(services, actor, listing_id)
    return result_response(await services.listings.update_listing_information(listing_id, payload, actor.user_id))


@router.patch("/listings/{listing_id}/status")
async def update_listing_status(
    listing_id: str,
    payload: ListingStatusUpdate,
    actor: Actor = Depends(get_actor),
    services: ServiceContainer = Depends(get_services),
) -> JSONResponse:
    await enforce_listing_scope(services, actor, listing_id)
    result = await services.listings.update_status(listing_id, payload.status, actor.user_id, payload.reason)
    return result_response(result)


@router.post("/listings/{listing_id}/extend-expiration")
async def extend_listing_expiration(
    listing_id: str,
    payload: ListingExpirationExtend,
    actor: Actor = Depends(get_actor),
    services: ServiceContainer = Depends(get_services),
) -> JSONResponse:
    await enforce_listing_scope(services, actor, listing_id)
    result = await services.listings.extend_listing_expiration(
        listing_id, payload.expiration_date, actor.user_id, payload.reason,
    )
    return result_response(result)
