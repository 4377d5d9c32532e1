from typing import Any

from fastapi import HTTPException

from app.services.auth import Actor
from app.services.container import ServiceContainer


async def enforce_unit_scope(services: ServiceContainer, actor: Actor, unit_id: str) -> dict[str, Any]:
    summary = await services.listings.unit_summary(unit_id)
    if summary is None:
        raise HTTPException(status_code=404, detail=f"Unit with ID {unit_id} not found")
    if summary["organization_id"] != actor.organization_id:
        raise HTTPException(status_code=403, detail="Cross-organization access forbidden")
    return summary


async def enforce_listing_scope(services: ServiceContainer, actor: Actor, listing_id: str) -> dict[str, Any]:
    listing = await services.listings.get_listing(listing_id)
    if listing is None:
        raise HTTPException(status_code=404, detail=f"Listing {listing_id} not found")
    if listing["organization_id"] != actor.organization_id:
        raise HTTPException(status_code=403, detail="Cross-organization access forbidden")
    return listing
