from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from app.api.v1.responses import envelope, result_response
from app.api.v1.scope import enforce_unit_scope
from app.services.auth import Actor, get_actor
from app.services.container import ServiceContainer, get_services

router = APIRouter()


class UnitIdsIn(BaseModel):
    unit_ids: list[str] = Field(min_length=1, max_length=100)


class ApplicationIdsIn(BaseModel):
    application_ids: list[str] = Field(min_length=1, max_length=100)


@router.get("/applications/integrity-report")
async def get_integrity_report(
    property_id: str | None = Query(default=None),
    actor: Actor = Depends(get_actor),
    services: ServiceContainer = Depends(get_services),
) -> JSONResponse:
    return result_response(
        await services.applications.application_integrity_report(actor.organization_id, property_id)
    )


@router.post("/applications/integrity-check")
async def check_application_integrity(
    payload: ApplicationIdsIn,
    actor: Actor = Depends(get_actor),
    services: ServiceContainer = Depends(get_services),
) -> JSONResponse:
    results = []
    for application_id in payload.application_ids:
        checked = await services.applications.validate_application_integrity(application_id, actor.organization_id)
        if checked.success:
            results.append(checked.data)
        else:
            results.append({
                "application_id": application_id,
                "is_valid": False,
                "issues": [{"type": checked.error, "description": checked.message}],
            })

    valid = sum(1 for r in results if r["is_valid"])
    return envelope(success=True, data={
        "results": results,
        "summary": {"total": len(results), "valid": valid, "invalid": len(results) - valid},
    })


@router.post("/applications/eligibility")
async def check_units_eligibility(
    payload: UnitIdsIn,
    actor: Actor = Depends(get_actor),
    services: ServiceContainer = Depends(get_services),
) -> JSONResponse:
    for unit_id in payload.unit_ids:
        await enforce_unit_scope(services, actor, unit_id)
    results = await services.applications.check_multiple_units_eligibility(payload.unit_ids)
    return envelope(success=True, data=results)


@router.get("/applications/eligible-units")
async def get_eligible_units(
    property_id: str | None = Query(default=None),
    actor: Actor = Depends(get_actor),
    services: ServiceContainer = Depends(get_services),
) -> JSONResponse:
    units = await services.applications.eligible_units(actor.organization_id, property_id)
    return envelope(success=True, data=units)
