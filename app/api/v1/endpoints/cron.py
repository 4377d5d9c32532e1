from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.api.v1.responses import envelope
from app.services.container import ServiceContainer, get_services
from app.services.cron_auth import require_cron_secret

router = APIRouter()


@router.post("/cron/time-based-listings", dependencies=[Depends(require_cron_secret)])
async def time_based_listings(services: ServiceContainer = Depends(get_services)) -> JSONResponse:
    summary = await services.listings.process_time_based_transitions()
    return envelope(success=not summary["errors"], data=summary)


@router.post("/cron/orphaned-applications", dependencies=[Depends(require_cron_secret)])
async def orphaned_applications(services: ServiceContainer = Depends(get_services)) -> JSONResponse:
    summary = await services.applications.cleanup_orphaned_applications()
    return envelope(success=not summary["errors"], data=summary)
