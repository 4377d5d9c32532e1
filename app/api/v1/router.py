from fastapi import APIRouter

from app.api.v1.endpoints.health import router as health_router
from app.api.v1.endpoints.units import router as units_router
from app.api.v1.endpoints.listings import router as listings_router
from app.api.v1.endpoints.maintenance import router as maintenance_router
from app.api.v1.endpoints.cron import router as cron_router
from app.api.v1.endpoints.audit import router as audit_router
from app.api.v1.endpoints.applications import router as applications_router


router = APIRouter(prefix="/v1")
router.include_router(health_router, tags=["health"])
router.include_router(units_router, tags=["units"])
router.include_router(listings_router, tags=["listings"])
router.include_router(maintenance_router, tags=["maintenance"])
router.include_router(cron_router, tags=["cron"])
router.include_router(audit_router, tags=["audit"])
router.include_router(applications_router, tags=["applications"])
