from datetime import datetime

from pydantic import BaseModel, Field

from app.models.enums import ListingStatus


class MaintenanceModeConfig(BaseModel):
    unit_id: str
    reason: str = Field(min_length=1, max_length=500)
    maintenance_request_id: str | None = None
    start_date: datetime | None = None
    estimated_end_date: datetime | None = None
    notify_tenants: bool = False
    auto_restore: bool = False


class MaintenanceStartIn(BaseModel):
    reason: str = Field(min_length=1, max_length=500)
    maintenance_request_id: str | None = None
    estimated_end_date: datetime | None = None
    notify_tenants: bool = True
    auto_restore: bool = False


class MaintenanceEndIn(BaseModel):
    restore_status: ListingStatus | None = None
    reason: str | None = Field(default=None, max_length=500)


class MaintenanceModeStatus(BaseModel):
    is_in_maintenance: bool
    can_restore: bool = False
    maintenance_request_id: str | None = None
    start_date: datetime | None = None
    estimated_end_date: datetime | None = None
    reason: str | None = None
    previous_status: ListingStatus | None = None
