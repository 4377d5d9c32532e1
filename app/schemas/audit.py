from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from app.models.enums import ListingAction, ListingStatus


class ExportFormat(str, Enum):
    JSON = "json"
    CSV = "csv"


class AuditFilter(BaseModel):
    unit_id: str | None = None
    listing_id: str | None = None
    property_id: str | None = None
    actor_id: str | None = None
    action: ListingAction | None = None
    # matches the status an entry moved to
    status: ListingStatus | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    limit: int = Field(default=50, ge=1, le=500)
    offset: int = Field(default=0, ge=0)


class AuditPage(BaseModel):
    entries: list[dict] = Field(default_factory=list)
    total: int
    has_more: bool
    next_offset: int | None = None


class ActorActivity(BaseModel):
    actor_id: str
    action_count: int


class TimelinePoint(BaseModel):
    date: str
    count: int


class AuditStatistics(BaseModel):
    total_entries: int
    action_breakdown: dict[str, int] = Field(default_factory=dict)
    status_breakdown: dict[str, int] = Field(default_factory=dict)
    actor_activity: list[ActorActivity] = Field(default_factory=list)
    timeline: list[TimelinePoint] = Field(default_factory=list)
