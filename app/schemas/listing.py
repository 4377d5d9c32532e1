from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from app.models.enums import ListingStatus


class ListingCreate(BaseModel):
    # missing title/description/price are filled from the unit's attributes
    title: str | None = None
    description: str | None = None
    price: Decimal | None = None
    availability_date: datetime | None = None
    expiration_date: datetime | None = None

    # only used by bulk maintenance operations
    reason: str | None = Field(default=None, max_length=500)


class ListingUpdate(BaseModel):
    title: str | None = None
    description: str | None = None
    price: Decimal | None = None
    availability_date: datetime | None = None
    expiration_date: datetime | None = None


class ListingStatusUpdate(BaseModel):
    status: ListingStatus
    reason: str | None = Field(default=None, max_length=500)


class ListingExpirationExtend(BaseModel):
    expiration_date: datetime
    reason: str | None = Field(default=None, max_length=500)
