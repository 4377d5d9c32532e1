from datetime import datetime
from decimal import Decimal

from sqlalchemy import ForeignKey, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.core import ids
from app.models.base import Base, AuditMixin, UTCDateTime
from app.models.enums import ListingStatus


class Listing(AuditMixin, Base):
    __tablename__ = "listings"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=ids.id_factory(ids.LISTING))

    # at most one listing per unit
    unit_id: Mapped[str] = mapped_column(String, ForeignKey("units.id"), nullable=False, unique=True)
    organization_id: Mapped[str] = mapped_column(String, nullable=False, index=True)

    status: Mapped[str] = mapped_column(String(30), nullable=False, default=ListingStatus.ACTIVE.value, index=True)

    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    availability_date: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True, index=True)
    expiration_date: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True, index=True)

    # current maintenance window; set exactly while status == MAINTENANCE
    maintenance_started_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    maintenance_previous_status: Mapped[str | None] = mapped_column(String(30), nullable=True)
    maintenance_request_id: Mapped[str | None] = mapped_column(String, nullable=True)
    maintenance_estimated_end: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    maintenance_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
