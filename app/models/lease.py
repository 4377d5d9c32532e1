from datetime import datetime

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from app.core import ids
from app.models.base import Base, AuditMixin, UTCDateTime
from app.models.enums import LeaseStatus


class Lease(AuditMixin, Base):
    __tablename__ = "leases"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=ids.id_factory(ids.LEASE))
    unit_id: Mapped[str] = mapped_column(String, ForeignKey("units.id"), nullable=False, index=True)

    status: Mapped[str] = mapped_column(String(30), nullable=False, default=LeaseStatus.DRAFT.value)
    tenant_email: Mapped[str | None] = mapped_column(String(320), nullable=True)

    start_date: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    end_date: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
