from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.core import ids
from app.models.base import Base, AuditMixin
from app.models.enums import MaintenancePriority, MaintenanceRequestStatus


class MaintenanceRequest(AuditMixin, Base):
    __tablename__ = "maintenance_requests"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=ids.id_factory(ids.MAINTENANCE_REQUEST))
    unit_id: Mapped[str] = mapped_column(String, ForeignKey("units.id"), nullable=False, index=True)

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    priority: Mapped[str] = mapped_column(String(20), nullable=False, default=MaintenancePriority.MEDIUM.value)
    status: Mapped[str] = mapped_column(String(30), nullable=False, default=MaintenanceRequestStatus.OPEN.value)
