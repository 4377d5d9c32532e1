from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from app.core import ids
from app.models.base import Base, AuditMixin
from app.models.enums import ApplicationStatus


class TenantApplication(AuditMixin, Base):
    __tablename__ = "tenant_applications"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=ids.id_factory(ids.APPLICATION))
    unit_id: Mapped[str] = mapped_column(String, ForeignKey("units.id"), nullable=False, index=True)

    applicant_email: Mapped[str | None] = mapped_column(String(320), nullable=True)

    # PENDING | APPROVED | REJECTED | CANCELLED
    status: Mapped[str] = mapped_column(String(30), nullable=False, default=ApplicationStatus.PENDING.value, index=True)
    decision_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
