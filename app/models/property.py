from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from app.core import ids
from app.models.base import Base, AuditMixin


class Property(AuditMixin, Base):
    __tablename__ = "properties"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=ids.id_factory(ids.PROPERTY))
    organization_id: Mapped[str] = mapped_column(String, ForeignKey("organizations.id"), nullable=False, index=True)

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    address: Mapped[str | None] = mapped_column(String(300), nullable=True)
    city: Mapped[str | None] = mapped_column(String(120), nullable=True)

    # recipient for expiration / maintenance notices
    manager_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
