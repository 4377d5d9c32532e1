from decimal import Decimal

from sqlalchemy import ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from app.core import ids
from app.models.base import Base, AuditMixin


class Unit(AuditMixin, Base):
    __tablename__ = "units"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=ids.id_factory(ids.UNIT))

    # a unit without a property cannot be listed (INVALID_UNIT_DATA)
    property_id: Mapped[str | None] = mapped_column(String, ForeignKey("properties.id"), nullable=True, index=True)

    unit_number: Mapped[str] = mapped_column(String(50), nullable=False)
    bedrooms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    bathrooms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    square_footage: Mapped[int | None] = mapped_column(Integer, nullable=True)
    rent_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)

    # back-reference to the unit's single listing; kept in step with listings.unit_id
    listing_id: Mapped[str | None] = mapped_column(String, nullable=True, unique=True)
