from datetime import datetime

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.core import ids
from app.models.base import Base, UTCDateTime, utcnow


class ListingAuditEntry(Base):
    """Append-only record of one listing state change. Rows are never updated or deleted."""

    __tablename__ = "listing_audit_entries"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=ids.id_factory(ids.AUDIT_ENTRY))

    unit_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    # no FK: the entry outlives a removed listing
    listing_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)

    action: Mapped[str] = mapped_column(String(40), nullable=False, index=True)
    previous_status: Mapped[str | None] = mapped_column(String(30), nullable=True)
    new_status: Mapped[str] = mapped_column(String(30), nullable=False)

    actor_id: Mapped[str] = mapped_column(String(200), nullable=False)
    reason: Mapped[str | None] = mapped_column(String(500), nullable=True)

    detail: Mapped[dict] = mapped_column("metadata", JSON, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utcnow, server_default=func.now(), nullable=False, index=True
    )
