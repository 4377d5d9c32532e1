"""
Listing lifecycle for units: create, remove, status changes, maintenance mode
and the time-based sweep.

Every mutating call owns its session and transaction. The listing row, the
unit's listing pointer and the audit entry commit together; the read cache is
invalidated and the application guard is told about the new status only after
the commit succeeded.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Callable

from opentelemetry import trace
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.cache import Cache, NullCache, unit_key, unit_prefix
from app.models.base import ensure_utc, utcnow
from app.models.enums import (
    ListingAction,
    ListingStatus,
    LeaseStatus,
    MaintenancePriority,
    OPEN_MAINTENANCE_STATUSES,
)
from app.models.lease import Lease
from app.models.listing import Listing
from app.models.maintenance_request import MaintenanceRequest
from app.models.property import Property
from app.models.unit import Unit
from app.schemas.listing import ListingCreate, ListingUpdate
from app.schemas.maintenance import MaintenanceModeConfig, MaintenanceModeStatus
from app.services.application_control import ApplicationControlService, has_blocking_lease
from app.services.audit import (
    audit_entry_to_dict,
    open_maintenance_entry,
    record_listing_audit,
    unit_audit_history,
)
from app.services.listing_state import coerce_status, is_valid_transition, is_visible_status
from app.services.listing_validation import (
    determine_initial_status,
    track_changes,
    validate_listing_data,
    validate_listing_update,
)
from app.services.notifications import Notifier, safe_notify
from app.services.results import (
    CreateListingError,
    HistoryError,
    MaintenanceError,
    QueryError,
    RemoveListingError,
    Result,
    UnitLookupError,
    UpdateStatusError,
)

log = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

SYSTEM_ACTOR = "system"

S = ListingStatus


def _status_action(current: ListingStatus, target: ListingStatus) -> ListingAction:
    if target is S.MAINTENANCE:
        return ListingAction.MAINTENANCE_START
    if current is S.MAINTENANCE:
        return ListingAction.MAINTENANCE_END
    return {
        S.SUSPENDED: ListingAction.SUSPEND,
        S.ACTIVE: ListingAction.ACTIVATE,
        S.EXPIRED: ListingAction.EXPIRE,
    }.get(target, ListingAction.UPDATE)


def _iso(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt is not None else None


def _parse_iso(value: Any) -> datetime | None:
    if not value:
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    try:
        return ensure_utc(datetime.fromisoformat(str(value)))
    except ValueError:
        return None


def listing_to_dict(listing: Listing) -> dict[str, Any]:
    return {
        "id": listing.id,
        "unit_id": listing.unit_id,
        "organization_id": listing.organization_id,
        "status": listing.status,
        "title": listing.title,
        "description": listing.description,
        "price": Decimal(str(listing.price)) if listing.price is not None else None,
        "availability_date": ensure_utc(listing.availability_date),
        "expiration_date": ensure_utc(listing.expiration_date),
        "created_at": listing.created_at,
        "updated_at": listing.updated_at,
        "created_by": listing.created_by,
        "updated_by": listing.updated_by,
    }


def _clear_maintenance_window(listing: Listing) -> None:
    listing.maintenance_started_at = None
    listing.maintenance_previous_status = None
    listing.maintenance_request_id = None
    listing.maintenance_estimated_end = None
    listing.maintenance_reason = None


@dataclass(frozen=True)
class ListingSnapshot:
    """A unit's listing row as captured at one moment. No listing_id means the unit was unlisted."""

    unit_id: str
    listing_id: str | None = None
    organization_id: str | None = None
    status: ListingStatus = ListingStatus.PRIVATE
    title: str | None = None
    description: str | None = None
    price: Decimal | None = None
    availability_date: datetime | None = None
    expiration_date: datetime | None = None
    maintenance_started_at: datetime | None = None
    maintenance_previous_status: str | None = None
    maintenance_request_id: str | None = None
    maintenance_estimated_end: datetime | None = None
    maintenance_reason: str | None = None

    @property
    def had_listing(self) -> bool:
        return self.listing_id is not None

    @classmethod
    def of(cls, unit_id: str, listing: Listing | None) -> ListingSnapshot:
        if listing is None:
            return cls(unit_id=unit_id)
        return cls(
            unit_id=unit_id,
            listing_id=listing.id,
            organization_id=listing.organization_id,
            status=coerce_status(listing.status) or S.ACTIVE,
            title=listing.title,
            description=listing.description,
            price=Decimal(str(listing.price)),
            availability_date=ensure_utc(listing.availability_date),
            expiration_date=ensure_utc(listing.expiration_date),
            maintenance_started_at=ensure_utc(listing.maintenance_started_at),
            maintenance_previous_status=listing.maintenance_previous_status,
            maintenance_request_id=listing.maintenance_request_id,
            maintenance_estimated_end=ensure_utc(listing.maintenance_estimated_end),
            maintenance_reason=listing.maintenance_reason,
        )

    def apply_to(self, listing: Listing) -> None:
        listing.status = self.status.value
        listing.title = self.title
        listing.description = self.description
        listing.price = self.price
        listing.availability_date = self.availability_date
        listing.expiration_date = self.expiration_date
        listing.maintenance_started_at = self.maintenance_started_at
        listing.maintenance_previous_status = self.maintenance_previous_status
        listing.maintenance_request_id = self.maintenance_request_id
        listing.maintenance_estimated_end = self.maintenance_estimated_end
        listing.maintenance_reason = self.maintenance_reason


class ListingService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        guard: ApplicationControlService,
        notifier: Notifier,
        cache: Cache | None = None,
        clock: Callable[[], datetime] = utcnow,
        price_warning_threshold: Decimal | int = 50000,
        cache_ttl_seconds: float = 300,
        expiring_soon_days: int = 7,
    ) -> None:
        self._session_factory = session_factory
        self._guard = guard
        self._notifier = notifier
        self._cache = cache if cache is not None else NullCache()
        self._clock = clock
        self.price_warning_threshold = price_warning_threshold
        self.cache_ttl_seconds = cache_ttl_seconds
        self.expiring_soon_days = expiring_soon_days

    def now(self) -> datetime:
        return ensure_utc(self._clock())

    def _invalidate(self, unit_id: str) -> None:
        self._cache.invalidate_prefix(unit_prefix(unit_id))

    async def _status_changed(
        self,
        unit_id: str,
        new_status: ListingStatus,
        previous_status: ListingStatus | None,
        reason: str | None,
    ) -> None:
        self._invalidate(unit_id)
        await self._guard.on_status_change(unit_id, new_status, previous_status, reason)

    @staticmethod
    async def _listing_for_unit(db: AsyncSession, unit_id: str, *, for_update: bool = False) -> Listing | None:
        stmt = select(Listing).where(Listing.unit_id == unit_id)
        if for_update:
            stmt = stmt.with_for_update()
        return (await db.execute(stmt)).scalar_one_or_none()

    @staticmethod
    async def _listing_by_id(db: AsyncSession, listing_id: str, *, for_update: bool = False) -> Listing | None:
        stmt = select(Listing).where(Listing.id == listing_id)
        if for_update:
            stmt = stmt.with_for_update()
        return (await db.execute(stmt)).scalar_one_or_none()

    # ---- create / remove / status ----------------------------------------

    async def create_listing(
        self,
        unit_id: str,
        data: ListingCreate,
        actor_id: str,
        organization_id: str,
    ) -> Result[dict[str, Any]]:
        """
        Publish a unit. Missing title, description and price are derived from
        the unit. A future availability date yields COMING_SOON, otherwise the
        listing goes live as ACTIVE.
        """
        now = self.now()
        try:
            async with self._session_factory() as db:
                async with db.begin():
                    unit = await db.get(Unit, unit_id, with_for_update=True)
                    if unit is None:
                        return Result.fail(CreateListingError.UNIT_NOT_FOUND, f"Unit with ID {unit_id} not found")

                    if unit.listing_id or await self._listing_for_unit(db, unit_id) is not None:
                        return Result.fail(
                            CreateListingError.UNIT_ALREADY_LISTED,
                            f"Unit {unit.unit_number} already has an active listing",
                        )

                    if await has_blocking_lease(db, unit_id):
                        return Result.fail(
                            CreateListingError.UNIT_HAS_ACTIVE_LEASE,
                            "Cannot list unit with active or pending lease",
                        )

                    if unit.property_id is None:
                        return Result.fail(
                            CreateListingError.INVALID_UNIT_DATA,
                            f"Unit {unit.unit_number} is not attached to a property",
                        )

                    outcome = validate_listing_data(
                        data, unit, now=now, price_warning_threshold=self.price_warning_threshold,
                    )
                    if not outcome.is_valid:
                        return Result.fail(CreateListingError.VALIDATION_FAILED, "; ".join(outcome.errors))
                    for warning in outcome.warnings:
                        log.warning("create_listing unit=%s: %s", unit_id, warning)

                    draft = outcome.draft
                    status = determine_initial_status(draft.availability_date, now)
                    if status is S.COMING_SOON:
                        action = ListingAction.SET_COMING_SOON
                        reason = f"Listing created, available from {draft.availability_date.date().isoformat()}"
                    else:
                        action = ListingAction.CREATE
                        reason = "Listing created"

                    listing = Listing(
                        unit_id=unit_id,
                        organization_id=organization_id,
                        status=status.value,
                        title=draft.title,
                        description=draft.description,
                        price=draft.price,
                        availability_date=draft.availability_date,
                        expiration_date=draft.expiration_date,
                        created_by=actor_id,
                        updated_by=actor_id,
                    )
                    db.add(listing)
                    await db.flush()

                    unit.listing_id = listing.id
                    unit.updated_by = actor_id

                    await record_listing_audit(
                        db,
                        unit_id=unit_id,
                        listing_id=listing.id,
                        action=action,
                        previous_status=S.PRIVATE,
                        new_status=status,
                        actor_id=actor_id,
                        reason=reason,
                        metadata={
                            "organization_id": organization_id,
                            "availability_date": _iso(draft.availability_date),
                            "expiration_date": _iso(draft.expiration_date),
                            "warnings": outcome.warnings,
                        },
                    )
                    listing_id = listing.id
        except IntegrityError:
            # lost a race with a concurrent create for the same unit
            log.warning("create_listing unit=%s hit a uniqueness conflict", unit_id)
            return Result.fail(CreateListingError.VALIDATION_FAILED, "Unit already has an active listing")
        except Exception as e:
            log.exception("create_listing failed for unit %s", unit_id)
            return Result.fail(CreateListingError.VALIDATION_FAILED, f"Failed to create listing: {e}")

        log.info("listing %s created for unit %s as %s", listing_id, unit_id, status.value)
        await self._status_changed(unit_id, status, S.PRIVATE, reason)
        return Result.ok({"listing_id": listing_id, "unit_id": unit_id, "status": status.value})

    async def remove_listing(self, unit_id: str, actor_id: str, reason: str | None = None) -> Result[dict[str, Any]]:
        reason = reason or "Listing removed"
        try:
            async with self._session_factory() as db:
                async with db.begin():
                    unit = await db.get(Unit, unit_id, with_for_update=True)
                    if unit is None:
                        return Result.fail(RemoveListingError.UNIT_NOT_FOUND, f"Unit with ID {unit_id} not found")

                    listing = await self._listing_for_unit(db, unit_id, for_update=True)
                    if listing is None:
                        return Result.fail(RemoveListingError.LISTING_NOT_FOUND, "Unit does not have an active listing")

                    previous = coerce_status(listing.status)
                    listing_id = listing.id
                    await record_listing_audit(
                        db,
                        unit_id=unit_id,
                        listing_id=listing_id,
                        action=ListingAction.REMOVE,
                        previous_status=previous,
                        new_status=S.PRIVATE,
                        actor_id=actor_id,
                        reason=reason,
                        metadata={
                            "title": listing.title,
                            "description": listing.description,
                            "price": str(listing.price),
                            "availability_date": _iso(ensure_utc(listing.availability_date)),
                            "expiration_date": _iso(ensure_utc(listing.expiration_date)),
                        },
                    )
                    unit.listing_id = None
                    unit.updated_by = actor_id
                    await db.delete(listing)
        except Exception as e:
            log.exception("remove_listing failed for unit %s", unit_id)
            return Result.fail(RemoveListingError.CLEANUP_FAILED, f"Failed to remove listing: {e}")

        log.info("listing %s removed from unit %s", listing_id, unit_id)
        await self._status_changed(unit_id, S.PRIVATE, previous, reason)
        return Result.ok({
            "unit_id": unit_id,
            "listing_id": listing_id,
            "previous_status": previous.value if previous else None,
        })

    async def update_status(
        self,
        listing_id: str,
        new_status: ListingStatus | str,
        actor_id: str,
        reason: str | None = None,
    ) -> Result[dict[str, Any]]:
        target = coerce_status(new_status)
        if target is None:
            return Result.fail(UpdateStatusError.VALIDATION_FAILED, f"Unknown listing status: {new_status}")

        now = self.now()
        try:
            async with self._session_factory() as db:
                async with db.begin():
                    listing = await self._listing_by_id(db, listing_id, for_update=True)
                    if listing is None:
                        return Result.fail(UpdateStatusError.LISTING_NOT_FOUND, f"Listing {listing_id} not found")

                    current = coerce_status(listing.status)
                    if current is None or not is_valid_transition(current, target):
                        return Result.fail(
                            UpdateStatusError.INVALID_TRANSITION,
                            f"Invalid status transition from {listing.status} to {target.value}",
                        )

                    if target is S.MAINTENANCE:
                        listing.maintenance_started_at = now
                        listing.maintenance_previous_status = current.value
                        listing.maintenance_reason = reason
                    elif current is S.MAINTENANCE:
                        _clear_maintenance_window(listing)

                    listing.status = target.value
                    listing.updated_by = actor_id
                    unit_id = listing.unit_id

                    await record_listing_audit(
                        db,
                        unit_id=unit_id,
                        listing_id=listing_id,
                        action=_status_action(current, target),
                        previous_status=current,
                        new_status=target,
                        actor_id=actor_id,
                        reason=reason or f"Status changed to {target.value}",
                    )
        except Exception as e:
            log.exception("update_status failed for listing %s", listing_id)
            return Result.fail(UpdateStatusError.VALIDATION_FAILED, f"Failed to update listing status: {e}")

        log.info("listing %s status %s -> %s", listing_id, current.value, target.value)
        await self._status_changed(unit_id, target, current, reason)
        return Result.ok({
            "listing_id": listing_id,
            "unit_id": unit_id,
            "previous_status": current.value,
            "new_status": target.value,
        })

    async def restore_listing_state(
        self,
        snapshot: ListingSnapshot,
        actor_id: str,
        reason: str,
    ) -> Result[dict[str, Any]]:
        """
        Write a captured listing row back as it was, including its maintenance
        window. The transition table is not consulted: this undoes changes,
        it does not make new ones. A removed listing comes back under its old
        id; a snapshot without a listing removes the current one.
        """
        if not snapshot.had_listing:
            return await self.remove_listing(snapshot.unit_id, actor_id, reason)

        unit_id = snapshot.unit_id
        try:
            async with self._session_factory() as db:
                async with db.begin():
                    unit = await db.get(Unit, unit_id, with_for_update=True)
                    if unit is None:
                        return Result.fail(UpdateStatusError.LISTING_NOT_FOUND, f"Unit with ID {unit_id} not found")

                    listing = await self._listing_for_unit(db, unit_id, for_update=True)
                    if listing is None:
                        current = S.PRIVATE
                        listing = Listing(
                            id=snapshot.listing_id,
                            unit_id=unit_id,
                            organization_id=snapshot.organization_id,
                            created_by=actor_id,
                        )
                        db.add(listing)
                    else:
                        current = coerce_status(listing.status) or S.PRIVATE

                    snapshot.apply_to(listing)
                    listing.updated_by = actor_id
                    await db.flush()

                    unit.listing_id = listing.id
                    unit.updated_by = actor_id
                    listing_id = listing.id

                    await record_listing_audit(
                        db,
                        unit_id=unit_id,
                        listing_id=listing_id,
                        action=ListingAction.UPDATE,
                        previous_status=current,
                        new_status=snapshot.status,
                        actor_id=actor_id,
                        reason=reason,
                        metadata={"restored_listing_id": snapshot.listing_id},
                    )
        except Exception as e:
            log.exception("restore_listing_state failed for unit %s", unit_id)
            return Result.fail(UpdateStatusError.VALIDATION_FAILED, f"Failed to restore listing: {e}")

        log.info("listing %s on unit %s restored to %s", listing_id, unit_id, snapshot.status.value)
        if current is snapshot.status:
            self._invalidate(unit_id)
        else:
            await self._status_changed(unit_id, snapshot.status, current, reason)
        return Result.ok({
            "listing_id": listing_id,
            "unit_id": unit_id,
            "previous_status": current.value,
            "new_status": snapshot.status.value,
        })

    async def update_listing_information(
        self,
        listing_id: str,
        data: ListingUpdate,
        actor_id: str,
    ) -> Result[dict[str, Any]]:
        now = self.now()
        try:
            async with self._session_factory() as db:
                async with db.begin():
                    listing = await self._listing_by_id(db, listing_id, for_update=True)
                    if listing is None:
                        return Result.fail(UpdateStatusError.LISTING_NOT_FOUND, f"Listing {listing_id} not found")

                    outcome = validate_listing_update(
                        listing, data, now=now, price_warning_threshold=self.price_warning_threshold,
                    )
                    if not outcome.is_valid:
                        return Result.fail(UpdateStatusError.VALIDATION_FAILED, "; ".join(outcome.errors))
                    for warning in outcome.warnings:
                        log.warning("update_listing listing=%s: %s", listing_id, warning)

                    draft = outcome.draft
                    changes = track_changes(listing, draft)
                    unit_id = listing.unit_id
                    status = listing.status

                    if changes:
                        listing.title = draft.title
                        listing.description = draft.description
                        listing.price = draft.price
                        listing.availability_date = draft.availability_date
                        listing.expiration_date = draft.expiration_date
                        listing.updated_by = actor_id
                        await record_listing_audit(
                            db,
                            unit_id=unit_id,
                            listing_id=listing_id,
                            action=ListingAction.UPDATE,
                            previous_status=coerce_status(status),
                            new_status=coerce_status(status),
                            actor_id=actor_id,
                            reason="Listing information updated",
                            metadata={"changes": changes},
                        )
        except Exception as e:
            log.exception("update_listing_information failed for listing %s", listing_id)
            return Result.fail(UpdateStatusError.VALIDATION_FAILED, f"Failed to update listing: {e}")

        if changes:
            self._invalidate(unit_id)
        return Result.ok({"listing_id": listing_id, "unit_id": unit_id, "status": status, "changes": changes})

    async def extend_listing_expiration(
        self,
        listing_id: str,
        new_expiration: datetime,
        actor_id: str,
        reason: str | None = None,
    ) -> Result[dict[str, Any]]:
        now = self.now()
        new_expiration = ensure_utc(new_expiration)
        if new_expiration is None or new_expiration <= now:
            return Result.fail(UpdateStatusError.VALIDATION_FAILED, "New expiration date must be in the future")

        try:
            async with self._session_factory() as db:
                async with db.begin():
                    listing = await self._listing_by_id(db, listing_id, for_update=True)
                    if listing is None:
                        return Result.fail(UpdateStatusError.LISTING_NOT_FOUND, f"Listing {listing_id} not found")

                    availability = ensure_utc(listing.availability_date)
                    if availability is not None and new_expiration <= availability:
                        return Result.fail(
                            UpdateStatusError.VALIDATION_FAILED,
                            "Expiration date must be after availability date",
                        )

                    previous_expiration = ensure_utc(listing.expiration_date)
                    listing.expiration_date = new_expiration
                    listing.updated_by = actor_id
                    unit_id = listing.unit_id
                    status = coerce_status(listing.status)

                    await record_listing_audit(
                        db,
                        unit_id=unit_id,
                        listing_id=listing_id,
                        action=ListingAction.UPDATE,
                        previous_status=status,
                        new_status=status,
                        actor_id=actor_id,
                        reason=reason or "Listing expiration extended",
                        metadata={
                            "previous_expiration_date": _iso(previous_expiration),
                            "new_expiration_date": _iso(new_expiration),
                        },
                    )
        except Exception as e:
            log.exception("extend_listing_expiration failed for listing %s", listing_id)
            return Result.fail(UpdateStatusError.VALIDATION_FAILED, f"Failed to extend expiration: {e}")

        self._invalidate(unit_id)
        return Result.ok({
            "listing_id": listing_id,
            "unit_id": unit_id,
            "status": status.value if status else None,
            "expiration_date": new_expiration,
        })

    # ---- reads -------------------------------------------------------------

    async def unit_summary(self, unit_id: str) -> dict[str, Any] | None:
        """Unit attributes plus the owning organization, cached per unit."""
        key = unit_key(unit_id, "summary")
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        async with self._session_factory() as db:
            row = (await db.execute(
                select(Unit, Property.organization_id)
                .outerjoin(Property, Property.id == Unit.property_id)
                .where(Unit.id == unit_id)
            )).first()
        if row is None:
            return None

        unit, organization_id = row
        summary = {
            "unit_id": unit.id,
            "unit_number": unit.unit_number,
            "property_id": unit.property_id,
            "organization_id": organization_id,
            "bedrooms": unit.bedrooms,
            "bathrooms": unit.bathrooms,
            "square_footage": unit.square_footage,
            "rent_amount": unit.rent_amount,
        }
        self._cache.set(key, summary, self.cache_ttl_seconds)
        return summary

    async def get_listing(self, listing_id: str) -> dict[str, Any] | None:
        async with self._session_factory() as db:
            listing = await self._listing_by_id(db, listing_id)
        return listing_to_dict(listing) if listing is not None else None

    async def get_unit_listing_status(self, unit_id: str) -> Result[dict[str, Any]]:
        key = unit_key(unit_id, "listing_status")
        cached = self._cache.get(key)
        if cached is not None:
            return Result.ok(cached)

        summary = await self.unit_summary(unit_id)
        if summary is None:
            return Result.fail(UnitLookupError.UNIT_NOT_FOUND, f"Unit with ID {unit_id} not found")

        async with self._session_factory() as db:
            listing = await self._listing_for_unit(db, unit_id)

        status = listing.status if listing is not None else S.PRIVATE.value
        view = {
            "unit": summary,
            "status": status,
            "is_visible": is_visible_status(status),
            "listing": listing_to_dict(listing) if listing is not None else None,
        }
        self._cache.set(key, view, self.cache_ttl_seconds)
        return Result.ok(view)

    async def get_listing_history(self, unit_id: str, organization_id: str) -> Result[list[dict[str, Any]]]:
        try:
            summary = await self.unit_summary(unit_id)
            if summary is None:
                return Result.fail(HistoryError.UNIT_NOT_FOUND, f"Unit with ID {unit_id} not found")
            if summary["organization_id"] != organization_id:
                return Result.fail(HistoryError.PERMISSION_DENIED, "Access denied to unit listing history")

            async with self._session_factory() as db:
                entries = await unit_audit_history(db, unit_id)
        except Exception:
            log.exception("get_listing_history failed for unit %s", unit_id)
            return Result.fail(HistoryError.PERMISSION_DENIED, "Failed to retrieve listing history")

        return Result.ok([audit_entry_to_dict(e) for e in entries])

    async def get_expiring_soon_listings(
        self,
        days_ahead: int | None = None,
        organization_id: str | None = None,
    ) -> Result[list[dict[str, Any]]]:
        days = days_ahead if days_ahead is not None else self.expiring_soon_days
        now = self.now()
        horizon = now + timedelta(days=days)

        stmt = (
            select(Listing, Unit.unit_number)
            .join(Unit, Unit.id == Listing.unit_id)
            .where(
                Listing.status == S.ACTIVE.value,
                Listing.expiration_date.is_not(None),
                Listing.expiration_date > now,
                Listing.expiration_date <= horizon,
            )
            .order_by(Listing.expiration_date.asc())
        )
        if organization_id is not None:
            stmt = stmt.where(Listing.organization_id == organization_id)

        try:
            async with self._session_factory() as db:
                rows = (await db.execute(stmt)).all()
        except Exception as e:
            log.exception("get_expiring_soon_listings failed")
            return Result.fail(QueryError.QUERY_FAILED, f"Failed to load expiring listings: {e}")

        out = []
        for listing, unit_number in rows:
            expiration = ensure_utc(listing.expiration_date)
            out.append({
                "listing_id": listing.id,
                "unit_id": listing.unit_id,
                "unit_number": unit_number,
                "title": listing.title,
                "status": listing.status,
                "expiration_date": expiration,
                "days_until_expiration": math.ceil((expiration - now).total_seconds() / 86400),
            })
        return Result.ok(out)

    # ---- maintenance -------------------------------------------------------

    async def start_maintenance_mode(self, config: MaintenanceModeConfig, actor_id: str) -> Result[dict[str, Any]]:
        now = self.now()
        started_at = ensure_utc(config.start_date) or now
        estimated_end = ensure_utc(config.estimated_end_date)
        if estimated_end is not None and estimated_end <= started_at:
            return Result.fail(MaintenanceError.VALIDATION_FAILED, "Estimated end date must be after start date")

        try:
            async with self._session_factory() as db:
                async with db.begin():
                    unit = await db.get(Unit, config.unit_id, with_for_update=True)
                    if unit is None:
                        return Result.fail(MaintenanceError.UNIT_NOT_FOUND, f"Unit with ID {config.unit_id} not found")

                    if config.maintenance_request_id:
                        request = (await db.execute(
                            select(MaintenanceRequest).where(
                                MaintenanceRequest.id == config.maintenance_request_id,
                                MaintenanceRequest.unit_id == unit.id,
                                MaintenanceRequest.status.in_(OPEN_MAINTENANCE_STATUSES),
                            )
                        )).scalar_one_or_none()
                        if request is None:
                            return Result.fail(
                                MaintenanceError.VALIDATION_FAILED,
                                f"Maintenance request {config.maintenance_request_id} not found or not active",
                            )

                    listing = await self._listing_for_unit(db, unit.id, for_update=True)
                    if listing is None:
                        return Result.fail(
                            MaintenanceError.LISTING_NOT_FOUND,
                            f"Unit {unit.unit_number} does not have an active listing",
                        )

                    current = coerce_status(listing.status)
                    if current is None or not is_valid_transition(current, S.MAINTENANCE):
                        return Result.fail(
                            MaintenanceError.INVALID_TRANSITION,
                            f"Cannot transition from {listing.status} to {S.MAINTENANCE.value}",
                        )

                    listing.status = S.MAINTENANCE.value
                    listing.maintenance_started_at = started_at
                    listing.maintenance_previous_status = current.value
                    listing.maintenance_request_id = config.maintenance_request_id
                    listing.maintenance_estimated_end = estimated_end
                    listing.maintenance_reason = config.reason
                    listing.updated_by = actor_id
                    listing_id = listing.id
                    unit_number = unit.unit_number

                    await record_listing_audit(
                        db,
                        unit_id=unit.id,
                        listing_id=listing_id,
                        action=ListingAction.MAINTENANCE_START,
                        previous_status=current,
                        new_status=S.MAINTENANCE,
                        actor_id=actor_id,
                        reason=config.reason,
                        metadata={
                            "maintenance_request_id": config.maintenance_request_id,
                            "start_date": _iso(started_at),
                            "estimated_end_date": _iso(estimated_end),
                            "notify_tenants": config.notify_tenants,
                            "auto_restore": config.auto_restore,
                        },
                    )

                    tenant_emails: list[str] = []
                    if config.notify_tenants:
                        tenant_emails = list((await db.execute(
                            select(Lease.tenant_email).where(
                                Lease.unit_id == unit.id,
                                Lease.status == LeaseStatus.ACTIVE.value,
                            )
                        )).scalars().all())
        except Exception as e:
            log.exception("start_maintenance_mode failed for unit %s", config.unit_id)
            return Result.fail(MaintenanceError.VALIDATION_FAILED, f"Failed to start maintenance mode: {e}")

        log.info("unit %s entered maintenance from %s", config.unit_id, current.value)
        await self._status_changed(config.unit_id, S.MAINTENANCE, current, config.reason)

        for email in tenant_emails:
            safe_notify(
                self._notifier,
                recipient=email,
                template="unit_maintenance",
                context={
                    "unit_id": config.unit_id,
                    "unit_number": unit_number,
                    "reason": config.reason,
                    "estimated_end_date": _iso(estimated_end),
                },
            )

        return Result.ok({
            "unit_id": config.unit_id,
            "listing_id": listing_id,
            "status": S.MAINTENANCE.value,
            "previous_status": current.value,
            "maintenance_request_id": config.maintenance_request_id,
        })

    async def end_maintenance_mode(
        self,
        unit_id: str,
        actor_id: str,
        restore_status: ListingStatus | str | None = None,
        reason: str | None = None,
    ) -> Result[dict[str, Any]]:
        requested = None
        if restore_status is not None:
            requested = coerce_status(restore_status)
            if requested is None:
                return Result.fail(MaintenanceError.VALIDATION_FAILED, f"Unknown listing status: {restore_status}")

        now = self.now()
        reason = reason or "Maintenance completed"
        try:
            async with self._session_factory() as db:
                async with db.begin():
                    unit = await db.get(Unit, unit_id, with_for_update=True)
                    if unit is None:
                        return Result.fail(MaintenanceError.UNIT_NOT_FOUND, f"Unit with ID {unit_id} not found")

                    listing = await self._listing_for_unit(db, unit_id, for_update=True)
                    if listing is None:
                        return Result.fail(
                            MaintenanceError.LISTING_NOT_FOUND,
                            f"Unit {unit.unit_number} does not have an active listing",
                        )

                    if coerce_status(listing.status) is not S.MAINTENANCE:
                        return Result.fail(
                            MaintenanceError.INVALID_TRANSITION,
                            f"Unit {unit.unit_number} is not currently in maintenance mode",
                        )

                    window = await self._maintenance_window(db, listing)
                    target = requested or window.previous_status or S.ACTIVE
                    if not is_valid_transition(S.MAINTENANCE, target):
                        return Result.fail(
                            MaintenanceError.INVALID_TRANSITION,
                            f"Cannot restore from {S.MAINTENANCE.value} to {target.value}",
                        )

                    listing.status = target.value
                    _clear_maintenance_window(listing)
                    listing.updated_by = actor_id
                    listing_id = listing.id

                    await record_listing_audit(
                        db,
                        unit_id=unit_id,
                        listing_id=listing_id,
                        action=ListingAction.MAINTENANCE_END,
                        previous_status=S.MAINTENANCE,
                        new_status=target,
                        actor_id=actor_id,
                        reason=reason,
                        metadata={
                            "maintenance_request_id": window.maintenance_request_id,
                            "start_date": _iso(window.start_date),
                            "end_date": _iso(now),
                            "restored_to_status": target.value,
                        },
                    )
        except Exception as e:
            log.exception("end_maintenance_mode failed for unit %s", unit_id)
            return Result.fail(MaintenanceError.VALIDATION_FAILED, f"Failed to end maintenance mode: {e}")

        log.info("unit %s left maintenance, restored to %s", unit_id, target.value)
        await self._status_changed(unit_id, target, S.MAINTENANCE, reason)
        return Result.ok({
            "unit_id": unit_id,
            "listing_id": listing_id,
            "status": target.value,
            "maintenance_request_id": window.maintenance_request_id,
        })

    @staticmethod
    async def _maintenance_window(db: AsyncSession, listing: Listing) -> MaintenanceModeStatus:
        if coerce_status(listing.status) is not S.MAINTENANCE:
            return MaintenanceModeStatus(is_in_maintenance=False)

        if listing.maintenance_started_at is not None:
            return MaintenanceModeStatus(
                is_in_maintenance=True,
                can_restore=True,
                maintenance_request_id=listing.maintenance_request_id,
                start_date=ensure_utc(listing.maintenance_started_at),
                estimated_end_date=ensure_utc(listing.maintenance_estimated_end),
                reason=listing.maintenance_reason,
                previous_status=coerce_status(listing.maintenance_previous_status),
            )

        # rows written before the window columns existed: rebuild from the audit trail
        entry = await open_maintenance_entry(db, listing.unit_id)
        if entry is None:
            return MaintenanceModeStatus(is_in_maintenance=True, can_restore=True)
        meta = entry.detail or {}
        return MaintenanceModeStatus(
            is_in_maintenance=True,
            can_restore=True,
            maintenance_request_id=meta.get("maintenance_request_id"),
            start_date=_parse_iso(meta.get("start_date")) or ensure_utc(entry.created_at),
            estimated_end_date=_parse_iso(meta.get("estimated_end_date")),
            reason=entry.reason,
            previous_status=coerce_status(entry.previous_status),
        )

    async def get_maintenance_status(self, unit_id: str) -> Result[MaintenanceModeStatus]:
        try:
            async with self._session_factory() as db:
                unit = await db.get(Unit, unit_id)
                if unit is None:
                    return Result.fail(MaintenanceError.UNIT_NOT_FOUND, f"Unit with ID {unit_id} not found")
                listing = await self._listing_for_unit(db, unit_id)
                if listing is None:
                    return Result.ok(MaintenanceModeStatus(is_in_maintenance=False))
                return Result.ok(await self._maintenance_window(db, listing))
        except Exception as e:
            log.exception("get_maintenance_status failed for unit %s", unit_id)
            return Result.fail(MaintenanceError.VALIDATION_FAILED, f"Failed to get maintenance status: {e}")

    async def handle_maintenance_request_created(
        self,
        request_id: str,
        actor_id: str = SYSTEM_ACTOR,
    ) -> Result[dict[str, Any]] | None:
        """
        Put the unit into maintenance when a new request is serious enough:
        HIGH or URGENT priority, or a description saying the unit is offline or
        unavailable. Returns None when the request does not qualify.
        """
        async with self._session_factory() as db:
            request = await db.get(MaintenanceRequest, request_id)
        if request is None:
            log.warning("maintenance request %s not found", request_id)
            return None

        text = (request.description or "").lower()
        serious = request.priority in (MaintenancePriority.HIGH.value, MaintenancePriority.URGENT.value)
        if not (serious or "offline" in text or "unavailable" in text):
            return None

        config = MaintenanceModeConfig(
            unit_id=request.unit_id,
            maintenance_request_id=request.id,
            reason=f"Maintenance request: {request.title}"[:500],
            start_date=self.now(),
            notify_tenants=True,
            auto_restore=True,
        )
        result = await self.start_maintenance_mode(config, actor_id)
        if not result.success:
            log.warning("auto maintenance for request %s not started: %s", request_id, result.message)
        return result

    async def handle_maintenance_request_completed(
        self,
        request_id: str,
        actor_id: str = SYSTEM_ACTOR,
    ) -> Result[dict[str, Any]] | None:
        async with self._session_factory() as db:
            request = await db.get(MaintenanceRequest, request_id)
        if request is None:
            log.warning("maintenance request %s not found", request_id)
            return None

        status = await self.get_maintenance_status(request.unit_id)
        if not status.success or not status.data.is_in_maintenance:
            return None
        # only the request that opened the window may close it
        if status.data.maintenance_request_id != request_id:
            return None

        return await self.end_maintenance_mode(
            request.unit_id, actor_id, reason=f"Maintenance request completed: {request_id}",
        )

    # ---- time-based sweep --------------------------------------------------

    async def process_time_based_transitions(self, now: datetime | None = None) -> dict[str, Any]:
        """
        Activate COMING_SOON listings whose availability date has arrived, then
        expire ACTIVE listings past their expiration date. The expiry query
        runs after activations commit, so a listing activated in this sweep
        can expire in the same sweep. A second run with nothing due is a no-op.
        """
        now = ensure_utc(now) or self.now()
        summary: dict[str, Any] = {"processed": 0, "activated": 0, "expired": 0, "errors": []}

        with tracer.start_as_current_span("listings.time_sweep") as span:
            try:
                due = await self._due_listings(S.COMING_SOON, Listing.availability_date, now)
            except Exception as e:
                log.exception("time sweep: loading COMING_SOON listings failed")
                summary["errors"].append(f"Failed to load listings to activate: {e}")
                due = []

            for listing_id in due:
                try:
                    unit_id = await self._auto_transition(
                        listing_id, S.COMING_SOON, S.ACTIVE,
                        ListingAction.AUTO_ACTIVATE, "Listing automatically activated on availability date",
                    )
                except Exception as e:
                    log.exception("time sweep: activating listing %s failed", listing_id)
                    summary["errors"].append(f"Failed to activate listing {listing_id}: {e}")
                    continue
                if unit_id is not None:
                    summary["activated"] += 1
                    summary["processed"] += 1

            try:
                expiring = await self._due_listings(S.ACTIVE, Listing.expiration_date, now)
            except Exception as e:
                log.exception("time sweep: loading ACTIVE listings failed")
                summary["errors"].append(f"Failed to load listings to expire: {e}")
                expiring = []

            for listing_id in expiring:
                try:
                    unit_id = await self._auto_transition(
                        listing_id, S.ACTIVE, S.EXPIRED,
                        ListingAction.AUTO_EXPIRE, "Listing automatically expired",
                    )
                except Exception as e:
                    log.exception("time sweep: expiring listing %s failed", listing_id)
                    summary["errors"].append(f"Failed to expire listing {listing_id}: {e}")
                    continue
                if unit_id is not None:
                    summary["expired"] += 1
                    summary["processed"] += 1
                    await self._notify_expired(listing_id, unit_id)

            span.set_attribute("listings.activated", summary["activated"])
            span.set_attribute("listings.expired", summary["expired"])
            span.set_attribute("listings.errors", len(summary["errors"]))

        log.info(
            "time sweep: processed=%d activated=%d expired=%d errors=%d",
            summary["processed"], summary["activated"], summary["expired"], len(summary["errors"]),
        )
        return summary

    async def _due_listings(self, status: ListingStatus, column, now: datetime) -> list[str]:
        async with self._session_factory() as db:
            return list((await db.execute(
                select(Listing.id)
                .where(Listing.status == status.value, column.is_not(None), column <= now)
                .order_by(column.asc())
            )).scalars().all())

    async def _auto_transition(
        self,
        listing_id: str,
        expected: ListingStatus,
        target: ListingStatus,
        action: ListingAction,
        reason: str,
    ) -> str | None:
        """Returns the unit id when the listing moved, None when it was no longer in ``expected``."""
        async with self._session_factory() as db:
            async with db.begin():
                listing = await self._listing_by_id(db, listing_id, for_update=True)
                if listing is None or listing.status != expected.value:
                    return None
                listing.status = target.value
                listing.updated_by = SYSTEM_ACTOR
                unit_id = listing.unit_id
                await record_listing_audit(
                    db,
                    unit_id=unit_id,
                    listing_id=listing_id,
                    action=action,
                    previous_status=expected,
                    new_status=target,
                    actor_id=SYSTEM_ACTOR,
                    reason=reason,
                )

        await self._status_changed(unit_id, target, expected, reason)
        return unit_id

    async def _notify_expired(self, listing_id: str, unit_id: str) -> None:
        try:
            async with self._session_factory() as db:
                manager_email = (await db.execute(
                    select(Property.manager_email)
                    .join(Unit, Unit.property_id == Property.id)
                    .where(Unit.id == unit_id)
                )).scalar_one_or_none()
        except Exception:
            log.exception("could not look up property manager for unit %s", unit_id)
            return
        safe_notify(
            self._notifier,
            recipient=manager_email,
            template="listing_expired",
            context={"listing_id": listing_id, "unit_id": unit_id},
        )
