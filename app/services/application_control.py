"""
Keeps pending tenant applications consistent with the unit's listing status.

The guard is notified after every committed listing transition. Only PENDING
applications are selected, so replaying a transition is a no-op for
applications already rejected.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Iterable

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.enums import ApplicationStatus, BLOCKING_LEASE_STATUSES, ListingStatus
from app.models.lease import Lease
from app.models.listing import Listing
from app.models.property import Property
from app.models.tenant_application import TenantApplication
from app.models.unit import Unit
from app.services.listing_state import coerce_status
from app.services.notifications import Notifier, safe_notify
from app.services.results import IntegrityCheckError, Result

log = logging.getLogger(__name__)


class GuardAction(str, Enum):
    MAINTAINED = "MAINTAINED"
    REJECTED = "REJECTED"
    NOTIFIED = "NOTIFIED"


class IntegrityIssue(str, Enum):
    ORPHANED = "ORPHANED"
    INCONSISTENT = "INCONSISTENT"
    MISSING_UNIT = "MISSING_UNIT"
    MISSING_PROPERTY = "MISSING_PROPERTY"


# new listing status -> (action on each pending application, reason)
APPLICATION_DECISIONS: dict[ListingStatus, tuple[GuardAction, str]] = {
    ListingStatus.PRIVATE: (GuardAction.REJECTED, "Unit removed from marketplace"),
    ListingStatus.EXPIRED: (GuardAction.REJECTED, "Listing expired"),
    ListingStatus.MAINTENANCE: (GuardAction.NOTIFIED, "Unit temporarily unavailable for maintenance"),
    ListingStatus.SUSPENDED: (GuardAction.NOTIFIED, "Unit temporarily suspended"),
    ListingStatus.ACTIVE: (GuardAction.MAINTAINED, "Unit is now available for applications"),
    ListingStatus.COMING_SOON: (GuardAction.MAINTAINED, "Unit will be available for applications soon"),
    ListingStatus.PENDING: (GuardAction.MAINTAINED, "Listing is awaiting review"),
}


class ApplicationControlService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        notifier: Notifier,
        allowed_statuses: Iterable[ListingStatus] = (ListingStatus.ACTIVE,),
        require_active_listing: bool = True,
    ) -> None:
        self._session_factory = session_factory
        self._notifier = notifier
        self.allowed_statuses = frozenset(allowed_statuses)
        self.require_active_listing = require_active_listing

    def decide(self, unit_id: str, new_status: ListingStatus | str) -> tuple[GuardAction, str]:
        status = coerce_status(new_status)
        decision = APPLICATION_DECISIONS.get(status) if status is not None else None
        if decision is None:
            log.warning("unknown listing status %s for unit %s; applications maintained", new_status, unit_id)
            return GuardAction.MAINTAINED, "Status change processed"
        return decision

    async def on_status_change(
        self,
        unit_id: str,
        new_status: ListingStatus | str,
        previous_status: ListingStatus | str | None = None,
        reason: str | None = None,
    ) -> dict[str, Any]:
        action, action_reason = self.decide(unit_id, new_status)
        actions: list[dict[str, Any]] = []
        notices: list[tuple[str | None, str]] = []

        try:
            async with self._session_factory() as db:
                async with db.begin():
                    pending = (await db.execute(
                        select(TenantApplication).where(
                            TenantApplication.unit_id == unit_id,
                            TenantApplication.status == ApplicationStatus.PENDING.value,
                        )
                    )).scalars().all()

                    for application in pending:
                        if action is GuardAction.REJECTED:
                            application.status = ApplicationStatus.REJECTED.value
                            application.decision_reason = action_reason
                            application.updated_by = "system"
                        if action is not GuardAction.MAINTAINED:
                            notices.append((application.applicant_email, application.id))

                        actions.append({
                            "application_id": application.id,
                            "action": action.value,
                            "reason": action_reason,
                        })
                        log.info(
                            "application %s %s on listing change %s -> %s (%s)",
                            application.id, action.value.lower(),
                            getattr(previous_status, "value", previous_status),
                            getattr(new_status, "value", new_status),
                            reason or action_reason,
                        )
        except Exception:
            log.exception("application guard failed for unit %s", unit_id)
            return {"applications_affected": 0, "actions": []}

        template = "application_rejected" if action is GuardAction.REJECTED else "application_notice"
        for recipient, application_id in notices:
            safe_notify(
                self._notifier,
                recipient=recipient,
                template=template,
                context={"unit_id": unit_id, "application_id": application_id, "reason": action_reason},
            )

        return {"applications_affected": len(actions), "actions": actions}

    async def check_application_eligibility(self, unit_id: str) -> dict[str, Any]:
        result: dict[str, Any] = {"unit_id": unit_id, "is_eligible": False, "reason": None, "listing_status": None}
        try:
            async with self._session_factory() as db:
                unit = await db.get(Unit, unit_id)
                if unit is None:
                    result["reason"] = "Unit not found"
                    return result

                if await has_blocking_lease(db, unit_id):
                    result["reason"] = "Unit has an active lease and is not available for applications"
                    return result

                if not self.require_active_listing:
                    result["is_eligible"] = True
                    return result

                listing = (await db.execute(select(Listing).where(Listing.unit_id == unit_id))).scalar_one_or_none()
        except Exception:
            log.exception("eligibility check failed for unit %s", unit_id)
            result["reason"] = "Error checking unit eligibility"
            return result

        if listing is None:
            result["listing_status"] = ListingStatus.PRIVATE.value
            result["reason"] = "Unit is not currently listed on the marketplace"
            return result

        status = coerce_status(listing.status)
        result["listing_status"] = listing.status
        if status not in self.allowed_statuses:
            if status is ListingStatus.COMING_SOON and listing.availability_date is not None:
                result["reason"] = (
                    f'Unit is listed as "Coming Soon" and will be available for applications on '
                    f"{listing.availability_date.date().isoformat()}"
                )
            else:
                result["reason"] = f"Unit listing status ({listing.status}) does not allow applications"
            return result

        result["is_eligible"] = True
        return result

    async def check_multiple_units_eligibility(self, unit_ids: Iterable[str]) -> list[dict[str, Any]]:
        return [await self.check_application_eligibility(unit_id) for unit_id in unit_ids]

    async def eligible_units(self, organization_id: str, property_id: str | None = None) -> list[dict[str, Any]]:
        """Units that would accept an application right now, ordered by unit number."""
        leased = select(Lease.unit_id).where(Lease.status.in_(BLOCKING_LEASE_STATUSES))
        stmt = (
            select(Unit.id, Unit.unit_number, Unit.property_id, Listing.status)
            .join(Property, Property.id == Unit.property_id)
            .outerjoin(Listing, Listing.unit_id == Unit.id)
            .where(Property.organization_id == organization_id, Unit.id.not_in(leased))
            .order_by(Unit.unit_number, Unit.id)
        )
        if property_id is not None:
            stmt = stmt.where(Unit.property_id == property_id)
        if self.require_active_listing:
            stmt = stmt.where(Listing.status.in_([s.value for s in self.allowed_statuses]))

        async with self._session_factory() as db:
            rows = (await db.execute(stmt)).all()
        return [
            {
                "unit_id": unit_id,
                "unit_number": unit_number,
                "property_id": prop_id,
                "listing_status": status or ListingStatus.PRIVATE.value,
            }
            for unit_id, unit_number, prop_id, status in rows
        ]

    def _integrity_issues(
        self,
        application: TenantApplication,
        unit: Unit | None,
        prop: Property | None,
        listing: Listing | None,
        leased: bool,
    ) -> list[dict[str, str]]:
        issues: list[dict[str, str]] = []

        def issue(kind: IntegrityIssue, description: str, severity: str) -> None:
            issues.append({"type": kind.value, "description": description, "severity": severity})

        if unit is None:
            issue(IntegrityIssue.MISSING_UNIT, "Application has no associated unit", "HIGH")
            return issues
        if prop is None:
            issue(IntegrityIssue.MISSING_PROPERTY, "Application unit has no associated property", "HIGH")

        # decided applications are history; only pending ones must match the listing
        if application.status != ApplicationStatus.PENDING.value:
            return issues
        if listing is None:
            if self.require_active_listing:
                issue(IntegrityIssue.ORPHANED, "Pending application for a unit without a listing", "MEDIUM")
        elif self.decide(unit.id, listing.status)[0] is GuardAction.REJECTED:
            issue(
                IntegrityIssue.INCONSISTENT,
                f"Pending application on a listing in status {listing.status}",
                "HIGH",
            )
        if leased:
            issue(IntegrityIssue.INCONSISTENT, "Pending application on a unit with an active lease", "MEDIUM")
        return issues

    async def _load_for_integrity(self, db: AsyncSession, stmt) -> tuple[list[tuple], set[str]]:
        rows = (await db.execute(stmt)).all()
        unit_ids = {unit.id for _, unit, _, _ in rows if unit is not None}
        leased: set[str] = set()
        if unit_ids:
            leased = set((await db.execute(
                select(Lease.unit_id).where(
                    Lease.unit_id.in_(unit_ids),
                    Lease.status.in_(BLOCKING_LEASE_STATUSES),
                )
            )).scalars().all())
        return rows, leased

    @staticmethod
    def _integrity_query():
        return (
            select(TenantApplication, Unit, Property, Listing)
            .outerjoin(Unit, Unit.id == TenantApplication.unit_id)
            .outerjoin(Property, Property.id == Unit.property_id)
            .outerjoin(Listing, Listing.unit_id == TenantApplication.unit_id)
        )

    async def validate_application_integrity(
        self,
        application_id: str,
        organization_id: str | None = None,
    ) -> Result[dict[str, Any]]:
        try:
            async with self._session_factory() as db:
                rows, leased = await self._load_for_integrity(
                    db, self._integrity_query().where(TenantApplication.id == application_id)
                )
        except Exception as e:
            log.exception("integrity check failed for application %s", application_id)
            return Result.fail(IntegrityCheckError.QUERY_FAILED, f"Error validating application data: {e}")

        if not rows:
            return Result.fail(IntegrityCheckError.APPLICATION_NOT_FOUND, f"Application {application_id} not found")
        application, unit, prop, listing = rows[0]
        if organization_id is not None and (prop is None or prop.organization_id != organization_id):
            return Result.fail(IntegrityCheckError.PERMISSION_DENIED, "Access denied to application")

        issues = self._integrity_issues(application, unit, prop, listing, application.unit_id in leased)
        return Result.ok({
            "application_id": application.id,
            "unit_id": application.unit_id,
            "is_valid": not issues,
            "issues": issues,
        })

    async def application_integrity_report(
        self,
        organization_id: str | None = None,
        property_id: str | None = None,
    ) -> Result[dict[str, Any]]:
        """
        Check every application in scope against its unit, property, listing
        and leases. Without an organization the whole table is checked, which
        is the only way applications with a missing unit or property show up.
        """
        stmt = self._integrity_query()
        if organization_id is not None:
            stmt = stmt.where(Property.organization_id == organization_id)
        if property_id is not None:
            stmt = stmt.where(Unit.property_id == property_id)

        try:
            async with self._session_factory() as db:
                rows, leased = await self._load_for_integrity(db, stmt)
        except Exception as e:
            log.exception("application integrity report failed")
            return Result.fail(IntegrityCheckError.QUERY_FAILED, f"Error generating integrity report: {e}")

        issues: list[dict[str, str]] = []
        valid = orphaned = inconsistent = 0
        for application, unit, prop, listing in rows:
            found = self._integrity_issues(application, unit, prop, listing, application.unit_id in leased)
            if not found:
                valid += 1
                continue
            kinds = {i["type"] for i in found}
            orphaned += IntegrityIssue.ORPHANED.value in kinds
            inconsistent += IntegrityIssue.INCONSISTENT.value in kinds
            issues.extend({"application_id": application.id, **i} for i in found)

        log.info(
            "application integrity report: total=%d valid=%d orphaned=%d inconsistent=%d",
            len(rows), valid, orphaned, inconsistent,
        )
        return Result.ok({
            "summary": {
                "total_applications": len(rows),
                "valid_applications": valid,
                "invalid_applications": len(rows) - valid,
                "orphaned_applications": orphaned,
                "inconsistent_applications": inconsistent,
            },
            "issues": issues,
        })

    async def cleanup_orphaned_applications(self) -> dict[str, Any]:
        """Reject PENDING applications whose unit no longer has a listing."""
        cleaned = 0
        errors: list[str] = []
        if not self.require_active_listing:
            return {"cleaned": 0, "errors": errors}

        try:
            async with self._session_factory() as db:
                async with db.begin():
                    orphaned = (await db.execute(
                        select(TenantApplication)
                        .outerjoin(Listing, Listing.unit_id == TenantApplication.unit_id)
                        .where(
                            TenantApplication.status == ApplicationStatus.PENDING.value,
                            Listing.id.is_(None),
                        )
                    )).scalars().all()

                    for application in orphaned:
                        application.status = ApplicationStatus.REJECTED.value
                        application.decision_reason = "Unit no longer listed"
                        application.updated_by = "system"
                        cleaned += 1
        except Exception as e:
            log.exception("orphaned application cleanup failed")
            return {"cleaned": 0, "errors": [f"Cleanup failed: {type(e).__name__}: {e}"]}

        log.info("orphaned application cleanup: %d rejected", cleaned)
        return {"cleaned": cleaned, "errors": errors}


async def has_blocking_lease(db: AsyncSession, unit_id: str) -> bool:
    count = (await db.execute(
        select(func.count()).select_from(Lease).where(
            Lease.unit_id == unit_id,
            Lease.status.in_(BLOCKING_LEASE_STATUSES),
        )
    )).scalar_one()
    return count > 0
