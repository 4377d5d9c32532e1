"""
Bulk listing operations with compensating rollback.

Operations run one unit at a time through ListingService, each in its own
transaction. Every step that succeeds records how to undo itself; when the
failure count reaches the threshold (and the batch has more than one
operation) the recorded compensations run newest-first and the batch reports
TRANSACTION_FAILED. Compensation is best-effort: a step that cannot be undone
is logged and the rest still run.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable

from opentelemetry import trace
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core import ids
from app.models.enums import BulkActionType, ListingStatus
from app.models.listing import Listing
from app.models.property import Property
from app.models.unit import Unit
from app.schemas.bulk import BulkFailure, BulkOperation, BulkResult, BulkSummary
from app.schemas.maintenance import MaintenanceModeConfig
from app.services.audit import record_bulk_audit
from app.services.listings import ListingService, ListingSnapshot
from app.services.results import BulkOperationError, Result

log = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

MAX_BATCH_SIZE = 100
ROLLBACK_REASON = "Bulk operation rolled back"


@dataclass
class Compensation:
    unit_id: str
    action: BulkActionType
    undo: Callable[[], Awaitable[Result]]


def failure_threshold_reached(total: int, failed: int, ratio: float = 0.5) -> bool:
    return total > 1 and failed >= math.ceil(total * ratio)


def validate_operations(operations: list[BulkOperation], max_batch_size: int = MAX_BATCH_SIZE) -> list[str]:
    if not operations:
        return ["No operations provided"]
    problems: list[str] = []
    if len(operations) > max_batch_size:
        problems.append(f"Too many operations: {len(operations)} (max {max_batch_size})")

    seen: set[str] = set()
    for i, op in enumerate(operations):
        unit_id = (op.unit_id or "").strip()
        if not unit_id:
            problems.append(f"Operation {i}: unit id is required")
            continue
        if unit_id in seen:
            problems.append(f"Duplicate unit id in batch: {unit_id}")
        seen.add(unit_id)

        if op.action is BulkActionType.LIST and op.listing_data is None:
            problems.append(f"Operation {i}: listing data is required for {op.action.value}")
        if op.action is BulkActionType.MAINTENANCE_START and not (op.listing_data and op.listing_data.reason):
            problems.append(f"Operation {i}: a reason is required for {op.action.value}")
    return problems


class BulkListingCoordinator:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        listings: ListingService,
        *,
        failure_threshold: float = 0.5,
        max_batch_size: int = MAX_BATCH_SIZE,
    ) -> None:
        self._session_factory = session_factory
        self._listings = listings
        self.failure_threshold = failure_threshold
        self.max_batch_size = max_batch_size

    async def bulk_apply(
        self,
        operations: Iterable[BulkOperation],
        actor_id: str,
        organization_id: str,
    ) -> Result[BulkResult]:
        operations = list(operations)
        problems = validate_operations(operations, self.max_batch_size)
        if problems:
            return Result.fail(BulkOperationError.INVALID_INPUT, "; ".join(problems))

        bulk_id = ids.gen_id(ids.BULK_OPERATION)
        total = len(operations)

        with tracer.start_as_current_span("listings.bulk_apply") as span:
            span.set_attribute("bulk.id", bulk_id)
            span.set_attribute("bulk.total", total)

            try:
                snapshots, rejected = await self._pre_validate(operations, organization_id)
            except Exception as e:
                log.exception("bulk %s: pre-validation failed", bulk_id)
                return Result.fail(BulkOperationError.TRANSACTION_FAILED, f"Bulk operation failed: {e}")

            successful: list[str] = []
            failed: list[BulkFailure] = []
            compensations: list[Compensation] = []
            errors: dict[str, str] = {}

            for op in operations:
                if op.unit_id in rejected:
                    errors[op.unit_id] = rejected[op.unit_id]
                    failed.append(BulkFailure(unit_id=op.unit_id, error=rejected[op.unit_id]))
                    continue

                snapshot = snapshots[op.unit_id]
                try:
                    result = await self._execute(op, snapshot, actor_id, organization_id)
                except Exception as e:
                    log.exception("bulk %s: %s on unit %s raised", bulk_id, op.action.value, op.unit_id)
                    result = Result.fail(BulkOperationError.TRANSACTION_FAILED, str(e))

                if result.success:
                    successful.append(op.unit_id)
                    compensations.append(self._compensation_for(op, snapshot, actor_id))
                else:
                    message = result.message or result.error or "Unknown error"
                    errors[op.unit_id] = message
                    failed.append(BulkFailure(unit_id=op.unit_id, error=message))

            rolled_back = failure_threshold_reached(total, len(failed), self.failure_threshold)
            if rolled_back:
                log.warning(
                    "bulk %s: %d of %d operations failed, rolling back %d",
                    bulk_id, len(failed), total, len(compensations),
                )
                await self._compensate(bulk_id, compensations)

            span.set_attribute("bulk.failed", len(failed))
            span.set_attribute("bulk.rolled_back", rolled_back)

            await self._record(bulk_id, operations, snapshots, errors, rolled_back, actor_id, organization_id)

        summary = BulkSummary(total=total, succeeded=len(successful), failed=len(failed))
        report = BulkResult(successful=successful, failed=failed, summary=summary)
        log.info(
            "bulk %s: total=%d succeeded=%d failed=%d rolled_back=%s",
            bulk_id, total, summary.succeeded, summary.failed, rolled_back,
        )

        if rolled_back:
            return Result(
                success=False,
                data=report,
                error=BulkOperationError.TRANSACTION_FAILED.value,
                message=f"Bulk operation rolled back: {len(failed)} of {total} operations failed",
            )
        return Result.ok(report)

    async def _pre_validate(
        self,
        operations: list[BulkOperation],
        organization_id: str,
    ) -> tuple[dict[str, ListingSnapshot], dict[str, str]]:
        unit_ids = [op.unit_id for op in operations]
        async with self._session_factory() as db:
            rows = (await db.execute(
                select(Unit.id, Property.organization_id, Listing)
                .outerjoin(Property, Property.id == Unit.property_id)
                .outerjoin(Listing, Listing.unit_id == Unit.id)
                .where(Unit.id.in_(unit_ids))
            )).all()

        found = {unit_id: (org_id, listing) for unit_id, org_id, listing in rows}
        snapshots: dict[str, ListingSnapshot] = {}
        rejected: dict[str, str] = {}

        for unit_id in unit_ids:
            if unit_id not in found:
                rejected[unit_id] = f"Unit {unit_id} not found"
                continue
            org_id, listing = found[unit_id]
            if org_id != organization_id:
                rejected[unit_id] = f"No permission to modify unit {unit_id}"
                continue
            snapshots[unit_id] = ListingSnapshot.of(unit_id, listing)
        return snapshots, rejected

    async def _execute(
        self,
        op: BulkOperation,
        snapshot: ListingSnapshot,
        actor_id: str,
        organization_id: str,
    ) -> Result:
        listings = self._listings

        if op.action is BulkActionType.LIST:
            return await listings.create_listing(op.unit_id, op.listing_data, actor_id, organization_id)

        if op.action is BulkActionType.UNLIST:
            return await listings.remove_listing(op.unit_id, actor_id, "Bulk unlist operation")

        if op.action is BulkActionType.SUSPEND:
            if not snapshot.had_listing:
                return Result.fail(BulkOperationError.TRANSACTION_FAILED, "Unit does not have an active listing")
            return await listings.update_status(
                snapshot.listing_id, ListingStatus.SUSPENDED, actor_id, "Bulk suspend operation",
            )

        if op.action is BulkActionType.MAINTENANCE_START:
            config = MaintenanceModeConfig(
                unit_id=op.unit_id,
                reason=op.listing_data.reason,
                notify_tenants=False,
            )
            return await listings.start_maintenance_mode(config, actor_id)

        if op.action is BulkActionType.MAINTENANCE_END:
            return await listings.end_maintenance_mode(op.unit_id, actor_id, reason="Bulk maintenance end operation")

        return Result.fail(BulkOperationError.INVALID_INPUT, f"Unsupported bulk action: {op.action}")

    def _compensation_for(self, op: BulkOperation, snapshot: ListingSnapshot, actor_id: str) -> Compensation:
        # every action is undone by writing the pre-batch row back, outside the transition table
        async def undo() -> Result:
            return await self._listings.restore_listing_state(snapshot, actor_id, ROLLBACK_REASON)

        return Compensation(unit_id=op.unit_id, action=op.action, undo=undo)

    async def _compensate(self, bulk_id: str, compensations: list[Compensation]) -> int:
        undone = 0
        for step in reversed(compensations):
            try:
                result = await step.undo()
            except Exception:
                log.exception("bulk %s: rollback of %s on unit %s raised", bulk_id, step.action.value, step.unit_id)
                continue
            if result.success:
                undone += 1
            else:
                log.error(
                    "bulk %s: rollback of %s on unit %s failed: %s",
                    bulk_id, step.action.value, step.unit_id, result.message,
                )
        return undone

    async def _record(
        self,
        bulk_id: str,
        operations: list[BulkOperation],
        snapshots: dict[str, ListingSnapshot],
        errors: dict[str, str],
        rolled_back: bool,
        actor_id: str,
        organization_id: str,
    ) -> None:
        unit_ids = [op.unit_id for op in operations]
        try:
            async with self._session_factory() as db:
                async with db.begin():
                    current = {
                        unit_id: (listing_id, status)
                        for unit_id, listing_id, status in (await db.execute(
                            select(Listing.unit_id, Listing.id, Listing.status).where(Listing.unit_id.in_(unit_ids))
                        )).all()
                    }

                    outcomes: list[dict[str, Any]] = []
                    for op in operations:
                        listing_id, status = current.get(op.unit_id, (None, ListingStatus.PRIVATE.value))
                        snapshot = snapshots.get(op.unit_id)
                        outcomes.append({
                            "unit_id": op.unit_id,
                            "listing_id": listing_id or (snapshot.listing_id if snapshot else None),
                            "action": op.action,
                            "success": op.unit_id not in errors,
                            "error": errors.get(op.unit_id),
                            "previous_status": snapshot.status if snapshot else None,
                            "new_status": status,
                        })
                    await record_bulk_audit(
                        db,
                        bulk_id=bulk_id,
                        outcomes=outcomes,
                        actor_id=actor_id,
                        organization_id=organization_id,
                        rolled_back=rolled_back,
                    )
        except Exception:
            log.exception("bulk %s: writing the batch audit failed", bulk_id)
