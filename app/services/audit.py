from __future__ import annotations

import csv
import json
from collections import Counter
from datetime import datetime, timedelta
from io import StringIO
from typing import Any, Iterable

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.audit_log import ListingAuditEntry
from app.models.base import ensure_utc
from app.models.enums import ListingAction, ListingStatus
from app.models.property import Property
from app.models.unit import Unit
from app.schemas.audit import ActorActivity, AuditFilter, AuditStatistics, ExportFormat, TimelinePoint

EXPORT_COLUMNS = [
    "id", "unit_id", "listing_id", "action", "previous_status", "new_status", "actor_id", "timestamp", "reason",
]
TIMELINE_DAYS = 30
TOP_ACTORS = 10


def _value(v: Any) -> Any:
    return getattr(v, "value", v)


async def record_listing_audit(
    db: AsyncSession,
    *,
    unit_id: str,
    action: ListingAction,
    new_status: ListingStatus,
    actor_id: str,
    listing_id: str | None = None,
    previous_status: ListingStatus | None = None,
    reason: str | None = None,
    metadata: dict | None = None,
) -> ListingAuditEntry:
    # joins the caller's transaction; committed or rolled back with the listing row
    entry = ListingAuditEntry(
        unit_id=unit_id,
        listing_id=listing_id,
        action=_value(action),
        previous_status=_value(previous_status),
        new_status=_value(new_status),
        actor_id=actor_id,
        reason=reason,
        detail=metadata or {},
    )
    db.add(entry)
    return entry


async def record_bulk_audit(
    db: AsyncSession,
    *,
    bulk_id: str,
    outcomes: Iterable[dict[str, Any]],
    actor_id: str,
    organization_id: str,
    rolled_back: bool,
) -> int:
    """
    One BULK_OPERATION entry per unit in the batch. Each outcome carries
    unit_id, action, success, error and the unit's status after the batch.
    """
    outcomes = list(outcomes)
    succeeded = sum(1 for o in outcomes if o["success"])
    summary = {"total": len(outcomes), "succeeded": succeeded, "failed": len(outcomes) - succeeded}

    for o in outcomes:
        if o["success"]:
            reason = f"Bulk {_value(o['action'])} operation"
        else:
            reason = f"Bulk {_value(o['action'])} failed: {o.get('error')}"
        if rolled_back:
            reason = f"{reason} (rolled back)"

        db.add(ListingAuditEntry(
            unit_id=o["unit_id"],
            listing_id=o.get("listing_id"),
            action=ListingAction.BULK_OPERATION.value,
            previous_status=_value(o.get("previous_status")),
            new_status=_value(o["new_status"]),
            actor_id=actor_id,
            reason=reason[:500],
            detail={
                "bulk_operation_id": bulk_id,
                "organization_id": organization_id,
                "requested_action": _value(o["action"]),
                "success": o["success"],
                "error": o.get("error"),
                "rolled_back": rolled_back,
                "summary": summary,
            },
        ))
    return len(outcomes)


async def unit_audit_history(
    db: AsyncSession,
    unit_id: str,
    *,
    actions: Iterable[ListingAction] | None = None,
    limit: int | None = None,
) -> list[ListingAuditEntry]:
    stmt = select(ListingAuditEntry).where(ListingAuditEntry.unit_id == unit_id)
    if actions is not None:
        stmt = stmt.where(ListingAuditEntry.action.in_([_value(a) for a in actions]))
    stmt = stmt.order_by(ListingAuditEntry.created_at.desc())
    if limit is not None:
        stmt = stmt.limit(limit)
    return list((await db.execute(stmt)).scalars().all())


async def open_maintenance_entry(db: AsyncSession, unit_id: str) -> ListingAuditEntry | None:
    """Newest MAINTENANCE_START with no later MAINTENANCE_END, if any."""
    latest = await unit_audit_history(
        db,
        unit_id,
        actions=(ListingAction.MAINTENANCE_START, ListingAction.MAINTENANCE_END),
        limit=1,
    )
    if latest and latest[0].action == ListingAction.MAINTENANCE_START.value:
        return latest[0]
    return None


def audit_entry_to_dict(entry: ListingAuditEntry) -> dict[str, Any]:
    return {
        "id": entry.id,
        "unit_id": entry.unit_id,
        "listing_id": entry.listing_id,
        "action": entry.action,
        "previous_status": entry.previous_status,
        "new_status": entry.new_status,
        "actor_id": entry.actor_id,
        "reason": entry.reason,
        "metadata": entry.detail or {},
        "timestamp": entry.created_at,
    }


def apply_audit_filter(stmt: Select, filters: AuditFilter, organization_id: str | None = None) -> Select:
    """Narrow a statement over ListingAuditEntry. Organization and property scope go through the unit."""
    if organization_id is not None or filters.property_id is not None:
        stmt = stmt.join(Unit, Unit.id == ListingAuditEntry.unit_id).join(Property, Property.id == Unit.property_id)
        if organization_id is not None:
            stmt = stmt.where(Property.organization_id == organization_id)
        if filters.property_id is not None:
            stmt = stmt.where(Property.id == filters.property_id)

    if filters.unit_id:
        stmt = stmt.where(ListingAuditEntry.unit_id == filters.unit_id)
    if filters.listing_id:
        stmt = stmt.where(ListingAuditEntry.listing_id == filters.listing_id)
    if filters.actor_id:
        stmt = stmt.where(ListingAuditEntry.actor_id == filters.actor_id)
    if filters.action is not None:
        stmt = stmt.where(ListingAuditEntry.action == filters.action.value)
    if filters.status is not None:
        stmt = stmt.where(ListingAuditEntry.new_status == filters.status.value)
    if filters.date_from is not None:
        stmt = stmt.where(ListingAuditEntry.created_at >= ensure_utc(filters.date_from))
    if filters.date_to is not None:
        stmt = stmt.where(ListingAuditEntry.created_at <= ensure_utc(filters.date_to))
    return stmt


async def audit_trail(
    db: AsyncSession,
    filters: AuditFilter,
    *,
    organization_id: str | None = None,
    paginate: bool = True,
) -> tuple[list[ListingAuditEntry], int]:
    """Matching entries newest first, and the total match count."""
    total = (await db.execute(
        apply_audit_filter(select(func.count()).select_from(ListingAuditEntry), filters, organization_id)
    )).scalar_one()

    stmt = apply_audit_filter(select(ListingAuditEntry), filters, organization_id).order_by(
        ListingAuditEntry.created_at.desc(), ListingAuditEntry.id.desc()
    )
    if paginate:
        stmt = stmt.limit(filters.limit).offset(filters.offset)
    return list((await db.execute(stmt)).scalars().all()), total


async def audit_statistics(
    db: AsyncSession,
    filters: AuditFilter,
    *,
    now: datetime,
    organization_id: str | None = None,
) -> AuditStatistics:
    def grouped(column):
        return apply_audit_filter(select(column, func.count()).select_from(ListingAuditEntry), filters, organization_id)

    total = (await db.execute(
        apply_audit_filter(select(func.count()).select_from(ListingAuditEntry), filters, organization_id)
    )).scalar_one()
    by_action = (await db.execute(grouped(ListingAuditEntry.action).group_by(ListingAuditEntry.action))).all()
    by_status = (await db.execute(grouped(ListingAuditEntry.new_status).group_by(ListingAuditEntry.new_status))).all()
    by_actor = (await db.execute(
        grouped(ListingAuditEntry.actor_id)
        .group_by(ListingAuditEntry.actor_id)
        .order_by(func.count().desc(), ListingAuditEntry.actor_id)
        .limit(TOP_ACTORS)
    )).all()

    # bucketed here rather than in SQL so the day boundary is UTC on every backend
    since = now - timedelta(days=TIMELINE_DAYS)
    stamps = (await db.execute(
        apply_audit_filter(select(ListingAuditEntry.created_at), filters, organization_id)
        .where(ListingAuditEntry.created_at >= since)
    )).scalars().all()
    days = Counter(ensure_utc(ts).date().isoformat() for ts in stamps)

    return AuditStatistics(
        total_entries=total,
        action_breakdown={action: count for action, count in by_action},
        status_breakdown={status: count for status, count in by_status},
        actor_activity=[ActorActivity(actor_id=actor, action_count=count) for actor, count in by_actor],
        timeline=[TimelinePoint(date=day, count=days[day]) for day in sorted(days)],
    )


def render_audit_export(
    entries: Iterable[ListingAuditEntry],
    fmt: ExportFormat,
    *,
    include_metadata: bool = False,
) -> str:
    rows = []
    for entry in entries:
        row = audit_entry_to_dict(entry)
        row["timestamp"] = ensure_utc(entry.created_at).isoformat()
        rows.append(row)

    if fmt is ExportFormat.CSV:
        buf = StringIO()
        w = csv.writer(buf)
        header = EXPORT_COLUMNS + (["metadata"] if include_metadata else [])
        w.writerow(header)
        for row in rows:
            out_row = [row[c] if row[c] is not None else "" for c in EXPORT_COLUMNS]
            if include_metadata:
                out_row.append(json.dumps(row["metadata"], sort_keys=True) if row["metadata"] else "")
            w.writerow(out_row)
        return buf.getvalue()

    exported = []
    for row in rows:
        metadata = row.pop("metadata")
        if include_metadata and metadata:
            row["metadata"] = metadata
        exported.append(row)
    return json.dumps(exported, indent=2, default=str)
