"""
Read side of the listing audit log: filtered trail, per-property history,
statistics and export. Every query is scoped to the caller's organization
through the audited unit's property.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.base import ensure_utc, utcnow
from app.models.property import Property
from app.schemas.audit import AuditFilter, AuditPage, AuditStatistics, ExportFormat
from app.services.audit import audit_entry_to_dict, audit_statistics, audit_trail, render_audit_export
from app.services.results import AuditQueryError, Result

log = logging.getLogger(__name__)

PROPERTY_HISTORY_LIMIT = 100


def _check_range(filters: AuditFilter) -> str | None:
    if filters.date_from is None or filters.date_to is None:
        return None
    if ensure_utc(filters.date_from) > ensure_utc(filters.date_to):
        return "date_from must not be after date_to"
    return None


class AuditTrailService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock

    async def get_audit_trail(self, filters: AuditFilter, organization_id: str) -> Result[AuditPage]:
        problem = _check_range(filters)
        if problem:
            return Result.fail(AuditQueryError.INVALID_INPUT, problem)
        try:
            async with self._session_factory() as db:
                entries, total = await audit_trail(db, filters, organization_id=organization_id)
        except Exception as e:
            log.exception("audit trail query failed")
            return Result.fail(AuditQueryError.QUERY_FAILED, f"Failed to load audit trail: {e}")

        has_more = filters.offset + filters.limit < total
        return Result.ok(AuditPage(
            entries=[audit_entry_to_dict(e) for e in entries],
            total=total,
            has_more=has_more,
            next_offset=filters.offset + filters.limit if has_more else None,
        ))

    async def get_property_audit_history(
        self,
        property_id: str,
        organization_id: str,
        limit: int = PROPERTY_HISTORY_LIMIT,
    ) -> Result[list[dict[str, Any]]]:
        try:
            async with self._session_factory() as db:
                prop = await db.get(Property, property_id)
                if prop is None:
                    return Result.fail(AuditQueryError.PROPERTY_NOT_FOUND, f"Property with ID {property_id} not found")
                if prop.organization_id != organization_id:
                    return Result.fail(AuditQueryError.PERMISSION_DENIED, "Access denied to property audit history")
                entries, _ = await audit_trail(db, AuditFilter(property_id=property_id, limit=limit))
        except Exception as e:
            log.exception("property audit history failed for %s", property_id)
            return Result.fail(AuditQueryError.QUERY_FAILED, f"Failed to load property audit history: {e}")

        return Result.ok([audit_entry_to_dict(e) for e in entries])

    async def get_audit_statistics(self, filters: AuditFilter, organization_id: str) -> Result[AuditStatistics]:
        problem = _check_range(filters)
        if problem:
            return Result.fail(AuditQueryError.INVALID_INPUT, problem)
        try:
            async with self._session_factory() as db:
                stats = await audit_statistics(
                    db, filters, now=ensure_utc(self._clock()), organization_id=organization_id,
                )
        except Exception as e:
            log.exception("audit statistics query failed")
            return Result.fail(AuditQueryError.QUERY_FAILED, f"Failed to compute audit statistics: {e}")
        return Result.ok(stats)

    async def export_audit_data(
        self,
        filters: AuditFilter,
        organization_id: str,
        fmt: ExportFormat = ExportFormat.JSON,
        include_metadata: bool = False,
    ) -> Result[str]:
        """Every matching entry, newest first; limit and offset are ignored."""
        problem = _check_range(filters)
        if problem:
            return Result.fail(AuditQueryError.INVALID_INPUT, problem)
        try:
            async with self._session_factory() as db:
                entries, total = await audit_trail(db, filters, organization_id=organization_id, paginate=False)
        except Exception as e:
            log.exception("audit export failed")
            return Result.fail(AuditQueryError.QUERY_FAILED, f"Failed to export audit data: {e}")

        log.info("audit export: %d entries as %s for organization %s", total, fmt.value, organization_id)
        return Result.ok(render_audit_export(entries, fmt, include_metadata=include_metadata))
