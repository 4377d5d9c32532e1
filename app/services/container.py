"""
Service wiring.

The lifecycle manager, the application guard, the bulk coordinator and the audit reader are
built once per process and handed to callers explicitly: the API reads them
from ``app.state.services``, the worker builds its own around a task-local
engine.
"""
from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.cache import Cache, TTLCache
from app.core.config import settings
from app.services.application_control import ApplicationControlService
from app.services.audit_trail import AuditTrailService
from app.services.bulk import BulkListingCoordinator
from app.services.listings import ListingService
from app.services.notifications import CeleryNotifier, Notifier


@dataclass(frozen=True)
class ServiceContainer:
    listings: ListingService
    applications: ApplicationControlService
    bulk: BulkListingCoordinator
    audit: AuditTrailService
    notifier: Notifier
    cache: Cache


def build_container(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    notifier: Notifier | None = None,
    cache: Cache | None = None,
) -> ServiceContainer:
    if notifier is None:
        from worker.celery_app import celery

        notifier = CeleryNotifier(celery)
    if cache is None:
        cache = TTLCache(default_ttl_seconds=settings.unit_cache_ttl_seconds)

    applications = ApplicationControlService(session_factory, notifier=notifier)
    listings = ListingService(
        session_factory,
        guard=applications,
        notifier=notifier,
        cache=cache,
        price_warning_threshold=settings.listing_price_warning_threshold,
        cache_ttl_seconds=settings.unit_cache_ttl_seconds,
        expiring_soon_days=settings.expiring_soon_days,
    )
    bulk = BulkListingCoordinator(
        session_factory,
        listings,
        failure_threshold=settings.bulk_failure_threshold,
    )
    return ServiceContainer(
        listings=listings,
        applications=applications,
        bulk=bulk,
        audit=AuditTrailService(session_factory),
        notifier=notifier,
        cache=cache,
    )


def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services
