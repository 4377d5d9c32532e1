import asyncio
import logging
from typing import Any, Awaitable, Callable

from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker

from worker.celery_app import celery
from app.core.config import settings
import app.models  # noqa: F401  # ensures Models are registered
from app.services.container import ServiceContainer, build_container
from app.services.notifications import CeleryNotifier, render_notification

log = logging.getLogger(__name__)


async def _run_with_services(fn: Callable[[ServiceContainer], Awaitable[Any]]) -> Any:
    # one engine per task run; asyncio.run gives every task a fresh loop
    engine = create_async_engine(settings.database_url, pool_pre_ping=True)
    Session = async_sessionmaker(engine, expire_on_commit=False)
    try:
        services = build_container(Session, notifier=CeleryNotifier(celery))
        return await fn(services)
    finally:
        await engine.dispose()


@celery.task(name="worker.tasks.process_time_based_transitions")
def process_time_based_transitions() -> dict:
    return asyncio.run(_run_with_services(lambda s: s.listings.process_time_based_transitions()))


@celery.task(name="worker.tasks.cleanup_orphaned_applications")
def cleanup_orphaned_applications() -> dict:
    return asyncio.run(_run_with_services(lambda s: s.applications.cleanup_orphaned_applications()))


async def _handle_maintenance_request_event(services: ServiceContainer, request_id: str, event: str) -> dict | None:
    if event == "created":
        result = await services.listings.handle_maintenance_request_created(request_id)
    elif event == "completed":
        result = await services.listings.handle_maintenance_request_completed(request_id)
    else:
        raise ValueError(f"unknown maintenance request event: {event}")
    return result.to_payload() if result is not None else None


@celery.task(name="worker.tasks.handle_maintenance_request_event")
def handle_maintenance_request_event(request_id: str, event: str) -> dict | None:
    return asyncio.run(_run_with_services(lambda s: _handle_maintenance_request_event(s, request_id, event)))


@celery.task(name="worker.tasks.send_notification")
def send_notification(recipient: str, template: str, context: dict) -> None:
    # email/SMS providers are wired outside this service; the rendered text is logged
    text = render_notification(template, context)
    log.info("notification to %s [%s]: %s", recipient, template, text)
