"""
Notification dispatch seam.

Email/SMS delivery is handled by the notification worker; services only hand
off a recipient, a template name and a context. Dispatch is fire-and-forget:
failures are logged here and never reach the caller.
"""
from __future__ import annotations

import logging
from typing import Any

log = logging.getLogger(__name__)

NOTIFICATION_TASK = "worker.tasks.send_notification"

TEMPLATES: dict[str, str] = {
    "application_rejected": "Your application for unit {unit_id} was closed: {reason}",
    "application_notice": "Update on your application for unit {unit_id}: {reason}",
    "unit_maintenance": "Maintenance scheduled for unit {unit_id}: {reason}",
    "listing_expired": "Listing {listing_id} for unit {unit_id} has expired",
}


def render_notification(template: str, context: dict[str, Any]) -> str:
    fmt = TEMPLATES.get(template)
    if fmt is None:
        raise KeyError(f"unknown notification template: {template}")
    return fmt.format_map(_Defaulting(context))


class _Defaulting(dict):
    def __missing__(self, key: str) -> str:
        return "-"


class Notifier:
    def notify(self, *, recipient: str | None, template: str, context: dict[str, Any]) -> None:
        raise NotImplementedError


class LoggingNotifier(Notifier):
    """Writes notices to the log instead of a queue (local runs without a broker)."""

    def notify(self, *, recipient: str | None, template: str, context: dict[str, Any]) -> None:
        log.info("notification (not sent): template=%s recipient=%s text=%s",
                 template, recipient, render_notification(template, context))


class CeleryNotifier(Notifier):
    def __init__(self, celery_app, queue: str = "notifications") -> None:
        self.celery = celery_app
        self.queue = queue

    def notify(self, *, recipient: str | None, template: str, context: dict[str, Any]) -> None:
        if not recipient:
            log.debug("notification skipped, no recipient: template=%s", template)
            return
        try:
            self.celery.send_task(
                NOTIFICATION_TASK,
                kwargs={"recipient": recipient, "template": template, "context": context},
                queue=self.queue,
            )
        except Exception:
            log.exception("notification dispatch failed: template=%s recipient=%s", template, recipient)


def safe_notify(notifier: Notifier, *, recipient: str | None, template: str, context: dict[str, Any]) -> None:
    try:
        notifier.notify(recipient=recipient, template=template, context=context)
    except Exception:
        log.exception("notifier raised: template=%s recipient=%s", template, recipient)
