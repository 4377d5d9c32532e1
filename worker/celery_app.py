from celery import Celery
from celery.signals import worker_process_init

from app.core.config import settings
from app.core.telemetry import setup_worker_telemetry

celery = Celery(
    "listing-worker",
    broker=settings.rabbitmq_url,
    backend=settings.redis_url,
    include=["worker.tasks"],
)

celery.conf.update(
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_default_queue="default",
    task_routes={
        "worker.tasks.send_notification": {"queue": "notifications"},
        "worker.tasks.process_time_based_transitions": {"queue": "sweeps"},
        "worker.tasks.cleanup_orphaned_applications": {"queue": "sweeps"},
        "worker.tasks.handle_maintenance_request_event": {"queue": "default"},
    },
)


@worker_process_init.connect
def _init_worker_telemetry(**kwargs) -> None:
    setup_worker_telemetry()
