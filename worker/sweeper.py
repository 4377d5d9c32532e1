import argparse
import asyncio
import logging

from app.core.config import settings
from worker.celery_app import celery


log = logging.getLogger(__name__)

SWEEP_TASK = "worker.tasks.process_time_based_transitions"
CLEANUP_TASK = "worker.tasks.cleanup_orphaned_applications"


def _tick() -> None:
    celery.send_task(SWEEP_TASK, queue="sweeps")
    celery.send_task(CLEANUP_TASK, queue="sweeps")
    log.info("sweeper: enqueued time sweep and orphan cleanup")


async def main(once: bool = False) -> None:
    celery.connection().ensure_connection(max_retries=3)

    logging.basicConfig(level=logging.INFO)
    log.info("sweeper: started, interval=%ss", settings.time_sweep_interval_seconds)
    while True:
        try:
            _tick()
        except Exception:
            log.exception("sweeper: tick crashed")
        if once:
            return
        await asyncio.sleep(settings.time_sweep_interval_seconds)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Periodically enqueue the listing time sweep.")
    parser.add_argument("--once", action="store_true", help="enqueue one sweep and exit")
    args = parser.parse_args()
    asyncio.run(main(once=args.once))
