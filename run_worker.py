#!/usr/bin/env python
"""Celery worker entry point running reconcile passes."""

from ipam_operator.celery_app import celery_app
from ipam_operator.config import settings
from ipam_operator.database import create_db_and_tables, sync_engine
from ipam_operator.utils.logger import setup_logging
from ipam_operator.utils.telemetry import instrument, setup_telemetry

setup_logging()
setup_telemetry()


if __name__ == "__main__":
    create_db_and_tables()
    instrument(engine=sync_engine, redis=True)

    celery_app.worker_main(
        [
            "worker",
            f"--loglevel={settings.LOG_LEVEL.lower()}",
            f"--pool={settings.CELERY_WORKER_POOL}",
            f"--concurrency={settings.CELERY_WORKER_CONCURRENCY}",
            f"--queues={settings.CELERY_QUEUE_NAME}",
            "--max-tasks-per-child=1000",
        ]
    )
