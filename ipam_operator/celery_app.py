"""Celery application configuration."""

from celery import Celery
from kombu import Queue

from ipam_operator.config import settings

celery_app = Celery(
    "ipam-operator-worker",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
)

celery_app.conf.update(
    # Serialization
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    # The soft limit cancels a pass, the hard limit kills the worker child
    task_time_limit=settings.CELERY_TASK_HARD_TIME_LIMIT,
    task_soft_time_limit=settings.CELERY_TASK_SOFT_TIME_LIMIT,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    # Results
    task_ignore_result=True,
    result_expires=3600,
    # Queue
    task_default_queue=settings.CELERY_QUEUE_NAME,
    task_queues=(Queue(settings.CELERY_QUEUE_NAME, routing_key="ipam.#"),),
    # Worker configuration
    worker_max_tasks_per_child=1000,
    worker_disable_rate_limits=True,
    worker_pool_restarts=True,
    imports=("ipam_operator.worker.tasks",),
    # Periodic resync of every pool
    beat_schedule={
        "resync-ippools": {
            "task": "resync_ippools_task",
            "schedule": settings.RESYNC_PERIOD_SECONDS,
        },
    },
    beat_schedule_filename="/tmp/celerybeat-schedule",
)
