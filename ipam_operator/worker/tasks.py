"""Background tasks running reconcile passes."""

from typing import Optional

from celery.exceptions import SoftTimeLimitExceeded
from redis.exceptions import LockError

from ipam_operator.celery_app import celery_app
from ipam_operator.config import settings
from ipam_operator.controllers.predicates import resource_not_paused_and_has_filter_label
from ipam_operator.controllers.types import ReconcileRequest
from ipam_operator.dependencies import get_queue, get_reconciler, get_redis
from ipam_operator.models import IPPool
from ipam_operator.utils.context import set_context
from ipam_operator.utils.logger import get_logger, log_timer
from ipam_operator.utils.telemetry import add_span_attributes, get_tracer

logger = get_logger(__name__)
tracer = get_tracer()


def lock_name(request: ReconcileRequest) -> str:
    """Redis key serializing passes for one pool."""
    return f"ipam:reconcile:{request.namespace}/{request.name}"


def retry_countdown(retries: int, max_backoff: Optional[int] = None) -> int:
    """Exponential backoff for failed passes: 1, 2, 4, ... capped."""
    if max_backoff is None:
        max_backoff = settings.RECONCILE_MAX_BACKOFF
    return min(2**retries, max_backoff)


@celery_app.task(
    name="reconcile_ippool_task", bind=True, max_retries=settings.RECONCILE_MAX_RETRIES
)
def reconcile_ippool_task(self, namespace: str, name: str) -> dict:
    """
    Run one reconcile pass for a pool.

    Only one pass per pool runs at a time; a pass that finds the pool
    locked is put back on the queue. A requested requeue is scheduled
    with its delay, a failed pass is retried with exponential backoff.

    Args:
        self: Celery task instance
        namespace: Namespace of the pool
        name: Name of the pool

    Returns:
        dict with the outcome
    """
    request = ReconcileRequest(namespace=namespace, name=name)
    queue = get_queue()

    with tracer.start_as_current_span("background.reconcile_ippool"):
        add_span_attributes(**{"celery.task_id": self.request.id})
        set_context(request_id=self.request.id, action="ippool.reconcile.background")

        lock = get_redis().lock(lock_name(request), timeout=settings.RECONCILE_LOCK_TIMEOUT)
        if not lock.acquire(blocking=False):
            logger.info(
                "Reconcile already in flight, deferring",
                extra={"ippool": name, "namespace": namespace},
            )
            queue.add_after(request, settings.RECONCILE_LOCK_RETRY_SECONDS)
            return {"status": "deferred", "ippool": str(request)}

        try:
            with log_timer("ippool_reconcile", logger):
                result = get_reconciler().reconcile(request)
        except SoftTimeLimitExceeded:
            logger.warning(
                "Reconcile cancelled by time limit, requeuing",
                extra={"ippool": name, "namespace": namespace},
            )
            queue.add(request)
            return {"status": "requeued", "ippool": str(request), "requeue_after": 0}
        except Exception as e:
            countdown = retry_countdown(self.request.retries)
            logger.error(
                "Reconciler error",
                extra={
                    "ippool": name,
                    "namespace": namespace,
                    "error": str(e),
                    "error_type": type(e).__name__,
                    "retries": self.request.retries,
                    "countdown": countdown,
                },
            )
            raise self.retry(exc=e, countdown=countdown)
        finally:
            try:
                lock.release()
            except LockError as e:
                logger.warning(
                    "Reconcile lock expired before release",
                    extra={"ippool": name, "namespace": namespace, "error": str(e)},
                )

        if result.requeue:
            queue.add_after(request, result.requeue_after)
            return {
                "status": "requeued",
                "ippool": str(request),
                "requeue_after": result.requeue_after,
            }

        return {"status": "reconciled", "ippool": str(request)}


@celery_app.task(name="resync_ippools_task")
def resync_ippools_task() -> dict:
    """Enqueue every pool for a periodic pass."""
    reconciler = get_reconciler()
    queue = get_queue()

    enqueued = 0
    for pool in reconciler.store.list(IPPool):
        if not resource_not_paused_and_has_filter_label(
            pool, reconciler.watch_filter_value
        ):
            continue
        queue.add(ReconcileRequest(namespace=pool.namespace, name=pool.name))
        enqueued += 1

    logger.info("Periodic resync enqueued pools", extra={"enqueued": enqueued})
    return {"enqueued": enqueued}
