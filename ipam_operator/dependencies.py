"""Process-wide wiring of the store, the work queue and the reconciler."""

from functools import lru_cache

from redis import Redis

from ipam_operator.config import settings
from ipam_operator.controllers.ippool_controller import IPPoolReconciler
from ipam_operator.database import sync_engine
from ipam_operator.ipam import ManagerFactory
from ipam_operator.store import ObjectStore
from ipam_operator.worker.queue import CeleryReconcileQueue


@lru_cache
def get_queue() -> CeleryReconcileQueue:
    """Queue that schedules reconcile passes on the Celery workers."""
    return CeleryReconcileQueue()


@lru_cache
def get_reconciler() -> IPPoolReconciler:
    """The IPPool reconciler, with its watches registered on the store."""
    store = ObjectStore(sync_engine)
    reconciler = IPPoolReconciler(
        store=store,
        manager_factory=ManagerFactory(store),
        watch_filter_value=settings.WATCH_FILTER_VALUE,
    )
    reconciler.setup_with_store(get_queue())
    return reconciler


def get_store() -> ObjectStore:
    """Object store whose writes feed the reconciler's watches."""
    return get_reconciler().store


@lru_cache
def get_redis() -> Redis:
    """Redis client used for per-pool reconcile locks."""
    return Redis.from_url(settings.REDIS_URL, decode_responses=True)
