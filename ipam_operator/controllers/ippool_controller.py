"""IPPool controller: the reconciliation loop for address pools."""

from typing import Callable, List, Optional

from celery.exceptions import SoftTimeLimitExceeded

from ipam_operator.config import settings
from ipam_operator.controllers.gate import GateDecision, evaluate_gate
from ipam_operator.controllers.mappers import (
    ipaddressclaim_to_ippool,
    ipclaim_to_ippool,
)
from ipam_operator.controllers.predicates import resource_not_paused_and_has_filter_label
from ipam_operator.controllers.requeue import ReconcileError, check_requeue_error
from ipam_operator.controllers.types import ReconcileRequest, Result
from ipam_operator.ipam import IPPoolManager, ManagerFactory
from ipam_operator.models import Cluster, IPAddressClaim, IPClaim, IPPool
from ipam_operator.models.base import ObjectKey, ObjectMeta
from ipam_operator.store import ObjectNotFound, ObjectStore, PatchHelper, StoreError, WatchEvent
from ipam_operator.utils.context import operation_context, set_context
from ipam_operator.utils.logger import get_logger
from ipam_operator.utils.telemetry import add_span_attributes, trace_operation

logger = get_logger(__name__)

MapFunc = Callable[[ObjectMeta], List[ReconcileRequest]]


def ippool_to_request(pool: ObjectMeta) -> List[ReconcileRequest]:
    return [ReconcileRequest(namespace=pool.namespace, name=pool.name)]


class IPPoolReconciler:
    """Reconciles IPPool objects."""

    def __init__(
        self,
        store: ObjectStore,
        manager_factory: ManagerFactory,
        watch_filter_value: Optional[str] = None,
        requeue_after: Optional[float] = None,
    ):
        self.store = store
        self.manager_factory = manager_factory
        self.watch_filter_value = watch_filter_value
        self.requeue_after = (
            settings.RECONCILE_REQUEUE_AFTER if requeue_after is None else requeue_after
        )

    def reconcile(self, request: ReconcileRequest) -> Result:
        """
        Run one pass for a pool.

        The pool is fetched once, mutated in memory and patched back on
        every exit path. A failed patch fails the pass. A soft time limit
        hit anywhere in the pass asks for another pass.

        Returns:
            Result telling the caller whether and when to run again

        Raises:
            ReconcileError: On failures the caller should back off from
        """
        with (
            trace_operation(
                "controller.ippool.reconcile",
                {"ippool.name": request.name, "ippool.namespace": request.namespace},
            ),
            operation_context(
                "ippool.reconcile", ippool=request.name, namespace=request.namespace
            ),
        ):
            try:
                result = self._reconcile_and_patch(request)
            except SoftTimeLimitExceeded:
                logger.warning("Reconciliation cancelled, requeuing")
                result = Result(requeue=True)

            add_span_attributes(
                **{
                    "reconcile.requeue": result.requeue,
                    "reconcile.requeue_after": result.requeue_after,
                }
            )
            return result

    def _reconcile_and_patch(self, request: ReconcileRequest) -> Result:
        try:
            pool = self.store.get(IPPool, request)
        except ObjectNotFound:
            logger.debug("IPPool not found, nothing to do")
            return Result()
        except StoreError as e:
            raise ReconcileError(f"failed to get IPPool {request}: {e}") from e

        try:
            helper = PatchHelper(pool, self.store)
        except StoreError as e:
            raise ReconcileError("failed to init patch helper") from e

        result = Result()
        try:
            result = self._reconcile(pool)
        except SoftTimeLimitExceeded:
            logger.warning("Reconciliation cancelled, requeuing")
            result = Result(requeue=True)
        finally:
            # Always patch the pool so that changes made in this pass persist
            try:
                helper.patch(pool)
            except StoreError as e:
                logger.info("failed to Patch IPPool", extra={"error": str(e)})
                raise ReconcileError(f"failed to patch IPPool {request}") from e

        return result

    def _reconcile(self, pool: IPPool) -> Result:
        gate = evaluate_gate(pool, self._get_cluster, requeue_after=self.requeue_after)

        if gate.decision is GateDecision.SKIP:
            return Result()
        if gate.decision is GateDecision.DEFER and gate.cluster is None:
            return Result(requeue=True, requeue_after=gate.requeue_after)

        try:
            ippool_mgr = self.manager_factory.new_ippool_manager(pool)
        except SoftTimeLimitExceeded:
            raise
        except Exception as e:
            raise ReconcileError("failed to create helper for managing the IP pool") from e

        if gate.cluster is not None:
            set_context(cluster=gate.cluster.name)
            try:
                ippool_mgr.set_cluster_owner_ref(gate.cluster)
            except SoftTimeLimitExceeded:
                raise
            except Exception as e:
                raise ReconcileError(f"failed to set cluster owner reference: {e}") from e

            # Return early if the pool or the cluster is paused
            if gate.decision is GateDecision.DEFER:
                logger.info("reconciliation is paused for this object")
                return Result(requeue=True, requeue_after=gate.requeue_after)

        if pool.is_deleting:
            return self._reconcile_delete(ippool_mgr)

        return self._reconcile_normal(ippool_mgr)

    def _reconcile_normal(self, ippool_mgr: IPPoolManager) -> Result:
        # If the IPPool doesn't have a finalizer, add it
        ippool_mgr.set_finalizer()

        try:
            ippool_mgr.update_addresses()
        except SoftTimeLimitExceeded:
            raise
        except Exception as e:
            return check_requeue_error(e, "failed to allocate addresses")

        return Result()

    def _reconcile_delete(self, ippool_mgr: IPPoolManager) -> Result:
        try:
            allocations = ippool_mgr.update_addresses()
        except SoftTimeLimitExceeded:
            raise
        except Exception as e:
            return check_requeue_error(e, "failed to release addresses")

        if allocations == 0:
            # Nothing allocated any more, the pool may go away
            ippool_mgr.unset_finalizer()
        else:
            logger.info(
                "IPPool still has allocations, keeping finalizer",
                extra={"allocations": allocations},
            )

        return Result()

    def _get_cluster(self, key: ObjectKey) -> Cluster:
        return self.store.get(Cluster, key)

    def setup_with_store(self, queue) -> None:
        """Register the watches feeding this reconciler.

        Pool changes enqueue the pool itself; claim changes enqueue the
        pool they point at. Paused objects and objects outside the watch
        filter are ignored.
        """
        self.store.watch(IPPool, self._enqueue_mapped(queue, ippool_to_request))
        if settings.ENABLE_IPCLAIM_WATCH:
            self.store.watch(IPClaim, self._enqueue_mapped(queue, ipclaim_to_ippool))
        if settings.ENABLE_IPADDRESSCLAIM_WATCH:
            self.store.watch(
                IPAddressClaim, self._enqueue_mapped(queue, ipaddressclaim_to_ippool)
            )

    def _enqueue_mapped(self, queue, map_func: MapFunc) -> Callable[[WatchEvent], None]:
        def handler(event: WatchEvent) -> None:
            if not resource_not_paused_and_has_filter_label(
                event.object, self.watch_filter_value
            ):
                return
            for request in map_func(event.object):
                queue.add(request)

        return handler
