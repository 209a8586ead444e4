"""Pause and ownership gate evaluated before any pool work."""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from ipam_operator.config import settings
from ipam_operator.controllers.predicates import is_paused
from ipam_operator.models import Cluster, IPPool
from ipam_operator.models.base import CLUSTER_NAME_LABEL, PROVIDER_NAME_LABEL, ObjectKey
from ipam_operator.store import StoreError
from ipam_operator.utils.logger import get_logger

logger = get_logger(__name__)

ClusterGetter = Callable[[ObjectKey], Cluster]


class GateDecision(str, Enum):
    """Whether the pass continues."""

    PROCEED = "proceed"
    DEFER = "defer"
    SKIP = "skip"


@dataclass(frozen=True)
class GateResult:
    decision: GateDecision
    requeue_after: float = 0.0
    cluster: Optional[Cluster] = None


def evaluate_gate(
    pool: IPPool,
    get_cluster: ClusterGetter,
    requeue_after: Optional[float] = None,
    provider_name: Optional[str] = None,
    requeue_on_missing_cluster: Optional[bool] = None,
) -> GateResult:
    """
    Decide whether a pool may be reconciled now.

    A pool without a cluster always proceeds. A pool whose cluster cannot
    be fetched is deferred, unless the pool is being deleted: deletion is
    never held up by a missing cluster. A resolved cluster is stamped onto
    the pool's labels, and a paused pool or cluster defers the pass.

    Args:
        pool: The pool being reconciled; its labels may be updated in place
        get_cluster: Fetches a cluster by key, raising StoreError on failure
        requeue_after: Backoff for deferred passes
        provider_name: Value of the provider label
        requeue_on_missing_cluster: False skips instead of deferring when
            the cluster cannot be fetched

    Returns:
        GateResult with the decision and the resolved cluster, if any
    """
    if requeue_after is None:
        requeue_after = settings.RECONCILE_REQUEUE_AFTER
    if provider_name is None:
        provider_name = settings.PROVIDER_NAME
    if requeue_on_missing_cluster is None:
        requeue_on_missing_cluster = settings.REQUEUE_ON_MISSING_CLUSTER

    if not pool.cluster_name:
        return GateResult(GateDecision.PROCEED)

    key = ObjectKey(namespace=pool.namespace, name=pool.cluster_name)
    try:
        cluster = get_cluster(key)
    except StoreError as e:
        if pool.is_deleting:
            logger.info(
                "Cluster not found, continuing with deletion",
                extra={"cluster": pool.cluster_name, "error": str(e)},
            )
            return GateResult(GateDecision.PROCEED)

        logger.info(
            "Error fetching cluster. It might not exist yet, requeuing",
            extra={"cluster": pool.cluster_name, "error": str(e)},
        )
        if not requeue_on_missing_cluster:
            return GateResult(GateDecision.SKIP)
        return GateResult(GateDecision.DEFER, requeue_after=requeue_after)

    pool.labels = {
        **pool.labels,
        CLUSTER_NAME_LABEL: cluster.name,
        PROVIDER_NAME_LABEL: provider_name,
    }

    if is_paused(cluster, pool):
        return GateResult(GateDecision.DEFER, requeue_after=requeue_after, cluster=cluster)

    return GateResult(GateDecision.PROCEED, cluster=cluster)
