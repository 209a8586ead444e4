"""Map claim change notifications to pool reconcile requests.

Each claim variant has its own mapping function; both reduce to the same
rule: a claim naming a pool yields one request for that pool, anything
else yields none. The functions never raise.
"""

from typing import Any, List, Optional

from ipam_operator.controllers.types import ReconcileRequest


def _pool_request(
    pool_name: Any, pool_namespace: Any, claim_namespace: Any
) -> List[ReconcileRequest]:
    if not isinstance(pool_name, str) or not pool_name:
        return []

    namespace: Optional[str] = None
    if isinstance(pool_namespace, str) and pool_namespace:
        namespace = pool_namespace
    elif isinstance(claim_namespace, str):
        namespace = claim_namespace

    return [ReconcileRequest(namespace=namespace or "", name=pool_name)]


def ipclaim_to_ippool(claim: Any) -> List[ReconcileRequest]:
    """Request for the pool an IPClaim points at, in its explicit scope if set."""
    return _pool_request(
        getattr(claim, "pool_name", None),
        getattr(claim, "pool_namespace", None),
        getattr(claim, "namespace", None),
    )


def ipaddressclaim_to_ippool(claim: Any) -> List[ReconcileRequest]:
    """Request for the pool an IPAddressClaim points at, always in its own scope."""
    return _pool_request(
        getattr(claim, "pool_ref_name", None),
        None,
        getattr(claim, "namespace", None),
    )
