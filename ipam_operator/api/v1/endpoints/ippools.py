"""IPPool management endpoints."""

from fastapi import APIRouter, status

from ipam_operator.api.deps import (
    StoreDep,
    create_object,
    delete_object,
    get_object_or_404,
)
from ipam_operator.core.exceptions import BadRequestError, ServiceUnavailableError
from ipam_operator.ipam import InvalidNetwork, calculate_available_ips
from ipam_operator.models import IPPool
from ipam_operator.schemas import IPPoolCreate, IPPoolListResponse, IPPoolResponse, ResponseMessage
from ipam_operator.store import StoreError
from ipam_operator.utils.context import set_context
from ipam_operator.utils.logger import get_logger
from ipam_operator.utils.telemetry import add_span_attributes, get_tracer

logger = get_logger(__name__)
tracer = get_tracer()

router = APIRouter()


@router.post(
    "",
    response_model=IPPoolResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an IPPool",
    description="Create a pool. Addresses are allocated asynchronously by the reconciler.",
)
def create_ippool(namespace: str, pool_data: IPPoolCreate, store: StoreDep):
    """Create a new IPPool."""
    with tracer.start_as_current_span("api.ippool.create"):
        set_context(action="ippool.create", ippool=pool_data.name, namespace=namespace)
        add_span_attributes(
            **{"ippool.name": pool_data.name, "ippool.cidr": pool_data.cidr}
        )

        try:
            calculate_available_ips(pool_data.cidr, pool_data.gateway)
        except InvalidNetwork as e:
            raise BadRequestError(str(e))

        pool = create_object(store, IPPool(namespace=namespace, **pool_data.model_dump()))

        logger.info(
            "IPPool created",
            extra={"cidr": pool.cidr, "cluster": pool.cluster_name},
        )
        return pool


@router.get("", response_model=IPPoolListResponse, summary="List IPPools")
def list_ippools(namespace: str, store: StoreDep):
    """List the pools of a namespace."""
    try:
        pools = store.list(IPPool, namespace=namespace)
    except StoreError as e:
        raise ServiceUnavailableError(str(e))
    return IPPoolListResponse(items=pools, total=len(pools))


@router.get("/{name}", response_model=IPPoolResponse, summary="Get IPPool details")
def get_ippool(namespace: str, name: str, store: StoreDep):
    """Get a pool with its current allocations."""
    return get_object_or_404(store, IPPool, namespace, name)


@router.delete(
    "/{name}",
    response_model=ResponseMessage,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Delete IPPool",
    description="Request deletion. The pool goes away once its addresses are released.",
)
def delete_ippool(namespace: str, name: str, store: StoreDep):
    """Request deletion of a pool."""
    set_context(action="ippool.delete", ippool=name, namespace=namespace)
    delete_object(store, IPPool, namespace, name)
    logger.info("IPPool deletion requested")
    return ResponseMessage(message=f"IPPool {namespace}/{name} deletion requested")
