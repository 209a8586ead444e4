"""IPClaim endpoints."""

from fastapi import APIRouter, status

from ipam_operator.api.deps import (
    StoreDep,
    create_object,
    delete_object,
    get_object_or_404,
)
from ipam_operator.models import IPClaim
from ipam_operator.schemas import IPClaimCreate, IPClaimResponse, ResponseMessage
from ipam_operator.utils.context import set_context
from ipam_operator.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.post(
    "",
    response_model=IPClaimResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an IPClaim",
)
def create_ipclaim(namespace: str, claim_data: IPClaimCreate, store: StoreDep):
    """Request an address from a pool."""
    set_context(action="ipclaim.create", namespace=namespace)
    claim = create_object(store, IPClaim(namespace=namespace, **claim_data.model_dump()))
    logger.info(
        "IPClaim created",
        extra={"claim": claim.name, "pool_name": claim.pool_name},
    )
    return claim


@router.get("/{name}", response_model=IPClaimResponse, summary="Get IPClaim")
def get_ipclaim(namespace: str, name: str, store: StoreDep):
    """Get a claim and the address bound to it."""
    return get_object_or_404(store, IPClaim, namespace, name)


@router.delete(
    "/{name}",
    response_model=ResponseMessage,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Delete IPClaim",
)
def delete_ipclaim(namespace: str, name: str, store: StoreDep):
    """Request deletion of a claim, releasing its address."""
    set_context(action="ipclaim.delete", namespace=namespace)
    delete_object(store, IPClaim, namespace, name)
    return ResponseMessage(message=f"IPClaim {namespace}/{name} deletion requested")
