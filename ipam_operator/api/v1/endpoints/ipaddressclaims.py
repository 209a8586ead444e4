"""IPAddressClaim endpoints."""

from fastapi import APIRouter, status

from ipam_operator.api.deps import (
    StoreDep,
    create_object,
    delete_object,
    get_object_or_404,
)
from ipam_operator.models import IPAddressClaim
from ipam_operator.schemas import (
    IPAddressClaimCreate,
    IPAddressClaimResponse,
    ResponseMessage,
)
from ipam_operator.utils.context import set_context
from ipam_operator.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.post(
    "",
    response_model=IPAddressClaimResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an IPAddressClaim",
)
def create_ipaddressclaim(
    namespace: str, claim_data: IPAddressClaimCreate, store: StoreDep
):
    set_context(action="ipaddressclaim.create", namespace=namespace)
    claim = create_object(
        store, IPAddressClaim(namespace=namespace, **claim_data.model_dump())
    )
    logger.info(
        "IPAddressClaim created",
        extra={"claim": claim.name, "pool_name": claim.pool_ref_name},
    )
    return claim


@router.get(
    "/{name}", response_model=IPAddressClaimResponse, summary="Get IPAddressClaim"
)
def get_ipaddressclaim(namespace: str, name: str, store: StoreDep):
    return get_object_or_404(store, IPAddressClaim, namespace, name)


@router.delete(
    "/{name}",
    response_model=ResponseMessage,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Delete IPAddressClaim",
)
def delete_ipaddressclaim(namespace: str, name: str, store: StoreDep):
    set_context(action="ipaddressclaim.delete", namespace=namespace)
    delete_object(store, IPAddressClaim, namespace, name)
    return ResponseMessage(
        message=f"IPAddressClaim {namespace}/{name} deletion requested"
    )
