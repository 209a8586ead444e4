"""Schemas package for request/response validation."""

from ipam_operator.schemas.common import HealthCheckResponse, ResponseMessage
from ipam_operator.schemas.claim import (
    IPAddressClaimCreate,
    IPAddressClaimResponse,
    IPClaimCreate,
    IPClaimResponse,
)
from ipam_operator.schemas.cluster import ClusterCreate, ClusterResponse
from ipam_operator.schemas.ippool import (
    IPPoolCreate,
    IPPoolListResponse,
    IPPoolResponse,
)

__all__ = [
    "ResponseMessage",
    "HealthCheckResponse",
    "IPClaimCreate",
    "IPClaimResponse",
    "IPAddressClaimCreate",
    "IPAddressClaimResponse",
    "ClusterCreate",
    "ClusterResponse",
    "IPPoolCreate",
    "IPPoolResponse",
    "IPPoolListResponse",
]
