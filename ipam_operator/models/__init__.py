"""Database models package."""

from ipam_operator.models.base import ObjectKey, ObjectMeta, TimestampModel
from ipam_operator.models.cluster import Cluster
from ipam_operator.models.ip_address import IPAddress
from ipam_operator.models.ip_claim import IPAddressClaim, IPClaim
from ipam_operator.models.ip_pool import IPPool

__all__ = [
    "ObjectKey",
    "ObjectMeta",
    "TimestampModel",
    "Cluster",
    "IPAddress",
    "IPAddressClaim",
    "IPClaim",
    "IPPool",
]
