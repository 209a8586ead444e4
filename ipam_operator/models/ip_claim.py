"""Claim models: requests for one address from a pool."""

from typing import ClassVar, Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import Field

from ipam_operator.models.base import ObjectMeta


class IPClaim(ObjectMeta, table=True):
    """Pool-scoped claim, may point at a pool in another namespace."""

    __tablename__ = "ipclaims"
    __table_args__ = (UniqueConstraint("namespace", "name", name="uq_ipclaim_key"),)

    KIND: ClassVar[str] = "IPClaim"

    pool_name: Optional[str] = Field(default=None, max_length=253)
    pool_namespace: Optional[str] = Field(
        default=None,
        max_length=63,
        description="Namespace of the pool, defaults to the claim's namespace",
    )

    # Status
    address_name: Optional[str] = Field(default=None, max_length=253)
    error_message: Optional[str] = Field(default=None, max_length=500)


class IPAddressClaim(ObjectMeta, table=True):
    """Claim from the generic addressing API; the pool is always local."""

    __tablename__ = "ipaddressclaims"
    __table_args__ = (
        UniqueConstraint("namespace", "name", name="uq_ipaddressclaim_key"),
    )

    KIND: ClassVar[str] = "IPAddressClaim"

    pool_ref_name: Optional[str] = Field(default=None, max_length=253)
    pool_ref_kind: str = Field(default="IPPool", max_length=63)
    pool_ref_api_group: str = Field(default="ipam.metal3.io", max_length=253)

    # Status
    address_name: Optional[str] = Field(default=None, max_length=253)
    error_message: Optional[str] = Field(default=None, max_length=500)
