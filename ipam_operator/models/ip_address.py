"""IPAddress model for tracking addresses handed out to claims."""

from typing import ClassVar, Optional

from sqlalchemy import Index, UniqueConstraint
from sqlmodel import Field

from ipam_operator.models.base import ObjectMeta


class IPAddress(ObjectMeta, table=True):
    """One address allocated from a pool to a claim."""

    __tablename__ = "ipaddresses"

    KIND: ClassVar[str] = "IPAddress"

    pool_name: str = Field(index=True, max_length=253, nullable=False)
    claim_name: str = Field(max_length=253, nullable=False)
    claim_kind: str = Field(default="IPClaim", max_length=63, nullable=False)

    address: str = Field(
        max_length=39,
        index=True,
        nullable=False,
        description="Allocated IP address",
    )
    prefix: Optional[int] = Field(default=None)
    gateway: Optional[str] = Field(default=None, max_length=39)

    __table_args__ = (
        UniqueConstraint("namespace", "name", name="uq_ipaddress_key"),
        # One address per pool
        UniqueConstraint("namespace", "pool_name", "address", name="uq_pool_address"),
        Index("ix_ipaddress_claim", "namespace", "claim_kind", "claim_name"),
    )
