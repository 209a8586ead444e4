"""IPPool model: a declarative range of addresses."""

from datetime import datetime
from typing import ClassVar, Dict, Optional

from sqlalchemy import JSON, UniqueConstraint
from sqlmodel import Field

from ipam_operator.models.base import ObjectMeta


class IPPool(ObjectMeta, table=True):
    """Desired and observed state of an address range."""

    __tablename__ = "ippools"
    __table_args__ = (UniqueConstraint("namespace", "name", name="uq_ippool_key"),)

    KIND: ClassVar[str] = "IPPool"

    # Owning cluster
    cluster_name: Optional[str] = Field(
        default=None,
        max_length=253,
        description="Cluster the pool is scoped to, if any",
    )

    # Network configuration
    cidr: str = Field(
        max_length=43,
        nullable=False,
        description="Network CIDR (e.g., '172.16.0.0/24')",
    )
    gateway: Optional[str] = Field(
        default=None,
        max_length=39,
        description="Gateway IP address (e.g., '172.16.0.1')",
    )
    start_ip: Optional[str] = Field(
        default=None,
        max_length=39,
        description="First assignable IP, derived from the CIDR when unset",
    )
    end_ip: Optional[str] = Field(
        default=None,
        max_length=39,
        description="Last assignable IP, derived from the CIDR when unset",
    )
    prefix: Optional[int] = Field(default=None, ge=0, le=128)
    name_prefix: str = Field(
        default="",
        max_length=200,
        description="Prefix for IPAddress object names, defaults to the pool name",
    )
    pre_allocations: Dict[str, str] = Field(
        default_factory=dict,
        sa_type=JSON,
        description="Claim name -> fixed address",
    )

    # Status
    allocations: Dict[str, str] = Field(
        default_factory=dict,
        sa_type=JSON,
        description="Claim name -> allocated address",
    )
    last_updated: Optional[datetime] = Field(default=None)
