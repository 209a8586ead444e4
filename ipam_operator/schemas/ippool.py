"""IPPool schemas for request/response validation."""

import ipaddress
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ipam_operator.schemas.meta import ObjectCreate, ObjectResponse


class IPPoolCreate(ObjectCreate):
    """Schema for creating a new IPPool."""

    cluster_name: Optional[str] = Field(default=None, max_length=253)
    cidr: str = Field(examples=["192.168.0.0/24"])
    gateway: Optional[str] = Field(default=None, examples=["192.168.0.1"])
    start_ip: Optional[str] = None
    end_ip: Optional[str] = None
    prefix: Optional[int] = Field(default=None, ge=0, le=128)
    name_prefix: str = Field(default="", max_length=200)
    pre_allocations: Dict[str, str] = Field(default_factory=dict)

    @field_validator("gateway", "start_ip", "end_ip")
    @classmethod
    def validate_address(cls, v: Optional[str]) -> Optional[str]:
        # Stored in canonical form so addresses compare as strings
        if v is not None:
            return str(ipaddress.ip_address(v))
        return v

    @field_validator("pre_allocations")
    @classmethod
    def validate_pre_allocations(cls, v: Dict[str, str]) -> Dict[str, str]:
        return {name: str(ipaddress.ip_address(address)) for name, address in v.items()}

    @model_validator(mode="after")
    def validate_range(self) -> "IPPoolCreate":
        if self.start_ip is None or self.end_ip is None:
            return self

        start = ipaddress.ip_address(self.start_ip)
        end = ipaddress.ip_address(self.end_ip)
        if start.version != end.version:
            raise ValueError("start_ip and end_ip must be of the same IP version")
        if start > end:
            raise ValueError("start_ip must not be after end_ip")

        try:
            net = ipaddress.ip_network(self.cidr, strict=False)
        except ValueError:
            # Reported by the endpoint as an invalid network
            return self
        if start not in net or end not in net:
            raise ValueError(f"start_ip and end_ip must be inside {net}")
        return self


class IPPoolResponse(ObjectResponse):
    """Schema for IPPool response."""

    cluster_name: Optional[str]
    cidr: str
    gateway: Optional[str]
    start_ip: Optional[str]
    end_ip: Optional[str]
    prefix: Optional[int]
    name_prefix: str
    pre_allocations: Dict[str, str]
    allocations: Dict[str, str]
    last_updated: Optional[datetime]


class IPPoolListResponse(BaseModel):
    """Schema for IPPool list response."""

    items: List[IPPoolResponse]
    total: int
