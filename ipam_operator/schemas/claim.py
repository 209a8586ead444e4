"""Claim schemas for request/response validation."""

from typing import Optional

from pydantic import Field

from ipam_operator.schemas.meta import ObjectCreate, ObjectResponse


class IPClaimCreate(ObjectCreate):
    """Schema for creating an IPClaim."""

    pool_name: str = Field(min_length=1, max_length=253)
    pool_namespace: Optional[str] = Field(default=None, max_length=63)


class IPClaimResponse(ObjectResponse):
    """Schema for IPClaim response."""

    pool_name: Optional[str]
    pool_namespace: Optional[str]
    address_name: Optional[str]
    error_message: Optional[str]


class IPAddressClaimCreate(ObjectCreate):
    """Schema for creating an IPAddressClaim."""

    pool_ref_name: str = Field(min_length=1, max_length=253)
    pool_ref_kind: str = Field(default="IPPool", max_length=63)
    pool_ref_api_group: str = Field(default="ipam.metal3.io", max_length=253)


class IPAddressClaimResponse(ObjectResponse):
    """Schema for IPAddressClaim response."""

    pool_ref_name: Optional[str]
    pool_ref_kind: str
    pool_ref_api_group: str
    address_name: Optional[str]
    error_message: Optional[str]
