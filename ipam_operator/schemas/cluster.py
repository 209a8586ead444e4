"""Cluster schemas for request/response validation."""

from pydantic import Field

from ipam_operator.schemas.meta import ObjectCreate, ObjectResponse


class ClusterCreate(ObjectCreate):
    """Schema for creating a Cluster."""

    paused: bool = Field(default=False, description="Suspends reconciliation")


class ClusterResponse(ObjectResponse):
    """Schema for Cluster response."""

    paused: bool
