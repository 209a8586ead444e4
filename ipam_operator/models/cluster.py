"""Cluster model: the optional owning parent of a pool."""

from typing import ClassVar

from sqlalchemy import UniqueConstraint
from sqlmodel import Field

from ipam_operator.models.base import ObjectMeta


class Cluster(ObjectMeta, table=True):
    """Owning parent used for pause propagation and labeling."""

    __tablename__ = "clusters"
    __table_args__ = (UniqueConstraint("namespace", "name", name="uq_cluster_key"),)

    KIND: ClassVar[str] = "Cluster"
    API_VERSION: ClassVar[str] = "cluster.x-k8s.io/v1beta1"

    paused: bool = Field(default=False, description="Suspends reconciliation")
