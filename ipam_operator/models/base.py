"""Base models with the object metadata shared by every stored kind."""

from datetime import datetime, UTC
from typing import ClassVar, Dict, List, NamedTuple, Optional

from sqlalchemy import JSON
from sqlmodel import Field, SQLModel

# Well-known labels and annotations
CLUSTER_NAME_LABEL = "cluster.x-k8s.io/cluster-name"
PROVIDER_NAME_LABEL = "cluster.x-k8s.io/provider"
WATCH_FILTER_LABEL = "cluster.x-k8s.io/watch-filter"
PAUSED_ANNOTATION = "cluster.x-k8s.io/paused"


def utcnow() -> datetime:
    """Current time in UTC."""
    return datetime.now(UTC)


class ObjectKey(NamedTuple):
    """Identity of a stored object."""

    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


class TimestampModel(SQLModel):
    """Base model with created_at and updated_at timestamps."""

    created_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        description="Timestamp when the record was created",
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_column_kwargs={"onupdate": utcnow},
        description="Timestamp when the record was last updated",
    )


class ObjectMeta(TimestampModel):
    """Declarative object metadata: identity, labels, finalizers, deletion."""

    KIND: ClassVar[str] = ""

    id: Optional[int] = Field(default=None, primary_key=True)

    name: str = Field(
        index=True,
        max_length=253,
        nullable=False,
        description="Object name, unique per namespace",
    )
    namespace: str = Field(
        default="default",
        index=True,
        max_length=63,
        nullable=False,
        description="Scope the object lives in",
    )

    labels: Dict[str, str] = Field(default_factory=dict, sa_type=JSON)
    annotations: Dict[str, str] = Field(default_factory=dict, sa_type=JSON)
    finalizers: List[str] = Field(
        default_factory=list,
        sa_type=JSON,
        description="Markers blocking physical removal while present",
    )
    owner_references: List[Dict[str, str]] = Field(default_factory=list, sa_type=JSON)

    deletion_timestamp: Optional[datetime] = Field(
        default=None,
        description="Set once by a delete request, never cleared",
    )
    resource_version: int = Field(default=1, nullable=False)

    @property
    def key(self) -> ObjectKey:
        return ObjectKey(namespace=self.namespace, name=self.name)

    @property
    def is_deleting(self) -> bool:
        return self.deletion_timestamp is not None
