"""Object store package."""

from ipam_operator.store.object_store import (
    EventType,
    ObjectAlreadyExists,
    ObjectNotFound,
    ObjectStore,
    StoreError,
    WatchEvent,
    snapshot,
)
from ipam_operator.store.patch import PatchHelper

__all__ = [
    "EventType",
    "ObjectAlreadyExists",
    "ObjectNotFound",
    "ObjectStore",
    "PatchHelper",
    "StoreError",
    "WatchEvent",
    "snapshot",
]
