"""Snapshot-and-diff helper used to persist an object once per pass."""

from typing import Generic, TypeVar

from ipam_operator.models.base import ObjectMeta
from ipam_operator.store.object_store import ObjectStore, StoreError, snapshot

T = TypeVar("T", bound=ObjectMeta)


class PatchHelper(Generic[T]):
    """Remembers an object as fetched and writes back only what changed."""

    def __init__(self, obj: T, store: ObjectStore):
        if obj is None or not obj.name:
            raise StoreError("cannot create a patch helper for an object without identity")
        self.store = store
        self.before = snapshot(obj)

    def patch(self, obj: T) -> T:
        """Flush the changes made to obj since the helper was created."""
        return self.store.patch(self.before, obj)
