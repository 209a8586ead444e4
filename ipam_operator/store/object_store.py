"""Declarative object store with get/list/patch/delete and change notifications."""

import copy
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Type, TypeVar

from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from ipam_operator.models.base import ObjectKey, ObjectMeta, utcnow
from ipam_operator.utils.logger import get_logger
from ipam_operator.utils.telemetry import trace_operation

logger = get_logger(__name__)

T = TypeVar("T", bound=ObjectMeta)

# Fields a patch never writes: identity, bookkeeping and the deletion marker
IMMUTABLE_FIELDS = frozenset(
    {
        "id",
        "name",
        "namespace",
        "deletion_timestamp",
        "resource_version",
        "created_at",
        "updated_at",
    }
)


class StoreError(Exception):
    """Base exception for object store errors."""

    pass


class ObjectNotFound(StoreError):
    """Object does not exist."""

    pass


class ObjectAlreadyExists(StoreError):
    """An object with the same identity already exists."""

    pass


class EventType(str, Enum):
    """Change notification type."""

    ADDED = "ADDED"
    MODIFIED = "MODIFIED"
    DELETED = "DELETED"


@dataclass(frozen=True)
class WatchEvent:
    """A committed change to one object."""

    type: EventType
    object: ObjectMeta


WatchHandler = Callable[[WatchEvent], None]


def snapshot(obj: ObjectMeta) -> Dict[str, Any]:
    """Deep copy of an object's fields, used as the base of a later patch."""
    return copy.deepcopy(obj.model_dump())


def _merge_field(current: Any, before: Any, after: Any) -> Any:
    """Apply the change before -> after on top of the stored value.

    Maps are merged key by key and lists item by item, so concurrent
    writers touching different keys do not clobber each other. Scalars
    are last writer wins.
    """
    if isinstance(after, dict) and isinstance(before, dict):
        merged = dict(current or {})
        for key in before.keys() - after.keys():
            merged.pop(key, None)
        for key, value in after.items():
            if before.get(key) != value:
                merged[key] = value
        return merged

    if isinstance(after, list) and isinstance(before, list):
        removed = [item for item in before if item not in after]
        added = [item for item in after if item not in before]
        merged = [item for item in (current or []) if item not in removed]
        merged.extend(item for item in added if item not in merged)
        return merged

    return after


class ObjectStore:
    """SQL-backed store for declarative objects.

    Objects handed out are detached copies: callers mutate them freely and
    write back through patch(). Every committed change is delivered to the
    handlers registered with watch() for that kind.
    """

    def __init__(self, engine: Engine):
        self.engine = engine
        self._handlers: Dict[Type[ObjectMeta], List[WatchHandler]] = defaultdict(list)

    def _session(self) -> Session:
        return Session(self.engine, expire_on_commit=False)

    @staticmethod
    def _select(
        session: Session, model: Type[T], key: ObjectKey, for_update: bool = False
    ) -> Optional[T]:
        statement = (
            select(model)
            .where(model.namespace == key.namespace)
            .where(model.name == key.name)
        )
        if for_update:
            statement = statement.with_for_update()
        return session.exec(statement).first()

    def watch(self, model: Type[ObjectMeta], handler: WatchHandler) -> None:
        """Register a handler for changes to objects of the given kind."""
        self._handlers[model].append(handler)

    def _notify(self, event_type: EventType, obj: ObjectMeta) -> None:
        event = WatchEvent(type=event_type, object=obj)
        for handler in self._handlers.get(type(obj), []):
            try:
                handler(event)
            except Exception as e:
                logger.error(
                    "Watch handler failed",
                    extra={
                        "kind": obj.KIND,
                        "object": str(obj.key),
                        "event_type": event_type.value,
                        "error": str(e),
                        "error_type": type(e).__name__,
                    },
                )

    def get(self, model: Type[T], key: ObjectKey) -> T:
        """Fetch one object.

        Raises:
            ObjectNotFound: If no object has this identity
            StoreError: If the backend fails
        """
        with trace_operation(
            "store.get", {"object.kind": model.KIND, "object.key": str(key)}
        ):
            try:
                with self._session() as session:
                    obj = self._select(session, model, key)
            except SQLAlchemyError as e:
                raise StoreError(f"failed to get {model.KIND} {key}: {e}") from e

            if obj is None:
                raise ObjectNotFound(f"{model.KIND} {key} not found")
            return obj

    def list(self, model: Type[T], namespace: Optional[str] = None) -> List[T]:
        """List objects of a kind, optionally within one namespace."""
        statement = select(model)
        if namespace is not None:
            statement = statement.where(model.namespace == namespace)
        statement = statement.order_by(model.namespace, model.name)

        try:
            with self._session() as session:
                return list(session.exec(statement).all())
        except SQLAlchemyError as e:
            raise StoreError(f"failed to list {model.KIND}: {e}") from e

    def create(self, obj: T) -> T:
        """Persist a new object.

        Raises:
            ObjectAlreadyExists: If the identity is taken
        """
        with trace_operation(
            "store.create", {"object.kind": obj.KIND, "object.key": str(obj.key)}
        ):
            obj.deletion_timestamp = None
            obj.resource_version = 1
            try:
                with self._session() as session:
                    if self._select(session, type(obj), obj.key) is not None:
                        raise ObjectAlreadyExists(f"{obj.KIND} {obj.key} already exists")
                    session.add(obj)
                    session.commit()
                    session.refresh(obj)
            except IntegrityError as e:
                raise ObjectAlreadyExists(f"{obj.KIND} {obj.key} already exists") from e
            except SQLAlchemyError as e:
                raise StoreError(f"failed to create {obj.KIND} {obj.key}: {e}") from e

        logger.debug("Object created", extra={"kind": obj.KIND, "object": str(obj.key)})
        self._notify(EventType.ADDED, obj)
        return obj

    def delete(self, model: Type[T], key: ObjectKey) -> None:
        """Request deletion.

        An object still carrying finalizers only gets its deletion marker
        set; it is removed once the last finalizer is patched away.
        """
        with trace_operation(
            "store.delete", {"object.kind": model.KIND, "object.key": str(key)}
        ):
            try:
                with self._session() as session:
                    obj = self._select(session, model, key, for_update=True)
                    if obj is None:
                        raise ObjectNotFound(f"{model.KIND} {key} not found")

                    if obj.finalizers:
                        if obj.deletion_timestamp is not None:
                            return
                        obj.deletion_timestamp = utcnow()
                        obj.resource_version += 1
                        session.add(obj)
                        event_type = EventType.MODIFIED
                    else:
                        session.delete(obj)
                        event_type = EventType.DELETED
                    session.commit()
            except SQLAlchemyError as e:
                raise StoreError(f"failed to delete {model.KIND} {key}: {e}") from e

        logger.debug(
            "Object deletion requested",
            extra={"kind": model.KIND, "object": str(key), "event_type": event_type.value},
        )
        self._notify(event_type, obj)

    def patch(self, original: Mapping[str, Any], modified: T) -> T:
        """Write the difference between a snapshot and its modified object.

        The stored row is re-read under a row lock and the diff is merged
        on top of it. A patch with no changes writes nothing and emits no
        event. Removing the last finalizer of a deletion-marked object
        removes the object.

        Raises:
            ObjectNotFound: If the object disappeared meanwhile
            StoreError: If the backend fails
        """
        model = type(modified)
        after = modified.model_dump()
        changes = {
            field: (original.get(field), value)
            for field, value in after.items()
            if field not in IMMUTABLE_FIELDS and original.get(field) != value
        }
        if not changes:
            return modified

        key = modified.key
        with trace_operation(
            "store.patch",
            {
                "object.kind": model.KIND,
                "object.key": str(key),
                "patch.fields": ",".join(sorted(changes)),
            },
        ):
            try:
                with self._session() as session:
                    current = self._select(session, model, key, for_update=True)
                    if current is None:
                        raise ObjectNotFound(f"{model.KIND} {key} not found")

                    for field, (before, value) in changes.items():
                        setattr(
                            current,
                            field,
                            _merge_field(getattr(current, field), before, value),
                        )
                    current.resource_version += 1
                    current.updated_at = utcnow()

                    if current.deletion_timestamp is not None and not current.finalizers:
                        session.delete(current)
                        event_type = EventType.DELETED
                    else:
                        session.add(current)
                        event_type = EventType.MODIFIED
                    session.commit()
            except SQLAlchemyError as e:
                raise StoreError(f"failed to patch {model.KIND} {key}: {e}") from e

        logger.debug(
            "Object patched",
            extra={
                "kind": model.KIND,
                "object": str(key),
                "fields": sorted(changes),
                "event_type": event_type.value,
            },
        )
        self._notify(event_type, current)
        return current
