"""Dependencies for API endpoints."""

from typing import Annotated, Type, TypeVar

from fastapi import Depends

from ipam_operator.core.exceptions import ConflictError, NotFoundError, ServiceUnavailableError
from ipam_operator.dependencies import get_store
from ipam_operator.models.base import ObjectKey, ObjectMeta
from ipam_operator.store import ObjectAlreadyExists, ObjectNotFound, ObjectStore, StoreError

T = TypeVar("T", bound=ObjectMeta)

StoreDep = Annotated[ObjectStore, Depends(get_store)]


def get_object_or_404(store: ObjectStore, model: Type[T], namespace: str, name: str) -> T:
    """Fetch an object, mapping store failures to HTTP errors."""
    try:
        return store.get(model, ObjectKey(namespace=namespace, name=name))
    except ObjectNotFound:
        raise NotFoundError(f"{model.KIND} {namespace}/{name} not found")
    except StoreError as e:
        raise ServiceUnavailableError(str(e))


def create_object(store: ObjectStore, obj: T) -> T:
    """Create an object, mapping store failures to HTTP errors."""
    try:
        return store.create(obj)
    except ObjectAlreadyExists:
        raise ConflictError(f"{obj.KIND} {obj.namespace}/{obj.name} already exists")
    except StoreError as e:
        raise ServiceUnavailableError(str(e))


def delete_object(store: ObjectStore, model: Type[T], namespace: str, name: str) -> None:
    """Request deletion of an object, mapping store failures to HTTP errors."""
    try:
        store.delete(model, ObjectKey(namespace=namespace, name=name))
    except ObjectNotFound:
        raise NotFoundError(f"{model.KIND} {namespace}/{name} not found")
    except StoreError as e:
        raise ServiceUnavailableError(str(e))
