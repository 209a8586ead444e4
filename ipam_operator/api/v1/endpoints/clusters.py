"""Cluster endpoints, including pause and unpause."""

from fastapi import APIRouter, status

from ipam_operator.api.deps import (
    StoreDep,
    create_object,
    delete_object,
    get_object_or_404,
)
from ipam_operator.core.exceptions import NotFoundError, ServiceUnavailableError
from ipam_operator.models import Cluster
from ipam_operator.schemas import ClusterCreate, ClusterResponse, ResponseMessage
from ipam_operator.store import ObjectNotFound, ObjectStore, StoreError, snapshot
from ipam_operator.utils.context import set_context
from ipam_operator.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


def set_paused(store: ObjectStore, namespace: str, name: str, paused: bool) -> Cluster:
    """Flip the paused flag of a cluster."""
    cluster = get_object_or_404(store, Cluster, namespace, name)
    before = snapshot(cluster)
    cluster.paused = paused
    try:
        cluster = store.patch(before, cluster)
    except ObjectNotFound:
        raise NotFoundError(f"Cluster {namespace}/{name} not found")
    except StoreError as e:
        raise ServiceUnavailableError(str(e))

    logger.info(
        "Cluster paused" if paused else "Cluster unpaused",
        extra={"cluster": name, "namespace": namespace},
    )
    return cluster


@router.post(
    "",
    response_model=ClusterResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a Cluster",
)
def create_cluster(namespace: str, cluster_data: ClusterCreate, store: StoreDep):
    set_context(action="cluster.create", cluster=cluster_data.name, namespace=namespace)
    return create_object(store, Cluster(namespace=namespace, **cluster_data.model_dump()))


@router.get("/{name}", response_model=ClusterResponse, summary="Get Cluster")
def get_cluster(namespace: str, name: str, store: StoreDep):
    return get_object_or_404(store, Cluster, namespace, name)


@router.post("/{name}/pause", response_model=ClusterResponse, summary="Pause Cluster")
def pause_cluster(namespace: str, name: str, store: StoreDep):
    """Suspend reconciliation of every pool owned by the cluster."""
    set_context(action="cluster.pause", cluster=name, namespace=namespace)
    return set_paused(store, namespace, name, True)


@router.post(
    "/{name}/unpause", response_model=ClusterResponse, summary="Unpause Cluster"
)
def unpause_cluster(namespace: str, name: str, store: StoreDep):
    set_context(action="cluster.unpause", cluster=name, namespace=namespace)
    return set_paused(store, namespace, name, False)


@router.delete(
    "/{name}",
    response_model=ResponseMessage,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Delete Cluster",
)
def delete_cluster(namespace: str, name: str, store: StoreDep):
    set_context(action="cluster.delete", cluster=name, namespace=namespace)
    delete_object(store, Cluster, namespace, name)
    return ResponseMessage(message=f"Cluster {namespace}/{name} deletion requested")
