"""Pytest configuration and fixtures."""

from typing import AsyncGenerator, Generator, List, Tuple

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from opentelemetry import trace
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

from ipam_operator.controllers.ippool_controller import IPPoolReconciler
from ipam_operator.controllers.types import ReconcileRequest
from ipam_operator.dependencies import get_store
from ipam_operator.ipam import ManagerFactory
from ipam_operator.main import app
from ipam_operator.models import IPPool
from ipam_operator.store import ObjectStore


class FakeQueue:
    """Records scheduled reconcile requests instead of sending them."""

    def __init__(self):
        self.added: List[ReconcileRequest] = []
        self.delayed: List[Tuple[ReconcileRequest, float]] = []

    def add(self, request: ReconcileRequest) -> None:
        self.added.append(request)

    def add_after(self, request: ReconcileRequest, seconds: float) -> None:
        self.delayed.append((request, seconds))


class FakeManager:
    """Pool manager double reporting a fixed allocation count."""

    def __init__(self, pool: IPPool, allocated: int = 0, error: Exception = None):
        self.pool = pool
        self.allocated = allocated
        self.error = error
        self.update_calls = 0
        self.owner = None

    def set_finalizer(self) -> None:
        if "ippool.ipam.metal3.io" not in self.pool.finalizers:
            self.pool.finalizers = [*self.pool.finalizers, "ippool.ipam.metal3.io"]

    def unset_finalizer(self) -> None:
        self.pool.finalizers = [
            f for f in self.pool.finalizers if f != "ippool.ipam.metal3.io"
        ]

    def set_cluster_owner_ref(self, cluster) -> None:
        self.owner = cluster

    def update_addresses(self) -> int:
        self.update_calls += 1
        if self.error is not None:
            raise self.error
        return self.allocated


class FakeManagerFactory:
    """Hands out one FakeManager per pass and keeps them for inspection."""

    def __init__(self, allocated: int = 0, error: Exception = None):
        self.allocated = allocated
        self.error = error
        self.managers: List[FakeManager] = []

    def new_ippool_manager(self, pool: IPPool) -> FakeManager:
        manager = FakeManager(pool, allocated=self.allocated, error=self.error)
        self.managers.append(manager)
        return manager

    @property
    def update_calls(self) -> int:
        return sum(m.update_calls for m in self.managers)


@pytest.fixture(scope="function")
def engine() -> Generator[Engine, None, None]:
    """In-memory SQLite engine shared across connections."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)

    yield engine

    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def store(engine: Engine) -> ObjectStore:
    """Fresh object store per test."""
    return ObjectStore(engine)


@pytest.fixture(scope="function")
def queue() -> FakeQueue:
    return FakeQueue()


@pytest.fixture(scope="function")
def manager_factory() -> FakeManagerFactory:
    return FakeManagerFactory()


@pytest.fixture(scope="function")
def make_manager_factory():
    """Builds fake manager factories with a chosen count or error."""
    return FakeManagerFactory


@pytest.fixture(scope="function")
def reconciler(store: ObjectStore) -> IPPoolReconciler:
    """Reconciler driving the real pool manager."""
    return IPPoolReconciler(store=store, manager_factory=ManagerFactory(store))


@pytest_asyncio.fixture(scope="function")
async def client(
    store: ObjectStore, queue: FakeQueue
) -> AsyncGenerator[AsyncClient, None]:
    """Test client whose store feeds a reconciler's watches into the fake queue."""
    IPPoolReconciler(store=store, manager_factory=ManagerFactory(store)).setup_with_store(
        queue
    )
    app.dependency_overrides[get_store] = lambda: store

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture(scope="session", autouse=True)
def shutdown_tracer_provider():
    """Shutdown OpenTelemetry TracerProvider after all tests complete.

    This fixture ensures that the BatchSpanProcessor's background thread
    is properly shut down before pytest closes stdout/stderr, preventing
    "I/O operation on closed file" errors.
    """
    yield

    try:
        tracer_provider = trace.get_tracer_provider()
        if hasattr(tracer_provider, "force_flush"):
            tracer_provider.force_flush(timeout_millis=5000)
        if hasattr(tracer_provider, "shutdown"):
            tracer_provider.shutdown()
    except Exception:
        # Ignore any errors during shutdown
        pass
