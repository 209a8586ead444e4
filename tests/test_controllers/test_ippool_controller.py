"""Tests for the IPPool reconciliation loop."""

from unittest.mock import Mock

import pytest
from celery.exceptions import SoftTimeLimitExceeded

from ipam_operator.controllers.ippool_controller import IPPoolReconciler
from ipam_operator.controllers.requeue import ReconcileError
from ipam_operator.controllers.types import ReconcileRequest, Result
from ipam_operator.ipam import IPAMError, IPPOOL_FINALIZER, RequeueAfterError
from ipam_operator.models import Cluster, IPAddress, IPAddressClaim, IPClaim, IPPool
from ipam_operator.models.base import (
    CLUSTER_NAME_LABEL,
    PAUSED_ANNOTATION,
    WATCH_FILTER_LABEL,
    ObjectKey,
)
from ipam_operator.store import ObjectNotFound, ObjectStore, StoreError, snapshot

REQUEST = ReconcileRequest(namespace="ns1", name="pool-a")


def create_pool(store: ObjectStore, deleting: bool = False, **kwargs) -> IPPool:
    if deleting:
        kwargs.setdefault("finalizers", [IPPOOL_FINALIZER])
    pool = store.create(
        IPPool(name="pool-a", namespace="ns1", cidr="192.168.0.0/24", **kwargs)
    )
    if deleting:
        store.delete(IPPool, pool.key)
    return pool


def get_pool(store: ObjectStore) -> IPPool:
    return store.get(IPPool, ObjectKey("ns1", "pool-a"))


def make_reconciler(store, manager_factory, **kwargs) -> IPPoolReconciler:
    return IPPoolReconciler(
        store=store, manager_factory=manager_factory, requeue_after=30, **kwargs
    )


class TestReconcileNormal:
    """Tests for pools that are not being deleted."""

    def test_new_pool_gets_finalizer(self, store, manager_factory) -> None:
        """Test a fresh pool without owner gets its finalizer and an update."""
        create_pool(store)

        result = make_reconciler(store, manager_factory).reconcile(REQUEST)

        assert result == Result()
        assert manager_factory.update_calls == 1
        assert get_pool(store).finalizers == [IPPOOL_FINALIZER]

    def test_missing_pool_is_not_an_error(self, store, manager_factory) -> None:
        result = make_reconciler(store, manager_factory).reconcile(REQUEST)

        assert result == Result()
        assert manager_factory.managers == []

    def test_reconcile_is_idempotent(self, store, manager_factory) -> None:
        """Test two passes in a row leave the same state."""
        cluster = store.create(Cluster(name="c1", namespace="ns1"))
        create_pool(store, cluster_name=cluster.name)
        reconciler = make_reconciler(store, manager_factory)

        first = reconciler.reconcile(REQUEST)
        state = get_pool(store)
        second = reconciler.reconcile(REQUEST)
        after = get_pool(store)

        assert first == second == Result()
        assert after.finalizers == state.finalizers == [IPPOOL_FINALIZER]
        assert after.labels == state.labels
        assert after.owner_references == state.owner_references
        assert after.resource_version == state.resource_version

    def test_owner_is_labelled_and_referenced(self, store, manager_factory) -> None:
        store.create(Cluster(name="c1", namespace="ns1"))
        create_pool(store, cluster_name="c1")

        make_reconciler(store, manager_factory).reconcile(REQUEST)

        pool = get_pool(store)
        assert pool.labels[CLUSTER_NAME_LABEL] == "c1"
        assert manager_factory.managers[0].owner.name == "c1"

    def test_requeue_error_schedules_retry(self, store, make_manager_factory) -> None:
        """Test a requeue signal from the manager is a retry, not a failure."""
        create_pool(store)
        factory = make_manager_factory(error=RequeueAfterError(5))

        result = make_reconciler(store, factory).reconcile(REQUEST)

        assert result == Result(requeue=True, requeue_after=5.0)
        assert get_pool(store).finalizers == [IPPOOL_FINALIZER]

    def test_fatal_error_raises_and_still_flushes(self, store, make_manager_factory) -> None:
        """Test unclassified errors propagate while pass changes persist."""
        create_pool(store)
        factory = make_manager_factory(error=IPAMError("backend down"))

        with pytest.raises(ReconcileError, match="failed to allocate addresses"):
            make_reconciler(store, factory).reconcile(REQUEST)

        assert get_pool(store).finalizers == [IPPOOL_FINALIZER]

    def test_cancellation_requeues_and_flushes(self, store, make_manager_factory) -> None:
        """Test a soft time limit still flushes and asks for another pass."""
        create_pool(store)
        factory = make_manager_factory(error=SoftTimeLimitExceeded())

        result = make_reconciler(store, factory).reconcile(REQUEST)

        assert result.requeue is True
        assert get_pool(store).finalizers == [IPPOOL_FINALIZER]

    def test_unexpected_error_is_wrapped(self, store, make_manager_factory) -> None:
        """Test errors of any type from the manager surface as ReconcileError."""
        create_pool(store)
        factory = make_manager_factory(error=RuntimeError("boom"))

        with pytest.raises(ReconcileError, match="failed to allocate addresses: boom") as exc:
            make_reconciler(store, factory).reconcile(REQUEST)

        assert isinstance(exc.value.__cause__, RuntimeError)
        assert get_pool(store).finalizers == [IPPOOL_FINALIZER]

    def test_invalid_range_is_wrapped(self, store, reconciler) -> None:
        """Test a pool with mixed-version bounds fails the pass cleanly."""
        create_pool(store, start_ip="255.255.255.255", end_ip="::1:0:1")
        store.create(IPClaim(name="c1", namespace="ns1", pool_name="pool-a"))
        store.create(IPClaim(name="c2", namespace="ns1", pool_name="pool-a"))

        with pytest.raises(ReconcileError, match="failed to allocate addresses"):
            reconciler.reconcile(REQUEST)

        assert store.list(IPAddress) == []


class TestReconcileDelete:
    """Tests for pools marked for deletion."""

    def test_allocations_left_keep_finalizer(self, store, make_manager_factory) -> None:
        """Test a deleting pool with addresses in use keeps its finalizer."""
        create_pool(store, deleting=True)
        factory = make_manager_factory(allocated=2)

        result = make_reconciler(store, factory).reconcile(REQUEST)

        assert result == Result()
        assert factory.update_calls == 1
        assert get_pool(store).finalizers == [IPPOOL_FINALIZER]

    def test_no_allocations_removes_finalizer(self, store, manager_factory) -> None:
        """Test the pool goes away once nothing is allocated."""
        create_pool(store, deleting=True)

        result = make_reconciler(store, manager_factory).reconcile(REQUEST)

        assert result == Result()
        with pytest.raises(ObjectNotFound):
            get_pool(store)

    def test_missing_owner_does_not_block_deletion(self, store, manager_factory) -> None:
        """Test a deleting pool whose cluster is gone still runs the delete path."""
        create_pool(store, deleting=True, cluster_name="gone")

        result = make_reconciler(store, manager_factory).reconcile(REQUEST)

        assert result == Result()
        assert manager_factory.update_calls == 1
        with pytest.raises(ObjectNotFound):
            get_pool(store)

    def test_deleting_pool_keeps_other_finalizers(self, store, manager_factory) -> None:
        create_pool(store, deleting=True, finalizers=["other", IPPOOL_FINALIZER])

        make_reconciler(store, manager_factory).reconcile(REQUEST)

        pool = get_pool(store)
        assert pool.finalizers == ["other"]
        assert pool.is_deleting


class TestGating:
    """Tests for pause and ownership gating inside the loop."""

    def test_paused_cluster_defers_without_update(self, store, manager_factory) -> None:
        store.create(Cluster(name="c1", namespace="ns1", paused=True))
        create_pool(store, cluster_name="c1")

        result = make_reconciler(store, manager_factory).reconcile(REQUEST)

        assert result == Result(requeue=True, requeue_after=30)
        assert manager_factory.update_calls == 0
        # Labels stamped by the gate are still flushed
        assert get_pool(store).labels[CLUSTER_NAME_LABEL] == "c1"

    def test_paused_pool_defers_without_update(self, store, manager_factory) -> None:
        store.create(Cluster(name="c1", namespace="ns1"))
        create_pool(store, cluster_name="c1", annotations={PAUSED_ANNOTATION: ""})

        result = make_reconciler(store, manager_factory).reconcile(REQUEST)

        assert result == Result(requeue=True, requeue_after=30)
        assert manager_factory.update_calls == 0

    def test_pause_wins_over_deletion(self, store, manager_factory) -> None:
        """Test a paused cluster defers even the delete path."""
        store.create(Cluster(name="c1", namespace="ns1", paused=True))
        create_pool(store, deleting=True, cluster_name="c1")

        result = make_reconciler(store, manager_factory).reconcile(REQUEST)

        assert result.requeue is True
        assert manager_factory.update_calls == 0
        assert get_pool(store).finalizers == [IPPOOL_FINALIZER]

    def test_missing_owner_defers(self, store, manager_factory) -> None:
        create_pool(store, cluster_name="not-yet")

        result = make_reconciler(store, manager_factory).reconcile(REQUEST)

        assert result == Result(requeue=True, requeue_after=30)
        assert manager_factory.update_calls == 0
        assert get_pool(store).finalizers == []


class TestPersistence:
    """Tests for the exit-time flush."""

    def test_patch_failure_overrides_success(self, store, manager_factory, monkeypatch) -> None:
        """Test a failed flush fails the pass even though the logic succeeded."""
        create_pool(store)
        monkeypatch.setattr(store, "patch", Mock(side_effect=StoreError("db gone")))

        with pytest.raises(ReconcileError, match="failed to patch IPPool"):
            make_reconciler(store, manager_factory).reconcile(REQUEST)

        assert manager_factory.update_calls == 1

    def test_fetch_failure_raises(self, store, manager_factory, monkeypatch) -> None:
        monkeypatch.setattr(store, "get", Mock(side_effect=StoreError("db gone")))

        with pytest.raises(ReconcileError, match="failed to get IPPool"):
            make_reconciler(store, manager_factory).reconcile(REQUEST)

    def test_cancellation_during_fetch_requeues(
        self, store, manager_factory, monkeypatch
    ) -> None:
        create_pool(store)
        monkeypatch.setattr(store, "get", Mock(side_effect=SoftTimeLimitExceeded()))

        result = make_reconciler(store, manager_factory).reconcile(REQUEST)

        assert result == Result(requeue=True)
        assert manager_factory.update_calls == 0

    def test_cancellation_during_flush_requeues(
        self, store, manager_factory, monkeypatch
    ) -> None:
        """Test a time limit hit while patching still asks for another pass."""
        create_pool(store)
        monkeypatch.setattr(store, "patch", Mock(side_effect=SoftTimeLimitExceeded()))

        result = make_reconciler(store, manager_factory).reconcile(REQUEST)

        assert result == Result(requeue=True)
        assert manager_factory.update_calls == 1


class TestWatches:
    """Tests for the watches registered by setup_with_store."""

    def test_pool_changes_enqueue_pool(self, store, manager_factory, queue) -> None:
        make_reconciler(store, manager_factory).setup_with_store(queue)

        create_pool(store)

        assert queue.added == [REQUEST]

    def test_claim_changes_enqueue_pool(self, store, manager_factory, queue) -> None:
        make_reconciler(store, manager_factory).setup_with_store(queue)

        store.create(IPClaim(name="c1", namespace="ns1", pool_name="pool-a"))
        store.create(IPAddressClaim(name="c2", namespace="ns2", pool_ref_name="pool-b"))
        store.create(IPClaim(name="c3", namespace="ns1"))

        assert queue.added == [REQUEST, ReconcileRequest("ns2", "pool-b")]

    def test_deleted_claim_enqueues_pool(self, store, manager_factory, queue) -> None:
        claim = store.create(IPClaim(name="c1", namespace="ns1", pool_name="pool-a"))
        make_reconciler(store, manager_factory).setup_with_store(queue)

        store.delete(IPClaim, claim.key)

        assert queue.added == [REQUEST]

    def test_paused_and_filtered_objects_ignored(self, store, manager_factory, queue) -> None:
        make_reconciler(store, manager_factory, watch_filter_value="team-a").setup_with_store(
            queue
        )

        store.create(IPClaim(name="c1", namespace="ns1", pool_name="pool-a"))
        store.create(
            IPClaim(
                name="c2",
                namespace="ns1",
                pool_name="pool-a",
                labels={WATCH_FILTER_LABEL: "team-a"},
                annotations={PAUSED_ANNOTATION: ""},
            )
        )
        store.create(
            IPClaim(
                name="c3",
                namespace="ns1",
                pool_name="pool-b",
                labels={WATCH_FILTER_LABEL: "team-a"},
            )
        )

        assert queue.added == [ReconcileRequest("ns1", "pool-b")]


def test_end_to_end_allocation_and_release(store: ObjectStore, reconciler) -> None:
    """Test the real manager binds a claim and releases it on pool deletion."""
    create_pool(store, gateway="192.168.0.1")
    claim = store.create(IPClaim(name="c1", namespace="ns1", pool_name="pool-a"))

    assert reconciler.reconcile(REQUEST) == Result()

    pool = get_pool(store)
    assert pool.allocations == {"c1": "192.168.0.2"}
    assert store.get(IPClaim, claim.key).address_name == "pool-a-192-168-0-2"

    # Deleting the pool waits for the claim
    store.delete(IPPool, pool.key)
    reconciler.reconcile(REQUEST)
    assert get_pool(store).finalizers == [IPPOOL_FINALIZER]

    store.delete(IPClaim, claim.key)
    reconciler.reconcile(REQUEST)

    with pytest.raises(ObjectNotFound):
        get_pool(store)
    assert store.list(IPAddress) == []
    assert store.list(IPClaim) == []


def test_snapshot_untouched_by_pass(store: ObjectStore, manager_factory) -> None:
    """Test the reconciler never writes the object it was handed in place."""
    pool = create_pool(store)
    before = snapshot(pool)

    make_reconciler(store, manager_factory).reconcile(REQUEST)

    assert snapshot(pool) == before
