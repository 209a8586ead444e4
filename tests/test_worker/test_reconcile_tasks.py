"""Tests for worker tasks."""

from unittest.mock import MagicMock, Mock, patch

import pytest
from celery.exceptions import Retry, SoftTimeLimitExceeded
from redis.exceptions import LockError

from ipam_operator.controllers.requeue import ReconcileError
from ipam_operator.controllers.types import ReconcileRequest, Result
from ipam_operator.models import IPPool
from ipam_operator.models.base import PAUSED_ANNOTATION
from ipam_operator.store import ObjectStore
from ipam_operator.worker.tasks import (
    lock_name,
    reconcile_ippool_task,
    resync_ippools_task,
    retry_countdown,
)

REQUEST = ReconcileRequest("ns1", "pool-a")


@pytest.fixture
def lock() -> MagicMock:
    lock = MagicMock()
    lock.acquire.return_value = True
    return lock


@pytest.fixture
def redis_client(lock: MagicMock) -> MagicMock:
    client = MagicMock()
    client.lock.return_value = lock
    return client


@pytest.fixture
def reconciler() -> Mock:
    reconciler = Mock()
    reconciler.reconcile.return_value = Result()
    return reconciler


@pytest.fixture
def patched(redis_client, reconciler, queue):
    with (
        patch("ipam_operator.worker.tasks.get_redis", return_value=redis_client),
        patch("ipam_operator.worker.tasks.get_reconciler", return_value=reconciler),
        patch("ipam_operator.worker.tasks.get_queue", return_value=queue),
    ):
        yield


def test_lock_name() -> None:
    assert lock_name(REQUEST) == "ipam:reconcile:ns1/pool-a"


def test_retry_countdown_grows_and_caps() -> None:
    """Test backoff doubles per retry up to the cap."""
    assert [retry_countdown(n, max_backoff=300) for n in range(4)] == [1, 2, 4, 8]
    assert retry_countdown(20, max_backoff=300) == 300


@pytest.mark.usefixtures("patched")
class TestReconcileTask:
    """Tests for reconcile_ippool_task."""

    def test_successful_pass(self, reconciler, redis_client, lock, queue) -> None:
        """Test a pass runs under the pool lock and releases it."""
        result = reconcile_ippool_task("ns1", "pool-a")

        assert result == {"status": "reconciled", "ippool": "ns1/pool-a"}
        reconciler.reconcile.assert_called_once_with(REQUEST)
        redis_client.lock.assert_called_once()
        assert redis_client.lock.call_args.args[0] == "ipam:reconcile:ns1/pool-a"
        lock.acquire.assert_called_once_with(blocking=False)
        lock.release.assert_called_once()
        assert queue.delayed == []

    def test_requeue_is_scheduled(self, reconciler, queue) -> None:
        reconciler.reconcile.return_value = Result(requeue=True, requeue_after=30)

        result = reconcile_ippool_task("ns1", "pool-a")

        assert result["status"] == "requeued"
        assert queue.delayed == [(REQUEST, 30)]

    def test_locked_pool_is_deferred(self, reconciler, lock, queue) -> None:
        """Test a pass for a pool already in flight goes back on the queue."""
        lock.acquire.return_value = False

        result = reconcile_ippool_task("ns1", "pool-a")

        assert result["status"] == "deferred"
        reconciler.reconcile.assert_not_called()
        lock.release.assert_not_called()
        assert len(queue.delayed) == 1
        assert queue.delayed[0][0] == REQUEST

    def test_reconcile_error_is_retried(self, reconciler, lock) -> None:
        """Test failures are handed to Celery's retry and the lock released."""
        reconciler.reconcile.side_effect = ReconcileError("failed to patch IPPool")

        # Called directly, Celery re-raises the original exception on retry
        with pytest.raises(ReconcileError):
            reconcile_ippool_task("ns1", "pool-a")

        lock.release.assert_called_once()

    def test_unexpected_error_is_retried(self, reconciler, lock) -> None:
        """Test errors outside ReconcileError still go through Celery's retry."""
        reconciler.reconcile.side_effect = RuntimeError("boom")

        with patch.object(
            reconcile_ippool_task, "retry", side_effect=Retry("retrying")
        ) as mock_retry:
            with pytest.raises(Retry):
                reconcile_ippool_task("ns1", "pool-a")

        exc = mock_retry.call_args.kwargs["exc"]
        assert isinstance(exc, RuntimeError)
        assert mock_retry.call_args.kwargs["countdown"] == 1
        lock.release.assert_called_once()

    def test_time_limit_requeues(self, reconciler, lock, queue) -> None:
        """Test a pass cut short by the soft time limit goes back on the queue."""
        reconciler.reconcile.side_effect = SoftTimeLimitExceeded()

        result = reconcile_ippool_task("ns1", "pool-a")

        assert result["status"] == "requeued"
        assert queue.added == [REQUEST]
        lock.release.assert_called_once()

    def test_expired_lock_is_tolerated(self, lock) -> None:
        lock.release.side_effect = LockError("lock expired")

        result = reconcile_ippool_task("ns1", "pool-a")

        assert result["status"] == "reconciled"


def test_resync_enqueues_unpaused_pools(store: ObjectStore, queue) -> None:
    """Test the periodic resync enqueues every pool the watches would accept."""
    store.create(IPPool(name="pool-a", namespace="ns1", cidr="10.0.0.0/24"))
    store.create(IPPool(name="pool-b", namespace="ns2", cidr="10.0.1.0/24"))
    store.create(
        IPPool(
            name="paused",
            namespace="ns1",
            cidr="10.0.2.0/24",
            annotations={PAUSED_ANNOTATION: ""},
        )
    )
    reconciler = Mock(store=store, watch_filter_value=None)

    with (
        patch("ipam_operator.worker.tasks.get_reconciler", return_value=reconciler),
        patch("ipam_operator.worker.tasks.get_queue", return_value=queue),
    ):
        result = resync_ippools_task()

    assert result == {"enqueued": 2}
    assert queue.added == [REQUEST, ReconcileRequest("ns2", "pool-b")]
