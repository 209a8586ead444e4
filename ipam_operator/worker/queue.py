"""Work queue handing reconcile requests to Celery."""

from ipam_operator.celery_app import celery_app
from ipam_operator.controllers.types import ReconcileRequest
from ipam_operator.utils.logger import get_logger

logger = get_logger(__name__)

RECONCILE_TASK = "reconcile_ippool_task"


class CeleryReconcileQueue:
    """Schedules reconcile passes as Celery tasks."""

    def __init__(self, app=celery_app):
        self.app = app

    def add(self, request: ReconcileRequest) -> None:
        """Schedule a pass as soon as possible."""
        self.add_after(request, 0)

    def add_after(self, request: ReconcileRequest, seconds: float) -> None:
        """Schedule a pass after the given delay."""
        self.app.send_task(
            RECONCILE_TASK,
            args=(request.namespace, request.name),
            countdown=seconds or None,
        )
        logger.debug(
            "Reconcile scheduled",
            extra={"ippool": request.name, "namespace": request.namespace, "countdown": seconds},
        )
