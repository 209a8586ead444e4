"""Reconcile requests and results."""

from dataclasses import dataclass
from typing import NamedTuple


class ReconcileRequest(NamedTuple):
    """Identity of one pool to (re-)evaluate."""

    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


@dataclass(frozen=True)
class Result:
    """Scheduling decision of one pass.

    requeue=False means done until the next change. requeue=True asks for
    another pass after requeue_after seconds.
    """

    requeue: bool = False
    requeue_after: float = 0.0
