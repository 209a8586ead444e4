"""Classification of pool manager errors into retry or fatal outcomes."""

from dataclasses import dataclass
from typing import Optional, Union

from ipam_operator.controllers.types import Result


class ReconcileError(Exception):
    """A pass failed; the caller backs off and retries."""

    pass


@dataclass(frozen=True)
class Ok:
    """Proceed, nothing to retry."""


@dataclass(frozen=True)
class RetryAfter:
    """Not yet; run again after the given number of seconds."""

    after: float


@dataclass(frozen=True)
class Fatal:
    """Unclassified failure to surface to the caller."""

    cause: BaseException


Outcome = Union[Ok, RetryAfter, Fatal]


def requeue_after_of(err: BaseException) -> Optional[float]:
    """Requeue duration carried by err or any exception it was raised from."""
    seen = set()
    current: Optional[BaseException] = err
    while current is not None and id(current) not in seen:
        getter = getattr(current, "get_requeue_after", None)
        if callable(getter):
            return float(getter())
        seen.add(id(current))
        current = current.__cause__
    return None


def classify(err: Optional[BaseException]) -> Outcome:
    """Turn an error into Ok, RetryAfter or Fatal."""
    if err is None:
        return Ok()

    after = requeue_after_of(err)
    if after is not None:
        return RetryAfter(after=after)

    return Fatal(cause=err)


def check_requeue_error(err: Optional[BaseException], message: str) -> Result:
    """Scheduling result for an error returned by the pool manager.

    Raises:
        ReconcileError: If the error does not ask for a requeue
    """
    outcome = classify(err)
    if isinstance(outcome, RetryAfter):
        return Result(requeue=True, requeue_after=outcome.after)
    if isinstance(outcome, Fatal):
        raise ReconcileError(f"{message}: {outcome.cause}") from outcome.cause
    return Result()
