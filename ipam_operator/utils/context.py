"""Context management for structured logging and tracing.

This module provides context variables for propagating reconciliation
context (which pool, which cluster, which action) through a pass,
including across the store, the pool manager and the worker task.
"""

import contextvars
from contextlib import contextmanager
from typing import Optional, Any, Dict
from opentelemetry import trace

# Context variables for request/operation tracking
request_id_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "request_id", default=None
)
ippool_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "ippool", default=None
)
namespace_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "namespace", default=None
)
cluster_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "cluster", default=None
)
action_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "action", default=None
)

_CONTEXT_VARS = {
    "request_id": request_id_var,
    "ippool": ippool_var,
    "namespace": namespace_var,
    "cluster": cluster_var,
    "action": action_var,
}


def set_context(
    request_id: Optional[str] = None,
    ippool: Optional[str] = None,
    namespace: Optional[str] = None,
    cluster: Optional[str] = None,
    action: Optional[str] = None,
) -> None:
    """Set context variables.

    Args:
        request_id: Unique request or task identifier
        ippool: Name of the IPPool being reconciled
        namespace: Namespace of the IPPool
        cluster: Owning cluster name, once resolved
        action: Operation being performed (e.g., 'ippool.reconcile')
    """
    if request_id is not None:
        request_id_var.set(request_id)
    if ippool is not None:
        ippool_var.set(ippool)
    if namespace is not None:
        namespace_var.set(namespace)
    if cluster is not None:
        cluster_var.set(cluster)
    if action is not None:
        action_var.set(action)


def get_context() -> Dict[str, Any]:
    """Get all current context values as a dictionary.

    Returns:
        Dictionary with all non-None context values
    """
    context = {}
    for key, var in _CONTEXT_VARS.items():
        value = var.get()
        if value:
            context[key] = value
    return context


def get_request_id() -> Optional[str]:
    """Get current request ID."""
    return request_id_var.get()


def get_ippool() -> Optional[str]:
    """Get current IPPool name."""
    return ippool_var.get()


def get_action() -> Optional[str]:
    """Get current action."""
    return action_var.get()


def clear_context() -> None:
    """Clear all context variables."""
    for var in _CONTEXT_VARS.values():
        var.set(None)


@contextmanager
def operation_context(
    action: str,
    request_id: Optional[str] = None,
    ippool: Optional[str] = None,
    namespace: Optional[str] = None,
    cluster: Optional[str] = None,
):
    """Context manager for setting operation context with automatic cleanup.

    This also sets the action as a span attribute if there's an active span.

    Example:
        with operation_context("ippool.reconcile", ippool="pool-a", namespace="ns1"):
            logger.info("Reconciling")
    """
    # Save current context
    old_context = get_context()

    try:
        set_context(
            request_id=request_id,
            ippool=ippool,
            namespace=namespace,
            cluster=cluster,
            action=action,
        )

        span = trace.get_current_span()
        if span.is_recording():
            span.set_attribute("action", action)
            if ippool:
                span.set_attribute("ippool.name", ippool)
            if namespace:
                span.set_attribute("ippool.namespace", namespace)
            if cluster:
                span.set_attribute("cluster.name", cluster)

        yield

    finally:
        # Restore old context
        clear_context()
        for key, value in old_context.items():
            _CONTEXT_VARS[key].set(value)


def get_trace_context() -> Dict[str, str]:
    """Get current OpenTelemetry trace context.

    Returns:
        Dictionary with trace_id and span_id (if available)
    """
    context = {}

    span = trace.get_current_span()
    if span.is_recording():
        span_context = span.get_span_context()
        if span_context.is_valid:
            context["trace_id"] = format(span_context.trace_id, "032x")
            context["span_id"] = format(span_context.span_id, "016x")

    return context
