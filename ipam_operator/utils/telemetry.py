"""OpenTelemetry tracing setup and utilities.

Sets up the tracer provider for the API and worker processes, instruments
the components they talk to, and provides helpers used by reconcile passes
to create spans and record allocation events.
"""

import logging
from contextlib import contextmanager
from typing import Any, List, Optional

from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased
from opentelemetry.sdk.trace.export import ConsoleSpanExporter, BatchSpanProcessor
from opentelemetry.sdk.resources import Resource, SERVICE_NAME, SERVICE_VERSION
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.instrumentation.redis import RedisInstrumentor

from ipam_operator.config import settings
from ipam_operator import __version__

logger = logging.getLogger(__name__)

# Global tracer instance
_tracer: Optional[trace.Tracer] = None


def setup_telemetry() -> None:
    """Initialize OpenTelemetry tracing.

    This should be called once at process startup (API or worker), before
    any other operations that might create spans.
    """
    global _tracer

    # Resource identifying this process in exported spans
    resource = Resource(
        attributes={
            SERVICE_NAME: settings.OTEL_SERVICE_NAME,
            SERVICE_VERSION: __version__,
            "environment": settings.ENVIRONMENT,
        }
    )

    # Configure sampling rate
    sampler = TraceIdRatioBased(settings.OTEL_TRACE_SAMPLE_RATE)
    provider = TracerProvider(resource=resource, sampler=sampler)

    # Add console exporter if enabled
    if settings.OTEL_EXPORT_CONSOLE:
        console_exporter = ConsoleSpanExporter()
        provider.add_span_processor(BatchSpanProcessor(console_exporter))

    # Set as global tracer provider
    trace.set_tracer_provider(provider)
    _tracer = trace.get_tracer(__name__, __version__)

    logger.info(
        "OpenTelemetry initialized",
        extra={
            "service_name": settings.OTEL_SERVICE_NAME,
            "sample_rate": settings.OTEL_TRACE_SAMPLE_RATE,
            "export_console": settings.OTEL_EXPORT_CONSOLE,
        },
    )


def instrument(
    app: Any = None, engine: Any = None, redis: bool = False
) -> List[str]:
    """Instrument the components a process uses.

    The API passes its FastAPI app and the store engine; the worker passes
    the store engine and asks for Redis, which backs the pool locks.
    A component that fails to instrument is logged and skipped.

    Args:
        app: FastAPI application instance
        engine: SQLAlchemy engine backing the object store
        redis: Instrument Redis clients

    Returns:
        Names of the components instrumented
    """
    steps = []
    if app is not None:
        steps.append(("FastAPI", lambda: FastAPIInstrumentor.instrument_app(app)))
    if engine is not None:
        steps.append(
            ("SQLAlchemy", lambda: SQLAlchemyInstrumentor().instrument(engine=engine))
        )
    if redis:
        steps.append(("Redis", lambda: RedisInstrumentor().instrument()))

    instrumented = []
    for component, step in steps:
        try:
            step()
        except Exception as e:
            logger.warning(f"Failed to instrument {component}: {e}")
            continue
        instrumented.append(component)
        logger.info(f"{component} instrumented with OpenTelemetry")

    return instrumented


def get_tracer() -> trace.Tracer:
    """Get the global tracer instance.

    Returns:
        OpenTelemetry Tracer instance
    """
    global _tracer

    if _tracer is None:
        # Not initialized yet, fall back to the global provider
        _tracer = trace.get_tracer(__name__, __version__)

    return _tracer


@contextmanager
def trace_operation(
    name: str,
    attributes: Optional[dict] = None,
):
    """Context manager for creating a traced operation span.

    Args:
        name: Name of the operation (e.g., 'ippool.reconcile', 'store.patch')
        attributes: Optional dictionary of span attributes

    Example:
        with trace_operation("store.patch", {"object.kind": "IPPool"}):
            ...
    """
    tracer = get_tracer()

    with tracer.start_as_current_span(name) as span:
        if attributes:
            for key, value in attributes.items():
                if value is not None:
                    span.set_attribute(key, value)

        try:
            yield span
        except Exception as e:
            span.record_exception(e)
            span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
            raise


def add_span_attributes(**attributes) -> None:
    """Add attributes to the current span.

    Args:
        **attributes: Key-value pairs to add; None values are skipped

    Example:
        add_span_attributes(**{"ippool.name": "pool-a"})
    """
    span = trace.get_current_span()
    if span.is_recording():
        for key, value in attributes.items():
            if value is not None:
                span.set_attribute(key, value)


def add_span_event(name: str, attributes: Optional[dict] = None) -> None:
    """Add an event to the current span.

    Args:
        name: Event name
        attributes: Optional event attributes

    Example:
        add_span_event("ipaddress.allocated", {"ip": "172.16.0.15"})
    """
    span = trace.get_current_span()
    if span.is_recording():
        span.add_event(name, attributes or {})
