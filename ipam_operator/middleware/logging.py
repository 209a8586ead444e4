"""Logging middleware with context and tracing."""

import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from ipam_operator.utils.context import clear_context, set_context
from ipam_operator.utils.logger import get_logger
from ipam_operator.utils.telemetry import add_span_attributes, get_tracer

logger = get_logger(__name__)


class LoggingMiddleware(BaseHTTPMiddleware):
    """Middleware to log HTTP requests/responses with context and tracing."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process the request with logging and context injection."""
        # Generate or get request ID
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())

        set_context(request_id=request_id, action="http.request")

        tracer = get_tracer()

        with tracer.start_as_current_span(
            f"{request.method} {request.url.path}"
        ) as span:
            add_span_attributes(
                **{
                    "http.method": request.method,
                    "http.url": str(request.url),
                    "http.path": request.url.path,
                    "http.client_ip": request.client.host if request.client else None,
                    "http.user_agent": request.headers.get("user-agent"),
                }
            )

            logger.info(
                "Request started",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "query_params": str(request.query_params)
                    if request.query_params
                    else None,
                    "client_ip": request.client.host if request.client else None,
                },
            )

            start_time = time.time()

            try:
                response = await call_next(request)
                duration_ms = (time.time() - start_time) * 1000

                add_span_attributes(
                    **{
                        "http.status_code": response.status_code,
                        "http.duration_ms": round(duration_ms, 2),
                    }
                )

                response.headers["X-Request-ID"] = request_id
                response.headers["X-Process-Time"] = f"{duration_ms:.2f}ms"

                logger.info(
                    "Request completed",
                    extra={
                        "method": request.method,
                        "path": request.url.path,
                        "status_code": response.status_code,
                        "duration_ms": round(duration_ms, 2),
                    },
                )

                return response

            except Exception as e:
                duration_ms = (time.time() - start_time) * 1000
                span.record_exception(e)

                logger.error(
                    "Request failed",
                    extra={
                        "method": request.method,
                        "path": request.url.path,
                        "duration_ms": round(duration_ms, 2),
                        "error": str(e),
                        "error_type": type(e).__name__,
                    },
                )

                raise

            finally:
                # Clear context after request
                clear_context()
