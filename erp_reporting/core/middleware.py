"""Middleware for tenant resolution and request logging."""

import logging
import time
import uuid
from typing import Optional, Callable
from contextvars import ContextVar

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

# Context variable for tenant ID
tenant_context: ContextVar[Optional[str]] = ContextVar("tenant_context", default=None)
request_id_context: ContextVar[Optional[str]] = ContextVar("request_id_context", default=None)

TENANT_HEADER = "X-Tenant-ID"


def get_current_tenant() -> Optional[str]:
    """Get current tenant ID from context."""
    return tenant_context.get()


def get_current_request_id() -> Optional[str]:
    """Get current request correlation ID from context."""
    return request_id_context.get()


class TenantContextMiddleware(BaseHTTPMiddleware):
    """Extract tenant context from request and set for request lifecycle.

    Tenant can be identified from:
    1. X-Tenant-ID header
    2. tenant_id query parameter (export links opened in a browser)
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Extract and set tenant context."""
        tenant_id = request.headers.get(TENANT_HEADER) or request.query_params.get("tenant_id")

        token = tenant_context.set(tenant_id or None)
        if tenant_id:
            logger.debug(f"Tenant context set: {tenant_id}")

        try:
            return await call_next(request)
        finally:
            # Clean up context
            tenant_context.reset(token)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log request and response details with correlation ID.

    Logs:
    - Request method, path, tenant_id, correlation_id
    - Response status code and duration
    - Errors with stack traces
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Log request and response."""
        correlation_id = request.headers.get("X-Correlation-ID") or str(uuid.uuid4())
        token = request_id_context.set(correlation_id)

        start_time = time.time()
        tenant_id = get_current_tenant()

        logger.info(
            f"Request started: method={request.method} path={request.url.path} "
            f"tenant={tenant_id or 'anonymous'} correlation_id={correlation_id}"
        )

        try:
            response = await call_next(request)

            duration_ms = (time.time() - start_time) * 1000
            logger.info(
                f"Request completed: method={request.method} path={request.url.path} "
                f"status={response.status_code} duration_ms={duration_ms:.2f} "
                f"tenant={tenant_id or 'anonymous'} correlation_id={correlation_id}"
            )

            response.headers["X-Correlation-ID"] = correlation_id
            return response

        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                f"Request failed: method={request.method} path={request.url.path} "
                f"duration_ms={duration_ms:.2f} tenant={tenant_id or 'anonymous'} "
                f"correlation_id={correlation_id} error={str(e)}",
                exc_info=True
            )

            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "error": "internal_server_error",
                    "message": "An unexpected error occurred",
                    "correlation_id": correlation_id
                },
                headers={"X-Correlation-ID": correlation_id}
            )
        finally:
            request_id_context.reset(token)
