"""
Custom exception handling for the ERP reporting service.

This module defines the reporting exception hierarchy and the FastAPI
handlers that turn it into JSON error responses with correlation IDs.
"""

import uuid
from typing import Optional, Dict, Any, Iterable
from fastapi import Request, status
from fastapi.responses import JSONResponse
import logging

logger = logging.getLogger(__name__)


# ============================================================================
# Base Exception Classes
# ============================================================================

class ReportingException(Exception):
    """Base exception class for all reporting errors."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        tenant_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.tenant_id = tenant_id
        self.details = details or {}
        self.correlation_id = str(uuid.uuid4())
        super().__init__(message)


# ============================================================================
# Configuration Exceptions
# ============================================================================

class FieldNotFoundError(ReportingException):
    """Raised when a field id has no descriptor in the registry."""

    def __init__(self, field_id: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=f"Unknown report field: {field_id}",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details={**(details or {}), "field": field_id},
        )
        self.field_id = field_id


class ReportValidationError(ReportingException):
    """Raised when a report configuration fails validation.

    Carries every issue found in the validation pass, not just the first.
    """

    def __init__(self, issues: Iterable[Any], details: Optional[Dict[str, Any]] = None):
        self.issues = list(issues)
        super().__init__(
            message=f"Report configuration is invalid ({len(self.issues)} issue(s))",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details={**(details or {}), "errors": [issue.model_dump(mode="json") for issue in self.issues]},
        )


# ============================================================================
# Execution Exceptions
# ============================================================================

class ExecutionError(ReportingException):
    """Report-level execution failure. No partial result accompanies it."""

    kind = "execution_error"
    retryable = False

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            status_code=status_code,
            details={**(details or {}), "kind": self.kind},
        )


class TypeMismatchError(ExecutionError):
    """Raised when a row value does not match its field's declared type."""

    kind = "type_mismatch"

    def __init__(self, field_id: str, expected: str, value: Any, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=f"Field {field_id} expected {expected}, got {type(value).__name__}: {value!r}",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details={**(details or {}), "field": field_id, "expected": expected},
        )
        self.field_id = field_id


class RowSourceError(ExecutionError):
    """Raised when the external row source fails (timeout, connectivity, unsupported tables)."""

    kind = "row_source_failure"
    retryable = True

    def __init__(self, reason: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=f"Row source failure: {reason}",
            status_code=status.HTTP_502_BAD_GATEWAY,
            details={**(details or {}), "retryable": True},
        )


class ShapeError(ExecutionError):
    """Raised when final rows cannot be shaped into the requested output."""

    kind = "shape_error"

    def __init__(self, reason: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=f"Cannot shape report output: {reason}",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=details,
        )


class MissingColumnError(ExecutionError):
    """Raised when a sort key is not present in the rows being sorted."""

    kind = "missing_column"

    def __init__(self, field_id: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=f"Column {field_id} is not present in the report rows",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details={**(details or {}), "field": field_id},
        )
        self.field_id = field_id


class ReportCancelledError(ExecutionError):
    """Raised when a cancellation token fires during execution."""

    kind = "cancelled"

    def __init__(self, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message="Report execution was cancelled",
            status_code=499,
            details=details,
        )


# ============================================================================
# Resource Exceptions
# ============================================================================

class NotFoundError(ReportingException):
    """Raised when requested resource is not found."""

    def __init__(self, resource_type: str, resource_id: Any, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=f"{resource_type} not found: {resource_id}",
            status_code=status.HTTP_404_NOT_FOUND,
            details={**(details or {}), "resource_type": resource_type, "resource_id": str(resource_id)},
        )


# ============================================================================
# Exception Handlers
# ============================================================================

async def reporting_exception_handler(request: Request, exc: ReportingException) -> JSONResponse:
    """
    Generic handler for all ReportingException instances.

    Logs the error with correlation ID and returns a JSON response.
    """
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"[{exc.correlation_id}] {exc.__class__.__name__}: {exc.message}",
        extra={
            "correlation_id": exc.correlation_id,
            "tenant_id": exc.tenant_id,
            "status_code": exc.status_code,
            "details": exc.details,
            "path": request.url.path,
            "method": request.method,
        }
    )

    response_content = {
        "error": exc.__class__.__name__,
        "message": exc.message,
        "correlation_id": exc.correlation_id,
    }

    if exc.details:
        response_content["details"] = exc.details

    return JSONResponse(
        status_code=exc.status_code,
        content=response_content,
        headers={"X-Correlation-ID": exc.correlation_id}
    )


async def validation_error_handler(request: Request, exc: ReportValidationError) -> JSONResponse:
    """
    Specialized handler for configuration validation failures.

    Returns every issue so the caller can render field-level feedback.
    """
    logger.info(
        f"[{exc.correlation_id}] Report configuration rejected with {len(exc.issues)} issue(s)",
        extra={"correlation_id": exc.correlation_id, "path": request.url.path}
    )

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": "invalid_report_config",
            "message": exc.message,
            "correlation_id": exc.correlation_id,
            "errors": exc.details["errors"],
        },
        headers={"X-Correlation-ID": exc.correlation_id}
    )


async def execution_error_handler(request: Request, exc: ExecutionError) -> JSONResponse:
    """
    Specialized handler for execution failures.

    Reports a single report-level failure and whether a retry makes sense.
    """
    logger.error(
        f"[{exc.correlation_id}] Report execution failed ({exc.kind}): {exc.message}",
        extra={
            "correlation_id": exc.correlation_id,
            "kind": exc.kind,
            "path": request.url.path,
        }
    )

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": "report_execution_failed",
            "kind": exc.kind,
            "message": exc.message,
            "retryable": exc.retryable,
            "correlation_id": exc.correlation_id,
        },
        headers={"X-Correlation-ID": exc.correlation_id}
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Fallback handler for unhandled exceptions.

    Logs the error and returns a generic error message.
    """
    correlation_id = str(uuid.uuid4())

    logger.exception(
        f"[{correlation_id}] Unhandled exception: {str(exc)}",
        extra={
            "correlation_id": correlation_id,
            "path": request.url.path,
            "method": request.method,
        }
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "internal_server_error",
            "message": "An internal error occurred. Please try again later.",
            "correlation_id": correlation_id,
        },
        headers={"X-Correlation-ID": correlation_id}
    )


# ============================================================================
# Exception Handler Registration
# ============================================================================

def register_exception_handlers(app):
    """
    Register all exception handlers with the FastAPI application.

    Args:
        app: FastAPI application instance
    """
    # Register specific handlers first
    app.add_exception_handler(ReportValidationError, validation_error_handler)
    app.add_exception_handler(ExecutionError, execution_error_handler)

    # Register generic handler for all ReportingException instances
    app.add_exception_handler(ReportingException, reporting_exception_handler)

    # Register fallback handler for unhandled exceptions
    app.add_exception_handler(Exception, unhandled_exception_handler)

    logger.info("Exception handlers registered successfully")
