"""
Shared exception classes and error handling utilities for Health Data Service API.

This module provides:
- Custom exception hierarchy for domain-specific errors
- A stable ``kind`` on every error so callers can branch without parsing messages
- Exception handlers for FastAPI integration

Usage:
    from core.exceptions import RecordNotFoundError, AccessDeniedError

    # In service layer - raise domain exceptions
    raise RecordNotFoundError(record_id=42)

    # In FastAPI - register handlers via setup_exception_handlers(app)
"""
import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


# =============================================================================
# BASE EXCEPTION CLASS
# =============================================================================

class HealthDataError(Exception):
    """
    Base exception for all Health Data Service domain errors.

    All custom exceptions should inherit from this class.
    Provides consistent error structure with kind, status code and detail message.
    """

    kind: str = "internal_error"
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    detail: str = "An unexpected error occurred"

    def __init__(
        self,
        detail: Optional[str] = None,
        status_code: Optional[int] = None,
        **kwargs: Any
    ):
        """
        Initialize the exception.

        Args:
            detail: Human-readable error message. Uses class default if not provided.
            status_code: HTTP status code. Uses class default if not provided.
            **kwargs: Additional context to include in error response.
        """
        self.detail = detail or self.__class__.detail
        self.status_code = status_code or self.__class__.status_code
        self.context = {key: value for key, value in kwargs.items() if value is not None}
        super().__init__(self.detail)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON response."""
        result = {"kind": self.kind, "detail": self.detail}
        if self.context:
            result["context"] = self.context
        return result


# =============================================================================
# VALIDATION EXCEPTIONS
# =============================================================================

class InvalidRecordDataError(HealthDataError):
    """Raised when record input is malformed or references an invalid target."""

    kind = "validation_error"
    status_code = status.HTTP_400_BAD_REQUEST
    detail = "Invalid record data"


class InvalidInputError(HealthDataError):
    """Raised when a computation is mathematically undefined for its input."""

    kind = "invalid_input"
    status_code = 422
    detail = "Invalid input"


# =============================================================================
# LOOKUP EXCEPTIONS
# =============================================================================

class RecordNotFoundError(HealthDataError):
    """Raised when a health record is not found."""

    kind = "not_found"
    status_code = status.HTTP_404_NOT_FOUND
    detail = "Health record not found"

    def __init__(self, record_id: Optional[int] = None, detail: Optional[str] = None, **kwargs: Any):
        if detail is None and record_id is not None:
            detail = f"Health record {record_id} not found"
        super().__init__(detail=detail, record_id=record_id, **kwargs)


class PatientNotFoundError(HealthDataError):
    """Raised when a patient is not found in the user directory."""

    kind = "not_found"
    status_code = status.HTTP_404_NOT_FOUND
    detail = "Patient not found"

    def __init__(self, patient_id: Optional[int] = None, **kwargs: Any):
        detail = f"Patient {patient_id} not found" if patient_id is not None else self.detail
        super().__init__(detail=detail, patient_id=patient_id, **kwargs)


# =============================================================================
# ACCESS EXCEPTIONS
# =============================================================================

class AccessDeniedError(HealthDataError):
    """
    Raised when the access control gate rejects a requester.

    The ``reason`` is a stable code (see ``services.access_control.DenialReason``)
    while ``detail`` is the human-readable explanation.
    """

    kind = "access_denied"
    status_code = status.HTTP_403_FORBIDDEN
    detail = "Access denied"

    def __init__(self, detail: Optional[str] = None, reason: Optional[str] = None, **kwargs: Any):
        self.reason = reason
        super().__init__(detail=detail, reason=reason, **kwargs)


# =============================================================================
# PERSISTENCE EXCEPTIONS
# =============================================================================

class ConcurrentUpdateError(HealthDataError):
    """Raised when a record changed between read and conditional write."""

    kind = "conflict"
    status_code = status.HTTP_409_CONFLICT
    detail = "Health record was modified concurrently"

    def __init__(self, record_id: Optional[int] = None, **kwargs: Any):
        detail = (
            f"Health record {record_id} was modified by another request, retry with fresh data"
            if record_id is not None else self.detail
        )
        super().__init__(detail=detail, record_id=record_id, **kwargs)


class DatabaseError(HealthDataError):
    """Raised when a database operation fails."""

    kind = "database_error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    detail = "Database operation failed"

    def __init__(self, operation: Optional[str] = None, **kwargs: Any):
        detail = f"Database error during {operation}" if operation else self.detail
        super().__init__(detail=detail, operation=operation, **kwargs)


# =============================================================================
# EXTERNAL COLLABORATOR EXCEPTIONS
# =============================================================================

class DependencyTimeoutError(HealthDataError):
    """Raised when a collaborator lookup does not answer in time."""

    kind = "dependency_timeout"
    status_code = status.HTTP_504_GATEWAY_TIMEOUT
    detail = "Dependency lookup timed out"

    def __init__(self, dependency: Optional[str] = None, **kwargs: Any):
        detail = f"{dependency} lookup timed out" if dependency else self.detail
        super().__init__(detail=detail, dependency=dependency, **kwargs)


# =============================================================================
# EXCEPTION HANDLERS
# =============================================================================

async def health_data_exception_handler(
    request: Request,
    exc: HealthDataError
) -> JSONResponse:
    """
    Handle HealthDataError exceptions and return consistent JSON responses.

    This handler logs the error and returns a standardized JSON error response.
    """
    logger.warning(
        f"HealthDataError: {exc.detail}",
        extra={
            "kind": exc.kind,
            "status_code": exc.status_code,
            "path": request.url.path,
            "method": request.method,
            "context": exc.context
        }
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )


async def generic_exception_handler(
    request: Request,
    exc: Exception
) -> JSONResponse:
    """
    Handle unexpected exceptions with a generic error response.

    Logs the full exception for debugging but returns a safe error message.
    """
    logger.exception(
        f"Unhandled exception: {exc}",
        extra={
            "path": request.url.path,
            "method": request.method
        }
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"kind": HealthDataError.kind, "detail": "An internal server error occurred"}
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """
    Register exception handlers with the FastAPI application.

    Args:
        app: The FastAPI application instance.

    Example:
        app = FastAPI()
        setup_exception_handlers(app)
    """
    app.add_exception_handler(HealthDataError, health_data_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
