"""
Shared HTTP error classes and utilities for the scheduling services.

Provides:
- Base exception class for API errors
- Common subclasses (Auth, NotFound, Service, Provider)
- Shared error response model
- Utility to convert exceptions to error responses
- FastAPI exception handler registration

Basic usage:
>>> from services.common.http_errors import NotFoundError, ProviderError
>>>
>>> error = NotFoundError("User", "42")
>>> error.message
'User 42 not found'
>>>
>>> error = ProviderError("Calendar fetch failed", provider="calendar")
>>> error.status_code
502

FastAPI integration:
>>> from fastapi import FastAPI
>>> from services.common.http_errors import register_exception_handlers
>>>
>>> app = FastAPI()
>>> register_exception_handlers(app)

Error Code Taxonomy:
===================
- AUTH_* : Authentication errors (401)
- ACCESS_* : Authorization/permission errors (403)
- NOT_FOUND : Resource not found (404)
- SERVICE_* / DATABASE_ERROR : Internal service errors (5xx)
- PROVIDER_* : External provider integration errors (502)
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from services.common.logging_config import request_id_var


def _current_request_id() -> str:
    """Return the request ID from logging context, or a fresh UUID outside a request."""
    request_id = request_id_var.get()
    if request_id and request_id != "uninitialized":
        return request_id
    return str(uuid.uuid4())


class ErrorCode(str, Enum):
    """Standardized error codes shared by all services."""

    # General (4xx)
    NOT_FOUND = "NOT_FOUND"
    INTERNAL_ERROR = "INTERNAL_ERROR"

    # Authentication (401) / authorization (403)
    AUTH_FAILED = "AUTH_FAILED"
    ACCESS_DENIED = "ACCESS_DENIED"

    # Service (5xx)
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    SERVICE_ERROR = "SERVICE_ERROR"
    DATABASE_ERROR = "DATABASE_ERROR"

    # Provider (502)
    PROVIDER_ERROR = "PROVIDER_ERROR"
    PROVIDER_UNAVAILABLE = "PROVIDER_UNAVAILABLE"
    PROVIDER_PARTIAL_FAILURE = "PROVIDER_PARTIAL_FAILURE"


class ErrorResponse(BaseModel):
    """
    Standardized error response model.

    Attributes:
        type: Error type categorization (e.g., "not_found", "provider_error")
        message: Human-readable error message
        details: Optional dictionary containing additional error context
        timestamp: ISO 8601 timestamp of when the error occurred
        request_id: Unique identifier for tracing
    """

    type: str
    message: str
    details: Optional[Dict[str, Any]] = None
    timestamp: str
    request_id: str


class APIException(Exception):
    """
    Base exception class for all service API errors.

    Carries everything needed to render an ``ErrorResponse``: message,
    details, error type, error code and HTTP status. A timestamp and a
    request ID are generated at construction time.

    Args:
        message: The error message to display to users
        details: Optional dictionary with additional error context
        error_type: Error category string (defaults to "internal_error")
        error_code: Specific error code from ErrorCode enum
        status_code: HTTP status code (defaults to 500)
        request_id: Optional request ID (auto-generated if not provided)
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_type: str = "internal_error",
        error_code: Optional[ErrorCode] = None,
        status_code: int = 500,
        request_id: Optional[str] = None,
    ):
        self.message = message
        self.details = details or {}
        self.error_type = error_type
        self.error_code = error_code
        self.status_code = status_code
        self.timestamp = datetime.now(timezone.utc).isoformat()
        self.request_id = request_id or _current_request_id()
        super().__init__(self.message)

    def to_error_response(self) -> ErrorResponse:
        """Convert exception to an ErrorResponse, including the error code in details."""
        details = {
            **self.details,
            **({"code": self.error_code.value} if self.error_code else {}),
        }
        return ErrorResponse(
            type=self.error_type,
            message=self.message,
            details=details if details else None,
            timestamp=self.timestamp,
            request_id=self.request_id,
        )


class NotFoundError(APIException):
    """
    Exception for resource not found errors (HTTP 404).

    Examples:
        >>> NotFoundError("User", "user-123").message
        'User user-123 not found'
        >>> NotFoundError("Integration").message
        'Integration not found'
    """

    def __init__(
        self,
        resource: str,
        identifier: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        if identifier:
            message = f"{resource} {identifier} not found"
        else:
            message = f"{resource} not found"
        notfound_details = {
            **(details or {}),
            "resource": resource,
            "identifier": identifier,
        }
        super().__init__(
            message=message,
            details=notfound_details,
            error_type="not_found",
            error_code=ErrorCode.NOT_FOUND,
            status_code=404,
        )
        self.resource = resource
        self.identifier = identifier


class AuthError(APIException):
    """Exception for authentication errors (HTTP 401 by default)."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        code: ErrorCode = ErrorCode.AUTH_FAILED,
        status_code: int = 401,
    ):
        super().__init__(
            message=message,
            details=details,
            error_type="auth_error",
            error_code=code,
            status_code=status_code,
        )


class ServiceError(APIException):
    """
    Exception for internal service errors (HTTP 502).

    Used when internal service operations fail, such as database connectivity
    issues or downstream service failures.

    Examples:
        >>> error = ServiceError(
        ...     "Database query failed",
        ...     code=ErrorCode.DATABASE_ERROR,
        ...     details={"operation": "booking_busy_times"}
        ... )
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        code: ErrorCode = ErrorCode.SERVICE_ERROR,
        status_code: int = 502,
    ):
        super().__init__(
            message=message,
            details=details,
            error_type="service_error",
            error_code=code,
            status_code=status_code,
        )


class ProviderError(APIException):
    """
    Exception for external provider integration errors (HTTP 502).

    Attributes:
        provider: Name of the external provider (calendar, google, microsoft, ...)
        response_body: Raw response body from the provider (for debugging)
        retry_after: Seconds to wait before retrying (from rate limit headers)
    """

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        code: ErrorCode = ErrorCode.PROVIDER_ERROR,
        status_code: int = 502,
        response_body: Optional[str] = None,
        retry_after: Optional[int] = None,
    ):
        provider_details = details or {}
        if provider:
            provider_details["provider"] = provider
        if response_body:
            provider_details["response_body"] = response_body
        if retry_after is not None:
            provider_details["retry_after"] = retry_after
        super().__init__(
            message=message,
            details=provider_details,
            error_type="provider_error",
            error_code=code,
            status_code=status_code,
        )
        self.provider = provider
        self.response_body = response_body
        self.retry_after = retry_after


def exception_to_response(exc: Exception) -> ErrorResponse:
    """
    Convert any exception to a standardized ErrorResponse.

    1. APIException: uses its own to_error_response()
    2. HTTPException: extracts and normalizes the detail
    3. Anything else: a safe "internal_error" response with the exception type
    """
    if isinstance(exc, APIException):
        return exc.to_error_response()
    elif isinstance(exc, HTTPException):
        detail = (
            exc.detail if isinstance(exc.detail, dict) else {"message": str(exc.detail)}
        )
        return ErrorResponse(
            type="http_error",
            message=detail.get("message", "HTTP error"),
            details=detail,
            timestamp=datetime.now(timezone.utc).isoformat(),
            request_id=_current_request_id(),
        )
    else:
        return ErrorResponse(
            type="internal_error",
            message=str(exc),
            details={"error_type": type(exc).__name__},
            timestamp=datetime.now(timezone.utc).isoformat(),
            request_id=_current_request_id(),
        )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register standardized exception handlers on a FastAPI application.

    - APIException: returns the exception's status_code with error details
    - HTTPException: returns the exception's status_code with normalized details
    - Exception: returns 500 with a safe error message
    """
    from fastapi import Request
    from fastapi.responses import JSONResponse

    @app.exception_handler(APIException)
    async def api_exception_handler(request: Request, exc: APIException) -> JSONResponse:
        error_response = exc.to_error_response()
        return JSONResponse(
            status_code=exc.status_code, content=error_response.model_dump()
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(
        request: Request, exc: HTTPException
    ) -> JSONResponse:
        error_response = exception_to_response(exc)
        return JSONResponse(
            status_code=exc.status_code, content=error_response.model_dump()
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        error_response = exception_to_response(exc)
        return JSONResponse(status_code=500, content=error_response.model_dump())
