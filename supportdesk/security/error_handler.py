"""
Secure Error Handler - Safe error handling without exposing internal details

This module provides:
- SecureError base class and the domain errors raised by the message layer
- Error codes mapped to user-friendly messages
- Trace ID generation for log correlation
- Global FastAPI exception handler

Usage:
    from supportdesk.security.error_handler import NotFoundError, secure_exception_handler

    raise NotFoundError("Ticket")

    # In main.py
    app.add_exception_handler(SecureError, secure_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, secure_exception_handler)
"""

import uuid
import logging
from typing import Optional, Dict, Any
from datetime import datetime
from fastapi import Request, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from supportdesk.utils.monitoring import capture_exception

logger = logging.getLogger(__name__)


# Error codes mapped to user-friendly messages
# These messages are safe to show to end users
ERROR_CODES: Dict[str, str] = {
    "E001": "An internal server error occurred. Please try again later.",
    "E002": "Database connection error. Our team has been notified.",
    "E004": "Invalid request. Please check your input.",
    "E005": "Authentication failed. Please check your credentials.",
    "E006": "You don't have permission to access this resource.",
    "E007": "The requested resource was not found.",
    "E008": "Too many requests. Please wait before trying again.",
    "E009": "Validation error. Please check the provided data.",
}

# Default HTTP status codes for each error type
DEFAULT_STATUS_CODES: Dict[str, int] = {
    "E001": 500,
    "E002": 503,
    "E004": 400,
    "E005": 401,
    "E006": 403,
    "E007": 404,
    "E008": 429,
    "E009": 422,
}


def generate_trace_id() -> str:
    """
    Generate a unique trace ID for error correlation.

    Returns:
        A unique trace ID string (UUID4)
    """
    return str(uuid.uuid4())


class SecureError(Exception):
    """
    Secure exception class that doesn't expose internal details.

    Attributes:
        code: Error code (E001-E009)
        message: User-friendly message (auto-generated from code if not provided)
        status_code: HTTP status code to return
        trace_id: Unique ID for log correlation
        internal_message: Detailed message for logging (never exposed to client)
        context: Additional context for logging (never exposed to client)
    """

    default_code = "E001"

    def __init__(
        self,
        code: Optional[str] = None,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        internal_message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.code = code or self.default_code
        self.message = message or ERROR_CODES.get(self.code, ERROR_CODES["E001"])
        self.status_code = status_code or DEFAULT_STATUS_CODES.get(self.code, 500)
        self.trace_id = generate_trace_id()
        self.internal_message = internal_message
        self.context = context or {}
        self.timestamp = datetime.utcnow().isoformat()

        super().__init__(self.message)

    def to_response(self) -> Dict[str, Any]:
        """
        Convert to a safe response dict.

        Returns:
            Dict with error details safe for client
        """
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "trace_id": self.trace_id,
                "timestamp": self.timestamp,
            }
        }

    def log_error(self, logger_instance: Optional[logging.Logger] = None) -> None:
        """
        Log the error with full details.

        Client errors (4xx) are logged as warnings, everything else as errors.
        """
        log = logger_instance or logger
        level = logging.WARNING if self.status_code < 500 else logging.ERROR
        log.log(
            level,
            f"SecureError [{self.code}]: {self.internal_message or self.message}",
            extra={
                "error_code": self.code,
                "trace_id": self.trace_id,
                "status_code": self.status_code,
                "context": self.context,
            }
        )


class ValidationError(SecureError):
    """Malformed or missing input. The request had no side effect."""

    default_code = "E004"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message=message, context={"field": field} if field else None)


class NotFoundError(SecureError):
    """Referenced ticket or message does not exist."""

    default_code = "E007"

    def __init__(self, resource: str = "Resource", internal_message: Optional[str] = None):
        super().__init__(message=f"{resource} not found.", internal_message=internal_message)


class ForbiddenError(SecureError):
    """Authenticated actor lacks rights for the ticket or action."""

    default_code = "E006"

    def __init__(self, message: Optional[str] = None, internal_message: Optional[str] = None):
        super().__init__(message=message, internal_message=internal_message)


class UnauthorizedError(SecureError):
    """Missing or invalid credentials."""

    default_code = "E005"


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Render FastAPI request validation failures as our 400 ValidationError.

    Only the offending field name reaches the client; pydantic's detail is logged.
    """
    errors = exc.errors()
    location = errors[0].get("loc", ()) if errors else ()
    field = str(location[-1]) if location else None

    error = ValidationError(
        f"Invalid value for '{field}'." if field else ERROR_CODES["E004"],
        field=field,
    )
    error.internal_message = f"{request.method} {request.url.path}: {errors}"
    return await secure_exception_handler(request, error)


async def secure_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Global exception handler for FastAPI that never exposes internal details.

    Register with:
        app.add_exception_handler(SecureError, secure_exception_handler)
        app.add_exception_handler(Exception, secure_exception_handler)
    """
    # Handle our custom SecureError
    if isinstance(exc, SecureError):
        exc.log_error()
        if exc.status_code >= 500:
            capture_exception(exc, extra={"trace_id": exc.trace_id})
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_response()
        )

    # Handle FastAPI/Starlette HTTPException
    if isinstance(exc, (HTTPException, StarletteHTTPException)):
        trace_id = generate_trace_id()
        code = _http_status_to_error_code(exc.status_code)

        logger.warning(
            f"HTTPException [{code}] trace_id={trace_id}: {exc.detail}",
            extra={
                "trace_id": trace_id,
                "status_code": exc.status_code,
                "path": str(request.url.path),
                "method": request.method,
            }
        )

        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": {
                    "code": code,
                    "message": exc.detail if _is_safe_message(str(exc.detail)) else ERROR_CODES.get(code, ERROR_CODES["E001"]),
                    "trace_id": trace_id,
                    "timestamp": datetime.utcnow().isoformat(),
                }
            },
            headers=getattr(exc, "headers", None),
        )

    # Handle unexpected exceptions - never expose details
    trace_id = generate_trace_id()

    logger.error(
        f"Unhandled exception trace_id={trace_id}",
        extra={
            "trace_id": trace_id,
            "exception_type": type(exc).__name__,
            "path": str(request.url.path),
            "method": request.method,
        },
        exc_info=exc,
    )
    capture_exception(exc, extra={"trace_id": trace_id})

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "E001",
                "message": ERROR_CODES["E001"],
                "trace_id": trace_id,
                "timestamp": datetime.utcnow().isoformat(),
            }
        }
    )


def _http_status_to_error_code(status_code: int) -> str:
    """Map HTTP status codes to our error codes."""
    mapping = {
        400: "E004",
        401: "E005",
        403: "E006",
        404: "E007",
        422: "E009",
        429: "E008",
        500: "E001",
        503: "E002",
    }
    return mapping.get(status_code, "E001")


def _is_safe_message(message: str) -> bool:
    """
    Check if an error message is safe to expose to clients.

    Unsafe patterns include stack traces, file paths and driver names.
    """
    unsafe_patterns = [
        "Traceback",
        "File \"",
        "Exception:",
        "at 0x",
        "/usr/",
        "/home/",
        "/var/",
        "pymongo",
        "motor",
        "bson",
        "mongodb",
        "localhost",
        ".py",
    ]

    message_lower = message.lower()
    return not any(pattern.lower() in message_lower for pattern in unsafe_patterns)


__all__ = [
    'SecureError',
    'ValidationError',
    'NotFoundError',
    'ForbiddenError',
    'UnauthorizedError',
    'ERROR_CODES',
    'DEFAULT_STATUS_CODES',
    'generate_trace_id',
    'request_validation_handler',
    'secure_exception_handler',
]
