"""
Authorization and safe error handling
"""
from .access import Capability, ROLE_CAPABILITIES, can_access, has_capability, is_staff, is_ticket_owner
from .error_handler import (
    SecureError,
    ValidationError,
    NotFoundError,
    ForbiddenError,
    UnauthorizedError,
    request_validation_handler,
    secure_exception_handler,
)

__all__ = [
    "Capability",
    "ROLE_CAPABILITIES",
    "can_access",
    "has_capability",
    "is_staff",
    "is_ticket_owner",
    "SecureError",
    "ValidationError",
    "NotFoundError",
    "ForbiddenError",
    "UnauthorizedError",
    "request_validation_handler",
    "secure_exception_handler",
]
