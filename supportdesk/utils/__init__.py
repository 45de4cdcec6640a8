"""
Utility functions
"""
from .jwt_handler import create_jwt_token, verify_jwt_token
from .secure_logging import (
    SensitiveDataFilter,
    SecureFormatter,
    JSONSecureFormatter,
    SENSITIVE_PATTERNS,
    configure_secure_logging,
)

__all__ = [
    # JWT
    "create_jwt_token",
    "verify_jwt_token",
    # Secure Logging
    "SensitiveDataFilter",
    "SecureFormatter",
    "JSONSecureFormatter",
    "SENSITIVE_PATTERNS",
    "configure_secure_logging",
]
