"""
Middleware for authentication, rate limiting, CORS and security headers
"""
from .auth import actor_from_token, get_current_actor, require_staff
from .rate_limiter import limiter, get_rate_limit_key, get_rate_limit, RATE_LIMITS
from .cors import get_cors_origins, is_origin_allowed
from .security_headers import SecurityHeadersMiddleware

__all__ = [
    # Authentication
    "actor_from_token",
    "get_current_actor",
    "require_staff",
    # Rate Limiting
    "limiter",
    "get_rate_limit_key",
    "get_rate_limit",
    "RATE_LIMITS",
    # CORS
    "get_cors_origins",
    "is_origin_allowed",
    # Security Headers
    "SecurityHeadersMiddleware",
]
