"""
Rate Limiting

Fingerprint-based keys combine IP, User-Agent and the bearer token prefix,
so rotating IPs alone does not reset a client's budget.
"""
import hashlib
import logging
from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

logger = logging.getLogger(__name__)


# Rate limits by operation type
RATE_LIMITS = {
    "default": "100/minute",
    "read": "120/minute",
    "write": "30/minute",
    "upload": "10/minute",
    "admin": "20/minute",
}


def get_rate_limit_key(request: Request) -> str:
    """
    Generate a rate limit key based on client fingerprint.

    Args:
        request: FastAPI request object

    Returns:
        MD5 hash of "ip:user-agent:token-prefix"
    """
    ip = get_remote_address(request)
    user_agent = request.headers.get("User-Agent", "")[:50]
    # Tail of the token falls in the JWT signature
    token_tail = request.headers.get("Authorization", "")[-16:]

    fingerprint = f"{ip}:{user_agent}:{token_tail}"
    return hashlib.md5(fingerprint.encode()).hexdigest()


def get_rate_limit(operation_type: str) -> str:
    """
    Get the rate limit string for a specific operation type.

    Args:
        operation_type: 'read', 'write', 'upload', 'admin'

    Returns:
        Rate limit string (e.g., '30/minute')
    """
    return RATE_LIMITS.get(operation_type, RATE_LIMITS["default"])


# Shared limiter; main.py attaches it to app.state
limiter = Limiter(key_func=get_rate_limit_key, default_limits=[RATE_LIMITS["default"]])
