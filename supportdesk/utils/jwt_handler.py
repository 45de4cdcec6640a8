"""
JWT token handler for bearer authentication

Tokens are issued by the auth service; this API only verifies them.
create_jwt_token exists for scripts and tests.
"""
import jwt
from datetime import datetime, timedelta
from typing import Optional
from supportdesk.config import settings
import logging

logger = logging.getLogger(__name__)


def create_jwt_token(
    user_id: str,
    role: str,
    email: Optional[str] = None,
    name: Optional[str] = None,
    company_id: Optional[str] = None,
    expires_in: timedelta = timedelta(hours=24),
) -> str:
    """
    Create a signed JWT carrying the actor claims

    Args:
        user_id: User ID (stored in "sub")
        role: admin | agent | customer
        email: User email
        name: Display name
        company_id: Company the user belongs to

    Returns:
        JWT token string
    """
    now = datetime.utcnow()
    payload = {
        "sub": user_id,
        "role": role,
        "email": email,
        "name": name,
        "company_id": company_id,
        "exp": now + expires_in,
        "iat": now,
    }

    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def verify_jwt_token(token: str) -> Optional[dict]:
    """
    Verify and decode JWT token

    Args:
        token: JWT token string

    Returns:
        Decoded payload if valid, None if invalid
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["sub", "exp"]},
        )
        logger.debug(f"JWT token verified for user {payload.get('sub')}")
        return payload
    except jwt.ExpiredSignatureError:
        logger.warning("JWT token expired")
        return None
    except jwt.InvalidTokenError as e:
        logger.warning(f"Invalid JWT token: {str(e)}")
        return None
