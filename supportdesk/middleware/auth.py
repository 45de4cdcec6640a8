"""
Bearer token authentication

Token issuance lives in the auth service; here we only turn a valid
"Authorization: Bearer <jwt>" header (or the websocket ?token= parameter)
into an Actor.
"""
from typing import Optional
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import ValidationError as PydanticValidationError
from supportdesk.models import Actor
from supportdesk.security import ForbiddenError, UnauthorizedError, is_staff
from supportdesk.utils.jwt_handler import verify_jwt_token
import logging

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def actor_from_token(token: Optional[str]) -> Optional[Actor]:
    """
    Decode a JWT into an Actor.

    Returns:
        Actor, or None when the token is missing, invalid, expired or
        carries an unknown role
    """
    if not token:
        return None

    payload = verify_jwt_token(token)
    if not payload:
        return None

    try:
        return Actor(
            id=str(payload["sub"]),
            role=payload.get("role"),
            email=payload.get("email"),
            name=payload.get("name"),
            company_id=payload.get("company_id"),
        )
    except PydanticValidationError:
        logger.warning(f"Token for user {payload.get('sub')} carries an unknown role")
        return None


async def get_current_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Actor:
    """
    FastAPI dependency returning the authenticated actor.

    Raises:
        UnauthorizedError: If the bearer token is missing or invalid
    """
    if credentials is None:
        logger.warning("API request without bearer token")
        raise UnauthorizedError(message="Missing bearer token.")

    actor = actor_from_token(credentials.credentials)
    if actor is None:
        raise UnauthorizedError(message="Invalid or expired token.")

    return actor


async def require_staff(actor: Actor = Depends(get_current_actor)) -> Actor:
    """
    FastAPI dependency that only lets admins and agents through.

    Raises:
        ForbiddenError: If the actor is a customer
    """
    if not is_staff(actor):
        logger.warning(f"Staff-only endpoint refused for user {actor.id} (role: {actor.role.value})")
        raise ForbiddenError(internal_message=f"role {actor.role.value} is not staff")
    return actor
