"""
Allowed browser origins

FRONTEND_URL lists the web clients that may call the API. The same list
guards the websocket handshake, which CORSMiddleware never sees.
"""
import logging
from typing import List

from supportdesk.config import settings

logger = logging.getLogger(__name__)

_LOCAL_HOSTS = ("localhost", "127.0.0.1")


def _is_local(origin: str) -> bool:
    return any(host in origin.lower() for host in _LOCAL_HOSTS)


def get_cors_origins() -> List[str]:
    """
    Origins from FRONTEND_URL; local dev hosts are ignored in production.

    Raises:
        ValueError: Production config with only local origins
    """
    origins = settings.cors_allowed_origins
    if settings.environment != "production":
        return origins

    public = [origin for origin in origins if not _is_local(origin)]
    if not public:
        raise ValueError("FRONTEND_URL has no public origin for production.")
    if len(public) < len(origins):
        logger.warning(f"Ignoring local frontend origins in production: {sorted(set(origins) - set(public))}")
    return public


def is_origin_allowed(origin: str) -> bool:
    allowed = get_cors_origins()
    return "*" in allowed or origin in allowed
