"""
API endpoints
"""
from .message_routes import router as message_router
from .ticket_routes import router as ticket_router
from .health_routes import router as health_router

__all__ = [
    "message_router",
    "ticket_router",
    "health_router",
]
