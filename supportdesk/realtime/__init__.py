"""
Real-time rooms. The websocket endpoint lives in supportdesk.realtime.socket_routes.
"""
from .broadcaster import (
    Session,
    RoomBroadcaster,
    init_broadcaster,
    get_broadcaster,
    shutdown_broadcaster,
)

__all__ = [
    "Session",
    "RoomBroadcaster",
    "init_broadcaster",
    "get_broadcaster",
    "shutdown_broadcaster",
]
