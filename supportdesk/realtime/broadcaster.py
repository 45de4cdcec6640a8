"""
Room Broadcaster - ephemeral per-ticket fan-out

Each ticket id names a room. Sessions join and leave rooms explicitly and
are dropped from every room when they disconnect. Membership lives only in
this process; a restart empties every room and clients must re-join.

Membership changes never await, so on a single event loop they cannot
interleave with a publish that is in progress. Each member gets send_timeout
seconds per event; a member that cannot keep up is dropped like a broken one.
"""
import asyncio
import logging
from typing import Any, Dict, List, Optional, Protocol, Set, runtime_checkable

from supportdesk.config import settings

logger = logging.getLogger(__name__)


@runtime_checkable
class Session(Protocol):
    """A connected client that can receive room events"""

    session_id: str

    async def send(self, event: str, data: Any) -> None:
        ...


class RoomBroadcaster:
    """
    Room membership and best-effort delivery.

    The membership map is private; callers only get join/leave/disconnect,
    publish and read-only snapshots.
    """

    def __init__(self, send_timeout: Optional[float] = None):
        self.send_timeout = send_timeout if send_timeout is not None else settings.realtime_send_timeout
        self._rooms: Dict[str, Dict[str, Session]] = {}
        self._session_rooms: Dict[str, Set[str]] = {}

    def join(self, session: Session, ticket_id: str) -> None:
        """Add session to the ticket's room. Idempotent."""
        self._rooms.setdefault(ticket_id, {})[session.session_id] = session
        self._session_rooms.setdefault(session.session_id, set()).add(ticket_id)
        logger.debug(f"Session {session.session_id} joined room {ticket_id}")

    def leave(self, session: Session, ticket_id: str) -> None:
        """Remove session from the ticket's room. No-op if not a member."""
        self._remove(session.session_id, ticket_id)

    def disconnect(self, session: Session) -> None:
        """Remove session from every room it joined"""
        for ticket_id in list(self._session_rooms.get(session.session_id, ())):
            self._remove(session.session_id, ticket_id)
        logger.debug(f"Session {session.session_id} disconnected")

    def _remove(self, session_id: str, ticket_id: str) -> None:
        room = self._rooms.get(ticket_id)
        if room is not None:
            room.pop(session_id, None)
            if not room:
                del self._rooms[ticket_id]

        joined = self._session_rooms.get(session_id)
        if joined is not None:
            joined.discard(ticket_id)
            if not joined:
                del self._session_rooms[session_id]

    def members(self, ticket_id: str) -> List[str]:
        """Snapshot of session ids currently in the room"""
        return list(self._rooms.get(ticket_id, {}))

    def rooms_of(self, session: Session) -> Set[str]:
        return set(self._session_rooms.get(session.session_id, ()))

    def room_count(self) -> int:
        return len(self._rooms)

    async def publish(self, ticket_id: str, event: str, data: Any) -> int:
        """
        Deliver an event to every current member of the room.

        At most once per member, no retry. A member whose send fails or does
        not finish within send_timeout is treated as gone and removed from
        all rooms.

        Returns:
            Number of members the event was delivered to
        """
        recipients = list(self._rooms.get(ticket_id, {}).values())
        if not recipients:
            return 0

        results = await asyncio.gather(
            *(self._deliver(session, event, data) for session in recipients),
            return_exceptions=True,
        )

        delivered = 0
        for session, result in zip(recipients, results):
            if isinstance(result, Exception):
                logger.warning(
                    f"Dropping session {session.session_id} from room {ticket_id}: "
                    f"{type(result).__name__}: {result}"
                )
                self.disconnect(session)
            else:
                delivered += 1

        logger.debug(f"Published {event} to room {ticket_id} ({delivered}/{len(recipients)} delivered)")
        return delivered

    async def _deliver(self, session: Session, event: str, data: Any) -> None:
        await asyncio.wait_for(session.send(event, data), timeout=self.send_timeout)

    def clear(self) -> None:
        """Forget every room (process shutdown)"""
        self._rooms.clear()
        self._session_rooms.clear()


# Process-wide broadcaster, created at startup
_broadcaster: Optional[RoomBroadcaster] = None


def init_broadcaster() -> RoomBroadcaster:
    global _broadcaster
    _broadcaster = RoomBroadcaster()
    return _broadcaster


def get_broadcaster() -> RoomBroadcaster:
    """
    Get the process broadcaster, creating it on first use

    Returns:
        RoomBroadcaster: Shared broadcaster instance
    """
    global _broadcaster
    if _broadcaster is None:
        _broadcaster = RoomBroadcaster()
    return _broadcaster


def shutdown_broadcaster() -> None:
    global _broadcaster
    if _broadcaster is not None:
        _broadcaster.clear()
        _broadcaster = None
