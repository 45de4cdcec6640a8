"""
Message Service - ticket conversations

Reads and appends chat messages, enforces the Access Guard, reopens
pending tickets on customer replies and pushes every change to the
ticket's room.

Send pipeline (per ticket, under one in-process lock):
    validate -> load ticket -> authorize -> insert message
    -> touch ticket / status transition -> publish "new-message"

Publishing under the same lock as the insert keeps room delivery order
equal to commit order. The message insert is the commit point: later
failures are reported as warnings or logged, never rolled back.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

from supportdesk.database import utcnow
from supportdesk.database.message_operations import (
    insert_message,
    find_messages,
    find_message,
    delete_message as delete_message_document,
    resolve_senders,
    serialize_message,
)
from supportdesk.database.ticket_operations import (
    get_ticket,
    record_reply_activity,
    update_ticket_status,
    ticket_to_model,
)
from supportdesk.models import Actor, MessageOut, SendMessageResult, Ticket, TicketStatus
from supportdesk.realtime.broadcaster import RoomBroadcaster, get_broadcaster
from supportdesk.security import (
    Capability,
    ForbiddenError,
    NotFoundError,
    ValidationError,
    can_access,
    has_capability,
    is_ticket_owner,
)
from supportdesk.utils.monitoring import capture_exception

logger = logging.getLogger(__name__)

EVENT_NEW_MESSAGE = "new-message"
EVENT_MESSAGE_DELETED = "message-deleted"
EVENT_TICKET_UPDATED = "ticket-updated"

WARNING_TICKET_UPDATE_FAILED = "ticket_update_failed"


class KeyedLock:
    """asyncio locks created per key and dropped once nobody holds or waits"""

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._holders: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._holders[key] = self._holders.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[key] -= 1
            if not self._holders[key]:
                del self._holders[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


class MessageService:
    """Orchestrates message reads/writes and their real-time side effects"""

    def __init__(self, broadcaster: RoomBroadcaster):
        self.broadcaster = broadcaster
        self._ticket_locks = KeyedLock()

    async def _load_accessible_ticket(self, actor: Actor, ticket_id: str) -> Dict[str, Any]:
        ticket = await get_ticket(ticket_id)
        if not ticket:
            raise NotFoundError("Ticket", internal_message=f"ticket {ticket_id} not found")

        if not can_access(actor, ticket):
            raise ForbiddenError(
                message="Not authorized to access this conversation.",
                internal_message=f"user {actor.id} ({actor.role.value}) denied on ticket {ticket_id}",
            )
        return ticket

    async def room_for(self, actor: Actor, ticket_id: str) -> str:
        """
        Room name of a ticket the actor may use

        Raises:
            NotFoundError: Unknown ticket
            ForbiddenError: Customer who does not own the ticket
        """
        ticket = await self._load_accessible_ticket(actor, ticket_id)
        return str(ticket["_id"])

    async def list_messages(self, actor: Actor, ticket_id: str) -> List[MessageOut]:
        """
        Messages of a ticket, oldest first, senders resolved for display

        Raises:
            NotFoundError: Unknown ticket
            ForbiddenError: Customer who does not own the ticket
        """
        ticket = await self._load_accessible_ticket(actor, ticket_id)

        messages = await find_messages(ticket["_id"])
        senders = await resolve_senders(message["sender"] for message in messages)
        return [serialize_message(message, senders) for message in messages]

    async def send_message(
        self,
        actor: Actor,
        ticket_id: str,
        body: Optional[str],
        attachments: Optional[List[str]] = None,
    ) -> SendMessageResult:
        """
        Post a message to a ticket conversation

        Args:
            actor: Sender
            ticket_id: Target ticket
            body: Message text; surrounding whitespace is stripped
            attachments: References from the upload endpoint

        Returns:
            Stored message plus warnings for follow-up steps that failed

        Raises:
            ValidationError: Empty body
            NotFoundError: Unknown ticket
            ForbiddenError: Customer who does not own the ticket
        """
        text = body.strip() if isinstance(body, str) else ""
        if not text:
            raise ValidationError("Message cannot be empty.", field="message")

        ticket = await self._load_accessible_ticket(actor, ticket_id)
        room = str(ticket["_id"])
        warnings: List[str] = []

        async with self._ticket_locks.hold(room):
            now = utcnow()
            message_doc = await insert_message(ticket["_id"], actor.id, text, attachments, now)
            logger.info(f"Message {message_doc['_id']} stored on ticket {room} by user {actor.id}")

            try:
                await record_reply_activity(ticket, is_ticket_owner(actor, ticket), now)
            except Exception as exc:
                logger.error(
                    f"Message {message_doc['_id']} saved but ticket {room} update failed",
                    exc_info=exc,
                )
                capture_exception(exc, tags={"step": "ticket_update"}, extra={"ticket_id": room})
                warnings.append(WARNING_TICKET_UPDATE_FAILED)

            message = serialize_message(message_doc, await self._sender_display(actor, message_doc["sender"]))
            await self._publish(room, EVENT_NEW_MESSAGE, message.model_dump(mode="json"))

        return SendMessageResult(message=message, warnings=warnings)

    async def _sender_display(self, actor: Actor, sender_id: Any) -> Dict[str, Dict[str, Any]]:
        # The sender is the actor; token claims stand in if the user lookup fails
        try:
            senders = await resolve_senders([sender_id])
        except Exception as exc:
            logger.warning(f"Sender lookup failed for user {actor.id}: {exc}")
            senders = {}

        if str(sender_id) not in senders:
            senders[str(sender_id)] = {"name": actor.name, "email": actor.email, "role": actor.role.value}
        return senders

    async def delete_message(self, actor: Actor, message_id: str) -> None:
        """
        Hard delete a message (admins and agents only)

        Raises:
            ForbiddenError: Actor is a customer
            NotFoundError: Unknown message
        """
        if not has_capability(actor, Capability.DELETE_MESSAGES):
            raise ForbiddenError(internal_message=f"user {actor.id} ({actor.role.value}) may not delete messages")

        message = await find_message(message_id)
        if not message or not await delete_message_document(message["_id"]):
            raise NotFoundError("Message", internal_message=f"message {message_id} not found")

        room = str(message["ticket"])
        logger.info(f"Message {message_id} deleted from ticket {room} by user {actor.id}")
        await self._publish(room, EVENT_MESSAGE_DELETED, {"id": str(message["_id"]), "ticket_id": room})

    async def change_ticket_status(self, actor: Actor, ticket_id: str, status: TicketStatus) -> Ticket:
        """
        Staff status change; resolved_at / closed_at are stamped once

        Raises:
            ForbiddenError: Actor is a customer
            NotFoundError: Unknown ticket
        """
        if not has_capability(actor, Capability.CHANGE_TICKET_STATUS):
            raise ForbiddenError(internal_message=f"user {actor.id} ({actor.role.value}) may not change status")

        ticket = await get_ticket(ticket_id)
        if not ticket:
            raise NotFoundError("Ticket", internal_message=f"ticket {ticket_id} not found")

        room = str(ticket["_id"])
        async with self._ticket_locks.hold(room):
            previous = ticket.get("status")
            updated = ticket_to_model(await update_ticket_status(ticket, status))
            if previous != status:
                await self._publish(
                    room,
                    EVENT_TICKET_UPDATED,
                    {
                        "ticket_id": room,
                        "status": updated.status.value,
                        "resolved_at": updated.resolved_at.isoformat() if updated.resolved_at else None,
                        "closed_at": updated.closed_at.isoformat() if updated.closed_at else None,
                    },
                )
        return updated

    async def _publish(self, room: str, event: str, data: Any) -> None:
        # Delivery is best effort; the write that triggered it already happened
        try:
            await self.broadcaster.publish(room, event, data)
        except Exception as exc:
            logger.error(f"Broadcast of {event} to room {room} failed", exc_info=exc)
            capture_exception(exc, tags={"step": "broadcast"}, extra={"ticket_id": room})


# Process-wide service, bound to the process broadcaster
_service: Optional[MessageService] = None


def init_message_service(broadcaster: Optional[RoomBroadcaster] = None) -> MessageService:
    global _service
    _service = MessageService(broadcaster or get_broadcaster())
    return _service


def get_message_service() -> MessageService:
    """FastAPI dependency returning the shared MessageService"""
    global _service
    if _service is None:
        _service = MessageService(get_broadcaster())
    return _service


def reset_message_service() -> None:
    global _service
    _service = None
