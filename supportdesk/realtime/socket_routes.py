"""
WebSocket endpoint for ticket rooms

Frames in both directions are JSON objects {"event": <name>, "data": <payload>}.

Client -> server:
    join-ticket   data: ticket id
    leave-ticket  data: ticket id
    send-message  data: {"ticketId", "message", "attachments"?}

Server -> client:
    new-message, message-deleted, ticket-updated   room events
    joined-ticket, left-ticket, message-sent       acknowledgements
    error                                          {"code", "message"}

send-message goes through the Message Service like the HTTP endpoint, so
it is authorized and persisted before anything is broadcast.
"""
import json
import logging
import uuid
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status

from supportdesk.database import to_object_id
from supportdesk.middleware.auth import actor_from_token
from supportdesk.middleware.cors import is_origin_allowed
from supportdesk.models import Actor
from supportdesk.security import SecureError, ValidationError
from supportdesk.security.error_handler import ERROR_CODES
from supportdesk.services.message_service import MessageService, get_message_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])

EVENT_JOIN_TICKET = "join-ticket"
EVENT_LEAVE_TICKET = "leave-ticket"
EVENT_SEND_MESSAGE = "send-message"
EVENT_ERROR = "error"


class WebSocketSession:
    """Room member backed by one websocket connection"""

    def __init__(self, websocket: WebSocket, actor: Actor):
        self.session_id = uuid.uuid4().hex
        self.websocket = websocket
        self.actor = actor

    async def send(self, event: str, data: Any) -> None:
        await self.websocket.send_json({"event": event, "data": data})


def _ticket_id_from(data: Any, key: str = "ticketId") -> str:
    if isinstance(data, dict):
        data = data.get(key)
    if not isinstance(data, str) or not data.strip():
        raise ValidationError("A ticket id is required.", field=key)
    return data.strip()


def _room_name(ticket_id: str) -> str:
    oid = to_object_id(ticket_id)
    return str(oid) if oid is not None else ticket_id


async def handle_frame(service: MessageService, session: WebSocketSession, frame: Any) -> None:
    """Dispatch one client frame; SecureErrors propagate to the caller"""
    if not isinstance(frame, dict) or not isinstance(frame.get("event"), str):
        raise ValidationError("Frames must be objects with an 'event' field.")

    event = frame["event"]
    data = frame.get("data")
    broadcaster = service.broadcaster

    if event == EVENT_JOIN_TICKET:
        room = await service.room_for(session.actor, _ticket_id_from(data))
        broadcaster.join(session, room)
        logger.info(f"User {session.actor.id} joined ticket room {room}")
        await session.send("joined-ticket", {"ticket_id": room})

    elif event == EVENT_LEAVE_TICKET:
        room = _room_name(_ticket_id_from(data))
        broadcaster.leave(session, room)
        await session.send("left-ticket", {"ticket_id": room})

    elif event == EVENT_SEND_MESSAGE:
        if not isinstance(data, dict):
            raise ValidationError("send-message expects {ticketId, message}.")
        attachments = data.get("attachments")
        if attachments is not None and (
            not isinstance(attachments, list) or not all(isinstance(a, str) for a in attachments)
        ):
            raise ValidationError("attachments must be a list of references.", field="attachments")

        result = await service.send_message(
            session.actor,
            _ticket_id_from(data),
            data.get("message"),
            attachments,
        )
        await session.send("message-sent", {"id": result.message.id, "warnings": result.warnings})

    else:
        raise ValidationError(f"Unknown event: {event}", field="event")


async def _send_error(session: WebSocketSession, code: str, message: str) -> None:
    await session.send(EVENT_ERROR, {"code": code, "message": message})


@router.websocket("/ws")
async def ticket_socket(
    websocket: WebSocket,
    token: Optional[str] = Query(None),
    service: MessageService = Depends(get_message_service),
):
    """
    Real-time channel for ticket conversations.

    Authenticate with ?token=<jwt>. Joining a room requires the same access
    as reading the ticket's messages.
    """
    origin = websocket.headers.get("origin")
    if origin and not is_origin_allowed(origin):
        logger.warning(f"WebSocket from disallowed origin {origin}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    actor = actor_from_token(token)
    if actor is None:
        logger.warning("WebSocket without a valid token")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    session = WebSocketSession(websocket, actor)
    logger.info(f"Socket {session.session_id} connected (user {actor.id})")

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                await handle_frame(service, session, json.loads(raw))
            except json.JSONDecodeError:
                await _send_error(session, "E004", "Frames must be JSON.")
            except SecureError as exc:
                exc.log_error(logger)
                await _send_error(session, exc.code, exc.message)
            except WebSocketDisconnect:
                raise
            except Exception:
                logger.error(f"Socket {session.session_id} event failed", exc_info=True)
                await _send_error(session, "E001", ERROR_CODES["E001"])
    except WebSocketDisconnect:
        pass
    finally:
        service.broadcaster.disconnect(session)
        logger.info(f"Socket {session.session_id} disconnected (user {actor.id})")
