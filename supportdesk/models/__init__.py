"""
Pydantic models for data validation
"""
from .user import UserRole, Actor
from .ticket import (
    Ticket,
    TicketStatus,
    TicketPriority,
    TicketCategory,
    TicketStatusUpdate,
)
from .message import SendMessageRequest, SenderInfo, MessageOut, SendMessageResult

__all__ = [
    "UserRole",
    "Actor",
    "Ticket",
    "TicketStatus",
    "TicketPriority",
    "TicketCategory",
    "TicketStatusUpdate",
    "SendMessageRequest",
    "SenderInfo",
    "MessageOut",
    "SendMessageResult",
]
