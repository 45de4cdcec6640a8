"""
Chat message models
"""
from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Optional


class SendMessageRequest(BaseModel):
    """Body of POST /api/tickets/{ticket_id}/messages"""
    # Emptiness is checked by the message service so it maps to a 400
    message: Optional[str] = Field(None, description="Message text")
    attachments: Optional[List[str]] = Field(None, description="References returned by the upload endpoint")


class SenderInfo(BaseModel):
    """Display fields of a message sender"""
    id: str
    name: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None


class MessageOut(BaseModel):
    """Message as returned to clients and broadcast to rooms"""
    id: str
    ticket_id: str
    sender: SenderInfo
    message: str
    attachments: List[str] = Field(default_factory=list)
    created_at: datetime


class SendMessageResult(BaseModel):
    """Outcome of a send: the stored message plus non-fatal follow-up failures"""
    message: MessageOut
    warnings: List[str] = Field(default_factory=list)
