"""
Ticket models
"""
from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Optional
from enum import Enum


class TicketStatus(str, Enum):
    """Ticket status values"""
    OPEN = "open"
    IN_PROGRESS = "in-progress"
    RESOLVED = "resolved"
    CLOSED = "closed"
    PENDING = "pending"  # Awaiting an agent; a customer reply reopens it


class TicketPriority(str, Enum):
    """Ticket priority levels"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class TicketCategory(str, Enum):
    """Ticket categories"""
    TECHNICAL = "technical"
    BILLING = "billing"
    GENERAL = "general"
    FEATURE_REQUEST = "feature-request"
    BUG = "bug"


class Ticket(BaseModel):
    """Ticket document as stored in the tickets collection"""
    id: Optional[str] = Field(None, alias="_id")
    title: str
    description: str
    status: TicketStatus = TicketStatus.OPEN
    priority: TicketPriority = TicketPriority.MEDIUM
    category: TicketCategory = TicketCategory.GENERAL
    customer: str
    assigned_to: Optional[str] = None
    company: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None

    class Config:
        populate_by_name = True


class TicketStatusUpdate(BaseModel):
    """Request body for a staff status change"""
    status: TicketStatus
