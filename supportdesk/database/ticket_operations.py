"""
Ticket store operations used by the message layer

Ticket CRUD belongs to the tickets service. This module only looks tickets
up, records conversation activity and applies guarded status changes.
"""
from typing import Any, Dict, Mapping, Optional
from datetime import datetime
from supportdesk.database import get_collection, to_object_id, utcnow, COLLECTION_TICKETS
from supportdesk.models import Ticket, TicketStatus
import logging

logger = logging.getLogger(__name__)

# Status -> timestamp field stamped on the first transition into it
_TRANSITION_TIMESTAMPS = {
    TicketStatus.RESOLVED: "resolved_at",
    TicketStatus.CLOSED: "closed_at",
}


async def get_ticket(ticket_id: str) -> Optional[Dict[str, Any]]:
    """
    Fetch a ticket document by id

    Args:
        ticket_id: Ticket id as received from the client

    Returns:
        Ticket document, or None if the id is malformed or unknown
    """
    oid = to_object_id(ticket_id)
    if oid is None:
        return None
    return await get_collection(COLLECTION_TICKETS).find_one({"_id": oid})


def reply_status_transition(is_owner: bool, current_status: Optional[str]) -> Optional[TicketStatus]:
    """
    Status a ticket moves to when a message is posted.

    Only the owning customer replying to a pending ticket reopens it.
    Staff replies and every other status leave it alone.
    """
    if is_owner and current_status == TicketStatus.PENDING:
        return TicketStatus.OPEN
    return None


def apply_status_change(
    ticket: Mapping[str, Any],
    new_status: TicketStatus,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Compute the $set fields for moving a ticket to new_status.

    resolved_at / closed_at are stamped only when the status actually
    changes and the timestamp has never been set.

    Returns:
        Fields to set; empty when the ticket already has new_status
    """
    previous = ticket.get("status")
    if previous == new_status:
        return {}

    now = now or utcnow()
    changes: Dict[str, Any] = {"status": new_status.value, "updated_at": now}

    timestamp_field = _TRANSITION_TIMESTAMPS.get(new_status)
    if timestamp_field and not ticket.get(timestamp_field):
        changes[timestamp_field] = now

    return changes


async def record_reply_activity(
    ticket: Mapping[str, Any],
    is_owner: bool,
    now: Optional[datetime] = None,
) -> Optional[TicketStatus]:
    """
    Touch the ticket after a message was stored and reopen it if needed.

    The status change is written as a compare-and-set on the status we read,
    so a concurrent staff change is not overwritten; in that case only the
    activity timestamp is updated.

    Returns:
        New status if the ticket was transitioned, else None
    """
    collection = get_collection(COLLECTION_TICKETS)
    now = now or utcnow()
    current_status = ticket.get("status")
    new_status = reply_status_transition(is_owner, current_status)

    if new_status is not None:
        changes = apply_status_change(ticket, new_status, now)
        result = await collection.update_one(
            {"_id": ticket["_id"], "status": current_status},
            {"$set": changes},
        )
        if result.matched_count:
            logger.info(f"Ticket {ticket['_id']} moved {current_status} -> {new_status.value} on customer reply")
            return new_status
        logger.info(f"Ticket {ticket['_id']} status changed concurrently; skipping reopen")

    await collection.update_one(
        {"_id": ticket["_id"]},
        {"$set": {"updated_at": now}},
    )
    return None


async def update_ticket_status(
    ticket: Mapping[str, Any],
    new_status: TicketStatus,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Persist a status change through the first-transition guard.

    Returns:
        Ticket document with the change applied
    """
    changes = apply_status_change(ticket, new_status, now)
    if changes:
        await get_collection(COLLECTION_TICKETS).update_one(
            {"_id": ticket["_id"]},
            {"$set": changes},
        )
        logger.info(f"Ticket {ticket['_id']} status {ticket.get('status')} -> {new_status.value}")
    return {**ticket, **changes}


def ticket_to_model(ticket: Mapping[str, Any]) -> Ticket:
    """Convert a ticket document (ObjectId references) to the API model"""
    data = dict(ticket)
    for key in ("_id", "customer", "assigned_to", "company"):
        if data.get(key) is not None:
            data[key] = str(data[key])
    return Ticket.model_validate(data)
