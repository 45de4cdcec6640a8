"""
API routes for ticket status changes made by staff
"""
from fastapi import APIRouter, Depends, Request

from supportdesk.middleware.auth import require_staff
from supportdesk.middleware.rate_limiter import limiter, get_rate_limit
from supportdesk.models import Actor, TicketStatusUpdate
from supportdesk.services.message_service import MessageService, get_message_service


router = APIRouter(prefix="/api/tickets", tags=["tickets"])


@router.put("/{ticket_id}/status")
@limiter.limit(get_rate_limit("write"))
async def update_status(
    request: Request,  # Required by slowapi
    ticket_id: str,
    body: TicketStatusUpdate,
    actor: Actor = Depends(require_staff),
    service: MessageService = Depends(get_message_service),
):
    """
    Change a ticket's status

    resolved_at / closed_at are stamped on the first move into those
    states only. The ticket room receives "ticket-updated".
    """
    ticket = await service.change_ticket_status(actor, ticket_id, body.status)
    return {"success": True, "ticket": ticket.model_dump(mode="json")}
