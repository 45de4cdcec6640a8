"""
API routes for ticket conversations
"""
from typing import Optional

from fastapi import APIRouter, Depends, File, Request, UploadFile, status

from supportdesk.middleware.auth import get_current_actor, require_staff
from supportdesk.middleware.rate_limiter import limiter, get_rate_limit
from supportdesk.models import Actor, SendMessageRequest
from supportdesk.security import ValidationError
from supportdesk.services.attachments import AttachmentHandler, get_attachment_handler
from supportdesk.services.message_service import MessageService, get_message_service


router = APIRouter(prefix="/api", tags=["messages"])


@router.get("/tickets/{ticket_id}/messages")
@limiter.limit(get_rate_limit("read"))
async def get_ticket_messages(
    request: Request,  # Required by slowapi
    ticket_id: str,
    actor: Actor = Depends(get_current_actor),
    service: MessageService = Depends(get_message_service),
):
    """
    List a ticket's messages, oldest first

    Access: ticket owner, agents and admins

    Returns:
        {"success", "count", "messages"}
    """
    messages = await service.list_messages(actor, ticket_id)
    return {
        "success": True,
        "count": len(messages),
        "messages": [message.model_dump(mode="json") for message in messages],
    }


@router.post("/tickets/{ticket_id}/messages", status_code=status.HTTP_201_CREATED)
@limiter.limit(get_rate_limit("write"))
async def send_ticket_message(
    request: Request,  # Required by slowapi
    ticket_id: str,
    body: SendMessageRequest,
    actor: Actor = Depends(get_current_actor),
    service: MessageService = Depends(get_message_service),
):
    """
    Post a message to a ticket

    A reply from the owning customer reopens a pending ticket. The new
    message is pushed to everyone in the ticket's room as "new-message".

    Returns:
        {"success", "message", "warnings"}; warnings lists follow-up steps
        that failed after the message was stored
    """
    result = await service.send_message(actor, ticket_id, body.message, body.attachments)
    return {
        "success": True,
        "message": result.message.model_dump(mode="json"),
        "warnings": result.warnings,
    }


@router.post("/tickets/{ticket_id}/messages/upload")
@limiter.limit(get_rate_limit("upload"))
async def upload_attachment(
    request: Request,  # Required by slowapi
    ticket_id: str,
    file: Optional[UploadFile] = File(None),
    actor: Actor = Depends(get_current_actor),
    service: MessageService = Depends(get_message_service),
    attachments: AttachmentHandler = Depends(get_attachment_handler),
):
    """
    Upload one attachment (JPEG, PNG or PDF, up to 20 MB)

    The returned fileUrl is what clients put in a message's attachments.
    """
    if file is None:
        raise ValidationError("No file uploaded.", field="file")

    await service.room_for(actor, ticket_id)
    file_url = await attachments.save(file)
    return {"success": True, "fileUrl": file_url}


@router.delete("/messages/{message_id}")
@limiter.limit(get_rate_limit("admin"))
async def delete_message(
    request: Request,  # Required by slowapi
    message_id: str,
    actor: Actor = Depends(require_staff),
    service: MessageService = Depends(get_message_service),
):
    """
    Permanently delete a message

    Access: agents and admins
    """
    await service.delete_message(actor, message_id)
    return {"success": True}
