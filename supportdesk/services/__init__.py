"""
Application services
"""
from .message_service import (
    MessageService,
    get_message_service,
    init_message_service,
    reset_message_service,
)
from .attachments import AttachmentHandler, get_attachment_handler

__all__ = [
    "MessageService",
    "get_message_service",
    "init_message_service",
    "reset_message_service",
    "AttachmentHandler",
    "get_attachment_handler",
]
