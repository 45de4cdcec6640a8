"""
Message store operations

Messages are immutable once written; the only other write is a hard delete.
"""
from typing import Any, Dict, Iterable, List, Mapping, Optional
from datetime import datetime
from bson import ObjectId
from supportdesk.database import get_collection, to_object_id, utcnow, COLLECTION_MESSAGES, COLLECTION_USERS
from supportdesk.models import MessageOut, SenderInfo

# Only these user fields ever leave the users collection
SENDER_PROJECTION = {"name": 1, "email": 1, "role": 1}


async def insert_message(
    ticket_id: ObjectId,
    sender_id: str,
    body: str,
    attachments: Optional[List[str]] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Store a new chat message

    Args:
        ticket_id: Parent ticket _id
        sender_id: Actor id of the sender
        body: Message text, already trimmed
        attachments: Upload references, stored verbatim
        now: Creation timestamp

    Returns:
        Created message document including _id
    """
    collection = get_collection(COLLECTION_MESSAGES)

    message_doc = {
        "ticket": ticket_id,
        "sender": to_object_id(sender_id) or sender_id,
        "message": body,
        "attachments": list(attachments or []),
        "created_at": now or utcnow(),
    }

    result = await collection.insert_one(message_doc)
    message_doc["_id"] = result.inserted_id
    return message_doc


async def find_messages(ticket_id: ObjectId) -> List[Dict[str, Any]]:
    """
    All messages of a ticket, oldest first.

    Insertion order (_id) breaks ties between equal timestamps.
    """
    collection = get_collection(COLLECTION_MESSAGES)
    cursor = collection.find({"ticket": ticket_id}).sort([("created_at", 1), ("_id", 1)])
    return [message async for message in cursor]


async def find_message(message_id: str) -> Optional[Dict[str, Any]]:
    oid = to_object_id(message_id)
    if oid is None:
        return None
    return await get_collection(COLLECTION_MESSAGES).find_one({"_id": oid})


async def delete_message(message_id: ObjectId) -> bool:
    """Hard delete. Returns False if nothing was removed."""
    result = await get_collection(COLLECTION_MESSAGES).delete_one({"_id": message_id})
    return result.deleted_count > 0


async def resolve_senders(sender_ids: Iterable[Any]) -> Dict[str, Dict[str, Any]]:
    """
    Load display fields for a set of senders in one query

    Returns:
        Mapping of str(user id) -> {"name", "email", "role"}
    """
    ids = list({sender_id for sender_id in sender_ids if sender_id is not None})
    if not ids:
        return {}

    cursor = get_collection(COLLECTION_USERS).find({"_id": {"$in": ids}}, SENDER_PROJECTION)
    return {str(user["_id"]): user async for user in cursor}


def serialize_message(message: Mapping[str, Any], senders: Mapping[str, Mapping[str, Any]]) -> MessageOut:
    """Build the client view of a message with the sender resolved for display"""
    sender_id = str(message["sender"])
    sender = senders.get(sender_id, {})
    return MessageOut(
        id=str(message["_id"]),
        ticket_id=str(message["ticket"]),
        sender=SenderInfo(
            id=sender_id,
            name=sender.get("name"),
            email=sender.get("email"),
            role=sender.get("role"),
        ),
        message=message["message"],
        attachments=list(message.get("attachments") or []),
        created_at=message["created_at"],
    )
