"""
MongoDB connection management using Motor (async)
"""
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase, AsyncIOMotorCollection
from bson import ObjectId
from bson.errors import InvalidId
from datetime import datetime
from typing import Any, Optional
from supportdesk.config import settings


# Global async client instance
_client: Optional[AsyncIOMotorClient] = None


def get_client() -> AsyncIOMotorClient:
    """
    Get or create async MongoDB client instance

    Returns:
        AsyncIOMotorClient: Async MongoDB client
    """
    global _client
    if _client is None:
        _client = AsyncIOMotorClient(settings.mongodb_uri)
    return _client


def get_database() -> AsyncIOMotorDatabase:
    """
    Get the support desk database

    Returns:
        AsyncIOMotorDatabase: Async MongoDB database instance
    """
    client = get_client()
    return client[settings.database_name]


def get_collection(collection_name: str) -> AsyncIOMotorCollection:
    """
    Get a specific collection from the database

    Args:
        collection_name: Name of the collection

    Returns:
        AsyncIOMotorCollection: Async MongoDB collection instance
    """
    db = get_database()
    return db[collection_name]


async def close_connection():
    """Close the async MongoDB connection"""
    global _client
    if _client is not None:
        _client.close()
        _client = None


def to_object_id(value: Any) -> Optional[ObjectId]:
    """
    Convert a path/body identifier to an ObjectId.

    Returns None for malformed ids so callers can answer "not found"
    instead of leaking a parser error.
    """
    if isinstance(value, ObjectId):
        return value
    if not isinstance(value, str):
        return None
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def utcnow() -> datetime:
    """Current UTC time truncated to the millisecond precision MongoDB stores"""
    now = datetime.utcnow()
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


# Collection names
COLLECTION_TICKETS = "tickets"
COLLECTION_MESSAGES = "chat_messages"
COLLECTION_USERS = "users"
COLLECTION_COMPANIES = "companies"


async def ensure_indexes():
    """
    Create all required indexes for the database
    """
    db = get_database()

    # Messages are always read per ticket, oldest first
    await db[COLLECTION_MESSAGES].create_index([("ticket", 1), ("created_at", 1)])

    # Tickets indexes
    await db[COLLECTION_TICKETS].create_index([("customer", 1), ("status", 1)])
    await db[COLLECTION_TICKETS].create_index([("assigned_to", 1), ("status", 1)])
    await db[COLLECTION_TICKETS].create_index([("company", 1)])

    # Users indexes
    await db[COLLECTION_USERS].create_index([("email", 1)], unique=True)
    await db[COLLECTION_USERS].create_index([("company", 1)])

    # Companies indexes
    await db[COLLECTION_COMPANIES].create_index([("name", 1)], unique=True)
