"""
Database connection and utilities
"""
from .connection import (
    get_client,
    get_database,
    get_collection,
    close_connection,
    ensure_indexes,
    to_object_id,
    utcnow,
    COLLECTION_TICKETS,
    COLLECTION_MESSAGES,
    COLLECTION_USERS,
    COLLECTION_COMPANIES,
)

__all__ = [
    "get_client",
    "get_database",
    "get_collection",
    "close_connection",
    "ensure_indexes",
    "to_object_id",
    "utcnow",
    "COLLECTION_TICKETS",
    "COLLECTION_MESSAGES",
    "COLLECTION_USERS",
    "COLLECTION_COMPANIES",
]
