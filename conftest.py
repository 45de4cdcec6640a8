import asyncio
import os
import tempfile
from copy import deepcopy
from datetime import datetime
from typing import Any, Dict, List, Optional

# Ensure required env vars exist before importing app modules.
os.environ.setdefault("MONGODB_URI", "mongodb://localhost:27017")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="supportdesk-uploads-"))

import pytest
from bson import ObjectId
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.testclient import TestClient
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from supportdesk.api import message_router, ticket_router
from supportdesk.database import (
    COLLECTION_TICKETS,
    COLLECTION_MESSAGES,
    COLLECTION_USERS,
    COLLECTION_COMPANIES,
)
from supportdesk.middleware.rate_limiter import limiter
from supportdesk.models import Actor, UserRole
from supportdesk.realtime import RoomBroadcaster
from supportdesk.realtime.socket_routes import router as socket_router
from supportdesk.security import SecureError, request_validation_handler, secure_exception_handler
from supportdesk.services import (
    AttachmentHandler,
    MessageService,
    get_attachment_handler,
    get_message_service,
    reset_message_service,
)
from supportdesk.utils.jwt_handler import create_jwt_token


def _matches(document: Dict[str, Any], filter_dict: Dict[str, Any]) -> bool:
    for key, expected in filter_dict.items():
        actual = document.get(key)
        if isinstance(expected, dict) and "$in" in expected:
            if actual not in expected["$in"]:
                return False
        elif actual != expected:
            return False
    return True


def _project(document: Dict[str, Any], projection: Optional[Dict[str, int]]) -> Dict[str, Any]:
    if not projection:
        return deepcopy(document)
    keep = {key for key, flag in projection.items() if flag}
    return {key: deepcopy(value) for key, value in document.items() if key == "_id" or key in keep}


class _Result:
    def __init__(self, **fields):
        self.__dict__.update(fields)


class FakeCollection:
    """In-memory stand-in for the Motor collection methods the app uses"""

    def __init__(self) -> None:
        self.documents: List[Dict[str, Any]] = []
        self.inserted = []
        self.updated = []
        self.deleted = []
        self.fail_on = set()  # method names that raise RuntimeError

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.fail_on:
            raise RuntimeError(f"{operation} failed")

    async def insert_one(self, document: Dict[str, Any], *args, **kwargs):
        self._maybe_fail("insert_one")
        document.setdefault("_id", ObjectId())
        self.documents.append(deepcopy(document))
        self.inserted.append(document)
        return _Result(inserted_id=document["_id"])

    async def find_one(self, filter_dict=None, projection=None, *args, **kwargs):
        self._maybe_fail("find_one")
        for document in self.documents:
            if _matches(document, filter_dict or {}):
                return _project(document, projection)
        return None

    def find(self, filter_dict=None, projection=None, *args, **kwargs):
        self._maybe_fail("find")
        items = [_project(d, projection) for d in self.documents if _matches(d, filter_dict or {})]
        return FakeCursor(items)

    async def update_one(self, filter_dict, update_dict, *args, **kwargs):
        self._maybe_fail("update_one")
        self.updated.append({"filter": filter_dict, "update": update_dict})
        for document in self.documents:
            if _matches(document, filter_dict):
                document.update(deepcopy(update_dict.get("$set", {})))
                return _Result(matched_count=1, modified_count=1)
        return _Result(matched_count=0, modified_count=0)

    async def delete_one(self, filter_dict, *args, **kwargs):
        self._maybe_fail("delete_one")
        for index, document in enumerate(self.documents):
            if _matches(document, filter_dict):
                self.deleted.append(self.documents.pop(index))
                return _Result(deleted_count=1)
        return _Result(deleted_count=0)

    async def create_index(self, *args, **kwargs):
        return "index"

    def get(self, _id) -> Optional[Dict[str, Any]]:
        for document in self.documents:
            if document["_id"] == _id:
                return document
        return None


class FakeCursor:
    def __init__(self, items):
        self.items = list(items)

    def sort(self, key_or_list, direction=1):
        keys = key_or_list if isinstance(key_or_list, list) else [(key_or_list, direction)]
        for key, key_direction in reversed(keys):
            self.items.sort(key=lambda item: item.get(key), reverse=key_direction < 0)
        return self

    def limit(self, limit_count: int):
        self.items = self.items[:limit_count]
        return self

    def __aiter__(self):
        self._iter = iter(self.items)
        return self

    async def __anext__(self):
        try:
            return next(self._iter)
        except StopIteration:
            raise StopAsyncIteration


class RecordingSession:
    """Room member that records what it receives"""

    def __init__(self, session_id: str, fail: bool = False) -> None:
        self.session_id = session_id
        self.fail = fail
        self.received = []

    async def send(self, event: str, data: Any) -> None:
        if self.fail:
            raise ConnectionError("socket closed")
        self.received.append((event, data))


class StalledSession:
    """Room member whose socket never drains"""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id

    async def send(self, event: str, data: Any) -> None:
        await asyncio.Event().wait()


@pytest.fixture
def fake_db(monkeypatch):
    collections = {
        COLLECTION_TICKETS: FakeCollection(),
        COLLECTION_MESSAGES: FakeCollection(),
        COLLECTION_USERS: FakeCollection(),
        COLLECTION_COMPANIES: FakeCollection(),
    }

    def _get_collection(name: str) -> FakeCollection:
        return collections[name]

    monkeypatch.setattr("supportdesk.database.get_collection", _get_collection)
    monkeypatch.setattr("supportdesk.database.ticket_operations.get_collection", _get_collection)
    monkeypatch.setattr("supportdesk.database.message_operations.get_collection", _get_collection)

    return collections


@pytest.fixture(autouse=True)
def _reset_process_state():
    limiter.reset()
    reset_message_service()
    yield
    reset_message_service()


@pytest.fixture
def actors(fake_db) -> Dict[str, Actor]:
    """One actor per role plus a second customer, all present in the users collection"""
    company = ObjectId()
    people = {
        "admin": ("Ada Admin", "ada@acme.com", UserRole.ADMIN),
        "agent": ("Sam Agent", "sam@acme.com", UserRole.AGENT),
        "customer": ("Cleo Customer", "cleo@example.com", UserRole.CUSTOMER),
        "other_customer": ("Otto Other", "otto@example.com", UserRole.CUSTOMER),
    }
    result = {}
    for key, (name, email, role) in people.items():
        user_id = ObjectId()
        fake_db[COLLECTION_USERS].documents.append({
            "_id": user_id,
            "name": name,
            "email": email,
            "role": role.value,
            "password": "hashed-secret",
            "company": company,
        })
        result[key] = Actor(id=str(user_id), role=role, email=email, name=name, company_id=str(company))
    return result


@pytest.fixture
def make_ticket(fake_db, actors):
    def _factory(status: str = "open", owner: Optional[Actor] = None, **fields) -> Dict[str, Any]:
        owner = owner or actors["customer"]
        ticket = {
            "_id": ObjectId(),
            "title": "Cannot log in",
            "description": "Password reset link never arrives",
            "status": status,
            "priority": "medium",
            "category": "technical",
            "customer": ObjectId(owner.id),
            "company": ObjectId(owner.company_id),
            "tags": [],
            "created_at": datetime(2024, 1, 1, 9, 0),
            "updated_at": datetime(2024, 1, 1, 9, 0),
        }
        ticket.update(fields)
        fake_db[COLLECTION_TICKETS].documents.append(ticket)
        return ticket

    return _factory


@pytest.fixture
def auth_headers():
    def _headers(actor: Actor) -> Dict[str, str]:
        token = create_jwt_token(actor.id, actor.role.value, actor.email, actor.name, actor.company_id)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def ws_token():
    def _token(actor: Actor) -> str:
        return create_jwt_token(actor.id, actor.role.value, actor.email, actor.name, actor.company_id)

    return _token


@pytest.fixture
def broadcaster() -> RoomBroadcaster:
    return RoomBroadcaster()


@pytest.fixture
def service(broadcaster) -> MessageService:
    return MessageService(broadcaster)


@pytest.fixture
def attachment_handler(tmp_path) -> AttachmentHandler:
    return AttachmentHandler(
        upload_dir=str(tmp_path / "uploads"),
        url_prefix="/uploads",
        max_bytes=1024,
        allowed_types=["image/jpeg", "image/png", "application/pdf"],
    )


@pytest.fixture
def app(service, attachment_handler) -> FastAPI:
    app = FastAPI()
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)
    app.add_exception_handler(SecureError, secure_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.include_router(message_router)
    app.include_router(ticket_router)
    app.include_router(socket_router)
    app.dependency_overrides[get_message_service] = lambda: service
    app.dependency_overrides[get_attachment_handler] = lambda: attachment_handler
    return app


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client
