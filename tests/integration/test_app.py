"""
Smoke tests for the assembled application (no lifespan, no database)
"""
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

import main
from supportdesk.config import settings

pytestmark = pytest.mark.integration


@pytest.fixture
def app_client():
    # Not used as a context manager so startup does not touch MongoDB
    return TestClient(main.app)


def test_root_lists_endpoints(app_client):
    response = app_client.get("/")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "running"
    assert data["endpoints"]["realtime"].startswith("WS /ws")


def test_liveness_probe(app_client):
    response = app_client.get("/api/health/live")

    assert response.status_code == 200
    assert response.json() == {"status": "alive"}


def test_security_headers_on_responses(app_client):
    response = app_client.get("/")

    assert response.headers["X-Frame-Options"] == "DENY"
    assert response.headers["X-Content-Type-Options"] == "nosniff"


def test_api_requires_authentication(app_client):
    response = app_client.get("/api/tickets/665f1c2e9b1e8a0012345678/messages")

    assert response.status_code == 401
    assert set(response.json()["error"]) == {"code", "message", "trace_id", "timestamp"}


def test_uploaded_files_are_served(app_client):
    stored = Path(settings.upload_dir) / "1718000000000-1.png"
    stored.write_bytes(b"\x89PNG served")

    response = app_client.get(f"{settings.upload_url_prefix}/{stored.name}")

    assert response.status_code == 200
    assert response.content == b"\x89PNG served"
