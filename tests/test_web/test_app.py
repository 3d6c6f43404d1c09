"""Tests for the HTTP API."""

import httpx
import pytest
from fastapi.testclient import TestClient

from concert_sync.web import create_app


@pytest.fixture
def client(settings, provider_stub):
    """Create a test client whose provider calls hit the stub."""
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(provider_stub.handler))
    app = create_app(settings, http_client=http_client, run_scheduler=False)
    with TestClient(app) as test_client:
        yield test_client


class TestStatus:
    def test_empty_status(self, client):
        response = client.get("/status")

        assert response.status_code == 200
        data = response.json()
        assert data["queue"]["pending"] == 0
        assert data["queue"]["max_concurrent"] == 3
        assert data["entities"]["artist"] == 0
        assert data["scheduler_running"] is False

    def test_scheduler_running(self, settings):
        """The scheduler should run for the lifetime of the app by default."""
        with TestClient(create_app(settings)) as test_client:
            assert test_client.get("/status").json()["scheduler_running"] is True


class TestTasks:
    """Tests for queueing tasks over HTTP."""

    def test_enqueue(self, client):
        response = client.post(
            "/tasks", json={"type": "artist", "id": "A1", "priority": "high", "operation": "create"}
        )

        assert response.status_code == 202
        assert response.json() == {"queued": True, "pending": 1}
        assert client.get("/status").json()["queue"]["by_priority"]["high"] == 1

    def test_duplicate(self, client):
        client.post("/tasks", json={"type": "show", "id": "E1"})

        response = client.post("/tasks", json={"type": "show", "id": "E1"})

        assert response.json() == {"queued": False, "pending": 1}

    def test_invalid_type(self, client):
        response = client.post("/tasks", json={"type": "podcast", "id": "P1"})
        assert response.status_code == 422


class TestSync:
    """Tests for on-demand syncs."""

    def test_sync_venue(self, client, provider_stub, payloads):
        provider_stub.add("/discovery/v2/venues/V1", payloads["venue"]())

        response = client.post("/sync/venue/V1")

        assert response.status_code == 200
        data = response.json()
        assert data["updated"] is True
        assert data["data"]["name"] == "Madison Square Garden"
        assert data["data"]["city"] == "New York"

    def test_provider_failure(self, client):
        """A failed sync should surface as a bad gateway."""
        response = client.post("/sync/venue/V404")
        assert response.status_code == 502

    def test_unsupported_type(self, client):
        response = client.post("/sync/podcast/P1")
        assert response.status_code == 422
