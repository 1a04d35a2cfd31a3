"""
HTTP Host Tests
===============

Tests for the FastAPI endpoints without running the lifespan (no camera,
no annotation service).
"""

import time
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from annotator_client import main
from annotator_client.transport.connection import ConnectionManager

from conftest import FakeConnector


@pytest.fixture
def client():
    return TestClient(main.app)


class TestEndpoints:
    """Tests for status endpoints before a session exists."""

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["service"] == "annotator-client"

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_ready_without_session(self, client):
        response = client.get("/ready")
        assert response.status_code == 503
        assert response.json()["status"] == "not_ready"

    def test_metrics_without_session(self, client):
        assert client.get("/metrics").status_code == 503

    def test_status_without_session(self, client):
        assert client.get("/status").status_code == 503


class TestAnnotationRelay:
    """Tests for the viewer WebSocket relay."""

    def test_viewer_disconnect_releases_subscription(self, client, monkeypatch):
        """A viewer that leaves while no annotations flow is detached."""
        connection = ConnectionManager(connector=FakeConnector())
        monkeypatch.setattr(main, "_session", SimpleNamespace(connection=connection))

        with client.websocket_connect("/ws/annotations"):
            deadline = time.monotonic() + 2.0
            while connection._broadcaster.subscriber_count == 0:
                assert time.monotonic() < deadline
                time.sleep(0.01)

        deadline = time.monotonic() + 2.0
        while connection._broadcaster.subscriber_count:
            assert time.monotonic() < deadline, "subscription still attached"
            time.sleep(0.01)
