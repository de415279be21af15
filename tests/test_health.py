"""Tests for health endpoints."""

import pytest
from fastapi.testclient import TestClient

from yogaflow.api.routes import health


@pytest.fixture
def restore_health():
    ready = health._ready
    components = health.get_component_health()
    yield
    health.set_ready(ready)
    for name, healthy in components.items():
        health.set_component_health(name, healthy)


class TestHealthEndpoints:
    """Test suite for health check endpoints."""

    def test_healthz_always_returns_alive(self, client: TestClient):
        response = client.get("/healthz")
        assert response.status_code == 200
        assert response.json() == {"status": "alive"}

    def test_health_after_startup(self, client: TestClient):
        """Startup marks storage ready; voice backends depend on keys."""
        response = client.get("/health")
        data = response.json()

        assert response.status_code == 200
        assert data["ready"] is True
        assert data["status"] in ("healthy", "degraded")
        assert data["components"]["flow_store"] is True
        assert data["components"]["narration_cache"] is True
        assert set(data["components"]) == {"flow_store", "narration_cache", "realtime", "tts"}

    def test_voice_without_keys_is_degraded(self, client: TestClient, restore_health):
        health.set_component_health("realtime", False)

        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "degraded"

    def test_all_components_healthy(self, client: TestClient, restore_health):
        for name in health.get_component_health():
            health.set_component_health(name, True)

        assert client.get("/health").json()["status"] == "healthy"

    def test_critical_component_down(self, client: TestClient, restore_health):
        health.set_component_health("flow_store", False)

        response = client.get("/health")

        assert response.status_code == 503
        assert response.json()["status"] == "unavailable"

    def test_not_ready(self, client: TestClient, restore_health):
        health.set_ready(False)
        assert client.get("/health").status_code == 503


class TestHealthState:
    def test_unknown_component_ignored(self, restore_health):
        health.set_component_health("gpu", True)
        assert "gpu" not in health.get_component_health()

    def test_component_health_is_a_copy(self, restore_health):
        components = health.get_component_health()
        components["flow_store"] = "tampered"
        assert health.get_component_health()["flow_store"] != "tampered"
