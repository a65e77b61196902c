"""
Tests for health check endpoints.
"""

from unittest.mock import AsyncMock, patch

from fastapi.testclient import TestClient

from app.main import app

client = TestClient(app)


def test_healthz_endpoint():
    """Test the basic health check endpoint."""
    response = client.get("/healthz")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"


def test_readyz_endpoint_all_services_healthy():
    """Test readiness endpoint when the calendar transport is reachable."""
    with patch(
        "app.routes.health.google_calendar_service.health_check",
        new=AsyncMock(return_value={"healthy": True, "api_connectivity": "ok"}),
    ):
        response = client.get("/readyz")

    assert response.status_code == 200
    data = response.json()
    assert data["overall_ok"] is True
    checks = data["checks"]
    assert checks["google_calendar"]["ok"] is True
    assert checks["google_calendar"]["api_connectivity"] == "ok"
    assert checks["layout"]["ok"] is True
    assert checks["layout"]["pixels_per_hour"] > 0


def test_readyz_endpoint_calendar_unreachable():
    """Test readiness endpoint when the Calendar API cannot be reached."""
    with patch(
        "app.routes.health.google_calendar_service.health_check",
        new=AsyncMock(return_value={"healthy": False, "api_connectivity": "error_ConnectError"}),
    ):
        response = client.get("/readyz")

    # Should still return 200, but overall_ok should be False
    assert response.status_code == 200
    data = response.json()
    assert data["overall_ok"] is False
    assert data["checks"]["google_calendar"]["ok"] is False


def test_readyz_endpoint_health_check_raises():
    """Test readiness endpoint when the health check itself errors."""
    with patch(
        "app.routes.health.google_calendar_service.health_check",
        new=AsyncMock(side_effect=RuntimeError("boom")),
    ):
        response = client.get("/readyz")

    assert response.status_code == 200
    data = response.json()
    assert data["overall_ok"] is False
    assert data["checks"]["google_calendar"]["error"] == "RuntimeError: boom"


def test_readyz_includes_latency_metrics():
    """Test that readiness checks include latency metrics."""
    with patch(
        "app.routes.health.google_calendar_service.health_check",
        new=AsyncMock(return_value={"healthy": True, "api_connectivity": "ok"}),
    ):
        response = client.get("/readyz")

    checks = response.json()["checks"]
    assert isinstance(checks["google_calendar"]["latency_ms"], (int, float))


def test_responses_carry_request_id():
    """Test that every response is tagged with a request id."""
    response = client.get("/healthz")
    assert response.headers["X-Request-ID"]

    response = client.get("/healthz", headers={"X-Request-ID": "sync-42"})
    assert response.headers["X-Request-ID"] == "sync-42"
