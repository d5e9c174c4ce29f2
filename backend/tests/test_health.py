"""Tests for the health endpoint and request tracking."""

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError


@pytest.mark.unit
class TestHealth:
    """Health endpoint tests."""

    async def test_health(self, client):
        """GET /health returns 200 with status info."""
        resp = await client.get("/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "healthy"
        assert data["redis"] == "ok"
        assert data["version"] == "1.0.0"
        assert "timestamp" in data

    async def test_health_reports_redis_down(self, client, redis, monkeypatch):
        async def broken_ping():
            raise RedisConnectionError("down")

        monkeypatch.setattr(redis, "ping", broken_ping)
        resp = await client.get("/health")
        assert resp.status_code == 503
        assert resp.json()["redis"] == "unavailable"

    async def test_response_has_request_id(self, client):
        """Every response should have X-Request-ID header."""
        resp = await client.get("/health")
        assert "x-request-id" in resp.headers

    async def test_custom_request_id_propagated(self, client):
        """If client sends X-Request-ID, it should be echoed back."""
        custom_id = "test-request-12345"
        resp = await client.get("/health", headers={"X-Request-ID": custom_id})
        assert resp.headers.get("x-request-id") == custom_id

    async def test_security_headers(self, client):
        resp = await client.get("/health")
        assert resp.headers["x-content-type-options"] == "nosniff"
        assert resp.headers["x-frame-options"] == "DENY"
