"""Tests for health check endpoints.

Verifies both the root /health and the API-prefixed /api/health endpoints
return expected shapes and status codes.
"""
from vesseliq.config import settings


class TestRootHealth:
    """GET /health — the non-API-prefixed health check in main.py."""

    def test_returns_status_and_version(self, api_client):
        resp = api_client.get("/health")
        assert resp.status_code == 200
        assert "application/json" in resp.headers.get("content-type", "")
        assert resp.json() == {"status": "ok", "version": settings.VERSION}


class TestAPIHealth:
    """GET /api/health — the API-prefixed health check with DB latency."""

    def test_database_ok(self, api_client, mock_db):
        data = api_client.get("/api/health").json()
        assert data["status"] == "ok"
        assert data["version"] == settings.VERSION
        assert data["database"]["status"] == "ok"
        assert isinstance(data["database"]["latency_ms"], (int, float))
        mock_db.execute.assert_called_once()

    def test_database_error_reported_not_raised(self, api_client, mock_db):
        mock_db.execute.side_effect = Exception("connection refused")
        resp = api_client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json()["database"]["status"].startswith("error:")

    def test_real_sqlite_store(self, sqlite_client):
        data = sqlite_client.get("/api/health").json()
        assert data["database"]["status"] == "ok"


class TestRateLimit:
    """Every route shares the per-client default limit."""

    def test_requests_over_limit_get_429(self, api_client):
        statuses = [api_client.get("/health").status_code for _ in range(61)]
        assert statuses[:60] == [200] * 60
        assert statuses[60] == 429

    def test_limit_applies_to_api_routes(self, api_client, mock_db):
        for _ in range(60):
            api_client.get("/api/health")
        assert api_client.get("/api/health").status_code == 429
