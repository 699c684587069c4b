"""
Unit tests for the health check handlers.
"""

import json

import pytest

from httpchain.handlers import HealthHandler, HealthStatus


@pytest.fixture
def health(router) -> HealthHandler:
    handler = HealthHandler()
    router.get("/health", handler.handle)
    router.get("/health/live", handler.liveness)
    router.get("/health/ready", handler.readiness)
    return handler


def body(rec) -> dict:
    return json.loads(rec.text)


class TestHealthHandler:
    """Tests for HealthHandler endpoints."""

    def test_healthy_without_checks(self, health, serve):
        rec = serve("GET", "/health")

        assert rec.status == 200
        assert rec.headers.get("Content-Type") == "application/json"
        assert rec.headers.get("Cache-Control") == "no-store"
        assert body(rec)["status"] == "healthy"
        assert "checks" not in body(rec)

    def test_failing_check(self, health, serve):
        health.add_check("db", lambda: HealthStatus(healthy=True))
        health.add_check("cache", lambda: HealthStatus(healthy=False, message="Connection failed"))

        rec = serve("GET", "/health")

        assert rec.status == 503
        data = body(rec)
        assert data["status"] == "unhealthy"
        assert data["checks"]["db"]["status"] == "healthy"
        assert data["checks"]["cache"]["message"] == "Connection failed"

    def test_raising_check_counts_as_failure(self, health, serve):
        def broken():
            raise ConnectionError("refused")

        health.add_check("db", broken)

        rec = serve("GET", "/health")

        assert rec.status == 503
        assert body(rec)["checks"]["db"]["message"] == "refused"

    def test_liveness_ignores_checks(self, health, serve):
        health.add_check("db", lambda: HealthStatus(healthy=False))

        rec = serve("GET", "/health/live")

        assert (rec.status, body(rec)) == (200, {"status": "alive"})

    def test_readiness(self, health, serve):
        assert serve("GET", "/health/ready").status == 200

        health.mark_not_ready()
        assert serve("GET", "/health/ready").status == 503

        health.mark_ready()
        health.add_check("db", lambda: HealthStatus(healthy=False, message="down"))
        rec = serve("GET", "/health/ready")

        assert rec.status == 503
        assert body(rec)["reason"] == "Check 'db' failed: down"

    def test_system_info(self, router, serve):
        router.get("/health", HealthHandler(include_system_info=True).handle)

        data = body(serve("GET", "/health"))

        assert set(data["system"]) == {"hostname", "platform", "python_version"}

    def test_details_hidden(self, router, serve):
        handler = HealthHandler(include_details=False)
        handler.add_check("db", lambda: HealthStatus(healthy=True))
        router.get("/health", handler.handle)

        assert "checks" not in body(serve("GET", "/health"))

    def test_status_to_dict(self):
        status = HealthStatus(healthy=True, details={"latency_ms": 3})

        assert status.to_dict() == {"status": "healthy", "message": "OK", "latency_ms": 3}
        assert HealthHandler().uptime >= 0
