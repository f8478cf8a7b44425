import pytest
from fastapi.testclient import TestClient

from app.api.routes import health as health_routes
from app.main import app


async def _ok_check() -> dict[str, str]:
    return {"status": "ok"}


async def _failed_redis() -> dict[str, str]:
    return {"status": "failed", "error": "redis down"}


def test_health_ok(monkeypatch) -> None:
    monkeypatch.setitem(health_routes.LIVENESS_CHECKS, "database", _ok_check)

    client = TestClient(app)
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "checks": {"database": {"status": "ok"}}}


def test_health_returns_503_when_database_failed(monkeypatch) -> None:
    async def _failed_database() -> dict[str, str]:
        return {"status": "failed", "error": "missing tables: activation_keys"}

    monkeypatch.setitem(health_routes.LIVENESS_CHECKS, "database", _failed_database)

    client = TestClient(app)
    response = client.get("/health")

    assert response.status_code == 503
    payload = response.json()
    assert payload["status"] == "degraded"
    assert payload["checks"]["database"]["error"] == "missing tables: activation_keys"


def test_ready_ok(monkeypatch) -> None:
    for name in ("database", "redis", "celery"):
        monkeypatch.setitem(health_routes.READINESS_CHECKS, name, _ok_check)

    client = TestClient(app)
    response = client.get("/ready")

    assert response.status_code == 200
    assert response.json() == {
        "status": "ready",
        "checks": {
            "database": {"status": "ok"},
            "redis": {"status": "ok"},
            "celery": {"status": "ok"},
        },
    }


def test_ready_returns_503_when_any_dependency_failed(monkeypatch) -> None:
    monkeypatch.setitem(health_routes.READINESS_CHECKS, "database", _ok_check)
    monkeypatch.setitem(health_routes.READINESS_CHECKS, "redis", _failed_redis)
    monkeypatch.setitem(health_routes.READINESS_CHECKS, "celery", _ok_check)

    client = TestClient(app)
    response = client.get("/ready")

    assert response.status_code == 503
    payload = response.json()
    assert payload["status"] == "not_ready"
    assert payload["checks"]["redis"] == {"status": "failed", "error": "redis down"}


@pytest.mark.asyncio
async def test_database_check_reports_exception(monkeypatch) -> None:
    class _BrokenSession:
        async def __aenter__(self):
            raise RuntimeError("connection refused")

        async def __aexit__(self, exc_type, exc, tb) -> bool:
            return False

    monkeypatch.setattr(health_routes, "SessionLocal", lambda: _BrokenSession())

    result = await health_routes._check_database()
    assert result == {"status": "failed", "error": "connection refused"}


def test_celery_check_reports_no_workers(monkeypatch) -> None:
    class _SilentInspector:
        def ping(self):
            return None

    class _Control:
        def inspect(self, timeout: float):
            del timeout
            return _SilentInspector()

    monkeypatch.setattr(health_routes.celery_app, "control", _Control())

    result = health_routes._ping_celery_workers()
    assert result == {"status": "failed", "error": "no celery workers responded to ping"}
