from __future__ import annotations

from types import SimpleNamespace

from fastapi.testclient import TestClient

from app import main as app_main


def _settings(*, app_env: str) -> SimpleNamespace:
    return SimpleNamespace(log_level="INFO", app_env=app_env)


def test_openapi_docs_enabled_outside_prod(monkeypatch) -> None:
    monkeypatch.setattr(app_main, "get_settings", lambda: _settings(app_env="dev"))
    client = TestClient(app_main.create_app())

    assert client.get("/docs").status_code == 200
    assert client.get("/redoc").status_code == 200
    assert client.get("/openapi.json").status_code == 200


def test_openapi_docs_disabled_in_prod(monkeypatch) -> None:
    monkeypatch.setattr(app_main, "get_settings", lambda: _settings(app_env="prod"))
    client = TestClient(app_main.create_app())

    assert client.get("/docs").status_code == 404
    assert client.get("/redoc").status_code == 404
    assert client.get("/openapi.json").status_code == 404
