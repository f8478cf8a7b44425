from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

from fastapi.testclient import TestClient

from app.api.routes import auth as auth_routes
from app.entitlements.errors import ConflictError, UnauthorizedError
from app.main import app
from app.services.auth import SignInResult
from app.services.session_tokens import SESSION_COOKIE_NAME
from tests.api.helpers import STUDENT, DummySessionLocal, sign_in_as


def _settings() -> SimpleNamespace:
    return SimpleNamespace(session_ttl_seconds=3600, app_env="dev")


def _patch_common(monkeypatch) -> list:
    synced: list = []

    async def _fake_sync(*, actor, now_utc):
        del now_utc
        synced.append(actor)

    monkeypatch.setattr(auth_routes, "SessionLocal", DummySessionLocal())
    monkeypatch.setattr(auth_routes, "get_settings", _settings)
    monkeypatch.setattr(auth_routes, "sync_entitlements_after_login", _fake_sync)
    return synced


def _sign_in_result() -> SignInResult:
    return SignInResult(
        actor=STUDENT,
        token="signed-token",
        expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
    )


def test_login_sets_session_cookie_and_syncs_keys(monkeypatch) -> None:
    synced = _patch_common(monkeypatch)

    async def _fake_login(session, *, email: str, password: str, now_utc):
        del session, now_utc
        assert email == "student@example.com"
        assert password == "correct horse"
        return _sign_in_result()

    monkeypatch.setattr(auth_routes.AuthService, "login_user", _fake_login)

    client = TestClient(app)
    response = client.post(
        "/api/auth/login",
        json={"email": "student@example.com", "password": "correct horse"},
    )

    assert response.status_code == 200
    assert response.json()["token"] == "signed-token"
    assert response.json()["actor"]["kind"] == "USER"
    assert response.cookies.get(SESSION_COOKIE_NAME) == "signed-token"
    assert synced == [STUDENT]


def test_login_with_bad_password_is_401_without_sync(monkeypatch) -> None:
    synced = _patch_common(monkeypatch)

    async def _fake_login(session, **kwargs):
        del session, kwargs
        raise UnauthorizedError("invalid email or password")

    monkeypatch.setattr(auth_routes.AuthService, "login_user", _fake_login)

    client = TestClient(app)
    response = client.post(
        "/api/auth/login",
        json={"email": "student@example.com", "password": "wrong"},
    )

    assert response.status_code == 401
    assert synced == []


def test_register_returns_201(monkeypatch) -> None:
    synced = _patch_common(monkeypatch)

    async def _fake_register(session, *, email: str, password: str, name, now_utc):
        del session, email, password, now_utc
        assert name == "Stu"
        return _sign_in_result()

    monkeypatch.setattr(auth_routes.AuthService, "register", _fake_register)

    client = TestClient(app)
    response = client.post(
        "/api/auth/register",
        json={"email": "student@example.com", "password": "long enough", "name": "Stu"},
    )

    assert response.status_code == 201
    assert synced == [STUDENT]


def test_register_duplicate_email_is_409(monkeypatch) -> None:
    _patch_common(monkeypatch)

    async def _fake_register(session, **kwargs):
        del session, kwargs
        raise ConflictError("an account with this email already exists")

    monkeypatch.setattr(auth_routes.AuthService, "register", _fake_register)

    client = TestClient(app)
    response = client.post(
        "/api/auth/register",
        json={"email": "student@example.com", "password": "long enough"},
    )

    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "E_CONFLICT"


def test_me_requires_session(monkeypatch) -> None:
    sign_in_as(monkeypatch, None)
    monkeypatch.setattr(auth_routes, "SessionLocal", DummySessionLocal())

    client = TestClient(app)
    response = client.get("/api/auth/me")

    assert response.status_code == 401


def test_me_accepts_session_cookie(monkeypatch) -> None:
    sign_in_as(monkeypatch, STUDENT)
    monkeypatch.setattr(auth_routes, "SessionLocal", DummySessionLocal())

    client = TestClient(app)
    client.cookies.set(SESSION_COOKIE_NAME, "cookie-token")
    response = client.get("/api/auth/me")

    assert response.status_code == 200
    assert response.json() == {
        "id": STUDENT.id,
        "email": STUDENT.email,
        "kind": "USER",
        "is_admin": False,
        "is_publisher": False,
    }
