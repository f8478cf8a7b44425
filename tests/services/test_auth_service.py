from __future__ import annotations

from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from app.entitlements.errors import BadRequestError, ConflictError, UnauthorizedError
from app.entitlements.types import ActorKind
from app.services import auth as auth_module
from app.services.auth import AuthService, sync_entitlements_after_login
from app.services.session_tokens import hash_password, verify_session_token
from tests.api.helpers import ADMIN, STUDENT, DummySessionLocal

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
SECRET = "auth-test-secret"


@pytest.fixture
def users(monkeypatch) -> dict[str, SimpleNamespace]:
    accounts: dict[str, SimpleNamespace] = {}

    async def _get_by_email(session, email: str):
        del session
        return accounts.get(email.strip().lower())

    async def _create(session, *, email: str, password_hash: str, name):
        del session
        user = SimpleNamespace(
            id=len(accounts) + 1,
            email=email,
            password_hash=password_hash,
            name=name,
            is_publisher=False,
        )
        accounts[email] = user
        return user

    async def _touch(session, user_id: int, signed_in_at):
        del session, user_id, signed_in_at
        return 1

    monkeypatch.setattr(
        auth_module,
        "get_settings",
        lambda: SimpleNamespace(session_secret=SECRET, session_ttl_seconds=3600),
    )
    monkeypatch.setattr(auth_module.UsersRepo, "get_by_email", _get_by_email)
    monkeypatch.setattr(auth_module.UsersRepo, "create", _create)
    monkeypatch.setattr(auth_module.UsersRepo, "touch_last_signed_in", _touch)
    return accounts


@pytest.mark.asyncio
async def test_register_normalizes_email_and_issues_session(users) -> None:
    result = await AuthService.register(
        object(),
        email="  Student@Example.COM ",
        password="long enough",
        name="  ",
        now_utc=NOW,
    )

    assert result.actor.email == "student@example.com"
    assert users["student@example.com"].name is None
    claims = verify_session_token(result.token, secret=SECRET, now_utc=NOW)
    assert claims is not None
    assert claims.actor_kind == "USER"


@pytest.mark.asyncio
async def test_register_rejects_short_password_and_duplicates(users) -> None:
    with pytest.raises(BadRequestError, match="at least 8"):
        await AuthService.register(
            object(),
            email="student@example.com",
            password="short",
            name=None,
            now_utc=NOW,
        )

    await AuthService.register(
        object(),
        email="student@example.com",
        password="long enough",
        name=None,
        now_utc=NOW,
    )
    with pytest.raises(ConflictError):
        await AuthService.register(
            object(),
            email="STUDENT@example.com",
            password="long enough",
            name=None,
            now_utc=NOW,
        )


@pytest.mark.asyncio
async def test_login_checks_password(users) -> None:
    users["student@example.com"] = SimpleNamespace(
        id=5,
        email="student@example.com",
        password_hash=hash_password("correct horse"),
        name=None,
        is_publisher=True,
    )

    result = await AuthService.login_user(
        object(),
        email="student@example.com",
        password="correct horse",
        now_utc=NOW,
    )
    assert result.actor.is_publisher is True

    with pytest.raises(UnauthorizedError):
        await AuthService.login_user(
            object(),
            email="student@example.com",
            password="wrong horse",
            now_utc=NOW,
        )
    with pytest.raises(UnauthorizedError):
        await AuthService.login_user(
            object(),
            email="nobody@example.com",
            password="correct horse",
            now_utc=NOW,
        )


@pytest.mark.asyncio
async def test_login_sync_failure_does_not_break_sign_in(monkeypatch) -> None:
    calls: list = []

    async def _failing_sync(session, *, actor, now_utc):
        del session, now_utc
        calls.append(actor)
        raise RuntimeError("database went away")

    monkeypatch.setattr(auth_module, "SessionLocal", DummySessionLocal())
    monkeypatch.setattr(auth_module.EntitlementFacade, "sync_from_keys", _failing_sync)

    await sync_entitlements_after_login(actor=STUDENT, now_utc=NOW)

    assert calls == [STUDENT]


@pytest.mark.asyncio
async def test_admin_sign_in_skips_key_sync(monkeypatch) -> None:
    async def _unexpected_sync(session, **kwargs):
        raise AssertionError("admins hold no key-backed grants")

    monkeypatch.setattr(auth_module.EntitlementFacade, "sync_from_keys", _unexpected_sync)

    await sync_entitlements_after_login(actor=ADMIN, now_utc=NOW)
    assert ADMIN.kind == ActorKind.ADMIN
