from __future__ import annotations

from app.api.routes import session_helpers
from app.entitlements.types import Actor, ActorKind

STUDENT = Actor(kind=ActorKind.USER, id=5, email="student@example.com")
PUBLISHER = Actor(kind=ActorKind.USER, id=6, email="pub@example.com", is_publisher=True)
ADMIN = Actor(kind=ActorKind.ADMIN, id=1, email="admin@example.com")
AUTH_HEADERS = {"Authorization": "Bearer test-session-token"}


class DummySessionBegin:
    async def __aenter__(self) -> object:
        return object()

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        return False


class DummySessionLocal:
    def begin(self) -> DummySessionBegin:
        return DummySessionBegin()


def sign_in_as(monkeypatch, actor: Actor | None) -> None:
    async def _fake_resolve_actor(session, *, token: str | None, now_utc):
        del session, now_utc
        return actor if token else None

    monkeypatch.setattr(session_helpers, "resolve_actor", _fake_resolve_actor)
