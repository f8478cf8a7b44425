from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from app.entitlements.errors import (
    AlreadyBoundError,
    BadRequestError,
    KeyNotFoundError,
    NotFoundError,
)
from app.entitlements.keys import service as key_service
from app.entitlements.keys.service import KeyRegistryService
from app.entitlements.types import KeyKind, KeyTarget

UTC = timezone.utc
NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


class _FakeSession:
    def __init__(self) -> None:
        self.refreshed: list[object] = []
        self.on_refresh = None

    async def refresh(self, obj: object) -> None:
        self.refreshed.append(obj)
        if self.on_refresh is not None:
            self.on_refresh(obj)


def _key(**overrides) -> SimpleNamespace:
    values = {
        "id": 11,
        "code": "XFLEX-ABCDE-FGHJK-MNPQR",
        "kind": "COURSE",
        "target_course_id": 3,
        "bound_email": None,
        "activated_at": None,
        "is_active": True,
        "expires_at": None,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


@pytest.mark.asyncio
async def test_activate_binds_unbound_key(monkeypatch) -> None:
    key = _key()
    looked_up: list[str] = []

    async def _fake_get_by_code(session, code: str):
        del session
        looked_up.append(code)
        return key

    async def _fake_bind(session, *, key_id: int, email: str, now_utc: datetime) -> bool:
        del session, key_id
        key.bound_email = email
        key.activated_at = now_utc
        return True

    monkeypatch.setattr(key_service.ActivationKeysRepo, "get_by_code", _fake_get_by_code)
    monkeypatch.setattr(key_service.ActivationKeysRepo, "bind_email_if_unbound", _fake_bind)

    result = await KeyRegistryService.activate(
        _FakeSession(),
        code=" xflex-abcde-fghjk-mnpqr ",
        email=" Student@Example.com ",
        expected_kind=KeyKind.COURSE,
        now_utc=NOW,
    )

    assert looked_up == ["XFLEX-ABCDE-FGHJK-MNPQR"]
    assert result.bound_email == "student@example.com"
    assert result.activated_at == NOW
    assert result.target_course_id == 3
    assert result.idempotent_replay is False


@pytest.mark.asyncio
async def test_activate_replay_for_same_email_does_not_rebind(monkeypatch) -> None:
    key = _key(bound_email="student@example.com", activated_at=NOW - timedelta(days=2))
    bind_calls = 0

    async def _fake_get_by_code(session, code: str):
        del session, code
        return key

    async def _fake_bind(session, **kwargs) -> bool:
        nonlocal bind_calls
        del session, kwargs
        bind_calls += 1
        return True

    monkeypatch.setattr(key_service.ActivationKeysRepo, "get_by_code", _fake_get_by_code)
    monkeypatch.setattr(key_service.ActivationKeysRepo, "bind_email_if_unbound", _fake_bind)

    result = await KeyRegistryService.activate(
        _FakeSession(),
        code=key.code,
        email="STUDENT@example.com",
        expected_kind=KeyKind.COURSE,
        now_utc=NOW,
    )

    assert result.idempotent_replay is True
    assert result.activated_at == NOW - timedelta(days=2)
    assert bind_calls == 0


@pytest.mark.asyncio
async def test_activate_losing_concurrent_bind_reports_already_bound(monkeypatch) -> None:
    key = _key()

    async def _fake_get_by_code(session, code: str):
        del session, code
        return key

    async def _lost_bind(session, **kwargs) -> bool:
        del session, kwargs
        return False

    def _winner_committed(obj) -> None:
        obj.bound_email = "other@example.com"
        obj.activated_at = NOW

    session = _FakeSession()
    session.on_refresh = _winner_committed
    monkeypatch.setattr(key_service.ActivationKeysRepo, "get_by_code", _fake_get_by_code)
    monkeypatch.setattr(key_service.ActivationKeysRepo, "bind_email_if_unbound", _lost_bind)

    with pytest.raises(AlreadyBoundError):
        await KeyRegistryService.activate(
            session,
            code=key.code,
            email="student@example.com",
            expected_kind=KeyKind.COURSE,
            now_utc=NOW,
        )


@pytest.mark.asyncio
async def test_activate_unknown_code_is_not_found(monkeypatch) -> None:
    async def _fake_get_by_code(session, code: str):
        del session, code
        return None

    monkeypatch.setattr(key_service.ActivationKeysRepo, "get_by_code", _fake_get_by_code)

    with pytest.raises(KeyNotFoundError) as exc_info:
        await KeyRegistryService.activate(
            _FakeSession(),
            code="XFLEX-ZZZZZ-ZZZZZ-ZZZZZ",
            email="student@example.com",
            expected_kind=KeyKind.AI_ASSISTANT,
            now_utc=NOW,
        )
    assert exc_info.value.code == "NOT_FOUND"


@pytest.mark.asyncio
async def test_activate_rejects_invalid_email_before_lookup(monkeypatch) -> None:
    async def _unexpected_lookup(session, code: str):
        raise AssertionError("lookup must not happen")

    monkeypatch.setattr(key_service.ActivationKeysRepo, "get_by_code", _unexpected_lookup)

    with pytest.raises(BadRequestError):
        await KeyRegistryService.activate(
            _FakeSession(),
            code="XFLEX-ABCDE-FGHJK-MNPQR",
            email="not-an-email",
            expected_kind=KeyKind.COURSE,
            now_utc=NOW,
        )


@pytest.mark.asyncio
async def test_issue_bulk_requires_existing_course(monkeypatch) -> None:
    async def _missing_course(session, course_id: int):
        del session, course_id
        return None

    monkeypatch.setattr(key_service.CoursesRepo, "get_by_id", _missing_course)

    with pytest.raises(NotFoundError):
        await KeyRegistryService.issue_bulk(
            _FakeSession(),
            target=KeyTarget.course(99),
            quantity=5,
            created_by=1,
            now_utc=NOW,
        )


@pytest.mark.asyncio
async def test_issue_bulk_retries_codes_taken_in_storage(monkeypatch) -> None:
    batches = iter(
        [
            ["XFLEX-AAAAA-AAAAA-AAAAA", "XFLEX-BBBBB-BBBBB-BBBBB"],
            ["XFLEX-CCCCC-CCCCC-CCCCC"],
        ]
    )
    created: list = []

    def _fake_generate(*, count: int, existing_codes: set[str]) -> list[str]:
        batch = next(batches)
        assert len(batch) == count
        existing_codes.update(batch)
        return batch

    async def _fake_existing(session, codes):
        del session
        return {"XFLEX-BBBBB-BBBBB-BBBBB"} & set(codes)

    async def _fake_create_many(session, *, keys):
        del session
        created.extend(keys)
        return list(keys)

    monkeypatch.setattr(key_service, "generate_key_codes", _fake_generate)
    monkeypatch.setattr(key_service.ActivationKeysRepo, "list_existing_codes", _fake_existing)
    monkeypatch.setattr(key_service.ActivationKeysRepo, "create_many", _fake_create_many)

    keys = await KeyRegistryService.issue_bulk(
        _FakeSession(),
        target=KeyTarget(kind=KeyKind.AI_ASSISTANT),
        quantity=2,
        created_by=7,
        now_utc=NOW,
        notes="spring promo",
    )

    assert [key.code for key in keys] == ["XFLEX-AAAAA-AAAAA-AAAAA", "XFLEX-CCCCC-CCCCC-CCCCC"]
    assert all(key.kind == "AI_ASSISTANT" and key.target_course_id is None for key in created)
    assert all(key.bound_email is None and key.is_active for key in created)


@pytest.mark.asyncio
async def test_statistics_rounds_activation_rate(monkeypatch) -> None:
    async def _fake_counts(session, *, kind):
        del session
        assert kind == "COURSE"
        return {"total": 3, "activated": 2, "unused": 1, "deactivated": 0}

    monkeypatch.setattr(key_service.ActivationKeysRepo, "count_by_state", _fake_counts)

    stats = await KeyRegistryService.statistics(_FakeSession(), kind=KeyKind.COURSE)
    assert stats.as_dict() == {
        "total": 3,
        "activated": 2,
        "unused": 1,
        "deactivated": 0,
        "activation_rate": 67,
    }
