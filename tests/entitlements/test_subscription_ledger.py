from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from app.entitlements import facade as facade_module
from app.entitlements.errors import ForbiddenError, KeyExpiredError
from app.entitlements.facade import EntitlementFacade
from app.entitlements.keys.types import KeyActivationResult
from app.entitlements.subscriptions import service as ledger_module
from app.entitlements.subscriptions.service import SubscriptionLedger
from app.entitlements.types import Actor, ActorKind, Feature, KeyKind

UTC = timezone.utc
NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)
USER = Actor(kind=ActorKind.USER, id=5, email="student@example.com")


class _FakeSession:
    async def refresh(self, obj: object) -> None:
        del obj


def _subscription(**overrides) -> SimpleNamespace:
    values = {
        "id": 21,
        "is_active": True,
        "start_date": NOW - timedelta(days=40),
        "end_date": NOW - timedelta(days=10),
        "messages_used": 0,
        "messages_limit": 100,
        "payment_status": "key",
        "activation_key_id": 11,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def _patch_get_active(monkeypatch, subscription) -> None:
    async def _fake_get_active(session, **kwargs):
        del session, kwargs
        return subscription

    monkeypatch.setattr(ledger_module.SubscriptionsRepo, "get_active", _fake_get_active)


@pytest.mark.asyncio
async def test_unused_subscription_past_end_date_stays_active(monkeypatch) -> None:
    subscription = _subscription(messages_used=0)
    _patch_get_active(monkeypatch, subscription)

    async def _unexpected_expire(session, **kwargs):
        raise AssertionError("untouched grants must not be expired")

    monkeypatch.setattr(ledger_module.SubscriptionsRepo, "expire_if_used", _unexpected_expire)

    active = await SubscriptionLedger.get_active(
        _FakeSession(),
        actor=USER,
        feature=Feature.AI_ASSISTANT,
        now_utc=NOW,
    )
    assert active is subscription


@pytest.mark.asyncio
async def test_used_subscription_past_end_date_expires_on_read(monkeypatch) -> None:
    subscription = _subscription(messages_used=3)
    expired_ids: list[int] = []
    _patch_get_active(monkeypatch, subscription)

    async def _fake_expire(session, *, subscription_id: int, now_utc: datetime) -> bool:
        del session, now_utc
        expired_ids.append(subscription_id)
        return True

    monkeypatch.setattr(ledger_module.SubscriptionsRepo, "expire_if_used", _fake_expire)

    active = await SubscriptionLedger.get_active(
        _FakeSession(),
        actor=USER,
        feature=Feature.AI_ASSISTANT,
        now_utc=NOW,
    )
    assert active is None
    assert expired_ids == [21]


@pytest.mark.asyncio
async def test_grant_creates_when_no_active_subscription(monkeypatch) -> None:
    created = _subscription(id=30, end_date=NOW + timedelta(days=30))
    insert_calls: list[dict] = []
    _patch_get_active(monkeypatch, None)

    async def _fake_create(session, **kwargs):
        del session
        insert_calls.append(kwargs)
        return 30

    async def _fake_get_by_id(session, subscription_id: int):
        del session
        assert subscription_id == 30
        return created

    monkeypatch.setattr(ledger_module.SubscriptionsRepo, "create_if_no_active", _fake_create)
    monkeypatch.setattr(ledger_module.SubscriptionsRepo, "get_by_id", _fake_get_by_id)

    subscription = await SubscriptionLedger.grant_or_refresh(
        _FakeSession(),
        actor=USER,
        feature=Feature.RECOMMENDATION_FEED,
        duration_days=30,
        messages_limit=None,
        now_utc=NOW,
        activation_key_id=11,
    )

    assert subscription is created
    assert insert_calls[0]["end_date"] == NOW + timedelta(days=30)
    assert insert_calls[0]["payment_status"] == "key"
    assert insert_calls[0]["feature"] == "RECOMMENDATION_FEED"


@pytest.mark.asyncio
async def test_grant_refreshes_existing_subscription_in_place(monkeypatch) -> None:
    existing = _subscription(messages_used=7)
    refresh_calls: list[dict] = []
    _patch_get_active(monkeypatch, existing)

    async def _fake_refresh(session, **kwargs):
        del session
        refresh_calls.append(kwargs)

    async def _unexpected_create(session, **kwargs):
        raise AssertionError("a second active row must not be inserted")

    monkeypatch.setattr(ledger_module.SubscriptionsRepo, "refresh", _fake_refresh)
    monkeypatch.setattr(ledger_module.SubscriptionsRepo, "create_if_no_active", _unexpected_create)

    subscription = await SubscriptionLedger.grant_or_refresh(
        _FakeSession(),
        actor=USER,
        feature=Feature.AI_ASSISTANT,
        duration_days=30,
        messages_limit=100,
        now_utc=NOW,
        activation_key_id=12,
    )

    assert subscription is existing
    assert refresh_calls[0]["subscription_id"] == 21
    assert refresh_calls[0]["activation_key_id"] == 12


@pytest.mark.asyncio
async def test_direct_payment_is_forbidden_when_disabled(monkeypatch) -> None:
    monkeypatch.setattr(
        ledger_module,
        "get_settings",
        lambda: SimpleNamespace(direct_payment_enabled=False),
    )

    with pytest.raises(ForbiddenError):
        await SubscriptionLedger.create_paid(
            _FakeSession(),
            actor=USER,
            feature=Feature.AI_ASSISTANT,
            payment_amount=2900,
            payment_currency="usd",
            now_utc=NOW,
        )


@pytest.mark.asyncio
async def test_consume_unit_skips_limit_for_unlimited_actors(monkeypatch) -> None:
    seen: list[bool] = []

    async def _fake_consume(session, *, subscription_id: int, now_utc: datetime, enforce_limit: bool):
        del session, subscription_id, now_utc
        seen.append(enforce_limit)
        return True

    monkeypatch.setattr(ledger_module.SubscriptionsRepo, "consume_unit", _fake_consume)

    await SubscriptionLedger.consume_unit(_FakeSession(), subscription_id=1, now_utc=NOW)
    await SubscriptionLedger.consume_unit(
        _FakeSession(),
        subscription_id=1,
        now_utc=NOW,
        unlimited=True,
    )
    assert seen == [True, False]


@pytest.mark.asyncio
async def test_replayed_feature_key_keeps_existing_usage(monkeypatch) -> None:
    current = _subscription(messages_used=40, end_date=NOW + timedelta(days=5))
    activation = KeyActivationResult(
        key_id=11,
        code="XFLEX-ABCDE-FGHJK-MNPQR",
        kind=KeyKind.AI_ASSISTANT,
        target_course_id=None,
        bound_email=USER.email,
        activated_at=NOW - timedelta(days=25),
        idempotent_replay=True,
    )

    async def _fake_activate(session, **kwargs):
        del session, kwargs
        return activation

    async def _fake_get_active(session, **kwargs):
        del session, kwargs
        return current

    async def _unexpected_grant(session, **kwargs):
        raise AssertionError("replay must not refresh the grant")

    monkeypatch.setattr(facade_module.KeyRegistryService, "activate", _fake_activate)
    monkeypatch.setattr(facade_module.SubscriptionLedger, "get_active", _fake_get_active)
    monkeypatch.setattr(facade_module.SubscriptionLedger, "grant_or_refresh", _unexpected_grant)

    redemption = await EntitlementFacade.redeem_feature_key(
        _FakeSession(),
        actor=USER,
        feature=Feature.AI_ASSISTANT,
        code=activation.code,
        now_utc=NOW,
    )
    assert redemption.subscription is current
    assert redemption.subscription.messages_used == 40


def _replayed_activation(*, key_id: int, activated_at: datetime, expires_at=None) -> KeyActivationResult:
    return KeyActivationResult(
        key_id=key_id,
        code="XFLEX-OLDER-KEYAA-AAAAA",
        kind=KeyKind.AI_ASSISTANT,
        target_course_id=None,
        bound_email=USER.email,
        activated_at=activated_at,
        idempotent_replay=True,
        expires_at=expires_at,
    )


def _patch_replay(monkeypatch, *, activation: KeyActivationResult, current, grant_calls: list[dict]) -> None:
    async def _fake_activate(session, **kwargs):
        del session, kwargs
        return activation

    async def _fake_get_active(session, **kwargs):
        del session, kwargs
        return current

    async def _fake_grant(session, **kwargs):
        del session
        grant_calls.append(kwargs)
        return _subscription(id=40, messages_used=0, activation_key_id=kwargs["activation_key_id"])

    monkeypatch.setattr(facade_module.KeyRegistryService, "activate", _fake_activate)
    monkeypatch.setattr(facade_module.SubscriptionLedger, "get_active", _fake_get_active)
    monkeypatch.setattr(facade_module.SubscriptionLedger, "grant_or_refresh", _fake_grant)
    monkeypatch.setattr(
        facade_module,
        "get_settings",
        lambda: SimpleNamespace(ai_subscription_days=30, ai_messages_limit=100),
    )


@pytest.mark.asyncio
async def test_replaying_older_key_keeps_exhausted_grant_from_another_key(monkeypatch) -> None:
    exhausted = _subscription(
        messages_used=100,
        messages_limit=100,
        activation_key_id=12,
        end_date=NOW + timedelta(days=20),
    )
    grant_calls: list[dict] = []
    _patch_replay(
        monkeypatch,
        activation=_replayed_activation(key_id=11, activated_at=NOW - timedelta(days=10)),
        current=exhausted,
        grant_calls=grant_calls,
    )

    redemption = await EntitlementFacade.redeem_feature_key(
        _FakeSession(),
        actor=USER,
        feature=Feature.AI_ASSISTANT,
        code="XFLEX-OLDER-KEYAA-AAAAA",
        now_utc=NOW,
    )

    assert grant_calls == []
    assert redemption.subscription is exhausted
    assert redemption.subscription.messages_used == 100


@pytest.mark.asyncio
async def test_replay_without_live_grant_is_capped_to_key_window(monkeypatch) -> None:
    grant_calls: list[dict] = []
    _patch_replay(
        monkeypatch,
        activation=_replayed_activation(
            key_id=11,
            activated_at=NOW - timedelta(days=10),
            expires_at=NOW + timedelta(days=5),
        ),
        current=None,
        grant_calls=grant_calls,
    )

    await EntitlementFacade.redeem_feature_key(
        _FakeSession(),
        actor=USER,
        feature=Feature.AI_ASSISTANT,
        code="XFLEX-OLDER-KEYAA-AAAAA",
        now_utc=NOW,
    )

    assert len(grant_calls) == 1
    assert grant_calls[0]["end_date"] == NOW + timedelta(days=5)
    assert grant_calls[0]["activation_key_id"] == 11


@pytest.mark.asyncio
async def test_replay_after_key_window_ended_grants_nothing(monkeypatch) -> None:
    grant_calls: list[dict] = []
    _patch_replay(
        monkeypatch,
        activation=_replayed_activation(key_id=11, activated_at=NOW - timedelta(days=400)),
        current=None,
        grant_calls=grant_calls,
    )

    with pytest.raises(KeyExpiredError):
        await EntitlementFacade.redeem_feature_key(
            _FakeSession(),
            actor=USER,
            feature=Feature.AI_ASSISTANT,
            code="XFLEX-OLDER-KEYAA-AAAAA",
            now_utc=NOW,
        )
    assert grant_calls == []
