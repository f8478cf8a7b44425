from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from app.db.repo.subscriptions_repo import SubscriptionsRepo
from app.db.session import SessionLocal
from app.entitlements.subscriptions.rules import PAYMENT_STATUS_COMPLETED
from app.entitlements.subscriptions.service import SubscriptionLedger
from app.entitlements.types import Actor, Feature
from tests.integration.entitlement_fixtures import create_admin, create_user

UTC = timezone.utc


async def _grant(actor: Actor, *, now_utc: datetime, messages_limit: int | None, **extra) -> int:
    async with SessionLocal.begin() as session:
        subscription = await SubscriptionLedger.grant_or_refresh(
            session,
            actor=actor,
            feature=Feature.AI_ASSISTANT,
            duration_days=30,
            messages_limit=messages_limit,
            now_utc=now_utc,
            **extra,
        )
        return subscription.id


async def _consume(subscription_id: int, *, now_utc: datetime, unlimited: bool = False) -> bool:
    async with SessionLocal.begin() as session:
        return await SubscriptionLedger.consume_unit(
            session,
            subscription_id=subscription_id,
            now_utc=now_utc,
            unlimited=unlimited,
        )


@pytest.mark.asyncio
async def test_quota_stops_users_but_not_admins() -> None:
    now_utc = datetime.now(UTC)
    user = await create_user("quota-user@example.com")
    admin = await create_admin("quota")
    user_subscription = await _grant(user, now_utc=now_utc, messages_limit=2)
    admin_subscription = await _grant(admin, now_utc=now_utc, messages_limit=2)

    assert [await _consume(user_subscription, now_utc=now_utc) for _ in range(3)] == [
        True,
        True,
        False,
    ]
    for _ in range(3):
        assert await _consume(admin_subscription, now_utc=now_utc, unlimited=True) is True

    async with SessionLocal.begin() as session:
        user_row = await SubscriptionsRepo.get_by_id(session, user_subscription)
        admin_row = await SubscriptionsRepo.get_by_id(session, admin_subscription)
    assert user_row is not None and user_row.messages_used == 2
    assert admin_row is not None and admin_row.messages_used == 3


@pytest.mark.asyncio
async def test_refresh_keeps_single_active_row_and_resets_usage() -> None:
    now_utc = datetime.now(UTC)
    user = await create_user("refresh-user@example.com")
    first_id = await _grant(user, now_utc=now_utc, messages_limit=5)
    await _consume(first_id, now_utc=now_utc)

    second_id = await _grant(user, now_utc=now_utc + timedelta(minutes=1), messages_limit=5)

    assert second_id == first_id
    async with SessionLocal.begin() as session:
        current = await SubscriptionLedger.get_active(
            session,
            actor=user,
            feature=Feature.AI_ASSISTANT,
            now_utc=now_utc,
        )
    assert current is not None
    assert current.messages_used == 0


@pytest.mark.asyncio
async def test_unused_subscription_survives_past_end_date_until_first_use() -> None:
    now_utc = datetime.now(UTC)
    user = await create_user("lazy-user@example.com")
    subscription_id = await _grant(
        user,
        now_utc=now_utc - timedelta(days=40),
        messages_limit=10,
        payment_status=PAYMENT_STATUS_COMPLETED,
        end_date=now_utc - timedelta(days=10),
    )

    async with SessionLocal.begin() as session:
        untouched = await SubscriptionLedger.get_active(
            session,
            actor=user,
            feature=Feature.AI_ASSISTANT,
            now_utc=now_utc,
        )
    assert untouched is not None
    assert untouched.id == subscription_id

    assert await _consume(subscription_id, now_utc=now_utc) is True

    async with SessionLocal.begin() as session:
        after_use = await SubscriptionLedger.get_active(
            session,
            actor=user,
            feature=Feature.AI_ASSISTANT,
            now_utc=now_utc,
        )
        row = await SubscriptionsRepo.get_by_id(session, subscription_id)
    assert after_use is None
    assert row is not None and row.is_active is False


@pytest.mark.asyncio
async def test_first_use_of_key_grant_restarts_its_window() -> None:
    now_utc = datetime.now(UTC)
    user = await create_user("window-user@example.com")
    subscription_id = await _grant(
        user,
        now_utc=now_utc - timedelta(days=40),
        messages_limit=10,
    )

    assert await _consume(subscription_id, now_utc=now_utc) is True

    async with SessionLocal.begin() as session:
        row = await SubscriptionsRepo.get_by_id(session, subscription_id)
    assert row is not None
    assert row.start_date == now_utc
    assert row.end_date == now_utc + timedelta(days=30)
