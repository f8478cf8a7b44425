from __future__ import annotations

from datetime import datetime

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.db.models.subscriptions import Subscription
from app.db.repo.subscriptions_repo import SubscriptionsRepo
from app.entitlements.errors import ConflictError, ForbiddenError, NotFoundError
from app.entitlements.subscriptions.rules import (
    PAYMENT_STATUS_COMPLETED,
    PAYMENT_STATUS_KEY,
    feature_terms,
    grant_window,
    should_expire_lazily,
)
from app.entitlements.types import Actor, Feature

logger = structlog.get_logger(__name__)


class SubscriptionLedger:
    @staticmethod
    async def get_active(
        session: AsyncSession,
        *,
        actor: Actor,
        feature: Feature,
        now_utc: datetime,
    ) -> Subscription | None:
        subscription = await SubscriptionsRepo.get_active(
            session,
            actor_kind=actor.kind.value,
            actor_id=actor.id,
            feature=feature.value,
        )
        if subscription is None:
            return None

        if should_expire_lazily(
            end_date=subscription.end_date,
            messages_used=subscription.messages_used,
            now_utc=now_utc,
        ):
            expired = await SubscriptionsRepo.expire_if_used(
                session,
                subscription_id=subscription.id,
                now_utc=now_utc,
            )
            if expired:
                logger.info(
                    "subscription_expired_lazily",
                    subscription_id=subscription.id,
                    feature=feature.value,
                    actor_kind=actor.kind.value,
                    actor_id=actor.id,
                )
            return None

        return subscription

    @staticmethod
    async def grant_or_refresh(
        session: AsyncSession,
        *,
        actor: Actor,
        feature: Feature,
        duration_days: int,
        messages_limit: int | None,
        now_utc: datetime,
        payment_status: str = PAYMENT_STATUS_KEY,
        payment_amount: int = 0,
        payment_currency: str = "USD",
        activation_key_id: int | None = None,
        end_date: datetime | None = None,
    ) -> Subscription:
        start_date, window_end = grant_window(now_utc=now_utc, duration_days=duration_days)
        grant = {
            "start_date": start_date,
            "end_date": end_date if end_date is not None else window_end,
            "payment_status": payment_status,
            "payment_amount": payment_amount,
            "payment_currency": payment_currency,
            "messages_limit": messages_limit,
            "activation_key_id": activation_key_id,
            "now_utc": now_utc,
        }

        existing = await SubscriptionsRepo.get_active(
            session,
            actor_kind=actor.kind.value,
            actor_id=actor.id,
            feature=feature.value,
            for_update=True,
        )
        if existing is None:
            created_id = await SubscriptionsRepo.create_if_no_active(
                session,
                actor_kind=actor.kind.value,
                actor_id=actor.id,
                feature=feature.value,
                **grant,
            )
            if created_id is not None:
                subscription = await SubscriptionsRepo.get_by_id(session, created_id)
                assert subscription is not None
                logger.info(
                    "subscription_granted",
                    subscription_id=created_id,
                    feature=feature.value,
                    actor_kind=actor.kind.value,
                    actor_id=actor.id,
                    payment_status=payment_status,
                )
                return subscription

            existing = await SubscriptionsRepo.get_active(
                session,
                actor_kind=actor.kind.value,
                actor_id=actor.id,
                feature=feature.value,
                for_update=True,
            )
            if existing is None:
                raise ConflictError("concurrent subscription change, retry")

        await SubscriptionsRepo.refresh(session, subscription_id=existing.id, **grant)
        await session.refresh(existing)
        logger.info(
            "subscription_refreshed",
            subscription_id=existing.id,
            feature=feature.value,
            actor_kind=actor.kind.value,
            actor_id=actor.id,
            payment_status=payment_status,
        )
        return existing

    @staticmethod
    async def consume_unit(
        session: AsyncSession,
        *,
        subscription_id: int,
        now_utc: datetime,
        unlimited: bool = False,
    ) -> bool:
        return await SubscriptionsRepo.consume_unit(
            session,
            subscription_id=subscription_id,
            now_utc=now_utc,
            enforce_limit=not unlimited,
        )

    @staticmethod
    async def revoke(session: AsyncSession, *, subscription_id: int, now_utc: datetime) -> bool:
        subscription = await SubscriptionsRepo.get_by_id(session, subscription_id)
        if subscription is None:
            raise NotFoundError("subscription not found")
        revoked = await SubscriptionsRepo.deactivate(
            session,
            subscription_id=subscription_id,
            now_utc=now_utc,
        )
        if revoked:
            logger.info("subscription_revoked", subscription_id=subscription_id)
        return revoked

    @staticmethod
    async def create_paid(
        session: AsyncSession,
        *,
        actor: Actor,
        feature: Feature,
        payment_amount: int,
        payment_currency: str,
        now_utc: datetime,
    ) -> Subscription:
        settings = get_settings()
        if not settings.direct_payment_enabled:
            raise ForbiddenError("direct payment is disabled")

        terms = feature_terms(feature, settings)
        return await SubscriptionLedger.grant_or_refresh(
            session,
            actor=actor,
            feature=feature,
            duration_days=terms.duration_days,
            messages_limit=terms.messages_limit,
            now_utc=now_utc,
            payment_status=PAYMENT_STATUS_COMPLETED,
            payment_amount=payment_amount,
            payment_currency=payment_currency.upper(),
        )

    @staticmethod
    async def list_with_actor_emails(
        session: AsyncSession,
        *,
        feature: Feature,
    ) -> list[tuple[Subscription, str | None]]:
        return await SubscriptionsRepo.list_with_actor_emails(session, feature=feature.value)

    @staticmethod
    async def statistics(session: AsyncSession, *, feature: Feature) -> dict[str, int]:
        return await SubscriptionsRepo.stats(session, feature=feature.value)
