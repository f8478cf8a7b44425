from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, and_, case, func, literal, or_, select, text, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.admins import Admin
from app.db.models.subscriptions import Subscription
from app.db.models.users import User
from app.entitlements.subscriptions.rules import PAYMENT_STATUS_KEY


class SubscriptionsRepo:
    @staticmethod
    async def get_by_id(session: AsyncSession, subscription_id: int) -> Subscription | None:
        return await session.get(Subscription, subscription_id)

    @staticmethod
    async def get_active(
        session: AsyncSession,
        *,
        actor_kind: str,
        actor_id: int,
        feature: str,
        for_update: bool = False,
    ) -> Subscription | None:
        stmt = select(Subscription).where(
            Subscription.actor_kind == actor_kind,
            Subscription.actor_id == actor_id,
            Subscription.feature == feature,
            Subscription.is_active.is_(True),
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def create_if_no_active(
        session: AsyncSession,
        *,
        actor_kind: str,
        actor_id: int,
        feature: str,
        start_date: datetime,
        end_date: datetime,
        payment_status: str,
        payment_amount: int,
        payment_currency: str,
        messages_limit: int | None,
        activation_key_id: int | None,
        now_utc: datetime,
    ) -> int | None:
        stmt = (
            pg_insert(Subscription)
            .values(
                actor_kind=actor_kind,
                actor_id=actor_id,
                feature=feature,
                is_active=True,
                start_date=start_date,
                end_date=end_date,
                payment_status=payment_status,
                payment_amount=payment_amount,
                payment_currency=payment_currency,
                messages_used=0,
                messages_limit=messages_limit,
                activation_key_id=activation_key_id,
                created_at=now_utc,
                updated_at=now_utc,
            )
            .on_conflict_do_nothing(
                index_elements=[
                    Subscription.actor_kind,
                    Subscription.actor_id,
                    Subscription.feature,
                ],
                index_where=text("is_active"),
            )
            .returning(Subscription.id)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def refresh(
        session: AsyncSession,
        *,
        subscription_id: int,
        start_date: datetime,
        end_date: datetime,
        payment_status: str,
        payment_amount: int,
        payment_currency: str,
        messages_limit: int | None,
        activation_key_id: int | None,
        now_utc: datetime,
    ) -> bool:
        stmt = (
            update(Subscription)
            .where(Subscription.id == subscription_id, Subscription.is_active.is_(True))
            .values(
                start_date=start_date,
                end_date=end_date,
                payment_status=payment_status,
                payment_amount=payment_amount,
                payment_currency=payment_currency,
                messages_used=0,
                messages_limit=messages_limit,
                activation_key_id=activation_key_id,
                updated_at=now_utc,
            )
            .returning(Subscription.id)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def expire_if_used(
        session: AsyncSession,
        *,
        subscription_id: int,
        now_utc: datetime,
    ) -> bool:
        stmt = (
            update(Subscription)
            .where(
                Subscription.id == subscription_id,
                Subscription.is_active.is_(True),
                Subscription.end_date < now_utc,
                Subscription.messages_used > 0,
            )
            .values(is_active=False, updated_at=now_utc)
            .returning(Subscription.id)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def deactivate(
        session: AsyncSession,
        *,
        subscription_id: int,
        now_utc: datetime,
    ) -> bool:
        stmt = (
            update(Subscription)
            .where(Subscription.id == subscription_id, Subscription.is_active.is_(True))
            .values(is_active=False, updated_at=now_utc)
            .returning(Subscription.id)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def consume_unit(
        session: AsyncSession,
        *,
        subscription_id: int,
        now_utc: datetime,
        enforce_limit: bool = True,
    ) -> bool:
        now_value = literal(now_utc, DateTime(timezone=True))
        restarts_window = and_(
            Subscription.messages_used == 0,
            Subscription.payment_status == PAYMENT_STATUS_KEY,
        )
        stmt = update(Subscription).where(
            Subscription.id == subscription_id,
            Subscription.is_active.is_(True),
        )
        if enforce_limit:
            stmt = stmt.where(
                or_(
                    Subscription.messages_limit.is_(None),
                    Subscription.messages_used < Subscription.messages_limit,
                )
            )
        # SET expressions read the pre-update row, so both CASEs see the old usage.
        stmt = stmt.values(
            messages_used=Subscription.messages_used + 1,
            start_date=case((restarts_window, now_value), else_=Subscription.start_date),
            end_date=case(
                (
                    restarts_window,
                    now_value + (Subscription.end_date - Subscription.start_date),
                ),
                else_=Subscription.end_date,
            ),
            updated_at=now_utc,
        ).returning(Subscription.id)
        result = await session.execute(stmt)
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def list_with_actor_emails(
        session: AsyncSession,
        *,
        feature: str,
        limit: int = 500,
    ) -> list[tuple[Subscription, str | None]]:
        email_expr = func.coalesce(User.email, Admin.email)
        stmt = (
            select(Subscription, email_expr)
            .outerjoin(
                User,
                and_(Subscription.actor_kind == "USER", Subscription.actor_id == User.id),
            )
            .outerjoin(
                Admin,
                and_(Subscription.actor_kind == "ADMIN", Subscription.actor_id == Admin.id),
            )
            .where(Subscription.feature == feature)
            .order_by(Subscription.created_at.desc())
            .limit(limit)
        )
        result = await session.execute(stmt)
        return [(row[0], row[1]) for row in result.all()]

    @staticmethod
    async def stats(session: AsyncSession, *, feature: str) -> dict[str, int]:
        stmt = select(
            func.count(Subscription.id),
            func.count(Subscription.id).filter(Subscription.is_active.is_(True)),
            func.coalesce(func.sum(Subscription.messages_used), 0),
        ).where(Subscription.feature == feature)
        result = await session.execute(stmt)
        total, active, messages_total = result.one()
        return {
            "total": int(total or 0),
            "active": int(active or 0),
            "messages_total": int(messages_total or 0),
        }

    @staticmethod
    async def list_active_subscriber_emails(
        session: AsyncSession,
        *,
        feature: str,
        now_utc: datetime,
    ) -> list[str]:
        stmt = (
            select(User.email)
            .join(
                Subscription,
                and_(Subscription.actor_kind == "USER", Subscription.actor_id == User.id),
            )
            .where(
                Subscription.feature == feature,
                Subscription.is_active.is_(True),
                # Skip rows that lazy expiry would retire on their next read.
                or_(Subscription.end_date >= now_utc, Subscription.messages_used == 0),
            )
            .distinct()
        )
        result = await session.execute(stmt)
        return [str(email) for email in result.scalars().all()]
