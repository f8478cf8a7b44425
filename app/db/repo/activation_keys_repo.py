from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.activation_keys import ActivationKey

KEY_STATE_UNUSED = "unused"
KEY_STATE_ACTIVATED = "activated"
KEY_STATE_DEACTIVATED = "deactivated"


class ActivationKeysRepo:
    @staticmethod
    async def get_by_id(session: AsyncSession, key_id: int) -> ActivationKey | None:
        return await session.get(ActivationKey, key_id)

    @staticmethod
    async def get_by_code(session: AsyncSession, code: str) -> ActivationKey | None:
        stmt = select(ActivationKey).where(ActivationKey.code == code)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def list_existing_codes(session: AsyncSession, codes: Sequence[str]) -> set[str]:
        if not codes:
            return set()
        stmt = select(ActivationKey.code).where(ActivationKey.code.in_(list(codes)))
        result = await session.execute(stmt)
        return {str(code) for code in result.scalars().all()}

    @staticmethod
    async def create_many(
        session: AsyncSession,
        *,
        keys: Sequence[ActivationKey],
    ) -> list[ActivationKey]:
        session.add_all(list(keys))
        await session.flush()
        return list(keys)

    @staticmethod
    async def bind_email_if_unbound(
        session: AsyncSession,
        *,
        key_id: int,
        email: str,
        now_utc: datetime,
    ) -> bool:
        stmt = (
            update(ActivationKey)
            .where(
                ActivationKey.id == key_id,
                ActivationKey.bound_email.is_(None),
                ActivationKey.is_active.is_(True),
            )
            .values(bound_email=email, activated_at=now_utc)
            .returning(ActivationKey.id)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def set_active(
        session: AsyncSession,
        *,
        key_id: int,
        is_active: bool,
    ) -> ActivationKey | None:
        stmt = (
            update(ActivationKey)
            .where(ActivationKey.id == key_id)
            .values(is_active=is_active)
            .returning(ActivationKey)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def list_keys(
        session: AsyncSession,
        *,
        kind: str | None = None,
        course_id: int | None = None,
        state: str | None = None,
        limit: int = 500,
    ) -> list[ActivationKey]:
        stmt = select(ActivationKey)
        if kind is not None:
            stmt = stmt.where(ActivationKey.kind == kind)
        if course_id is not None:
            stmt = stmt.where(ActivationKey.target_course_id == course_id)

        if state == KEY_STATE_UNUSED:
            stmt = stmt.where(
                ActivationKey.is_active.is_(True),
                ActivationKey.activated_at.is_(None),
            ).order_by(ActivationKey.created_at.desc())
        elif state == KEY_STATE_ACTIVATED:
            stmt = stmt.where(
                ActivationKey.is_active.is_(True),
                ActivationKey.activated_at.is_not(None),
            ).order_by(ActivationKey.activated_at.desc())
        elif state == KEY_STATE_DEACTIVATED:
            stmt = stmt.where(ActivationKey.is_active.is_(False)).order_by(
                ActivationKey.created_at.desc()
            )
        else:
            stmt = stmt.order_by(ActivationKey.created_at.desc())

        result = await session.execute(stmt.limit(limit))
        return list(result.scalars().all())

    @staticmethod
    async def list_by_bound_email(
        session: AsyncSession,
        *,
        email: str,
        kind: str | None = None,
    ) -> list[ActivationKey]:
        stmt = (
            select(ActivationKey)
            .where(ActivationKey.bound_email == email)
            .order_by(ActivationKey.activated_at.desc(), ActivationKey.created_at.desc())
        )
        if kind is not None:
            stmt = stmt.where(ActivationKey.kind == kind)
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def list_valid_bound_keys(
        session: AsyncSession,
        *,
        email: str,
        kind: str,
        now_utc: datetime,
        course_id: int | None = None,
    ) -> list[ActivationKey]:
        stmt = (
            select(ActivationKey)
            .where(
                ActivationKey.bound_email == email,
                ActivationKey.kind == kind,
                ActivationKey.is_active.is_(True),
                ActivationKey.activated_at.is_not(None),
                or_(ActivationKey.expires_at.is_(None), ActivationKey.expires_at >= now_utc),
            )
            .order_by(ActivationKey.activated_at.desc(), ActivationKey.created_at.desc())
        )
        if course_id is not None:
            stmt = stmt.where(ActivationKey.target_course_id == course_id)
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def count_by_state(session: AsyncSession, *, kind: str | None = None) -> dict[str, int]:
        total_stmt = select(func.count(ActivationKey.id))
        activated_stmt = select(func.count(ActivationKey.id)).where(
            ActivationKey.activated_at.is_not(None)
        )
        unused_stmt = select(func.count(ActivationKey.id)).where(
            ActivationKey.is_active.is_(True),
            ActivationKey.activated_at.is_(None),
        )
        deactivated_stmt = select(func.count(ActivationKey.id)).where(
            ActivationKey.is_active.is_(False)
        )
        if kind is not None:
            total_stmt = total_stmt.where(ActivationKey.kind == kind)
            activated_stmt = activated_stmt.where(ActivationKey.kind == kind)
            unused_stmt = unused_stmt.where(ActivationKey.kind == kind)
            deactivated_stmt = deactivated_stmt.where(ActivationKey.kind == kind)

        counts: dict[str, int] = {}
        for name, stmt in (
            ("total", total_stmt),
            ("activated", activated_stmt),
            ("unused", unused_stmt),
            ("deactivated", deactivated_stmt),
        ):
            result = await session.execute(stmt)
            counts[name] = int(result.scalar_one() or 0)
        return counts
