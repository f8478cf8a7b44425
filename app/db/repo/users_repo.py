from __future__ import annotations

from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.users import User


class UsersRepo:
    @staticmethod
    async def get_by_id(session: AsyncSession, user_id: int) -> User | None:
        return await session.get(User, user_id)

    @staticmethod
    async def get_by_email(session: AsyncSession, email: str) -> User | None:
        stmt = select(User).where(User.email == email.strip().lower())
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def create(
        session: AsyncSession,
        *,
        email: str,
        password_hash: str,
        name: str | None,
    ) -> User:
        user = User(
            email=email.strip().lower(),
            password_hash=password_hash,
            name=name,
        )
        session.add(user)
        await session.flush()
        return user

    @staticmethod
    async def touch_last_signed_in(
        session: AsyncSession,
        user_id: int,
        signed_in_at: datetime,
    ) -> int:
        stmt = update(User).where(User.id == user_id).values(last_signed_in_at=signed_in_at)
        result = await session.execute(stmt)
        return result.rowcount or 0

    @staticmethod
    async def set_publisher(
        session: AsyncSession,
        *,
        user_id: int,
        is_publisher: bool,
    ) -> User | None:
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(is_publisher=is_publisher)
            .returning(User)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def list_publishers(session: AsyncSession) -> list[User]:
        stmt = select(User).where(User.is_publisher.is_(True)).order_by(User.email.asc())
        result = await session.execute(stmt)
        return list(result.scalars().all())
