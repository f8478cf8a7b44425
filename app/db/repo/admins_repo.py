from __future__ import annotations

from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.admins import Admin


class AdminsRepo:
    @staticmethod
    async def get_by_id(session: AsyncSession, admin_id: int) -> Admin | None:
        return await session.get(Admin, admin_id)

    @staticmethod
    async def get_by_email(session: AsyncSession, email: str) -> Admin | None:
        stmt = select(Admin).where(Admin.email == email.strip().lower())
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def create(
        session: AsyncSession,
        *,
        email: str,
        password_hash: str,
        name: str | None,
    ) -> Admin:
        admin = Admin(email=email.strip().lower(), password_hash=password_hash, name=name)
        session.add(admin)
        await session.flush()
        return admin

    @staticmethod
    async def touch_last_signed_in(
        session: AsyncSession,
        admin_id: int,
        signed_in_at: datetime,
    ) -> int:
        stmt = update(Admin).where(Admin.id == admin_id).values(last_signed_in_at=signed_in_at)
        result = await session.execute(stmt)
        return result.rowcount or 0
