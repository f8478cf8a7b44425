from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.courses import Course
from app.db.models.episodes import Episode


class CoursesRepo:
    @staticmethod
    async def get_by_id(session: AsyncSession, course_id: int) -> Course | None:
        return await session.get(Course, course_id)

    @staticmethod
    async def get_episode(
        session: AsyncSession,
        *,
        course_id: int,
        episode_id: int,
    ) -> Episode | None:
        stmt = select(Episode).where(Episode.id == episode_id, Episode.course_id == course_id)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_previous_episode(
        session: AsyncSession,
        *,
        course_id: int,
        order: int,
    ) -> Episode | None:
        stmt = (
            select(Episode)
            .where(Episode.course_id == course_id, Episode.order < order)
            .order_by(Episode.order.desc())
            .limit(1)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def list_episodes(session: AsyncSession, *, course_id: int) -> list[Episode]:
        stmt = select(Episode).where(Episode.course_id == course_id).order_by(Episode.order.asc())
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def count_episodes(session: AsyncSession, *, course_id: int) -> int:
        stmt = select(func.count(Episode.id)).where(Episode.course_id == course_id)
        result = await session.execute(stmt)
        return int(result.scalar_one() or 0)
