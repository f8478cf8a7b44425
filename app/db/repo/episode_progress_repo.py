from __future__ import annotations

from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.episode_progress import EpisodeProgress


class EpisodeProgressRepo:
    @staticmethod
    async def get(
        session: AsyncSession,
        *,
        actor_kind: str,
        actor_id: int,
        episode_id: int,
    ) -> EpisodeProgress | None:
        stmt = select(EpisodeProgress).where(
            EpisodeProgress.actor_kind == actor_kind,
            EpisodeProgress.actor_id == actor_id,
            EpisodeProgress.episode_id == episode_id,
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def list_for_course(
        session: AsyncSession,
        *,
        actor_kind: str,
        actor_id: int,
        course_id: int,
    ) -> list[EpisodeProgress]:
        stmt = (
            select(EpisodeProgress)
            .where(
                EpisodeProgress.actor_kind == actor_kind,
                EpisodeProgress.actor_id == actor_id,
                EpisodeProgress.course_id == course_id,
            )
            .order_by(EpisodeProgress.episode_id.asc())
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def upsert_watched(
        session: AsyncSession,
        *,
        actor_kind: str,
        actor_id: int,
        episode_id: int,
        course_id: int,
        watched_seconds: int,
        now_utc: datetime,
    ) -> EpisodeProgress:
        insert_stmt = pg_insert(EpisodeProgress).values(
            actor_kind=actor_kind,
            actor_id=actor_id,
            episode_id=episode_id,
            course_id=course_id,
            watched_duration=watched_seconds,
            is_completed=False,
            last_watched_at=now_utc,
        )
        stmt = insert_stmt.on_conflict_do_update(
            constraint="uq_episode_progress_actor_episode",
            set_={
                "watched_duration": func.greatest(
                    EpisodeProgress.watched_duration,
                    insert_stmt.excluded.watched_duration,
                ),
                "last_watched_at": insert_stmt.excluded.last_watched_at,
            },
        ).returning(EpisodeProgress).execution_options(populate_existing=True)
        result = await session.execute(stmt)
        return result.scalar_one()

    @staticmethod
    async def upsert_completed(
        session: AsyncSession,
        *,
        actor_kind: str,
        actor_id: int,
        episode_id: int,
        course_id: int,
        now_utc: datetime,
    ) -> EpisodeProgress:
        insert_stmt = pg_insert(EpisodeProgress).values(
            actor_kind=actor_kind,
            actor_id=actor_id,
            episode_id=episode_id,
            course_id=course_id,
            watched_duration=0,
            is_completed=True,
            last_watched_at=now_utc,
        )
        stmt = insert_stmt.on_conflict_do_update(
            constraint="uq_episode_progress_actor_episode",
            set_={"is_completed": True, "last_watched_at": insert_stmt.excluded.last_watched_at},
        ).returning(EpisodeProgress).execution_options(populate_existing=True)
        result = await session.execute(stmt)
        return result.scalar_one()
