from __future__ import annotations

from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.quiz_level_progress import QuizLevelProgress

_PROGRESS_KEY = ("actor_kind", "actor_id", "level")


class QuizProgressRepo:
    @staticmethod
    async def get(
        session: AsyncSession,
        *,
        actor_kind: str,
        actor_id: int,
        level: int,
    ) -> QuizLevelProgress | None:
        return await session.get(QuizLevelProgress, (actor_kind, actor_id, level))

    @staticmethod
    async def list_for_actor(
        session: AsyncSession,
        *,
        actor_kind: str,
        actor_id: int,
    ) -> list[QuizLevelProgress]:
        stmt = (
            select(QuizLevelProgress)
            .where(
                QuizLevelProgress.actor_kind == actor_kind,
                QuizLevelProgress.actor_id == actor_id,
            )
            .order_by(QuizLevelProgress.level.asc())
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def record_attempt(
        session: AsyncSession,
        *,
        actor_kind: str,
        actor_id: int,
        level: int,
        score: int,
        passed: bool,
        now_utc: datetime,
    ) -> QuizLevelProgress:
        insert_stmt = pg_insert(QuizLevelProgress).values(
            actor_kind=actor_kind,
            actor_id=actor_id,
            level=level,
            is_unlocked=True,
            is_passed=passed,
            best_score=score,
            attempts_count=1,
            last_attempt_at=now_utc,
            updated_at=now_utc,
        )
        excluded = insert_stmt.excluded
        stmt = (
            insert_stmt.on_conflict_do_update(
                index_elements=list(_PROGRESS_KEY),
                set_={
                    "is_unlocked": True,
                    "is_passed": QuizLevelProgress.is_passed | excluded.is_passed,
                    "best_score": func.greatest(QuizLevelProgress.best_score, excluded.best_score),
                    "attempts_count": QuizLevelProgress.attempts_count + 1,
                    "last_attempt_at": excluded.last_attempt_at,
                    "updated_at": excluded.updated_at,
                },
            )
            .returning(QuizLevelProgress)
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        return result.scalar_one()

    @staticmethod
    async def ensure_unlocked(
        session: AsyncSession,
        *,
        actor_kind: str,
        actor_id: int,
        level: int,
        now_utc: datetime,
    ) -> None:
        insert_stmt = pg_insert(QuizLevelProgress).values(
            actor_kind=actor_kind,
            actor_id=actor_id,
            level=level,
            is_unlocked=True,
            is_passed=False,
            best_score=0,
            attempts_count=0,
            last_attempt_at=None,
            updated_at=now_utc,
        )
        stmt = insert_stmt.on_conflict_do_update(
            index_elements=list(_PROGRESS_KEY),
            set_={"is_unlocked": True, "updated_at": insert_stmt.excluded.updated_at},
        )
        await session.execute(stmt)
