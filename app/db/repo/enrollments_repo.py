from __future__ import annotations

from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.enrollments import Enrollment


class EnrollmentsRepo:
    @staticmethod
    async def get(
        session: AsyncSession,
        *,
        actor_kind: str,
        actor_id: int,
        course_id: int,
    ) -> Enrollment | None:
        stmt = select(Enrollment).where(
            Enrollment.actor_kind == actor_kind,
            Enrollment.actor_id == actor_id,
            Enrollment.course_id == course_id,
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def create_if_absent(
        session: AsyncSession,
        *,
        actor_kind: str,
        actor_id: int,
        course_id: int,
        now_utc: datetime,
        payment_status: str = "completed",
        activated_via_key: bool = False,
        activation_key_id: int | None = None,
    ) -> int | None:
        stmt = (
            pg_insert(Enrollment)
            .values(
                actor_kind=actor_kind,
                actor_id=actor_id,
                course_id=course_id,
                enrolled_at=now_utc,
                last_accessed_at=now_utc,
                completed_episodes=0,
                progress_percentage=0,
                payment_status=payment_status,
                activated_via_key=activated_via_key,
                activation_key_id=activation_key_id,
            )
            .on_conflict_do_nothing(constraint="uq_enrollments_actor_course")
            .returning(Enrollment.id)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def update_progress(
        session: AsyncSession,
        *,
        enrollment_id: int,
        completed_episodes: int,
        progress_percentage: int,
        completed_at: datetime | None,
        now_utc: datetime,
    ) -> int:
        values: dict[str, object] = {
            "completed_episodes": completed_episodes,
            "progress_percentage": progress_percentage,
            "last_accessed_at": now_utc,
        }
        if completed_at is not None:
            values["completed_at"] = completed_at
        stmt = update(Enrollment).where(Enrollment.id == enrollment_id).values(**values)
        result = await session.execute(stmt)
        return result.rowcount or 0

    @staticmethod
    async def touch_last_accessed(
        session: AsyncSession,
        *,
        enrollment_id: int,
        now_utc: datetime,
    ) -> int:
        stmt = (
            update(Enrollment)
            .where(Enrollment.id == enrollment_id)
            .values(last_accessed_at=now_utc)
        )
        result = await session.execute(stmt)
        return result.rowcount or 0
