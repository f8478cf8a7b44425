from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.quiz_answers import QuizAnswer
from app.db.models.quiz_attempts import QuizAttempt


class QuizAttemptsRepo:
    @staticmethod
    async def create(
        session: AsyncSession,
        *,
        attempt: QuizAttempt,
        answers: Sequence[QuizAnswer],
    ) -> QuizAttempt:
        session.add(attempt)
        await session.flush()
        for answer in answers:
            answer.attempt_id = attempt.id
        session.add_all(list(answers))
        await session.flush()
        return attempt

    @staticmethod
    async def list_for_level(
        session: AsyncSession,
        *,
        actor_kind: str,
        actor_id: int,
        level: int,
        limit: int = 50,
    ) -> list[QuizAttempt]:
        stmt = (
            select(QuizAttempt)
            .where(
                QuizAttempt.actor_kind == actor_kind,
                QuizAttempt.actor_id == actor_id,
                QuizAttempt.level == level,
            )
            .order_by(QuizAttempt.completed_at.desc(), QuizAttempt.id.desc())
            .limit(limit)
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())
