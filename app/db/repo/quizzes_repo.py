from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.quiz_options import QuizOption
from app.db.models.quiz_questions import QuizQuestion
from app.db.models.quizzes import Quiz


class QuizzesRepo:
    @staticmethod
    async def get_by_level(session: AsyncSession, level: int) -> Quiz | None:
        stmt = select(Quiz).where(Quiz.level == level)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def list_all(session: AsyncSession) -> list[Quiz]:
        stmt = select(Quiz).order_by(Quiz.level.asc())
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def level_exists(session: AsyncSession, level: int) -> bool:
        stmt = select(Quiz.id).where(Quiz.level == level)
        result = await session.execute(stmt)
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def list_questions(session: AsyncSession, *, quiz_id: int) -> list[QuizQuestion]:
        stmt = (
            select(QuizQuestion)
            .where(QuizQuestion.quiz_id == quiz_id)
            .order_by(QuizQuestion.order_num.asc(), QuizQuestion.id.asc())
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def list_options(
        session: AsyncSession,
        *,
        question_ids: list[int],
    ) -> list[QuizOption]:
        if not question_ids:
            return []
        stmt = (
            select(QuizOption)
            .where(QuizOption.question_id.in_(question_ids))
            .order_by(QuizOption.question_id.asc(), QuizOption.option_key.asc())
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())
