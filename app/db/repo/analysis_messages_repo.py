from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.analysis_messages import AnalysisMessage


class AnalysisMessagesRepo:
    @staticmethod
    async def create(session: AsyncSession, *, message: AnalysisMessage) -> AnalysisMessage:
        session.add(message)
        await session.flush()
        return message

    @staticmethod
    async def get_latest_assistant(
        session: AsyncSession,
        *,
        actor_kind: str,
        actor_id: int,
        analysis_type: str,
    ) -> AnalysisMessage | None:
        stmt = (
            select(AnalysisMessage)
            .where(
                AnalysisMessage.actor_kind == actor_kind,
                AnalysisMessage.actor_id == actor_id,
                AnalysisMessage.role == "assistant",
                AnalysisMessage.analysis_type == analysis_type,
            )
            .order_by(AnalysisMessage.created_at.desc(), AnalysisMessage.id.desc())
            .limit(1)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def list_recent(
        session: AsyncSession,
        *,
        actor_kind: str,
        actor_id: int,
        limit: int,
    ) -> list[AnalysisMessage]:
        stmt = (
            select(AnalysisMessage)
            .where(
                AnalysisMessage.actor_kind == actor_kind,
                AnalysisMessage.actor_id == actor_id,
            )
            .order_by(AnalysisMessage.created_at.desc(), AnalysisMessage.id.desc())
            .limit(limit)
        )
        result = await session.execute(stmt)
        return list(reversed(result.scalars().all()))
