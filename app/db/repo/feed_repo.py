from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.feed_posts import FeedPost
from app.db.models.feed_reactions import FeedReaction


class FeedRepo:
    @staticmethod
    async def get_post(session: AsyncSession, post_id: int) -> FeedPost | None:
        return await session.get(FeedPost, post_id)

    @staticmethod
    async def create_post(session: AsyncSession, *, post: FeedPost) -> FeedPost:
        session.add(post)
        await session.flush()
        return post

    @staticmethod
    async def list_posts(session: AsyncSession, *, limit: int) -> list[FeedPost]:
        stmt = (
            select(FeedPost)
            .order_by(FeedPost.created_at.desc(), FeedPost.id.desc())
            .limit(limit)
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def reaction_counts(
        session: AsyncSession,
        *,
        post_ids: Sequence[int],
    ) -> dict[int, dict[str, int]]:
        if not post_ids:
            return {}
        stmt = (
            select(FeedReaction.post_id, FeedReaction.reaction, func.count())
            .where(FeedReaction.post_id.in_(list(post_ids)))
            .group_by(FeedReaction.post_id, FeedReaction.reaction)
        )
        result = await session.execute(stmt)
        counts: dict[int, dict[str, int]] = {}
        for post_id, reaction, count in result.all():
            counts.setdefault(int(post_id), {})[str(reaction)] = int(count)
        return counts

    @staticmethod
    async def actor_reactions(
        session: AsyncSession,
        *,
        actor_kind: str,
        actor_id: int,
        post_ids: Sequence[int],
    ) -> dict[int, str]:
        if not post_ids:
            return {}
        stmt = select(FeedReaction.post_id, FeedReaction.reaction).where(
            FeedReaction.actor_kind == actor_kind,
            FeedReaction.actor_id == actor_id,
            FeedReaction.post_id.in_(list(post_ids)),
        )
        result = await session.execute(stmt)
        return {int(post_id): str(reaction) for post_id, reaction in result.all()}

    @staticmethod
    async def set_reaction(
        session: AsyncSession,
        *,
        post_id: int,
        actor_kind: str,
        actor_id: int,
        reaction: str,
        now_utc: datetime,
    ) -> None:
        insert_stmt = pg_insert(FeedReaction).values(
            post_id=post_id,
            actor_kind=actor_kind,
            actor_id=actor_id,
            reaction=reaction,
            created_at=now_utc,
        )
        stmt = insert_stmt.on_conflict_do_update(
            index_elements=["post_id", "actor_kind", "actor_id"],
            set_={
                "reaction": insert_stmt.excluded.reaction,
                "created_at": insert_stmt.excluded.created_at,
            },
        )
        await session.execute(stmt)

    @staticmethod
    async def clear_reaction(
        session: AsyncSession,
        *,
        post_id: int,
        actor_kind: str,
        actor_id: int,
    ) -> int:
        stmt = delete(FeedReaction).where(
            FeedReaction.post_id == post_id,
            FeedReaction.actor_kind == actor_kind,
            FeedReaction.actor_id == actor_id,
        )
        result = await session.execute(stmt)
        return result.rowcount or 0
