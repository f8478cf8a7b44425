from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.feed_posts import FeedPost
from app.db.models.subscriptions import Subscription
from app.db.models.users import User
from app.db.repo.feed_repo import FeedRepo
from app.db.repo.users_repo import UsersRepo
from app.entitlements.errors import BadRequestError, ForbiddenError, NotFoundError
from app.entitlements.subscriptions.service import SubscriptionLedger
from app.entitlements.types import Actor, Feature
from app.workers.tasks.feed_broadcast import broadcast_feed_post

logger = structlog.get_logger(__name__)

MAX_FEED_LIMIT = 200
BROADCAST_ENQUEUE_TIMEOUT_SECONDS = 2.0
REACTIONS = ("like", "love", "sad", "fire", "rocket")


class PostType(str, Enum):
    ALERT = "alert"
    RECOMMENDATION = "recommendation"
    RESULT = "result"


@dataclass(slots=True)
class FeedAccess:
    has_subscription: bool
    can_publish: bool
    subscription: Subscription | None


@dataclass(frozen=True, slots=True)
class FeedPostDraft:
    post_type: PostType
    content: str
    symbol: str | None = None
    side: str | None = None
    entry_price: str | None = None
    stop_loss: str | None = None
    take_profit_1: str | None = None
    take_profit_2: str | None = None
    risk_percent: str | None = None


@dataclass(slots=True)
class FeedItem:
    post: FeedPost
    reactions: dict[str, int] = field(default_factory=dict)
    my_reaction: str | None = None


def can_publish(actor: Actor) -> bool:
    return actor.is_admin or actor.is_publisher


def _is_celery_task(task_obj: object) -> bool:
    return type(task_obj).__module__.startswith("celery.")


async def enqueue_feed_broadcast(
    *,
    post_id: int,
    timeout_seconds: float = BROADCAST_ENQUEUE_TIMEOUT_SECONDS,
) -> bool:
    def enqueue_call() -> object:
        return broadcast_feed_post.delay(post_id=post_id)

    try:
        if _is_celery_task(broadcast_feed_post):
            await asyncio.wait_for(asyncio.to_thread(enqueue_call), timeout=timeout_seconds)
        else:
            enqueue_call()
        return True
    except asyncio.TimeoutError:
        logger.warning(
            "feed_broadcast_enqueue_timeout",
            post_id=post_id,
            enqueue_timeout_seconds=timeout_seconds,
        )
        return False
    except Exception as exc:
        logger.warning(
            "feed_broadcast_enqueue_failed",
            post_id=post_id,
            error_type=type(exc).__name__,
        )
        return False


class FeedService:
    @staticmethod
    async def me(session: AsyncSession, *, actor: Actor, now_utc: datetime) -> FeedAccess:
        subscription = await SubscriptionLedger.get_active(
            session,
            actor=actor,
            feature=Feature.RECOMMENDATION_FEED,
            now_utc=now_utc,
        )
        return FeedAccess(
            has_subscription=subscription is not None,
            can_publish=can_publish(actor),
            subscription=subscription,
        )

    @staticmethod
    async def _require_read_access(
        session: AsyncSession,
        *,
        actor: Actor,
        now_utc: datetime,
    ) -> Subscription | None:
        access = await FeedService.me(session, actor=actor, now_utc=now_utc)
        if not access.has_subscription and not access.can_publish:
            raise ForbiddenError("an active recommendation feed subscription is required")
        return access.subscription

    @staticmethod
    async def _items(
        session: AsyncSession,
        *,
        actor: Actor,
        posts: list[FeedPost],
    ) -> list[FeedItem]:
        post_ids = [post.id for post in posts]
        counts = await FeedRepo.reaction_counts(session, post_ids=post_ids)
        mine = await FeedRepo.actor_reactions(
            session,
            actor_kind=actor.kind.value,
            actor_id=actor.id,
            post_ids=post_ids,
        )
        return [
            FeedItem(post=post, reactions=counts.get(post.id, {}), my_reaction=mine.get(post.id))
            for post in posts
        ]

    @staticmethod
    async def feed(
        session: AsyncSession,
        *,
        actor: Actor,
        limit: int,
        now_utc: datetime,
    ) -> list[FeedItem]:
        if limit < 1 or limit > MAX_FEED_LIMIT:
            raise BadRequestError(f"limit must be between 1 and {MAX_FEED_LIMIT}")

        subscription = await FeedService._require_read_access(
            session,
            actor=actor,
            now_utc=now_utc,
        )
        if subscription is not None and not can_publish(actor):
            # Reads count as usage so lazy expiry applies to feed grants too.
            consumed = await SubscriptionLedger.consume_unit(
                session,
                subscription_id=subscription.id,
                now_utc=now_utc,
            )
            if not consumed:
                raise ForbiddenError("recommendation feed quota exhausted")

        posts = await FeedRepo.list_posts(session, limit=limit)
        return await FeedService._items(session, actor=actor, posts=posts)

    @staticmethod
    async def post_message(
        session: AsyncSession,
        *,
        actor: Actor,
        draft: FeedPostDraft,
        now_utc: datetime,
    ) -> FeedPost:
        if not can_publish(actor):
            raise ForbiddenError("only publishers can post recommendations")
        content = draft.content.strip()
        if not content:
            raise BadRequestError("content is required")

        post = await FeedRepo.create_post(
            session,
            post=FeedPost(
                author_kind=actor.kind.value,
                author_id=actor.id,
                post_type=draft.post_type.value,
                symbol=draft.symbol,
                side=draft.side,
                entry_price=draft.entry_price,
                stop_loss=draft.stop_loss,
                take_profit_1=draft.take_profit_1,
                take_profit_2=draft.take_profit_2,
                risk_percent=draft.risk_percent,
                content=content,
                created_at=now_utc,
            ),
        )
        logger.info(
            "feed_post_created",
            post_id=post.id,
            post_type=post.post_type,
            author_kind=actor.kind.value,
            author_id=actor.id,
        )
        return post

    @staticmethod
    async def react(
        session: AsyncSession,
        *,
        actor: Actor,
        post_id: int,
        reaction: str | None,
        now_utc: datetime,
    ) -> FeedItem:
        if reaction is not None and reaction not in REACTIONS:
            raise BadRequestError(f"reaction must be one of: {', '.join(REACTIONS)}")
        await FeedService._require_read_access(session, actor=actor, now_utc=now_utc)
        post = await FeedRepo.get_post(session, post_id)
        if post is None:
            raise NotFoundError("post not found")

        if reaction is None:
            await FeedRepo.clear_reaction(
                session,
                post_id=post_id,
                actor_kind=actor.kind.value,
                actor_id=actor.id,
            )
        else:
            await FeedRepo.set_reaction(
                session,
                post_id=post_id,
                actor_kind=actor.kind.value,
                actor_id=actor.id,
                reaction=reaction,
                now_utc=now_utc,
            )
        items = await FeedService._items(session, actor=actor, posts=[post])
        return items[0]

    @staticmethod
    async def set_publisher(session: AsyncSession, *, user_id: int, is_publisher: bool) -> User:
        user = await UsersRepo.set_publisher(session, user_id=user_id, is_publisher=is_publisher)
        if user is None:
            raise NotFoundError("user not found")
        logger.info("feed_publisher_changed", user_id=user_id, is_publisher=is_publisher)
        return user

    @staticmethod
    async def list_publishers(session: AsyncSession) -> list[User]:
        return await UsersRepo.list_publishers(session)
