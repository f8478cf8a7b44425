from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

import structlog
from fastapi import APIRouter, Query, Request
from pydantic import BaseModel, Field

from app.db.models.users import User
from app.db.session import SessionLocal
from app.entitlements.errors import EntitlementError
from app.entitlements.feed import (
    MAX_FEED_LIMIT,
    FeedItem,
    FeedPostDraft,
    FeedService,
    PostType,
    enqueue_feed_broadcast,
)

from .session_helpers import as_http_exception, require_actor, require_admin
from .subscriptions import redeem_feature_by_email
from .subscriptions_models import (
    FeatureRedeemByEmailRequest,
    FeatureRedeemResponse,
    SubscriptionResponse,
    subscription_as_response,
)

router = APIRouter(tags=["recommendations"])
logger = structlog.get_logger(__name__)


class FeedMeResponse(BaseModel):
    has_subscription: bool
    can_publish: bool
    subscription: SubscriptionResponse | None = None


class FeedPostRequest(BaseModel):
    post_type: PostType = PostType.RECOMMENDATION
    content: str = Field(min_length=1, max_length=8000)
    symbol: str | None = Field(default=None, max_length=32)
    side: Literal["buy", "sell"] | None = None
    entry_price: str | None = Field(default=None, max_length=32)
    stop_loss: str | None = Field(default=None, max_length=32)
    take_profit_1: str | None = Field(default=None, max_length=32)
    take_profit_2: str | None = Field(default=None, max_length=32)
    risk_percent: str | None = Field(default=None, max_length=16)


class FeedPostResponse(BaseModel):
    id: int
    author_kind: str
    author_id: int
    post_type: str
    symbol: str | None = None
    side: str | None = None
    entry_price: str | None = None
    stop_loss: str | None = None
    take_profit_1: str | None = None
    take_profit_2: str | None = None
    risk_percent: str | None = None
    content: str
    created_at: datetime
    reactions: dict[str, int] = Field(default_factory=dict)
    my_reaction: str | None = None


class FeedResponse(BaseModel):
    posts: list[FeedPostResponse]


class ReactionRequest(BaseModel):
    reaction: str | None = Field(default=None, max_length=16)


class PublisherResponse(BaseModel):
    id: int
    email: str
    name: str | None = None
    is_publisher: bool


class PublisherListResponse(BaseModel):
    publishers: list[PublisherResponse]


def _item_as_response(item: FeedItem) -> FeedPostResponse:
    post = item.post
    return FeedPostResponse(
        id=post.id,
        author_kind=post.author_kind,
        author_id=post.author_id,
        post_type=post.post_type,
        symbol=post.symbol,
        side=post.side,
        entry_price=post.entry_price,
        stop_loss=post.stop_loss,
        take_profit_1=post.take_profit_1,
        take_profit_2=post.take_profit_2,
        risk_percent=post.risk_percent,
        content=post.content,
        created_at=post.created_at,
        reactions=item.reactions,
        my_reaction=item.my_reaction,
    )


def _publisher_as_response(user: User) -> PublisherResponse:
    return PublisherResponse(
        id=user.id,
        email=user.email,
        name=user.name,
        is_publisher=user.is_publisher,
    )


@router.get("/api/recommendations/me", response_model=FeedMeResponse)
async def feed_me(request: Request) -> FeedMeResponse:
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            actor = await require_actor(session, request=request, now_utc=now_utc)
            access = await FeedService.me(session, actor=actor, now_utc=now_utc)
    except EntitlementError as exc:
        raise as_http_exception(exc) from exc
    return FeedMeResponse(
        has_subscription=access.has_subscription,
        can_publish=access.can_publish,
        subscription=(
            None if access.subscription is None else subscription_as_response(access.subscription)
        ),
    )


@router.get("/api/recommendations/feed", response_model=FeedResponse)
async def feed(
    request: Request,
    limit: int = Query(default=50, ge=1, le=MAX_FEED_LIMIT),
) -> FeedResponse:
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            actor = await require_actor(session, request=request, now_utc=now_utc)
            items = await FeedService.feed(session, actor=actor, limit=limit, now_utc=now_utc)
    except EntitlementError as exc:
        raise as_http_exception(exc) from exc
    return FeedResponse(posts=[_item_as_response(item) for item in items])


@router.post("/api/recommendations/messages", response_model=FeedPostResponse, status_code=201)
async def post_message(payload: FeedPostRequest, request: Request) -> FeedPostResponse:
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            actor = await require_actor(session, request=request, now_utc=now_utc)
            post = await FeedService.post_message(
                session,
                actor=actor,
                draft=FeedPostDraft(
                    post_type=payload.post_type,
                    content=payload.content,
                    symbol=payload.symbol,
                    side=payload.side,
                    entry_price=payload.entry_price,
                    stop_loss=payload.stop_loss,
                    take_profit_1=payload.take_profit_1,
                    take_profit_2=payload.take_profit_2,
                    risk_percent=payload.risk_percent,
                ),
                now_utc=now_utc,
            )
    except EntitlementError as exc:
        raise as_http_exception(exc) from exc

    await enqueue_feed_broadcast(post_id=post.id)
    return _item_as_response(FeedItem(post=post))


@router.post(
    "/api/recommendations/messages/{post_id}/react",
    response_model=FeedPostResponse,
)
async def react(post_id: int, payload: ReactionRequest, request: Request) -> FeedPostResponse:
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            actor = await require_actor(session, request=request, now_utc=now_utc)
            item = await FeedService.react(
                session,
                actor=actor,
                post_id=post_id,
                reaction=payload.reaction,
                now_utc=now_utc,
            )
    except EntitlementError as exc:
        raise as_http_exception(exc) from exc
    return _item_as_response(item)


@router.post("/api/recommendations/activate-key", response_model=FeatureRedeemResponse)
async def activate_feed_key(payload: FeatureRedeemByEmailRequest) -> FeatureRedeemResponse:
    return await redeem_feature_by_email(feature_slug="recommendations", payload=payload)


@router.post(
    "/api/admin/recommendations/publishers/{user_id}",
    response_model=PublisherResponse,
)
async def set_publisher(
    user_id: int,
    request: Request,
    is_publisher: bool = Query(default=True),
) -> PublisherResponse:
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            admin = await require_admin(session, request=request, now_utc=now_utc)
            user = await FeedService.set_publisher(
                session,
                user_id=user_id,
                is_publisher=is_publisher,
            )
    except EntitlementError as exc:
        raise as_http_exception(exc) from exc
    logger.info("admin_publisher_updated", user_id=user_id, admin_id=admin.id)
    return _publisher_as_response(user)


@router.get("/api/admin/recommendations/publishers", response_model=PublisherListResponse)
async def list_publishers(request: Request) -> PublisherListResponse:
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            await require_admin(session, request=request, now_utc=now_utc)
            users = await FeedService.list_publishers(session)
    except EntitlementError as exc:
        raise as_http_exception(exc) from exc
    return PublisherListResponse(publishers=[_publisher_as_response(user) for user in users])
