from __future__ import annotations

from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Query, Request

from app.db.session import SessionLocal
from app.entitlements.errors import EntitlementError
from app.entitlements.facade import EntitlementFacade, FeatureRedemption
from app.entitlements.subscriptions.service import SubscriptionLedger

from .session_helpers import as_http_exception, parse_feature, require_actor, require_admin
from .subscriptions_models import (
    AdminSubscriptionListResponse,
    AdminSubscriptionResponse,
    FeatureRedeemByEmailRequest,
    FeatureRedeemRequest,
    FeatureRedeemResponse,
    PurchaseRequest,
    SubscriptionStatisticsResponse,
    SubscriptionStatusResponse,
    status_as_response,
    subscription_as_response,
)

router = APIRouter(tags=["subscriptions"])
logger = structlog.get_logger(__name__)


def _redemption_response(redemption: FeatureRedemption) -> FeatureRedeemResponse:
    subscription = redemption.subscription
    if subscription is None:
        message = "key activated; access is granted when you sign in with this email"
    else:
        message = "subscription activated"
    return FeatureRedeemResponse(
        success=True,
        message=message,
        key_id=redemption.activation.key_id,
        idempotent_replay=redemption.activation.idempotent_replay,
        subscription=None if subscription is None else subscription_as_response(subscription),
    )


async def redeem_feature_by_email(
    *,
    feature_slug: str,
    payload: FeatureRedeemByEmailRequest,
) -> FeatureRedeemResponse:
    feature = parse_feature(feature_slug)
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            redemption = await EntitlementFacade.redeem_feature_key_by_email(
                session,
                feature=feature,
                code=payload.code,
                email=payload.email,
                now_utc=now_utc,
            )
    except EntitlementError as exc:
        raise as_http_exception(exc) from exc
    return _redemption_response(redemption)


@router.get("/api/subscriptions/{feature_slug}", response_model=SubscriptionStatusResponse)
async def get_subscription(feature_slug: str, request: Request) -> SubscriptionStatusResponse:
    feature = parse_feature(feature_slug)
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            actor = await require_actor(session, request=request, now_utc=now_utc)
            subscription = await SubscriptionLedger.get_active(
                session,
                actor=actor,
                feature=feature,
                now_utc=now_utc,
            )
    except EntitlementError as exc:
        raise as_http_exception(exc) from exc
    return status_as_response(subscription)


@router.post("/api/subscriptions/{feature_slug}/redeem", response_model=FeatureRedeemResponse)
async def redeem_feature(
    feature_slug: str,
    payload: FeatureRedeemRequest,
    request: Request,
) -> FeatureRedeemResponse:
    feature = parse_feature(feature_slug)
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            actor = await require_actor(session, request=request, now_utc=now_utc)
            redemption = await EntitlementFacade.redeem_feature_key(
                session,
                actor=actor,
                feature=feature,
                code=payload.code,
                now_utc=now_utc,
            )
    except EntitlementError as exc:
        raise as_http_exception(exc) from exc
    return _redemption_response(redemption)


@router.post(
    "/api/subscriptions/{feature_slug}/redeem-by-email",
    response_model=FeatureRedeemResponse,
)
async def redeem_feature_with_email(
    feature_slug: str,
    payload: FeatureRedeemByEmailRequest,
) -> FeatureRedeemResponse:
    return await redeem_feature_by_email(feature_slug=feature_slug, payload=payload)


@router.post(
    "/api/subscriptions/{feature_slug}/purchase",
    response_model=SubscriptionStatusResponse,
)
async def purchase_subscription(
    feature_slug: str,
    payload: PurchaseRequest,
    request: Request,
) -> SubscriptionStatusResponse:
    feature = parse_feature(feature_slug)
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            actor = await require_actor(session, request=request, now_utc=now_utc)
            subscription = await SubscriptionLedger.create_paid(
                session,
                actor=actor,
                feature=feature,
                payment_amount=payload.payment_amount,
                payment_currency=payload.payment_currency,
                now_utc=now_utc,
            )
    except EntitlementError as exc:
        raise as_http_exception(exc) from exc
    return status_as_response(subscription)


@router.get(
    "/api/admin/subscriptions/{feature_slug}",
    response_model=AdminSubscriptionListResponse,
)
async def admin_list_subscriptions(
    feature_slug: str,
    request: Request,
) -> AdminSubscriptionListResponse:
    feature = parse_feature(feature_slug)
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            await require_admin(session, request=request, now_utc=now_utc)
            rows = await SubscriptionLedger.list_with_actor_emails(session, feature=feature)
    except EntitlementError as exc:
        raise as_http_exception(exc) from exc
    return AdminSubscriptionListResponse(
        subscriptions=[
            AdminSubscriptionResponse(
                **subscription_as_response(subscription).model_dump(),
                actor_kind=subscription.actor_kind,
                actor_id=subscription.actor_id,
                email=email,
            )
            for subscription, email in rows
        ]
    )


@router.get(
    "/api/admin/subscriptions/{feature_slug}/statistics",
    response_model=SubscriptionStatisticsResponse,
)
async def admin_subscription_statistics(
    feature_slug: str,
    request: Request,
) -> SubscriptionStatisticsResponse:
    feature = parse_feature(feature_slug)
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            await require_admin(session, request=request, now_utc=now_utc)
            stats = await SubscriptionLedger.statistics(session, feature=feature)
    except EntitlementError as exc:
        raise as_http_exception(exc) from exc
    return SubscriptionStatisticsResponse(**stats)


@router.post("/api/admin/subscriptions/{subscription_id}/revoke")
async def admin_revoke_subscription(
    subscription_id: int,
    request: Request,
    reason: str | None = Query(default=None, max_length=256),
) -> dict[str, bool]:
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            admin = await require_admin(session, request=request, now_utc=now_utc)
            revoked = await SubscriptionLedger.revoke(
                session,
                subscription_id=subscription_id,
                now_utc=now_utc,
            )
    except EntitlementError as exc:
        raise as_http_exception(exc) from exc
    logger.info(
        "admin_subscription_revoked",
        subscription_id=subscription_id,
        admin_id=admin.id,
        revoked=revoked,
        reason=reason,
    )
    return {"revoked": revoked}
