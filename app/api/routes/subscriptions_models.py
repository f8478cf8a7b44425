from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from app.db.models.subscriptions import Subscription
from app.entitlements.subscriptions.rules import remaining_quota


class SubscriptionResponse(BaseModel):
    id: int
    feature: str
    is_active: bool
    start_date: datetime
    end_date: datetime
    payment_status: str
    messages_used: int = Field(ge=0)
    messages_limit: int | None = None
    messages_remaining: int | None = None
    activation_key_id: int | None = None


class SubscriptionStatusResponse(BaseModel):
    has_subscription: bool
    subscription: SubscriptionResponse | None = None


class FeatureRedeemRequest(BaseModel):
    code: str = Field(min_length=1, max_length=64)


class FeatureRedeemByEmailRequest(BaseModel):
    code: str = Field(min_length=1, max_length=64)
    email: str = Field(min_length=3, max_length=320)


class FeatureRedeemResponse(BaseModel):
    success: bool
    message: str
    key_id: int
    idempotent_replay: bool
    subscription: SubscriptionResponse | None = None


class PurchaseRequest(BaseModel):
    payment_amount: int = Field(ge=0)
    payment_currency: str = Field(default="USD", min_length=3, max_length=3)


class AdminSubscriptionResponse(SubscriptionResponse):
    actor_kind: str
    actor_id: int
    email: str | None = None


class AdminSubscriptionListResponse(BaseModel):
    subscriptions: list[AdminSubscriptionResponse]


class SubscriptionStatisticsResponse(BaseModel):
    total: int = Field(ge=0)
    active: int = Field(ge=0)
    messages_total: int = Field(ge=0)


def subscription_as_response(subscription: Subscription) -> SubscriptionResponse:
    return SubscriptionResponse(
        id=subscription.id,
        feature=subscription.feature,
        is_active=subscription.is_active,
        start_date=subscription.start_date,
        end_date=subscription.end_date,
        payment_status=subscription.payment_status,
        messages_used=subscription.messages_used,
        messages_limit=subscription.messages_limit,
        messages_remaining=remaining_quota(
            messages_used=subscription.messages_used,
            messages_limit=subscription.messages_limit,
        ),
        activation_key_id=subscription.activation_key_id,
    )


def status_as_response(subscription: Subscription | None) -> SubscriptionStatusResponse:
    if subscription is None:
        return SubscriptionStatusResponse(has_subscription=False)
    return SubscriptionStatusResponse(
        has_subscription=True,
        subscription=subscription_as_response(subscription),
    )
