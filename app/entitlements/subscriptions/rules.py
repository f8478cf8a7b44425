from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from app.core.config import Settings
from app.entitlements.types import Feature

PAYMENT_STATUS_KEY = "key"
PAYMENT_STATUS_COMPLETED = "completed"
PAYMENT_STATUS_PENDING = "pending"


@dataclass(frozen=True, slots=True)
class FeatureTerms:
    duration_days: int
    messages_limit: int | None


def feature_terms(feature: Feature, settings: Settings) -> FeatureTerms:
    if feature == Feature.AI_ASSISTANT:
        return FeatureTerms(
            duration_days=settings.ai_subscription_days,
            messages_limit=_limit_or_unmetered(settings.ai_messages_limit),
        )
    return FeatureTerms(
        duration_days=settings.feed_subscription_days,
        messages_limit=_limit_or_unmetered(settings.feed_messages_limit),
    )


def _limit_or_unmetered(limit: int) -> int | None:
    return limit if limit > 0 else None


def grant_window(*, now_utc: datetime, duration_days: int) -> tuple[datetime, datetime]:
    return now_utc, now_utc + timedelta(days=duration_days)


def should_expire_lazily(*, end_date: datetime, messages_used: int, now_utc: datetime) -> bool:
    # An untouched subscription keeps its grant past end_date until it is first used.
    return end_date < now_utc and messages_used > 0


def has_remaining_quota(*, messages_used: int, messages_limit: int | None) -> bool:
    return messages_limit is None or messages_used < messages_limit


def remaining_quota(*, messages_used: int, messages_limit: int | None) -> int | None:
    if messages_limit is None:
        return None
    return max(0, messages_limit - messages_used)
