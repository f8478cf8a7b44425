from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

from app.entitlements.subscriptions.rules import (
    feature_terms,
    grant_window,
    has_remaining_quota,
    remaining_quota,
    should_expire_lazily,
)
from app.entitlements.types import Feature

UTC = timezone.utc
NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def _settings(*, ai_limit: int = 100, feed_limit: int = 0) -> SimpleNamespace:
    return SimpleNamespace(
        ai_subscription_days=30,
        ai_messages_limit=ai_limit,
        feed_subscription_days=14,
        feed_messages_limit=feed_limit,
    )


def test_feature_terms_follow_settings_per_feature() -> None:
    ai_terms = feature_terms(Feature.AI_ASSISTANT, _settings())
    feed_terms = feature_terms(Feature.RECOMMENDATION_FEED, _settings())

    assert (ai_terms.duration_days, ai_terms.messages_limit) == (30, 100)
    assert (feed_terms.duration_days, feed_terms.messages_limit) == (14, None)


def test_non_positive_limit_means_unmetered() -> None:
    terms = feature_terms(Feature.AI_ASSISTANT, _settings(ai_limit=0))
    assert terms.messages_limit is None


def test_grant_window_starts_now() -> None:
    start, end = grant_window(now_utc=NOW, duration_days=30)
    assert start == NOW
    assert end == NOW + timedelta(days=30)


def test_untouched_subscription_survives_past_end_date() -> None:
    assert should_expire_lazily(end_date=NOW - timedelta(days=3), messages_used=0, now_utc=NOW) is False


def test_used_subscription_expires_after_end_date() -> None:
    assert should_expire_lazily(end_date=NOW - timedelta(seconds=1), messages_used=1, now_utc=NOW) is True
    assert should_expire_lazily(end_date=NOW, messages_used=5, now_utc=NOW) is False


def test_quota_checks() -> None:
    assert has_remaining_quota(messages_used=99, messages_limit=100) is True
    assert has_remaining_quota(messages_used=100, messages_limit=100) is False
    assert has_remaining_quota(messages_used=10_000, messages_limit=None) is True

    assert remaining_quota(messages_used=40, messages_limit=100) == 60
    assert remaining_quota(messages_used=120, messages_limit=100) == 0
    assert remaining_quota(messages_used=3, messages_limit=None) is None
