from __future__ import annotations

from datetime import datetime, timezone

import httpx
import structlog

from app.core.config import get_settings
from app.db.models.feed_posts import FeedPost
from app.db.repo.feed_repo import FeedRepo
from app.db.repo.subscriptions_repo import SubscriptionsRepo
from app.db.session import SessionLocal
from app.entitlements.types import Feature
from app.services.email_delivery import send_email
from app.workers.asyncio_runner import run_async_job
from app.workers.celery_app import celery_app

logger = structlog.get_logger(__name__)

EMAIL_TIMEOUT_SECONDS = 10.0


def _subject(post_type: str, symbol: str | None) -> str:
    label = post_type.replace("_", " ").title()
    if symbol:
        return f"New {label}: {symbol}"
    return f"New {label}"


def _body(post: FeedPost) -> str:
    lines = []
    if post.symbol:
        lines.append(f"Symbol: {post.symbol}")
    if post.side:
        lines.append(f"Side: {post.side}")
    for label, value in (
        ("Entry", post.entry_price),
        ("Stop loss", post.stop_loss),
        ("Take profit 1", post.take_profit_1),
        ("Take profit 2", post.take_profit_2),
        ("Risk %", post.risk_percent),
    ):
        if value:
            lines.append(f"{label}: {value}")
    if lines:
        lines.append("")
    lines.append(post.content)
    return "\n".join(lines)


async def broadcast_feed_post_async(*, post_id: int) -> dict[str, int]:
    async with SessionLocal.begin() as session:
        post = await FeedRepo.get_post(session, post_id)
        if post is None:
            logger.warning("feed_broadcast_post_missing", post_id=post_id)
            return {"recipients": 0, "sent": 0, "failed": 0}
        recipients = await SubscriptionsRepo.list_active_subscriber_emails(
            session,
            feature=Feature.RECOMMENDATION_FEED.value,
            now_utc=datetime.now(timezone.utc),
        )
        subject = _subject(post.post_type, post.symbol)
        text = _body(post)

    sent = 0
    failed = 0
    timeout = httpx.Timeout(EMAIL_TIMEOUT_SECONDS)
    async with httpx.AsyncClient(timeout=timeout) as client:
        for email in recipients:
            delivered = await send_email(client=client, to=email, subject=subject, text=text)
            if delivered:
                sent += 1
            else:
                failed += 1

    result = {"recipients": len(recipients), "sent": sent, "failed": failed}
    if failed > 0:
        logger.warning("feed_broadcast_partial_failure", post_id=post_id, **result)
    else:
        logger.info("feed_broadcast_finished", post_id=post_id, **result)
    return result


@celery_app.task(name="app.workers.tasks.feed_broadcast.broadcast_feed_post")
def broadcast_feed_post(post_id: int) -> dict[str, int]:
    if not get_settings().email_api_url:
        logger.info("feed_broadcast_skipped_email_disabled", post_id=post_id)
        return {"recipients": 0, "sent": 0, "failed": 0}
    return run_async_job(
        lambda: broadcast_feed_post_async(post_id=post_id),
        task_name="feed_broadcast",
    )
