from __future__ import annotations

import httpx
import structlog

from app.core.config import get_settings

logger = structlog.get_logger(__name__)


async def send_email(
    *,
    client: httpx.AsyncClient,
    to: str,
    subject: str,
    text: str,
) -> bool:
    settings = get_settings()
    if not settings.email_api_url:
        logger.warning("email_delivery_not_configured", subject=subject)
        return False

    headers = {}
    if settings.email_api_key:
        headers["authorization"] = f"Bearer {settings.email_api_key}"
    body = {"from": settings.email_from, "to": [to], "subject": subject, "text": text}
    try:
        response = await client.post(settings.email_api_url, json=body, headers=headers)
        response.raise_for_status()
        return True
    except Exception:
        logger.exception("email_delivery_failed", subject=subject)
        return False
