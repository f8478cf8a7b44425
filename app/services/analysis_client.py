from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

import httpx
import structlog

from app.core.config import get_settings

logger = structlog.get_logger(__name__)

RESPONSE_CHAR_LIMIT = 1024


class AnalysisUnavailableError(Exception):
    pass


@dataclass(frozen=True, slots=True)
class AnalysisRequest:
    flow: str
    language: str = "en"
    timeframe: str | None = None
    image_url: str | None = None
    previous_analysis: str | None = None
    user_analysis: str | None = None


def trim_to_limit(text: str, *, limit: int = RESPONSE_CHAR_LIMIT) -> str:
    cleaned = text.strip()
    if len(cleaned) <= limit:
        return cleaned
    return cleaned[: limit - 3] + "..."


def _extract_text(payload: Any) -> str:
    if isinstance(payload, dict):
        text = payload.get("text")
        if isinstance(text, str):
            return text
    raise AnalysisUnavailableError("analysis response has no text")


async def analyze(request: AnalysisRequest, *, client: httpx.AsyncClient | None = None) -> str:
    settings = get_settings()
    headers = {"content-type": "application/json"}
    if settings.analysis_api_key:
        headers["authorization"] = f"Bearer {settings.analysis_api_key}"

    body = {key: value for key, value in asdict(request).items() if value is not None}
    owns_client = client is None
    http = client or httpx.AsyncClient(timeout=settings.analysis_timeout_seconds)
    try:
        response = await http.post(settings.analysis_api_url, json=body, headers=headers)
        response.raise_for_status()
        return trim_to_limit(_extract_text(response.json()))
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("analysis_request_failed", flow=request.flow, exc_info=exc)
        raise AnalysisUnavailableError("analysis service unavailable") from exc
    finally:
        if owns_client:
            await http.aclose()
