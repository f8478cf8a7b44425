from __future__ import annotations

from datetime import datetime

import structlog
from fastapi import HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.entitlements.errors import (
    AlreadyBoundError,
    EntitlementError,
    ForbiddenError,
    KeyActivationError,
    UnauthorizedError,
)
from app.entitlements.types import Actor, Feature
from app.services.analysis_client import AnalysisUnavailableError
from app.services.identity import resolve_actor
from app.services.session_tokens import SESSION_COOKIE_NAME

logger = structlog.get_logger(__name__)

_STATUS_BY_CODE = {
    "NOT_FOUND": 404,
    "BAD_REQUEST": 400,
    "ALREADY_BOUND": 400,
    "UNAUTHORIZED": 401,
    "FORBIDDEN": 403,
    "CONFLICT": 409,
}


def as_http_exception(exc: EntitlementError) -> HTTPException:
    detail: dict[str, str] = {"code": f"E_{exc.code}", "message": exc.message}
    if isinstance(exc, KeyActivationError) and not isinstance(exc, AlreadyBoundError):
        detail["reason"] = exc.reason
    return HTTPException(status_code=_STATUS_BY_CODE.get(exc.code, 500), detail=detail)


def analysis_unavailable(exc: AnalysisUnavailableError) -> HTTPException:
    logger.warning("analysis_unavailable", error_type=type(exc).__name__)
    return HTTPException(
        status_code=502,
        detail={"code": "E_ANALYSIS_UNAVAILABLE", "message": "analysis service unavailable"},
    )


def extract_session_token(request: Request) -> str | None:
    authorization = request.headers.get("Authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return request.cookies.get(SESSION_COOKIE_NAME)


async def require_actor(session: AsyncSession, *, request: Request, now_utc: datetime) -> Actor:
    actor = await resolve_actor(session, token=extract_session_token(request), now_utc=now_utc)
    if actor is None:
        raise UnauthorizedError("sign in required")
    return actor


async def require_admin(session: AsyncSession, *, request: Request, now_utc: datetime) -> Actor:
    actor = await require_actor(session, request=request, now_utc=now_utc)
    if not actor.is_admin:
        logger.warning("admin_access_denied", actor_kind=actor.kind.value, actor_id=actor.id)
        raise ForbiddenError("admin access required")
    return actor


_FEATURE_SLUGS = {
    "ai-assistant": Feature.AI_ASSISTANT,
    "recommendations": Feature.RECOMMENDATION_FEED,
}


def parse_feature(slug: str) -> Feature:
    feature = _FEATURE_SLUGS.get(slug.strip().lower())
    if feature is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "E_NOT_FOUND", "message": f"unknown feature: {slug}"},
        )
    return feature
