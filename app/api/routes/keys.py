from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Query, Request

from app.db.session import SessionLocal
from app.entitlements.errors import EntitlementError
from app.entitlements.facade import EntitlementFacade
from app.entitlements.keys.service import KeyRegistryService

from .keys_models import (
    CourseAccessResponse,
    KeyActivateRequest,
    KeyActivationResponse,
    KeyRedeemRequest,
    activation_as_response,
)
from .session_helpers import as_http_exception, require_actor

router = APIRouter(prefix="/api/keys", tags=["keys"])


@router.post("/activate", response_model=KeyActivationResponse)
async def activate_key(payload: KeyActivateRequest) -> KeyActivationResponse:
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            result = await EntitlementFacade.activate_course_key(
                session,
                code=payload.code,
                email=payload.email,
                now_utc=now_utc,
            )
    except EntitlementError as exc:
        raise as_http_exception(exc) from exc
    return activation_as_response(result, message="course access activated")


@router.post("/redeem", response_model=KeyActivationResponse)
async def redeem_key(payload: KeyRedeemRequest, request: Request) -> KeyActivationResponse:
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            actor = await require_actor(session, request=request, now_utc=now_utc)
            result = await EntitlementFacade.redeem_course_key(
                session,
                actor=actor,
                code=payload.code,
                now_utc=now_utc,
            )
    except EntitlementError as exc:
        raise as_http_exception(exc) from exc
    return activation_as_response(result, message="course access activated")


@router.get("/check-access", response_model=CourseAccessResponse)
async def check_access(
    email: str = Query(min_length=3, max_length=320),
    course_id: int = Query(gt=0),
) -> CourseAccessResponse:
    now_utc = datetime.now(timezone.utc)
    async with SessionLocal.begin() as session:
        has_access = await KeyRegistryService.has_course_access(
            session,
            email=email,
            course_id=course_id,
            now_utc=now_utc,
        )
    return CourseAccessResponse(has_access=has_access)
