from __future__ import annotations

from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Query, Request

from app.db.session import SessionLocal
from app.entitlements.errors import BadRequestError, EntitlementError
from app.entitlements.keys.service import KeyRegistryService
from app.entitlements.types import KeyKind, KeyTarget

from .keys_models import (
    KeyBulkIssueRequest,
    KeyIssueRequest,
    KeyListResponse,
    KeyResponse,
    KeyStatisticsResponse,
    key_as_response,
    keys_as_response,
)
from .session_helpers import as_http_exception, require_admin

router = APIRouter(prefix="/api/admin/keys", tags=["admin", "keys"])
logger = structlog.get_logger(__name__)
KEY_STATES = {"unused", "activated", "deactivated"}


def _target(kind: KeyKind, course_id: int | None) -> KeyTarget:
    try:
        return KeyTarget(kind=kind, course_id=course_id)
    except ValueError as exc:
        raise BadRequestError(str(exc)) from exc


@router.post("", response_model=KeyResponse, status_code=201)
async def issue_key(payload: KeyIssueRequest, request: Request) -> KeyResponse:
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            admin = await require_admin(session, request=request, now_utc=now_utc)
            key = await KeyRegistryService.issue(
                session,
                target=_target(payload.kind, payload.course_id),
                created_by=admin.id,
                now_utc=now_utc,
                notes=payload.notes,
                expires_at=payload.expires_at,
            )
    except EntitlementError as exc:
        raise as_http_exception(exc) from exc
    return key_as_response(key)


@router.post("/bulk", response_model=KeyListResponse, status_code=201)
async def issue_keys_bulk(payload: KeyBulkIssueRequest, request: Request) -> KeyListResponse:
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            admin = await require_admin(session, request=request, now_utc=now_utc)
            keys = await KeyRegistryService.issue_bulk(
                session,
                target=_target(payload.kind, payload.course_id),
                quantity=payload.quantity,
                created_by=admin.id,
                now_utc=now_utc,
                notes=payload.notes,
                expires_at=payload.expires_at,
            )
    except EntitlementError as exc:
        raise as_http_exception(exc) from exc
    return keys_as_response(keys)


@router.post("/{key_id}/deactivate", response_model=KeyResponse)
async def deactivate_key(key_id: int, request: Request) -> KeyResponse:
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            admin = await require_admin(session, request=request, now_utc=now_utc)
            key = await KeyRegistryService.deactivate(session, key_id=key_id)
    except EntitlementError as exc:
        raise as_http_exception(exc) from exc
    logger.info("admin_key_deactivated", key_id=key_id, admin_id=admin.id)
    return key_as_response(key)


@router.post("/{key_id}/reactivate", response_model=KeyResponse)
async def reactivate_key(key_id: int, request: Request) -> KeyResponse:
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            admin = await require_admin(session, request=request, now_utc=now_utc)
            key = await KeyRegistryService.reactivate(session, key_id=key_id)
    except EntitlementError as exc:
        raise as_http_exception(exc) from exc
    logger.info("admin_key_reactivated", key_id=key_id, admin_id=admin.id)
    return key_as_response(key)


@router.get("", response_model=KeyListResponse)
async def list_keys(
    request: Request,
    kind: KeyKind | None = Query(default=None),
    state: str | None = Query(default=None),
    course_id: int | None = Query(default=None, gt=0),
) -> KeyListResponse:
    now_utc = datetime.now(timezone.utc)
    try:
        if state is not None and state not in KEY_STATES:
            raise BadRequestError(f"state must be one of: {', '.join(sorted(KEY_STATES))}")
        async with SessionLocal.begin() as session:
            await require_admin(session, request=request, now_utc=now_utc)
            keys = await KeyRegistryService.list_all(
                session,
                kind=kind,
                state=state,
                course_id=course_id,
            )
    except EntitlementError as exc:
        raise as_http_exception(exc) from exc
    return keys_as_response(keys)


@router.get("/statistics", response_model=KeyStatisticsResponse)
async def key_statistics(
    request: Request,
    kind: KeyKind | None = Query(default=None),
) -> KeyStatisticsResponse:
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            await require_admin(session, request=request, now_utc=now_utc)
            stats = await KeyRegistryService.statistics(session, kind=kind)
    except EntitlementError as exc:
        raise as_http_exception(exc) from exc
    return KeyStatisticsResponse(**stats.as_dict())


@router.get("/search", response_model=KeyListResponse)
async def search_keys(
    request: Request,
    email: str = Query(min_length=3, max_length=320),
) -> KeyListResponse:
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            await require_admin(session, request=request, now_utc=now_utc)
            keys = await KeyRegistryService.list_by_email(session, email=email)
    except EntitlementError as exc:
        raise as_http_exception(exc) from exc
    return keys_as_response(keys)
