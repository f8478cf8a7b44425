from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Request, Response
from pydantic import BaseModel, Field

from app.core.config import get_settings
from app.db.session import SessionLocal
from app.entitlements.errors import EntitlementError
from app.services.auth import AuthService, SignInResult, sync_entitlements_after_login
from app.services.session_tokens import SESSION_COOKIE_NAME

from .session_helpers import as_http_exception, require_actor

router = APIRouter(prefix="/api/auth", tags=["auth"])


class RegisterRequest(BaseModel):
    email: str = Field(min_length=3, max_length=320)
    password: str = Field(min_length=1, max_length=256)
    name: str | None = Field(default=None, max_length=128)


class LoginRequest(BaseModel):
    email: str = Field(min_length=3, max_length=320)
    password: str = Field(min_length=1, max_length=256)


class ActorResponse(BaseModel):
    id: int
    email: str
    kind: str
    is_admin: bool
    is_publisher: bool


class SessionResponse(BaseModel):
    token: str
    expires_at: datetime
    actor: ActorResponse


def _session_response(result: SignInResult, response: Response) -> SessionResponse:
    settings = get_settings()
    response.set_cookie(
        SESSION_COOKIE_NAME,
        result.token,
        max_age=settings.session_ttl_seconds,
        httponly=True,
        secure=settings.app_env != "dev",
        samesite="lax",
    )
    return SessionResponse(
        token=result.token,
        expires_at=result.expires_at,
        actor=ActorResponse(
            id=result.actor.id,
            email=result.actor.email,
            kind=result.actor.kind.value,
            is_admin=result.actor.is_admin,
            is_publisher=result.actor.is_publisher,
        ),
    )


@router.post("/register", response_model=SessionResponse, status_code=201)
async def register(payload: RegisterRequest, response: Response) -> SessionResponse:
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            result = await AuthService.register(
                session,
                email=payload.email,
                password=payload.password,
                name=payload.name,
                now_utc=now_utc,
            )
    except EntitlementError as exc:
        raise as_http_exception(exc) from exc

    await sync_entitlements_after_login(actor=result.actor, now_utc=now_utc)
    return _session_response(result, response)


@router.post("/login", response_model=SessionResponse)
async def login(payload: LoginRequest, response: Response) -> SessionResponse:
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            result = await AuthService.login_user(
                session,
                email=payload.email,
                password=payload.password,
                now_utc=now_utc,
            )
    except EntitlementError as exc:
        raise as_http_exception(exc) from exc

    await sync_entitlements_after_login(actor=result.actor, now_utc=now_utc)
    return _session_response(result, response)


@router.post("/admin/login", response_model=SessionResponse)
async def admin_login(payload: LoginRequest, response: Response) -> SessionResponse:
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            result = await AuthService.login_admin(
                session,
                email=payload.email,
                password=payload.password,
                now_utc=now_utc,
            )
    except EntitlementError as exc:
        raise as_http_exception(exc) from exc
    return _session_response(result, response)


@router.post("/logout")
async def logout(response: Response) -> dict[str, str]:
    response.delete_cookie(SESSION_COOKIE_NAME)
    return {"status": "ok"}


@router.get("/me", response_model=ActorResponse)
async def me(request: Request) -> ActorResponse:
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            actor = await require_actor(session, request=request, now_utc=now_utc)
    except EntitlementError as exc:
        raise as_http_exception(exc) from exc
    return ActorResponse(
        id=actor.id,
        email=actor.email,
        kind=actor.kind.value,
        is_admin=actor.is_admin,
        is_publisher=actor.is_publisher,
    )
