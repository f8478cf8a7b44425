from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.db.models.admins import Admin
from app.db.repo.admins_repo import AdminsRepo
from app.db.repo.users_repo import UsersRepo
from app.db.session import SessionLocal
from app.entitlements.errors import BadRequestError, ConflictError, UnauthorizedError
from app.entitlements.facade import EntitlementFacade
from app.entitlements.keys.service import require_email
from app.entitlements.types import Actor, ActorKind
from app.services.identity import admin_actor, user_actor
from app.services.session_tokens import hash_password, issue_session_token, verify_password

logger = structlog.get_logger(__name__)

MIN_PASSWORD_LENGTH = 8


@dataclass(slots=True)
class SignInResult:
    actor: Actor
    token: str
    expires_at: datetime


def _sign_in(actor: Actor, *, now_utc: datetime) -> SignInResult:
    settings = get_settings()
    token = issue_session_token(
        actor_kind=actor.kind.value,
        actor_id=actor.id,
        secret=settings.session_secret,
        ttl_seconds=settings.session_ttl_seconds,
        now_utc=now_utc,
    )
    return SignInResult(
        actor=actor,
        token=token,
        expires_at=now_utc + timedelta(seconds=settings.session_ttl_seconds),
    )


def _require_password(password: str) -> str:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise BadRequestError(f"password must be at least {MIN_PASSWORD_LENGTH} characters")
    return password


class AuthService:
    @staticmethod
    async def register(
        session: AsyncSession,
        *,
        email: str,
        password: str,
        name: str | None,
        now_utc: datetime,
    ) -> SignInResult:
        normalized_email = require_email(email)
        _require_password(password)
        if await UsersRepo.get_by_email(session, normalized_email) is not None:
            raise ConflictError("an account with this email already exists")

        user = await UsersRepo.create(
            session,
            email=normalized_email,
            password_hash=hash_password(password),
            name=(name or "").strip() or None,
        )
        await UsersRepo.touch_last_signed_in(session, user.id, now_utc)
        logger.info("user_registered", user_id=user.id)
        return _sign_in(user_actor(user), now_utc=now_utc)

    @staticmethod
    async def login_user(
        session: AsyncSession,
        *,
        email: str,
        password: str,
        now_utc: datetime,
    ) -> SignInResult:
        user = await UsersRepo.get_by_email(session, email)
        if user is None or not verify_password(password, user.password_hash):
            raise UnauthorizedError("invalid email or password")

        await UsersRepo.touch_last_signed_in(session, user.id, now_utc)
        return _sign_in(user_actor(user), now_utc=now_utc)

    @staticmethod
    async def login_admin(
        session: AsyncSession,
        *,
        email: str,
        password: str,
        now_utc: datetime,
    ) -> SignInResult:
        admin = await AdminsRepo.get_by_email(session, email)
        if admin is None or not verify_password(password, admin.password_hash):
            raise UnauthorizedError("invalid email or password")

        await AdminsRepo.touch_last_signed_in(session, admin.id, now_utc)
        logger.info("admin_signed_in", admin_id=admin.id)
        return _sign_in(admin_actor(admin), now_utc=now_utc)

    @staticmethod
    async def create_admin(
        session: AsyncSession,
        *,
        email: str,
        password: str,
        name: str | None,
    ) -> Admin:
        normalized_email = require_email(email)
        _require_password(password)
        if await AdminsRepo.get_by_email(session, normalized_email) is not None:
            raise ConflictError("an admin with this email already exists")
        return await AdminsRepo.create(
            session,
            email=normalized_email,
            password_hash=hash_password(password),
            name=name,
        )


async def sync_entitlements_after_login(*, actor: Actor, now_utc: datetime) -> None:
    if actor.kind != ActorKind.USER:
        return
    try:
        async with SessionLocal.begin() as session:
            await EntitlementFacade.sync_from_keys(session, actor=actor, now_utc=now_utc)
    except Exception:
        logger.exception(
            "entitlements_sync_failed",
            actor_kind=actor.kind.value,
            actor_id=actor.id,
        )
