from __future__ import annotations

from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.db.models.admins import Admin
from app.db.models.users import User
from app.db.repo.admins_repo import AdminsRepo
from app.db.repo.users_repo import UsersRepo
from app.entitlements.types import Actor, ActorKind
from app.services.session_tokens import verify_session_token


def user_actor(user: User) -> Actor:
    return Actor(kind=ActorKind.USER, id=user.id, email=user.email, is_publisher=user.is_publisher)


def admin_actor(admin: Admin) -> Actor:
    return Actor(kind=ActorKind.ADMIN, id=admin.id, email=admin.email)


async def resolve_actor(
    session: AsyncSession,
    *,
    token: str | None,
    now_utc: datetime,
) -> Actor | None:
    """Map a session token to the current actor, or None when it is missing or stale."""
    claims = verify_session_token(token, secret=get_settings().session_secret, now_utc=now_utc)
    if claims is None:
        return None

    if claims.actor_kind == ActorKind.ADMIN.value:
        admin = await AdminsRepo.get_by_id(session, claims.actor_id)
        return None if admin is None else admin_actor(admin)

    user = await UsersRepo.get_by_id(session, claims.actor_id)
    return None if user is None else user_actor(user)
