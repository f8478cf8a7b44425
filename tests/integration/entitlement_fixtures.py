from __future__ import annotations

from uuid import uuid4

from app.db.models.courses import Course
from app.db.models.episodes import Episode
from app.db.repo.admins_repo import AdminsRepo
from app.db.repo.users_repo import UsersRepo
from app.db.session import SessionLocal
from app.entitlements.types import Actor
from app.services.identity import admin_actor, user_actor
from app.services.session_tokens import hash_password


async def create_admin(seed: str) -> Actor:
    async with SessionLocal.begin() as session:
        admin = await AdminsRepo.create(
            session,
            email=f"admin-{seed}-{uuid4().hex[:6]}@example.com",
            password_hash=hash_password("integration-admin"),
            name="Integration Admin",
        )
        return admin_actor(admin)


async def create_user(email: str) -> Actor:
    async with SessionLocal.begin() as session:
        user = await UsersRepo.create(
            session,
            email=email,
            password_hash=hash_password("integration-user"),
            name=None,
        )
        return user_actor(user)


async def create_course(*, title: str, episode_durations: list[int]) -> tuple[int, list[int]]:
    async with SessionLocal.begin() as session:
        course = Course(title=title, description=None, is_published=True)
        session.add(course)
        await session.flush()
        episodes = [
            Episode(
                course_id=course.id,
                title=f"{title} #{order}",
                duration_seconds=duration,
                order=order,
                is_free=False,
            )
            for order, duration in enumerate(episode_durations, start=1)
        ]
        session.add_all(episodes)
        await session.flush()
        return course.id, [episode.id for episode in episodes]
