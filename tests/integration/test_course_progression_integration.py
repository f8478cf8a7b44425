from __future__ import annotations

from datetime import datetime, timezone

import pytest

from app.db.repo.enrollments_repo import EnrollmentsRepo
from app.db.session import SessionLocal
from app.entitlements.errors import ForbiddenError
from app.entitlements.facade import EntitlementFacade
from app.entitlements.keys.service import KeyRegistryService
from app.entitlements.types import KeyTarget
from app.progression.episodes import EpisodeProgressService
from tests.integration.entitlement_fixtures import create_admin, create_course, create_user

UTC = timezone.utc


@pytest.mark.asyncio
async def test_key_redeem_enrolls_and_gates_episodes_in_order() -> None:
    now_utc = datetime.now(UTC)
    admin = await create_admin("course-flow")
    course_id, (first_episode, second_episode) = await create_course(
        title="Price Action",
        episode_durations=[600, 300],
    )
    async with SessionLocal.begin() as session:
        key = await KeyRegistryService.issue(
            session,
            target=KeyTarget.course(course_id),
            created_by=admin.id,
            now_utc=now_utc,
        )
    student = await create_user("course-student@example.com")

    with pytest.raises(ForbiddenError):
        async with SessionLocal.begin() as session:
            await EntitlementFacade.require_course_access(
                session,
                actor=student,
                course_id=course_id,
            )

    async with SessionLocal.begin() as session:
        await EntitlementFacade.redeem_course_key(
            session,
            actor=student,
            code=key.code,
            now_utc=now_utc,
        )

    with pytest.raises(ForbiddenError):
        async with SessionLocal.begin() as session:
            await EpisodeProgressService.update_progress(
                session,
                actor=student,
                course_id=course_id,
                episode_id=second_episode,
                watched_seconds=10,
                now_utc=now_utc,
            )

    async with SessionLocal.begin() as session:
        await EpisodeProgressService.update_progress(
            session,
            actor=student,
            course_id=course_id,
            episode_id=first_episode,
            watched_seconds=300,
            now_utc=now_utc,
        )
    with pytest.raises(ForbiddenError, match="7 minutes"):
        async with SessionLocal.begin() as session:
            await EpisodeProgressService.mark_complete(
                session,
                actor=student,
                course_id=course_id,
                episode_id=first_episode,
                now_utc=now_utc,
            )

    async with SessionLocal.begin() as session:
        await EpisodeProgressService.update_progress(
            session,
            actor=student,
            course_id=course_id,
            episode_id=first_episode,
            watched_seconds=420,
            now_utc=now_utc,
        )
        halfway = await EpisodeProgressService.mark_complete(
            session,
            actor=student,
            course_id=course_id,
            episode_id=first_episode,
            now_utc=now_utc,
        )
    assert halfway.progress_percentage == 50
    assert halfway.course_completed is False

    async with SessionLocal.begin() as session:
        await EpisodeProgressService.update_progress(
            session,
            actor=student,
            course_id=course_id,
            episode_id=second_episode,
            watched_seconds=60,
            now_utc=now_utc,
        )
        finished = await EpisodeProgressService.mark_complete(
            session,
            actor=student,
            course_id=course_id,
            episode_id=second_episode,
            now_utc=now_utc,
        )
    assert finished.progress_percentage == 100
    assert finished.course_completed is True

    async with SessionLocal.begin() as session:
        enrollment = await EnrollmentsRepo.get(
            session,
            actor_kind=student.kind.value,
            actor_id=student.id,
            course_id=course_id,
        )
    assert enrollment is not None
    assert enrollment.activated_via_key is True
    assert enrollment.completed_at is not None


@pytest.mark.asyncio
async def test_email_activation_before_signup_is_synced_on_login() -> None:
    now_utc = datetime.now(UTC)
    admin = await create_admin("course-sync")
    course_id, _ = await create_course(title="Risk Management", episode_durations=[120])
    async with SessionLocal.begin() as session:
        key = await KeyRegistryService.issue(
            session,
            target=KeyTarget.course(course_id),
            created_by=admin.id,
            now_utc=now_utc,
        )
    async with SessionLocal.begin() as session:
        await EntitlementFacade.activate_course_key(
            session,
            code=key.code,
            email="late-signup@example.com",
            now_utc=now_utc,
        )

    student = await create_user("late-signup@example.com")
    async with SessionLocal.begin() as session:
        summary = await EntitlementFacade.sync_from_keys(session, actor=student, now_utc=now_utc)
    async with SessionLocal.begin() as session:
        again = await EntitlementFacade.sync_from_keys(session, actor=student, now_utc=now_utc)

    assert summary.enrollments_created == 1
    assert again.enrollments_created == 0


@pytest.mark.asyncio
async def test_admin_reads_any_course_but_still_follows_episode_order() -> None:
    now_utc = datetime.now(UTC)
    admin = await create_admin("course-admin")
    course_id, (_, second_episode) = await create_course(
        title="Admin Preview",
        episode_durations=[60, 60],
    )

    async with SessionLocal.begin() as session:
        enrollment = await EntitlementFacade.require_course_access(
            session,
            actor=admin,
            course_id=course_id,
        )
    assert enrollment is None

    with pytest.raises(ForbiddenError):
        async with SessionLocal.begin() as session:
            await EpisodeProgressService.update_progress(
                session,
                actor=admin,
                course_id=course_id,
                episode_id=second_episode,
                watched_seconds=60,
                now_utc=now_utc,
            )
