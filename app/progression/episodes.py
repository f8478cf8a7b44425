from __future__ import annotations

from datetime import datetime

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.enrollments import Enrollment
from app.db.models.episode_progress import EpisodeProgress
from app.db.models.episodes import Episode
from app.db.repo.courses_repo import CoursesRepo
from app.db.repo.enrollments_repo import EnrollmentsRepo
from app.db.repo.episode_progress_repo import EpisodeProgressRepo
from app.db.repo.quiz_progress_repo import QuizProgressRepo
from app.db.repo.quizzes_repo import QuizzesRepo
from app.entitlements.errors import BadRequestError, ForbiddenError, NotFoundError
from app.entitlements.types import Actor
from app.progression.enrollments import EnrollmentService
from app.progression.rules import (
    course_completion,
    is_episode_unlocked,
    quiz_level_for_episode,
    required_watch_minutes,
    required_watch_seconds,
)
from app.progression.types import CompletionResult

logger = structlog.get_logger(__name__)


class EpisodeProgressService:
    @staticmethod
    async def _get_episode(session: AsyncSession, *, course_id: int, episode_id: int) -> Episode:
        episode = await CoursesRepo.get_episode(session, course_id=course_id, episode_id=episode_id)
        if episode is None:
            raise NotFoundError("episode not found")
        return episode

    @staticmethod
    async def is_episode_unlocked(
        session: AsyncSession,
        *,
        actor: Actor,
        episode: Episode,
    ) -> bool:
        if episode.order <= 1:
            return True
        previous = await CoursesRepo.get_previous_episode(
            session,
            course_id=episode.course_id,
            order=episode.order,
        )
        if previous is None:
            return True
        progress = await EpisodeProgressRepo.get(
            session,
            actor_kind=actor.kind.value,
            actor_id=actor.id,
            episode_id=previous.id,
        )
        return is_episode_unlocked(
            order=episode.order,
            previous_completed=progress is not None and progress.is_completed,
        )

    @staticmethod
    async def _require_unlocked_episode(
        session: AsyncSession,
        *,
        actor: Actor,
        course_id: int,
        episode_id: int,
    ) -> tuple[Episode, Enrollment | None]:
        enrollment = await EnrollmentService.require_course_access(
            session,
            actor=actor,
            course_id=course_id,
        )
        episode = await EpisodeProgressService._get_episode(
            session,
            course_id=course_id,
            episode_id=episode_id,
        )
        if not await EpisodeProgressService.is_episode_unlocked(
            session,
            actor=actor,
            episode=episode,
        ):
            raise ForbiddenError("complete the previous episode first")
        return episode, enrollment

    @staticmethod
    async def update_progress(
        session: AsyncSession,
        *,
        actor: Actor,
        course_id: int,
        episode_id: int,
        watched_seconds: int,
        now_utc: datetime,
    ) -> EpisodeProgress:
        if watched_seconds < 0:
            raise BadRequestError("watched_seconds must be non-negative")

        episode, enrollment = await EpisodeProgressService._require_unlocked_episode(
            session,
            actor=actor,
            course_id=course_id,
            episode_id=episode_id,
        )
        progress = await EpisodeProgressRepo.upsert_watched(
            session,
            actor_kind=actor.kind.value,
            actor_id=actor.id,
            episode_id=episode.id,
            course_id=course_id,
            watched_seconds=watched_seconds,
            now_utc=now_utc,
        )
        if enrollment is not None:
            await EnrollmentsRepo.touch_last_accessed(
                session,
                enrollment_id=enrollment.id,
                now_utc=now_utc,
            )
        return progress

    @staticmethod
    async def _check_quiz_gate(session: AsyncSession, *, actor: Actor, episode: Episode) -> None:
        level = quiz_level_for_episode(episode.order)
        if level is None:
            return
        quiz = await QuizzesRepo.get_by_level(session, level)
        if quiz is None:
            return
        progress = await QuizProgressRepo.get(
            session,
            actor_kind=actor.kind.value,
            actor_id=actor.id,
            level=level,
        )
        if progress is None or not progress.is_passed:
            raise ForbiddenError(
                f"pass quiz level {level} with at least {quiz.passing_score}% "
                "before completing this episode"
            )

    @staticmethod
    async def mark_complete(
        session: AsyncSession,
        *,
        actor: Actor,
        course_id: int,
        episode_id: int,
        now_utc: datetime,
    ) -> CompletionResult:
        episode, enrollment = await EpisodeProgressService._require_unlocked_episode(
            session,
            actor=actor,
            course_id=course_id,
            episode_id=episode_id,
        )

        progress = await EpisodeProgressRepo.get(
            session,
            actor_kind=actor.kind.value,
            actor_id=actor.id,
            episode_id=episode.id,
        )
        watched = 0 if progress is None else progress.watched_duration
        if watched < required_watch_seconds(episode.duration_seconds):
            raise ForbiddenError(
                f"watch at least {required_watch_minutes(episode.duration_seconds)} minutes "
                "of this episode before completing it"
            )
        await EpisodeProgressService._check_quiz_gate(session, actor=actor, episode=episode)

        await EpisodeProgressRepo.upsert_completed(
            session,
            actor_kind=actor.kind.value,
            actor_id=actor.id,
            episode_id=episode.id,
            course_id=course_id,
            now_utc=now_utc,
        )

        episodes = await CoursesRepo.list_episodes(session, course_id=course_id)
        rows = await EpisodeProgressRepo.list_for_course(
            session,
            actor_kind=actor.kind.value,
            actor_id=actor.id,
            course_id=course_id,
        )
        completed, percentage = course_completion(
            completed_episode_ids=[row.episode_id for row in rows if row.is_completed],
            course_episode_ids=[item.id for item in episodes],
        )
        course_completed = completed == len(episodes)

        if enrollment is not None:
            completed_at = None
            if course_completed and enrollment.completed_at is None:
                completed_at = now_utc
            await EnrollmentsRepo.update_progress(
                session,
                enrollment_id=enrollment.id,
                completed_episodes=completed,
                progress_percentage=percentage,
                completed_at=completed_at,
                now_utc=now_utc,
            )

        logger.info(
            "episode_completed",
            course_id=course_id,
            episode_id=episode.id,
            actor_kind=actor.kind.value,
            actor_id=actor.id,
            completed_episodes=completed,
            progress_percentage=percentage,
        )
        return CompletionResult(
            episode_id=episode.id,
            completed_episodes=completed,
            total_episodes=len(episodes),
            progress_percentage=percentage,
            course_completed=course_completed,
        )

    @staticmethod
    async def course_progress(
        session: AsyncSession,
        *,
        actor: Actor,
        course_id: int,
    ) -> list[EpisodeProgress]:
        await EnrollmentService.require_course_access(session, actor=actor, course_id=course_id)
        return await EpisodeProgressRepo.list_for_course(
            session,
            actor_kind=actor.kind.value,
            actor_id=actor.id,
            course_id=course_id,
        )
