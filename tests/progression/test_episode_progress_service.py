from __future__ import annotations

from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from app.entitlements.errors import ForbiddenError
from app.entitlements.types import Actor, ActorKind
from app.progression import enrollments as enrollments_module
from app.progression import episodes as episodes_module
from app.progression.episodes import EpisodeProgressService

UTC = timezone.utc
NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)
USER = Actor(kind=ActorKind.USER, id=5, email="student@example.com")
ADMIN = Actor(kind=ActorKind.ADMIN, id=1, email="admin@example.com")

EPISODES = [
    SimpleNamespace(id=101, course_id=3, order=1, duration_seconds=600),
    SimpleNamespace(id=102, course_id=3, order=2, duration_seconds=600),
    SimpleNamespace(id=103, course_id=3, order=3, duration_seconds=600),
]


@pytest.fixture
def course_state(monkeypatch) -> SimpleNamespace:
    state = SimpleNamespace(
        enrollment=SimpleNamespace(id=9, completed_at=None),
        progress={},
        quizzes={},
        quiz_progress={},
        enrollment_updates=[],
        episodes=list(EPISODES),
    )

    async def _get_enrollment(session, **kwargs):
        del session, kwargs
        return state.enrollment

    async def _get_episode(session, *, course_id: int, episode_id: int):
        del session, course_id
        return next((item for item in state.episodes if item.id == episode_id), None)

    async def _get_previous_episode(session, *, course_id: int, order: int):
        del session, course_id
        earlier = [item for item in state.episodes if item.order < order]
        return max(earlier, key=lambda item: item.order, default=None)

    async def _list_episodes(session, *, course_id: int):
        del session, course_id
        return list(state.episodes)

    async def _get_progress(session, *, actor_kind: str, actor_id: int, episode_id: int):
        del session, actor_kind, actor_id
        return state.progress.get(episode_id)

    async def _upsert_completed(session, *, episode_id: int, **kwargs):
        del session, kwargs
        row = state.progress.setdefault(
            episode_id,
            SimpleNamespace(episode_id=episode_id, watched_duration=0, is_completed=False),
        )
        row.is_completed = True
        return row

    async def _list_for_course(session, **kwargs):
        del session, kwargs
        return list(state.progress.values())

    async def _get_quiz(session, level: int):
        del session
        return state.quizzes.get(level)

    async def _get_quiz_progress(session, *, level: int, **kwargs):
        del session, kwargs
        return state.quiz_progress.get(level)

    async def _update_enrollment(session, **kwargs):
        del session
        state.enrollment_updates.append(kwargs)

    monkeypatch.setattr(enrollments_module.EnrollmentsRepo, "get", _get_enrollment)
    monkeypatch.setattr(episodes_module.CoursesRepo, "get_episode", _get_episode)
    monkeypatch.setattr(episodes_module.CoursesRepo, "get_previous_episode", _get_previous_episode)
    monkeypatch.setattr(episodes_module.CoursesRepo, "list_episodes", _list_episodes)
    monkeypatch.setattr(episodes_module.EpisodeProgressRepo, "get", _get_progress)
    monkeypatch.setattr(episodes_module.EpisodeProgressRepo, "upsert_completed", _upsert_completed)
    monkeypatch.setattr(episodes_module.EpisodeProgressRepo, "list_for_course", _list_for_course)
    monkeypatch.setattr(episodes_module.QuizzesRepo, "get_by_level", _get_quiz)
    monkeypatch.setattr(episodes_module.QuizProgressRepo, "get", _get_quiz_progress)
    monkeypatch.setattr(episodes_module.EnrollmentsRepo, "update_progress", _update_enrollment)
    return state


def _watched(episode_id: int, seconds: int, *, completed: bool = False) -> SimpleNamespace:
    return SimpleNamespace(episode_id=episode_id, watched_duration=seconds, is_completed=completed)


@pytest.mark.asyncio
async def test_completion_requires_seventy_percent_watched(course_state) -> None:
    course_state.progress[101] = _watched(101, 419)

    with pytest.raises(ForbiddenError, match="7 minutes"):
        await EpisodeProgressService.mark_complete(
            object(),
            actor=USER,
            course_id=3,
            episode_id=101,
            now_utc=NOW,
        )


@pytest.mark.asyncio
async def test_first_episode_completion_updates_enrollment(course_state) -> None:
    course_state.progress[101] = _watched(101, 420)

    result = await EpisodeProgressService.mark_complete(
        object(),
        actor=USER,
        course_id=3,
        episode_id=101,
        now_utc=NOW,
    )

    assert result.completed_episodes == 1
    assert result.total_episodes == 3
    assert result.progress_percentage == 33
    assert result.course_completed is False
    assert course_state.enrollment_updates[0]["completed_at"] is None


@pytest.mark.asyncio
async def test_next_episode_is_locked_until_previous_completed(course_state) -> None:
    course_state.progress[102] = _watched(102, 600)

    with pytest.raises(ForbiddenError, match="previous episode"):
        await EpisodeProgressService.mark_complete(
            object(),
            actor=USER,
            course_id=3,
            episode_id=102,
            now_utc=NOW,
        )


@pytest.mark.asyncio
async def test_gap_in_episode_order_still_locks_on_nearest_earlier_episode(course_state) -> None:
    course_state.episodes = [
        SimpleNamespace(id=101, course_id=3, order=1, duration_seconds=600),
        SimpleNamespace(id=102, course_id=3, order=2, duration_seconds=600),
        SimpleNamespace(id=104, course_id=3, order=4, duration_seconds=600),
    ]
    course_state.progress[101] = _watched(101, 600, completed=True)

    assert (
        await EpisodeProgressService.is_episode_unlocked(
            object(),
            actor=USER,
            episode=course_state.episodes[2],
        )
        is False
    )

    course_state.progress[102] = _watched(102, 600, completed=True)
    assert (
        await EpisodeProgressService.is_episode_unlocked(
            object(),
            actor=USER,
            episode=course_state.episodes[2],
        )
        is True
    )


@pytest.mark.asyncio
async def test_episode_lock_applies_to_admins(course_state) -> None:
    course_state.enrollment = None

    with pytest.raises(ForbiddenError, match="previous episode"):
        await EpisodeProgressService.mark_complete(
            object(),
            actor=ADMIN,
            course_id=3,
            episode_id=103,
            now_utc=NOW,
        )


@pytest.mark.asyncio
async def test_unenrolled_user_has_no_access(course_state) -> None:
    course_state.enrollment = None

    with pytest.raises(ForbiddenError, match="no access"):
        await EpisodeProgressService.mark_complete(
            object(),
            actor=USER,
            course_id=3,
            episode_id=101,
            now_utc=NOW,
        )


@pytest.mark.asyncio
async def test_quiz_gate_blocks_completion_until_level_passed(course_state) -> None:
    course_state.progress[101] = _watched(101, 600, completed=True)
    course_state.progress[102] = _watched(102, 600)
    course_state.quizzes[1] = SimpleNamespace(level=1, passing_score=70)

    with pytest.raises(ForbiddenError, match="quiz level 1"):
        await EpisodeProgressService.mark_complete(
            object(),
            actor=USER,
            course_id=3,
            episode_id=102,
            now_utc=NOW,
        )

    course_state.quiz_progress[1] = SimpleNamespace(is_passed=True)
    result = await EpisodeProgressService.mark_complete(
        object(),
        actor=USER,
        course_id=3,
        episode_id=102,
        now_utc=NOW,
    )
    assert result.progress_percentage == 67


@pytest.mark.asyncio
async def test_missing_quiz_means_no_gate(course_state) -> None:
    course_state.progress[101] = _watched(101, 600, completed=True)
    course_state.progress[102] = _watched(102, 600, completed=True)
    course_state.progress[103] = _watched(103, 600)

    result = await EpisodeProgressService.mark_complete(
        object(),
        actor=USER,
        course_id=3,
        episode_id=103,
        now_utc=NOW,
    )

    assert result.course_completed is True
    assert result.progress_percentage == 100
    assert course_state.enrollment_updates[-1]["completed_at"] == NOW
