from __future__ import annotations

from dataclasses import asdict
from datetime import datetime, timezone

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from app.db.models.episode_progress import EpisodeProgress
from app.db.session import SessionLocal
from app.entitlements.errors import EntitlementError
from app.progression.enrollments import EnrollmentService
from app.progression.episodes import EpisodeProgressService
from app.progression.quizzes import QuizService
from app.progression.types import QuizAnswerInput

from .quizzes import QuizSubmissionResponse, QuizSubmitRequest, QuizViewResponse
from .session_helpers import as_http_exception, require_actor

router = APIRouter(prefix="/api/courses", tags=["courses"])


class EnrollmentResponse(BaseModel):
    id: int
    course_id: int
    enrolled_at: datetime
    completed_episodes: int = Field(ge=0)
    progress_percentage: int = Field(ge=0, le=100)
    payment_status: str


class WatchProgressRequest(BaseModel):
    watched_seconds: int = Field(ge=0)


class EpisodeProgressResponse(BaseModel):
    episode_id: int
    course_id: int
    watched_duration: int = Field(ge=0)
    is_completed: bool
    last_watched_at: datetime


class CourseProgressResponse(BaseModel):
    course_id: int
    episodes: list[EpisodeProgressResponse]


class CompletionResponse(BaseModel):
    episode_id: int
    completed_episodes: int = Field(ge=0)
    total_episodes: int = Field(ge=0)
    progress_percentage: int = Field(ge=0, le=100)
    course_completed: bool


class EpisodeQuizResponse(BaseModel):
    required: bool
    passed: bool
    level: int | None = None
    quiz: QuizViewResponse | None = None


def _progress_as_response(progress: EpisodeProgress) -> EpisodeProgressResponse:
    return EpisodeProgressResponse(
        episode_id=progress.episode_id,
        course_id=progress.course_id,
        watched_duration=progress.watched_duration,
        is_completed=progress.is_completed,
        last_watched_at=progress.last_watched_at,
    )


@router.post("/{course_id}/enroll", response_model=EnrollmentResponse, status_code=201)
async def enroll(course_id: int, request: Request) -> EnrollmentResponse:
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            actor = await require_actor(session, request=request, now_utc=now_utc)
            enrollment = await EnrollmentService.enroll(
                session,
                actor=actor,
                course_id=course_id,
                now_utc=now_utc,
            )
    except EntitlementError as exc:
        raise as_http_exception(exc) from exc
    return EnrollmentResponse(
        id=enrollment.id,
        course_id=enrollment.course_id,
        enrolled_at=enrollment.enrolled_at,
        completed_episodes=enrollment.completed_episodes,
        progress_percentage=enrollment.progress_percentage,
        payment_status=enrollment.payment_status,
    )


@router.post(
    "/{course_id}/episodes/{episode_id}/progress",
    response_model=EpisodeProgressResponse,
)
async def update_episode_progress(
    course_id: int,
    episode_id: int,
    payload: WatchProgressRequest,
    request: Request,
) -> EpisodeProgressResponse:
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            actor = await require_actor(session, request=request, now_utc=now_utc)
            progress = await EpisodeProgressService.update_progress(
                session,
                actor=actor,
                course_id=course_id,
                episode_id=episode_id,
                watched_seconds=payload.watched_seconds,
                now_utc=now_utc,
            )
            response = _progress_as_response(progress)
    except EntitlementError as exc:
        raise as_http_exception(exc) from exc
    return response


@router.post(
    "/{course_id}/episodes/{episode_id}/complete",
    response_model=CompletionResponse,
)
async def complete_episode(course_id: int, episode_id: int, request: Request) -> CompletionResponse:
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            actor = await require_actor(session, request=request, now_utc=now_utc)
            result = await EpisodeProgressService.mark_complete(
                session,
                actor=actor,
                course_id=course_id,
                episode_id=episode_id,
                now_utc=now_utc,
            )
    except EntitlementError as exc:
        raise as_http_exception(exc) from exc
    return CompletionResponse(**asdict(result))


@router.get("/{course_id}/progress", response_model=CourseProgressResponse)
async def course_progress(course_id: int, request: Request) -> CourseProgressResponse:
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            actor = await require_actor(session, request=request, now_utc=now_utc)
            rows = await EpisodeProgressService.course_progress(
                session,
                actor=actor,
                course_id=course_id,
            )
            episodes = [_progress_as_response(row) for row in rows]
    except EntitlementError as exc:
        raise as_http_exception(exc) from exc
    return CourseProgressResponse(course_id=course_id, episodes=episodes)


@router.get(
    "/{course_id}/episodes/{episode_id}/quiz",
    response_model=EpisodeQuizResponse,
)
async def get_episode_quiz(course_id: int, episode_id: int, request: Request) -> EpisodeQuizResponse:
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            actor = await require_actor(session, request=request, now_utc=now_utc)
            gate = await QuizService.get_quiz_for_episode(
                session,
                actor=actor,
                course_id=course_id,
                episode_id=episode_id,
            )
    except EntitlementError as exc:
        raise as_http_exception(exc) from exc
    return EpisodeQuizResponse(**asdict(gate))


@router.post(
    "/{course_id}/episodes/{episode_id}/quiz",
    response_model=QuizSubmissionResponse,
)
async def submit_episode_quiz(
    course_id: int,
    episode_id: int,
    payload: QuizSubmitRequest,
    request: Request,
) -> QuizSubmissionResponse:
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            actor = await require_actor(session, request=request, now_utc=now_utc)
            result = await QuizService.submit_quiz_for_episode(
                session,
                actor=actor,
                course_id=course_id,
                episode_id=episode_id,
                answers=[
                    QuizAnswerInput(question_id=answer.question_id, option_key=answer.option_key)
                    for answer in payload.answers
                ],
                now_utc=now_utc,
            )
    except EntitlementError as exc:
        raise as_http_exception(exc) from exc
    return QuizSubmissionResponse(**asdict(result))
