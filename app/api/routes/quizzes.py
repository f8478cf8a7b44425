from __future__ import annotations

from dataclasses import asdict
from datetime import datetime, timezone

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from app.db.session import SessionLocal
from app.entitlements.errors import EntitlementError
from app.progression.quizzes import QuizService
from app.progression.types import QuizAnswerInput

from .session_helpers import as_http_exception, require_actor

router = APIRouter(prefix="/api/quizzes", tags=["quizzes"])


class QuizAnswerRequest(BaseModel):
    question_id: int = Field(gt=0)
    option_key: str | None = Field(default=None, max_length=4)


class QuizSubmitRequest(BaseModel):
    answers: list[QuizAnswerRequest] = Field(max_length=500)


class GradedAnswerResponse(BaseModel):
    question_id: int
    selected_option_key: str | None = None
    correct_option_key: str | None = None
    is_correct: bool


class QuizSubmissionResponse(BaseModel):
    attempt_id: int
    level: int
    score: int = Field(ge=0, le=100)
    passed: bool
    correct_count: int = Field(ge=0)
    total_questions: int = Field(ge=0)
    passing_score: int
    is_passed: bool
    best_score: int = Field(ge=0, le=100)
    next_level_unlocked: int | None = None
    answers: list[GradedAnswerResponse]


class QuizOptionResponse(BaseModel):
    option_key: str
    text: str


class QuizQuestionResponse(BaseModel):
    id: int
    text: str
    order_num: int
    options: list[QuizOptionResponse]


class QuizViewResponse(BaseModel):
    id: int
    level: int
    title: str
    description: str | None = None
    passing_score: int
    questions: list[QuizQuestionResponse]


class LevelProgressResponse(BaseModel):
    level: int
    title: str
    description: str | None = None
    passing_score: int
    is_unlocked: bool
    is_passed: bool
    best_score: int = Field(ge=0, le=100)
    attempts_count: int = Field(ge=0)
    last_attempt_at: datetime | None = None


class LevelProgressListResponse(BaseModel):
    levels: list[LevelProgressResponse]


class QuizAttemptResponse(BaseModel):
    id: int
    level: int
    score: int
    correct_count: int
    total_questions: int
    passed: bool
    completed_at: datetime


class QuizHistoryResponse(BaseModel):
    level: int
    attempts: list[QuizAttemptResponse]


@router.get("/progress", response_model=LevelProgressListResponse)
async def level_progress(request: Request) -> LevelProgressListResponse:
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            actor = await require_actor(session, request=request, now_utc=now_utc)
            views = await QuizService.list_level_progress(session, actor=actor)
    except EntitlementError as exc:
        raise as_http_exception(exc) from exc
    return LevelProgressListResponse(
        levels=[LevelProgressResponse(**asdict(view)) for view in views]
    )


@router.post("/{level}/submit", response_model=QuizSubmissionResponse)
async def submit_quiz(
    level: int,
    payload: QuizSubmitRequest,
    request: Request,
) -> QuizSubmissionResponse:
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            actor = await require_actor(session, request=request, now_utc=now_utc)
            result = await QuizService.submit_quiz(
                session,
                actor=actor,
                level=level,
                answers=[
                    QuizAnswerInput(question_id=answer.question_id, option_key=answer.option_key)
                    for answer in payload.answers
                ],
                now_utc=now_utc,
            )
    except EntitlementError as exc:
        raise as_http_exception(exc) from exc
    return QuizSubmissionResponse(**asdict(result))


@router.get("/{level}/history", response_model=QuizHistoryResponse)
async def quiz_history(level: int, request: Request) -> QuizHistoryResponse:
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            actor = await require_actor(session, request=request, now_utc=now_utc)
            attempts = await QuizService.quiz_history(session, actor=actor, level=level)
            items = [
                QuizAttemptResponse(
                    id=attempt.id,
                    level=attempt.level,
                    score=attempt.score,
                    correct_count=attempt.correct_count,
                    total_questions=attempt.total_questions,
                    passed=attempt.passed,
                    completed_at=attempt.completed_at,
                )
                for attempt in attempts
            ]
    except EntitlementError as exc:
        raise as_http_exception(exc) from exc
    return QuizHistoryResponse(level=level, attempts=items)
