from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.quiz_answers import QuizAnswer
from app.db.models.quiz_attempts import QuizAttempt
from app.db.models.quizzes import Quiz
from app.db.repo.courses_repo import CoursesRepo
from app.db.repo.quiz_attempts_repo import QuizAttemptsRepo
from app.db.repo.quiz_progress_repo import QuizProgressRepo
from app.db.repo.quizzes_repo import QuizzesRepo
from app.entitlements.errors import BadRequestError, ForbiddenError, NotFoundError
from app.entitlements.types import Actor
from app.progression.enrollments import EnrollmentService
from app.progression.rules import grade_quiz, is_level_unlocked, quiz_level_for_episode
from app.progression.types import (
    EpisodeQuizGate,
    LevelProgressView,
    QuizAnswerInput,
    QuizOptionView,
    QuizQuestionView,
    QuizSubmissionResult,
    QuizView,
)

logger = structlog.get_logger(__name__)


class QuizService:
    @staticmethod
    async def _get_quiz(session: AsyncSession, level: int) -> Quiz:
        quiz = await QuizzesRepo.get_by_level(session, level)
        if quiz is None:
            raise NotFoundError(f"quiz level {level} not found")
        return quiz

    @staticmethod
    async def build_view(session: AsyncSession, *, quiz: Quiz) -> QuizView:
        questions = await QuizzesRepo.list_questions(session, quiz_id=quiz.id)
        options = await QuizzesRepo.list_options(
            session,
            question_ids=[question.id for question in questions],
        )
        options_by_question: dict[int, list[QuizOptionView]] = {}
        for option in options:
            options_by_question.setdefault(option.question_id, []).append(
                QuizOptionView(option_key=option.option_key, text=option.option_text)
            )
        return QuizView(
            id=quiz.id,
            level=quiz.level,
            title=quiz.title,
            description=quiz.description,
            passing_score=quiz.passing_score,
            questions=[
                QuizQuestionView(
                    id=question.id,
                    text=question.question_text,
                    order_num=question.order_num,
                    options=options_by_question.get(question.id, []),
                )
                for question in questions
            ],
        )

    @staticmethod
    async def is_level_unlocked(session: AsyncSession, *, actor: Actor, level: int) -> bool:
        if level <= 1:
            return True
        previous = await QuizProgressRepo.get(
            session,
            actor_kind=actor.kind.value,
            actor_id=actor.id,
            level=level - 1,
        )
        return is_level_unlocked(
            level=level,
            previous_level_passed=previous is not None and previous.is_passed,
        )

    @staticmethod
    async def is_level_passed(session: AsyncSession, *, actor: Actor, level: int) -> bool:
        progress = await QuizProgressRepo.get(
            session,
            actor_kind=actor.kind.value,
            actor_id=actor.id,
            level=level,
        )
        return progress is not None and progress.is_passed

    @staticmethod
    async def submit_quiz(
        session: AsyncSession,
        *,
        actor: Actor,
        level: int,
        answers: Sequence[QuizAnswerInput],
        now_utc: datetime,
    ) -> QuizSubmissionResult:
        if not answers:
            raise BadRequestError("answers are required")

        quiz = await QuizService._get_quiz(session, level)
        if not await QuizService.is_level_unlocked(session, actor=actor, level=level):
            raise ForbiddenError(f"pass quiz level {level - 1} to unlock level {level}")

        questions = await QuizzesRepo.list_questions(session, quiz_id=quiz.id)
        if not questions:
            raise BadRequestError("quiz has no questions")
        options = await QuizzesRepo.list_options(
            session,
            question_ids=[question.id for question in questions],
        )
        correct_keys: dict[int, str | None] = {question.id: None for question in questions}
        for option in options:
            if option.is_correct:
                correct_keys[option.question_id] = option.option_key

        grade = grade_quiz(
            correct_keys=correct_keys,
            answers={answer.question_id: answer.option_key for answer in answers},
            passing_score=quiz.passing_score,
        )

        attempt = await QuizAttemptsRepo.create(
            session,
            attempt=QuizAttempt(
                actor_kind=actor.kind.value,
                actor_id=actor.id,
                quiz_id=quiz.id,
                level=quiz.level,
                score=grade.score,
                correct_count=grade.correct_count,
                total_questions=grade.total_questions,
                passed=grade.passed,
                completed_at=now_utc,
            ),
            answers=[
                QuizAnswer(
                    question_id=graded.question_id,
                    selected_option_key=graded.selected_option_key,
                    is_correct=graded.is_correct,
                )
                for graded in grade.answers
            ],
        )
        progress = await QuizProgressRepo.record_attempt(
            session,
            actor_kind=actor.kind.value,
            actor_id=actor.id,
            level=quiz.level,
            score=grade.score,
            passed=grade.passed,
            now_utc=now_utc,
        )

        next_level_unlocked: int | None = None
        if grade.passed and await QuizzesRepo.level_exists(session, quiz.level + 1):
            await QuizProgressRepo.ensure_unlocked(
                session,
                actor_kind=actor.kind.value,
                actor_id=actor.id,
                level=quiz.level + 1,
                now_utc=now_utc,
            )
            next_level_unlocked = quiz.level + 1

        logger.info(
            "quiz_submitted",
            level=quiz.level,
            actor_kind=actor.kind.value,
            actor_id=actor.id,
            score=grade.score,
            passed=grade.passed,
            attempts_count=progress.attempts_count,
        )
        return QuizSubmissionResult(
            attempt_id=attempt.id,
            level=quiz.level,
            score=grade.score,
            passed=grade.passed,
            correct_count=grade.correct_count,
            total_questions=grade.total_questions,
            passing_score=quiz.passing_score,
            is_passed=progress.is_passed,
            best_score=progress.best_score,
            next_level_unlocked=next_level_unlocked,
            answers=grade.answers,
        )

    @staticmethod
    async def list_level_progress(session: AsyncSession, *, actor: Actor) -> list[LevelProgressView]:
        quizzes = await QuizzesRepo.list_all(session)
        rows = await QuizProgressRepo.list_for_actor(
            session,
            actor_kind=actor.kind.value,
            actor_id=actor.id,
        )
        by_level = {row.level: row for row in rows}
        views: list[LevelProgressView] = []
        for quiz in quizzes:
            row = by_level.get(quiz.level)
            previous = by_level.get(quiz.level - 1)
            views.append(
                LevelProgressView(
                    level=quiz.level,
                    title=quiz.title,
                    description=quiz.description,
                    passing_score=quiz.passing_score,
                    is_unlocked=is_level_unlocked(
                        level=quiz.level,
                        previous_level_passed=previous is not None and previous.is_passed,
                    ),
                    is_passed=row is not None and row.is_passed,
                    best_score=0 if row is None else row.best_score,
                    attempts_count=0 if row is None else row.attempts_count,
                    last_attempt_at=None if row is None else row.last_attempt_at,
                )
            )
        return views

    @staticmethod
    async def quiz_history(
        session: AsyncSession,
        *,
        actor: Actor,
        level: int,
    ) -> list[QuizAttempt]:
        await QuizService._get_quiz(session, level)
        return await QuizAttemptsRepo.list_for_level(
            session,
            actor_kind=actor.kind.value,
            actor_id=actor.id,
            level=level,
        )

    @staticmethod
    async def _episode_quiz_level(
        session: AsyncSession,
        *,
        actor: Actor,
        course_id: int,
        episode_id: int,
    ) -> int | None:
        await EnrollmentService.require_course_access(session, actor=actor, course_id=course_id)
        episode = await CoursesRepo.get_episode(session, course_id=course_id, episode_id=episode_id)
        if episode is None:
            raise NotFoundError("episode not found")
        return quiz_level_for_episode(episode.order)

    @staticmethod
    async def get_quiz_for_episode(
        session: AsyncSession,
        *,
        actor: Actor,
        course_id: int,
        episode_id: int,
    ) -> EpisodeQuizGate:
        level = await QuizService._episode_quiz_level(
            session,
            actor=actor,
            course_id=course_id,
            episode_id=episode_id,
        )
        if level is None:
            return EpisodeQuizGate(required=False, passed=True, level=None, quiz=None)

        quiz = await QuizzesRepo.get_by_level(session, level)
        if quiz is None:
            return EpisodeQuizGate(required=False, passed=True, level=level, quiz=None)

        return EpisodeQuizGate(
            required=True,
            passed=await QuizService.is_level_passed(session, actor=actor, level=level),
            level=level,
            quiz=await QuizService.build_view(session, quiz=quiz),
        )

    @staticmethod
    async def submit_quiz_for_episode(
        session: AsyncSession,
        *,
        actor: Actor,
        course_id: int,
        episode_id: int,
        answers: Sequence[QuizAnswerInput],
        now_utc: datetime,
    ) -> QuizSubmissionResult:
        level = await QuizService._episode_quiz_level(
            session,
            actor=actor,
            course_id=course_id,
            episode_id=episode_id,
        )
        if level is None:
            raise BadRequestError("the first episode has no quiz")
        return await QuizService.submit_quiz(
            session,
            actor=actor,
            level=level,
            answers=answers,
            now_utc=now_utc,
        )
