from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True, slots=True)
class QuizAnswerInput:
    question_id: int
    option_key: str | None


@dataclass(slots=True)
class GradedAnswer:
    question_id: int
    selected_option_key: str | None
    correct_option_key: str | None
    is_correct: bool


@dataclass(slots=True)
class QuizGrade:
    correct_count: int
    total_questions: int
    score: int
    passed: bool
    answers: list[GradedAnswer] = field(default_factory=list)


@dataclass(slots=True)
class QuizSubmissionResult:
    attempt_id: int
    level: int
    score: int
    passed: bool
    correct_count: int
    total_questions: int
    passing_score: int
    is_passed: bool
    best_score: int
    next_level_unlocked: int | None
    answers: list[GradedAnswer]


@dataclass(slots=True)
class QuizOptionView:
    option_key: str
    text: str


@dataclass(slots=True)
class QuizQuestionView:
    id: int
    text: str
    order_num: int
    options: list[QuizOptionView]


@dataclass(slots=True)
class QuizView:
    id: int
    level: int
    title: str
    description: str | None
    passing_score: int
    questions: list[QuizQuestionView]


@dataclass(slots=True)
class EpisodeQuizGate:
    required: bool
    passed: bool
    level: int | None
    quiz: QuizView | None


@dataclass(slots=True)
class LevelProgressView:
    level: int
    title: str
    description: str | None
    passing_score: int
    is_unlocked: bool
    is_passed: bool
    best_score: int
    attempts_count: int
    last_attempt_at: datetime | None


@dataclass(slots=True)
class CompletionResult:
    episode_id: int
    completed_episodes: int
    total_episodes: int
    progress_percentage: int
    course_completed: bool
