from __future__ import annotations

from collections.abc import Mapping, Sequence

from app.progression.types import GradedAnswer, QuizGrade

MIN_WATCH_SECONDS = 60
WATCH_RATIO_NUMERATOR = 7
WATCH_RATIO_DENOMINATOR = 10


def round_half_up_percent(part: int, whole: int) -> int:
    if whole <= 0:
        return 0
    return (200 * part + whole) // (2 * whole)


def required_watch_seconds(duration_seconds: int) -> int:
    seventy_percent = (max(0, duration_seconds) * WATCH_RATIO_NUMERATOR) // WATCH_RATIO_DENOMINATOR
    return max(MIN_WATCH_SECONDS, seventy_percent)


def required_watch_minutes(duration_seconds: int) -> int:
    return -(-required_watch_seconds(duration_seconds) // 60)


def quiz_level_for_episode(order: int) -> int | None:
    if order <= 1:
        return None
    return order - 1


def is_episode_unlocked(*, order: int, previous_completed: bool) -> bool:
    return order <= 1 or previous_completed


def is_level_unlocked(*, level: int, previous_level_passed: bool) -> bool:
    return level <= 1 or previous_level_passed


def grade_quiz(
    *,
    correct_keys: Mapping[int, str | None],
    answers: Mapping[int, str | None],
    passing_score: int,
) -> QuizGrade:
    """Score a submission against every question of the quiz.

    ``correct_keys`` maps each question id to its correct option key. Questions the
    actor did not answer count as wrong; answers to unknown questions are ignored.
    """
    graded: list[GradedAnswer] = []
    correct_count = 0
    for question_id, correct_key in correct_keys.items():
        selected = answers.get(question_id)
        normalized = selected.strip().lower() if selected else None
        is_correct = correct_key is not None and normalized == correct_key.lower()
        if is_correct:
            correct_count += 1
        graded.append(
            GradedAnswer(
                question_id=question_id,
                selected_option_key=normalized,
                correct_option_key=correct_key,
                is_correct=is_correct,
            )
        )

    total = len(correct_keys)
    score = round_half_up_percent(correct_count, total)
    return QuizGrade(
        correct_count=correct_count,
        total_questions=total,
        score=score,
        passed=score >= passing_score,
        answers=graded,
    )


def course_completion(
    *,
    completed_episode_ids: Sequence[int],
    course_episode_ids: Sequence[int],
) -> tuple[int, int]:
    course_ids = set(course_episode_ids)
    completed = len(course_ids.intersection(completed_episode_ids))
    return completed, round_half_up_percent(completed, len(course_ids))
