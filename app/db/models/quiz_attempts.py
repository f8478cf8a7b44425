from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    BOOLEAN,
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.db.models.base import Base


class QuizAttempt(Base):
    __tablename__ = "quiz_attempts"
    __table_args__ = (
        CheckConstraint("actor_kind IN ('USER','ADMIN')", name="ck_quiz_attempts_actor_kind"),
        CheckConstraint("score BETWEEN 0 AND 100", name="ck_quiz_attempts_score_range"),
        CheckConstraint(
            "correct_count BETWEEN 0 AND total_questions",
            name="ck_quiz_attempts_correct_count_range",
        ),
        Index("idx_quiz_attempts_actor_level", "actor_kind", "actor_id", "level"),
        Index("idx_quiz_attempts_completed_at", "completed_at"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    actor_kind: Mapped[str] = mapped_column(String(8), nullable=False)
    actor_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    quiz_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("quizzes.id"), nullable=False)
    level: Mapped[int] = mapped_column(Integer, nullable=False)
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    correct_count: Mapped[int] = mapped_column(Integer, nullable=False)
    total_questions: Mapped[int] = mapped_column(Integer, nullable=False)
    passed: Mapped[bool] = mapped_column(BOOLEAN, nullable=False)
    completed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
