from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    BOOLEAN,
    BigInteger,
    CheckConstraint,
    DateTime,
    Integer,
    String,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.db.models.base import Base


class QuizLevelProgress(Base):
    __tablename__ = "quiz_level_progress"
    __table_args__ = (
        CheckConstraint(
            "actor_kind IN ('USER','ADMIN')",
            name="ck_quiz_level_progress_actor_kind",
        ),
        CheckConstraint("level >= 1", name="ck_quiz_level_progress_level_positive"),
        CheckConstraint(
            "best_score BETWEEN 0 AND 100",
            name="ck_quiz_level_progress_best_score_range",
        ),
        CheckConstraint(
            "NOT is_passed OR is_unlocked",
            name="ck_quiz_level_progress_passed_implies_unlocked",
        ),
    )

    actor_kind: Mapped[str] = mapped_column(String(8), primary_key=True)
    actor_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    level: Mapped[int] = mapped_column(Integer, primary_key=True)
    is_unlocked: Mapped[bool] = mapped_column(
        BOOLEAN, nullable=False, server_default=text("false")
    )
    is_passed: Mapped[bool] = mapped_column(BOOLEAN, nullable=False, server_default=text("false"))
    best_score: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    attempts_count: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    last_attempt_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
