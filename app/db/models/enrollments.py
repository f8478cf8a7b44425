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
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.db.models.base import Base


class Enrollment(Base):
    __tablename__ = "enrollments"
    __table_args__ = (
        CheckConstraint("actor_kind IN ('USER','ADMIN')", name="ck_enrollments_actor_kind"),
        CheckConstraint(
            "progress_percentage BETWEEN 0 AND 100",
            name="ck_enrollments_progress_percentage_range",
        ),
        CheckConstraint(
            "completed_episodes >= 0",
            name="ck_enrollments_completed_episodes_non_negative",
        ),
        UniqueConstraint(
            "actor_kind",
            "actor_id",
            "course_id",
            name="uq_enrollments_actor_course",
        ),
        Index("idx_enrollments_course", "course_id"),
        Index("idx_enrollments_enrolled_at", "enrolled_at"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    actor_kind: Mapped[str] = mapped_column(String(8), nullable=False)
    actor_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    course_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("courses.id"), nullable=False)
    enrolled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    last_accessed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed_episodes: Mapped[int] = mapped_column(
        Integer, nullable=False, server_default=text("0")
    )
    progress_percentage: Mapped[int] = mapped_column(
        Integer, nullable=False, server_default=text("0")
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    payment_status: Mapped[str] = mapped_column(
        String(16), nullable=False, server_default=text("'completed'")
    )
    activated_via_key: Mapped[bool] = mapped_column(
        BOOLEAN, nullable=False, server_default=text("false")
    )
    activation_key_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("activation_keys.id"), nullable=True
    )
