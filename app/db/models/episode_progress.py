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


class EpisodeProgress(Base):
    __tablename__ = "episode_progress"
    __table_args__ = (
        CheckConstraint("actor_kind IN ('USER','ADMIN')", name="ck_episode_progress_actor_kind"),
        CheckConstraint(
            "watched_duration >= 0",
            name="ck_episode_progress_watched_duration_non_negative",
        ),
        UniqueConstraint(
            "actor_kind",
            "actor_id",
            "episode_id",
            name="uq_episode_progress_actor_episode",
        ),
        Index("idx_episode_progress_actor_course", "actor_kind", "actor_id", "course_id"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    actor_kind: Mapped[str] = mapped_column(String(8), nullable=False)
    actor_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    episode_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("episodes.id"), nullable=False)
    course_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("courses.id"), nullable=False)
    watched_duration: Mapped[int] = mapped_column(
        Integer, nullable=False, server_default=text("0")
    )
    is_completed: Mapped[bool] = mapped_column(
        BOOLEAN, nullable=False, server_default=text("false")
    )
    last_watched_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
