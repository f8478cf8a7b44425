from __future__ import annotations

from sqlalchemy import (
    BOOLEAN,
    BigInteger,
    CheckConstraint,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.db.models.base import Base


class Episode(Base):
    __tablename__ = "episodes"
    __table_args__ = (
        CheckConstraint('"order" >= 1', name="ck_episodes_order_positive"),
        CheckConstraint("duration_seconds >= 0", name="ck_episodes_duration_non_negative"),
        UniqueConstraint("course_id", "order", name="uq_episodes_course_order"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    course_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("courses.id"), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    duration_seconds: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    order: Mapped[int] = mapped_column("order", Integer, nullable=False)
    is_free: Mapped[bool] = mapped_column(BOOLEAN, nullable=False, server_default=text("false"))
