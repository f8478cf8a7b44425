from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, CheckConstraint, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.models.base import Base


class AnalysisMessage(Base):
    __tablename__ = "analysis_messages"
    __table_args__ = (
        CheckConstraint("actor_kind IN ('USER','ADMIN')", name="ck_analysis_messages_actor_kind"),
        CheckConstraint("role IN ('user','assistant')", name="ck_analysis_messages_role"),
        CheckConstraint(
            "analysis_type IN ('m15','h4','single','feedback','feedback_with_image')",
            name="ck_analysis_messages_analysis_type",
        ),
        Index(
            "idx_analysis_messages_actor_time",
            "actor_kind",
            "actor_id",
            "created_at",
        ),
        Index("idx_analysis_messages_subscription", "subscription_id"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    actor_kind: Mapped[str] = mapped_column(String(8), nullable=False)
    actor_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    subscription_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("subscriptions.id"), nullable=False
    )
    role: Mapped[str] = mapped_column(String(16), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    analysis_type: Mapped[str] = mapped_column(String(32), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
