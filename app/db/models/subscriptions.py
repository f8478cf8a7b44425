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
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.db.models.base import Base


class Subscription(Base):
    __tablename__ = "subscriptions"
    __table_args__ = (
        CheckConstraint("actor_kind IN ('USER','ADMIN')", name="ck_subscriptions_actor_kind"),
        CheckConstraint(
            "feature IN ('AI_ASSISTANT','RECOMMENDATION_FEED')",
            name="ck_subscriptions_feature",
        ),
        CheckConstraint(
            "payment_status IN ('key','completed','pending')",
            name="ck_subscriptions_payment_status",
        ),
        CheckConstraint("messages_used >= 0", name="ck_subscriptions_messages_used_non_negative"),
        CheckConstraint(
            "messages_limit IS NULL OR messages_limit > 0",
            name="ck_subscriptions_messages_limit_positive",
        ),
        Index("idx_subscriptions_actor_feature", "actor_kind", "actor_id", "feature"),
        Index("idx_subscriptions_end_date", "end_date"),
        Index(
            "uq_subscriptions_active_per_actor_feature",
            "actor_kind",
            "actor_id",
            "feature",
            unique=True,
            postgresql_where=text("is_active"),
        ),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    actor_kind: Mapped[str] = mapped_column(String(8), nullable=False)
    actor_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    feature: Mapped[str] = mapped_column(String(32), nullable=False)
    is_active: Mapped[bool] = mapped_column(BOOLEAN, nullable=False, server_default=text("true"))
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    payment_status: Mapped[str] = mapped_column(String(16), nullable=False)
    payment_amount: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    payment_currency: Mapped[str] = mapped_column(
        String(3), nullable=False, server_default=text("'USD'")
    )
    messages_used: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    messages_limit: Mapped[int | None] = mapped_column(Integer, nullable=True)
    activation_key_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("activation_keys.id"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
