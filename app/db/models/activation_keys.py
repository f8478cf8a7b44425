from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    BOOLEAN,
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.db.models.base import Base


class ActivationKey(Base):
    __tablename__ = "activation_keys"
    __table_args__ = (
        CheckConstraint(
            "kind IN ('COURSE','AI_ASSISTANT','RECOMMENDATION_FEED')",
            name="ck_activation_keys_kind",
        ),
        CheckConstraint(
            "(kind = 'COURSE' AND target_course_id IS NOT NULL) "
            "OR (kind <> 'COURSE' AND target_course_id IS NULL)",
            name="ck_activation_keys_kind_target_consistency",
        ),
        CheckConstraint("code = upper(code)", name="ck_activation_keys_code_uppercase"),
        CheckConstraint(
            "bound_email IS NULL OR bound_email = lower(bound_email)",
            name="ck_activation_keys_bound_email_lowercase",
        ),
        CheckConstraint(
            "(bound_email IS NULL) = (activated_at IS NULL)",
            name="ck_activation_keys_bind_consistency",
        ),
        Index("idx_activation_keys_kind", "kind"),
        Index("idx_activation_keys_course", "target_course_id"),
        Index("idx_activation_keys_bound_email", "bound_email"),
        Index("idx_activation_keys_created_at", "created_at"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    code: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    kind: Mapped[str] = mapped_column(String(32), nullable=False)
    target_course_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("courses.id"), nullable=True
    )
    bound_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    activated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    is_active: Mapped[bool] = mapped_column(BOOLEAN, nullable=False, server_default=text("true"))
    created_by: Mapped[int] = mapped_column(BigInteger, ForeignKey("admins.id"), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
