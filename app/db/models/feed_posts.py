from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, CheckConstraint, DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.models.base import Base


class FeedPost(Base):
    __tablename__ = "feed_posts"
    __table_args__ = (
        CheckConstraint("author_kind IN ('USER','ADMIN')", name="ck_feed_posts_author_kind"),
        CheckConstraint(
            "post_type IN ('alert','recommendation','result')",
            name="ck_feed_posts_post_type",
        ),
        Index("idx_feed_posts_created_at", "created_at"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    author_kind: Mapped[str] = mapped_column(String(8), nullable=False)
    author_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    post_type: Mapped[str] = mapped_column(String(16), nullable=False)
    symbol: Mapped[str | None] = mapped_column(String(32), nullable=True)
    side: Mapped[str | None] = mapped_column(String(16), nullable=True)
    entry_price: Mapped[str | None] = mapped_column(String(32), nullable=True)
    stop_loss: Mapped[str | None] = mapped_column(String(32), nullable=True)
    take_profit_1: Mapped[str | None] = mapped_column(String(32), nullable=True)
    take_profit_2: Mapped[str | None] = mapped_column(String(32), nullable=True)
    risk_percent: Mapped[str | None] = mapped_column(String(16), nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
