from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, CheckConstraint, DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from app.db.models.base import Base


class FeedReaction(Base):
    __tablename__ = "feed_reactions"
    __table_args__ = (
        CheckConstraint("actor_kind IN ('USER','ADMIN')", name="ck_feed_reactions_actor_kind"),
        CheckConstraint(
            "reaction IN ('like','love','sad','fire','rocket')",
            name="ck_feed_reactions_reaction",
        ),
    )

    post_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("feed_posts.id", ondelete="CASCADE"), primary_key=True
    )
    actor_kind: Mapped[str] = mapped_column(String(8), primary_key=True)
    actor_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    reaction: Mapped[str] = mapped_column(String(16), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
