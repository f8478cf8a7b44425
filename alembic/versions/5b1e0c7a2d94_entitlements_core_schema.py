"""entitlements_core_schema

Revision ID: 5b1e0c7a2d94
Revises:
Create Date: 2026-10-17 09:00:00.000000
"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "5b1e0c7a2d94"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None

ACTOR_KIND_CHECK = "actor_kind IN ('USER','ADMIN')"


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("name", sa.Text(), nullable=True),
        sa.Column("is_publisher", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("last_signed_in_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("id > 0", name="ck_users_id_positive"),
        sa.CheckConstraint("email = lower(email)", name="ck_users_email_lowercase"),
        sa.UniqueConstraint("email"),
    )
    op.create_index("idx_users_created_at", "users", ["created_at"])
    op.create_index(
        "idx_users_publishers",
        "users",
        ["id"],
        postgresql_where=sa.text("is_publisher"),
    )

    op.create_table(
        "admins",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("name", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("last_signed_in_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("email = lower(email)", name="ck_admins_email_lowercase"),
        sa.UniqueConstraint("email"),
    )

    op.create_table(
        "courses",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_published", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )

    op.create_table(
        "episodes",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("course_id", sa.BigInteger(), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("duration_seconds", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("order", sa.Integer(), nullable=False),
        sa.Column("is_free", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.CheckConstraint('"order" >= 1', name="ck_episodes_order_positive"),
        sa.CheckConstraint("duration_seconds >= 0", name="ck_episodes_duration_non_negative"),
        sa.ForeignKeyConstraint(["course_id"], ["courses.id"]),
        sa.UniqueConstraint("course_id", "order", name="uq_episodes_course_order"),
    )

    op.create_table(
        "activation_keys",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("code", sa.String(64), nullable=False),
        sa.Column("kind", sa.String(32), nullable=False),
        sa.Column("target_course_id", sa.BigInteger(), nullable=True),
        sa.Column("bound_email", sa.String(320), nullable=True),
        sa.Column("activated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_by", sa.BigInteger(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "kind IN ('COURSE','AI_ASSISTANT','RECOMMENDATION_FEED')",
            name="ck_activation_keys_kind",
        ),
        sa.CheckConstraint(
            "(kind = 'COURSE' AND target_course_id IS NOT NULL) "
            "OR (kind <> 'COURSE' AND target_course_id IS NULL)",
            name="ck_activation_keys_kind_target_consistency",
        ),
        sa.CheckConstraint("code = upper(code)", name="ck_activation_keys_code_uppercase"),
        sa.CheckConstraint(
            "bound_email IS NULL OR bound_email = lower(bound_email)",
            name="ck_activation_keys_bound_email_lowercase",
        ),
        sa.CheckConstraint(
            "(bound_email IS NULL) = (activated_at IS NULL)",
            name="ck_activation_keys_bind_consistency",
        ),
        sa.ForeignKeyConstraint(["target_course_id"], ["courses.id"]),
        sa.ForeignKeyConstraint(["created_by"], ["admins.id"]),
        sa.UniqueConstraint("code"),
    )
    op.create_index("idx_activation_keys_kind", "activation_keys", ["kind"])
    op.create_index("idx_activation_keys_course", "activation_keys", ["target_course_id"])
    op.create_index("idx_activation_keys_bound_email", "activation_keys", ["bound_email"])
    op.create_index("idx_activation_keys_created_at", "activation_keys", ["created_at"])

    op.create_table(
        "subscriptions",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("actor_kind", sa.String(8), nullable=False),
        sa.Column("actor_id", sa.BigInteger(), nullable=False),
        sa.Column("feature", sa.String(32), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("payment_status", sa.String(16), nullable=False),
        sa.Column("payment_amount", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("payment_currency", sa.String(3), nullable=False, server_default=sa.text("'USD'")),
        sa.Column("messages_used", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("messages_limit", sa.Integer(), nullable=True),
        sa.Column("activation_key_id", sa.BigInteger(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(ACTOR_KIND_CHECK, name="ck_subscriptions_actor_kind"),
        sa.CheckConstraint(
            "feature IN ('AI_ASSISTANT','RECOMMENDATION_FEED')",
            name="ck_subscriptions_feature",
        ),
        sa.CheckConstraint(
            "payment_status IN ('key','completed','pending')",
            name="ck_subscriptions_payment_status",
        ),
        sa.CheckConstraint("messages_used >= 0", name="ck_subscriptions_messages_used_non_negative"),
        sa.CheckConstraint(
            "messages_limit IS NULL OR messages_limit > 0",
            name="ck_subscriptions_messages_limit_positive",
        ),
        sa.ForeignKeyConstraint(["activation_key_id"], ["activation_keys.id"]),
    )
    op.create_index(
        "idx_subscriptions_actor_feature",
        "subscriptions",
        ["actor_kind", "actor_id", "feature"],
    )
    op.create_index("idx_subscriptions_end_date", "subscriptions", ["end_date"])
    op.create_index(
        "uq_subscriptions_active_per_actor_feature",
        "subscriptions",
        ["actor_kind", "actor_id", "feature"],
        unique=True,
        postgresql_where=sa.text("is_active"),
    )

    op.create_table(
        "enrollments",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("actor_kind", sa.String(8), nullable=False),
        sa.Column("actor_id", sa.BigInteger(), nullable=False),
        sa.Column("course_id", sa.BigInteger(), nullable=False),
        sa.Column("enrolled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_accessed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_episodes", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("progress_percentage", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("payment_status", sa.String(16), nullable=False, server_default=sa.text("'completed'")),
        sa.Column("activated_via_key", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("activation_key_id", sa.BigInteger(), nullable=True),
        sa.CheckConstraint(ACTOR_KIND_CHECK, name="ck_enrollments_actor_kind"),
        sa.CheckConstraint(
            "progress_percentage BETWEEN 0 AND 100",
            name="ck_enrollments_progress_percentage_range",
        ),
        sa.CheckConstraint(
            "completed_episodes >= 0",
            name="ck_enrollments_completed_episodes_non_negative",
        ),
        sa.ForeignKeyConstraint(["course_id"], ["courses.id"]),
        sa.ForeignKeyConstraint(["activation_key_id"], ["activation_keys.id"]),
        sa.UniqueConstraint("actor_kind", "actor_id", "course_id", name="uq_enrollments_actor_course"),
    )
    op.create_index("idx_enrollments_course", "enrollments", ["course_id"])
    op.create_index("idx_enrollments_enrolled_at", "enrollments", ["enrolled_at"])

    op.create_table(
        "episode_progress",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("actor_kind", sa.String(8), nullable=False),
        sa.Column("actor_id", sa.BigInteger(), nullable=False),
        sa.Column("episode_id", sa.BigInteger(), nullable=False),
        sa.Column("course_id", sa.BigInteger(), nullable=False),
        sa.Column("watched_duration", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_completed", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("last_watched_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(ACTOR_KIND_CHECK, name="ck_episode_progress_actor_kind"),
        sa.CheckConstraint(
            "watched_duration >= 0",
            name="ck_episode_progress_watched_duration_non_negative",
        ),
        sa.ForeignKeyConstraint(["episode_id"], ["episodes.id"]),
        sa.ForeignKeyConstraint(["course_id"], ["courses.id"]),
        sa.UniqueConstraint(
            "actor_kind",
            "actor_id",
            "episode_id",
            name="uq_episode_progress_actor_episode",
        ),
    )
    op.create_index(
        "idx_episode_progress_actor_course",
        "episode_progress",
        ["actor_kind", "actor_id", "course_id"],
    )

    op.create_table(
        "quizzes",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("level", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("passing_score", sa.Integer(), nullable=False, server_default=sa.text("50")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint("level >= 1", name="ck_quizzes_level_positive"),
        sa.CheckConstraint("passing_score BETWEEN 0 AND 100", name="ck_quizzes_passing_score_range"),
        sa.UniqueConstraint("level"),
    )

    op.create_table(
        "quiz_questions",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("quiz_id", sa.BigInteger(), nullable=False),
        sa.Column("question_text", sa.Text(), nullable=False),
        sa.Column("order_num", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["quiz_id"], ["quizzes.id"]),
    )
    op.create_index("idx_quiz_questions_quiz_order", "quiz_questions", ["quiz_id", "order_num"])

    op.create_table(
        "quiz_options",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("question_id", sa.BigInteger(), nullable=False),
        sa.Column("option_key", sa.String(1), nullable=False),
        sa.Column("option_text", sa.Text(), nullable=False),
        sa.Column("is_correct", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.ForeignKeyConstraint(["question_id"], ["quiz_questions.id"]),
        sa.UniqueConstraint("question_id", "option_key", name="uq_quiz_options_question_key"),
    )

    op.create_table(
        "quiz_attempts",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("actor_kind", sa.String(8), nullable=False),
        sa.Column("actor_id", sa.BigInteger(), nullable=False),
        sa.Column("quiz_id", sa.BigInteger(), nullable=False),
        sa.Column("level", sa.Integer(), nullable=False),
        sa.Column("score", sa.Integer(), nullable=False),
        sa.Column("correct_count", sa.Integer(), nullable=False),
        sa.Column("total_questions", sa.Integer(), nullable=False),
        sa.Column("passed", sa.Boolean(), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(ACTOR_KIND_CHECK, name="ck_quiz_attempts_actor_kind"),
        sa.CheckConstraint("score BETWEEN 0 AND 100", name="ck_quiz_attempts_score_range"),
        sa.CheckConstraint(
            "correct_count BETWEEN 0 AND total_questions",
            name="ck_quiz_attempts_correct_count_range",
        ),
        sa.ForeignKeyConstraint(["quiz_id"], ["quizzes.id"]),
    )
    op.create_index(
        "idx_quiz_attempts_actor_level",
        "quiz_attempts",
        ["actor_kind", "actor_id", "level"],
    )
    op.create_index("idx_quiz_attempts_completed_at", "quiz_attempts", ["completed_at"])

    op.create_table(
        "quiz_answers",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("attempt_id", sa.BigInteger(), nullable=False),
        sa.Column("question_id", sa.BigInteger(), nullable=False),
        sa.Column("selected_option_key", sa.String(1), nullable=True),
        sa.Column("is_correct", sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(["attempt_id"], ["quiz_attempts.id"]),
        sa.ForeignKeyConstraint(["question_id"], ["quiz_questions.id"]),
    )
    op.create_index("idx_quiz_answers_attempt", "quiz_answers", ["attempt_id"])

    op.create_table(
        "quiz_level_progress",
        sa.Column("actor_kind", sa.String(8), nullable=False),
        sa.Column("actor_id", sa.BigInteger(), nullable=False),
        sa.Column("level", sa.Integer(), nullable=False),
        sa.Column("is_unlocked", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_passed", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("best_score", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("attempts_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("last_attempt_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(ACTOR_KIND_CHECK, name="ck_quiz_level_progress_actor_kind"),
        sa.CheckConstraint("level >= 1", name="ck_quiz_level_progress_level_positive"),
        sa.CheckConstraint(
            "best_score BETWEEN 0 AND 100",
            name="ck_quiz_level_progress_best_score_range",
        ),
        sa.CheckConstraint(
            "NOT is_passed OR is_unlocked",
            name="ck_quiz_level_progress_passed_implies_unlocked",
        ),
        sa.PrimaryKeyConstraint("actor_kind", "actor_id", "level"),
    )

    op.create_table(
        "analysis_messages",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("actor_kind", sa.String(8), nullable=False),
        sa.Column("actor_id", sa.BigInteger(), nullable=False),
        sa.Column("subscription_id", sa.BigInteger(), nullable=False),
        sa.Column("role", sa.String(16), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column("analysis_type", sa.String(32), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(ACTOR_KIND_CHECK, name="ck_analysis_messages_actor_kind"),
        sa.CheckConstraint("role IN ('user','assistant')", name="ck_analysis_messages_role"),
        sa.CheckConstraint(
            "analysis_type IN ('m15','h4','single','feedback','feedback_with_image')",
            name="ck_analysis_messages_analysis_type",
        ),
        sa.ForeignKeyConstraint(["subscription_id"], ["subscriptions.id"]),
    )
    op.create_index(
        "idx_analysis_messages_actor_time",
        "analysis_messages",
        ["actor_kind", "actor_id", "created_at"],
    )
    op.create_index("idx_analysis_messages_subscription", "analysis_messages", ["subscription_id"])

    op.create_table(
        "feed_posts",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("author_kind", sa.String(8), nullable=False),
        sa.Column("author_id", sa.BigInteger(), nullable=False),
        sa.Column("post_type", sa.String(16), nullable=False),
        sa.Column("symbol", sa.String(32), nullable=True),
        sa.Column("side", sa.String(16), nullable=True),
        sa.Column("entry_price", sa.String(32), nullable=True),
        sa.Column("stop_loss", sa.String(32), nullable=True),
        sa.Column("take_profit_1", sa.String(32), nullable=True),
        sa.Column("take_profit_2", sa.String(32), nullable=True),
        sa.Column("risk_percent", sa.String(16), nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("author_kind IN ('USER','ADMIN')", name="ck_feed_posts_author_kind"),
        sa.CheckConstraint(
            "post_type IN ('alert','recommendation','result')",
            name="ck_feed_posts_post_type",
        ),
    )
    op.create_index("idx_feed_posts_created_at", "feed_posts", ["created_at"])

    op.create_table(
        "feed_reactions",
        sa.Column("post_id", sa.BigInteger(), nullable=False),
        sa.Column("actor_kind", sa.String(8), nullable=False),
        sa.Column("actor_id", sa.BigInteger(), nullable=False),
        sa.Column("reaction", sa.String(16), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(ACTOR_KIND_CHECK, name="ck_feed_reactions_actor_kind"),
        sa.CheckConstraint(
            "reaction IN ('like','love','sad','fire','rocket')",
            name="ck_feed_reactions_reaction",
        ),
        sa.ForeignKeyConstraint(["post_id"], ["feed_posts.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("post_id", "actor_kind", "actor_id"),
    )


def downgrade() -> None:
    op.drop_table("feed_reactions")
    op.drop_index("idx_feed_posts_created_at", table_name="feed_posts")
    op.drop_table("feed_posts")
    op.drop_index("idx_analysis_messages_subscription", table_name="analysis_messages")
    op.drop_index("idx_analysis_messages_actor_time", table_name="analysis_messages")
    op.drop_table("analysis_messages")
    op.drop_table("quiz_level_progress")
    op.drop_index("idx_quiz_answers_attempt", table_name="quiz_answers")
    op.drop_table("quiz_answers")
    op.drop_index("idx_quiz_attempts_completed_at", table_name="quiz_attempts")
    op.drop_index("idx_quiz_attempts_actor_level", table_name="quiz_attempts")
    op.drop_table("quiz_attempts")
    op.drop_table("quiz_options")
    op.drop_index("idx_quiz_questions_quiz_order", table_name="quiz_questions")
    op.drop_table("quiz_questions")
    op.drop_table("quizzes")
    op.drop_index("idx_episode_progress_actor_course", table_name="episode_progress")
    op.drop_table("episode_progress")
    op.drop_index("idx_enrollments_enrolled_at", table_name="enrollments")
    op.drop_index("idx_enrollments_course", table_name="enrollments")
    op.drop_table("enrollments")
    op.drop_index("uq_subscriptions_active_per_actor_feature", table_name="subscriptions")
    op.drop_index("idx_subscriptions_end_date", table_name="subscriptions")
    op.drop_index("idx_subscriptions_actor_feature", table_name="subscriptions")
    op.drop_table("subscriptions")
    op.drop_index("idx_activation_keys_created_at", table_name="activation_keys")
    op.drop_index("idx_activation_keys_bound_email", table_name="activation_keys")
    op.drop_index("idx_activation_keys_course", table_name="activation_keys")
    op.drop_index("idx_activation_keys_kind", table_name="activation_keys")
    op.drop_table("activation_keys")
    op.drop_table("episodes")
    op.drop_table("courses")
    op.drop_table("admins")
    op.drop_index("idx_users_publishers", table_name="users")
    op.drop_index("idx_users_created_at", table_name="users")
    op.drop_table("users")
