from __future__ import annotations

import pytest
from sqlalchemy import text

from app.core.integration_db_safety import assert_safe_integration_db
from app.db.session import engine

# Children first; CASCADE covers anything a later migration hangs off these.
TRUNCATE_TABLES = (
    "feed_reactions",
    "feed_posts",
    "analysis_messages",
    "quiz_answers",
    "quiz_attempts",
    "quiz_level_progress",
    "quiz_options",
    "quiz_questions",
    "quizzes",
    "episode_progress",
    "enrollments",
    "subscriptions",
    "activation_keys",
    "episodes",
    "courses",
    "admins",
    "users",
)

TRUNCATE_SQL = f"TRUNCATE TABLE {', '.join(TRUNCATE_TABLES)} RESTART IDENTITY CASCADE"


@pytest.fixture(scope="session", autouse=True)
def guard_integration_db_target() -> None:
    assert_safe_integration_db(str(engine.url))


@pytest.fixture(autouse=True)
async def clean_entitlement_tables() -> None:
    # asyncpg connections are bound to the loop that opened them.
    await engine.dispose()

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT to_regclass('activation_keys')"))
    except Exception as exc:  # pragma: no cover - environment-dependent
        pytest.skip(f"Postgres with the entitlements schema is required: {exc}")

    async with engine.begin() as conn:
        await conn.execute(text(TRUNCATE_SQL))

    yield

    await engine.dispose()
