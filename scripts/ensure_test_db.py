"""Create (or recreate) the throwaway database used by integration tests."""

from __future__ import annotations

import argparse
import asyncio
import re

import asyncpg
from sqlalchemy.engine import make_url

from app.core.config import get_settings

DB_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _test_database_name(database_url: str) -> str:
    parsed = make_url(database_url)
    if parsed.get_backend_name() != "postgresql":
        raise RuntimeError("DATABASE_URL must point at PostgreSQL.")
    db_name = (parsed.database or "").strip()
    if not db_name or "test" not in db_name.lower():
        raise RuntimeError(f"Refusing to touch '{db_name}': the name must contain 'test'.")
    if DB_NAME_RE.fullmatch(db_name) is None:
        raise RuntimeError(f"Database name '{db_name}' is not a plain identifier.")
    return db_name


async def ensure_test_database(database_url: str, *, recreate: bool = False) -> str:
    db_name = _test_database_name(database_url)
    parsed = make_url(database_url)
    conn = await asyncpg.connect(
        host=parsed.host or "localhost",
        port=int(parsed.port or 5432),
        user=parsed.username,
        password=parsed.password,
        database="postgres",
    )
    try:
        exists = await conn.fetchval("SELECT 1 FROM pg_database WHERE datname = $1", db_name)
        if exists and recreate:
            await conn.execute(f'DROP DATABASE "{db_name}" WITH (FORCE)')
            exists = None
        if exists:
            return "exists"
        await conn.execute(f'CREATE DATABASE "{db_name}"')
        return "recreated" if recreate else "created"
    finally:
        await conn.close()


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--database-url", default=None, help="defaults to DATABASE_URL")
    parser.add_argument("--recreate", action="store_true", help="drop the database first")
    args = parser.parse_args()

    database_url = args.database_url or get_settings().database_url
    outcome = asyncio.run(ensure_test_database(database_url, recreate=args.recreate))
    print(f"ensure_test_db: {outcome} db={_test_database_name(database_url)}")  # noqa: T201
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
