from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.engine import make_url

LOCAL_DB_HOSTS = frozenset({"localhost", "127.0.0.1", "::1", "postgres", "entitlements_postgres"})


@dataclass(frozen=True, slots=True)
class DbTargetVerdict:
    database_name: str
    host: str
    problem: str | None = None

    @property
    def is_safe(self) -> bool:
        return self.problem is None


def _problem_with(*, backend: str, database_name: str, host: str) -> str | None:
    if backend != "postgresql":
        return "only PostgreSQL databases can be used for integration tests"
    if not database_name:
        return "database name is empty"
    if "test" not in database_name.lower():
        return "database name must contain 'test'"
    if host not in LOCAL_DB_HOSTS:
        return f"host '{host}' is not a local test host"
    return None


def assess_integration_db_safety(database_url: str) -> DbTargetVerdict:
    parsed = make_url(database_url)
    database_name = (parsed.database or "").strip()
    host = (parsed.host or "").strip().lower()
    return DbTargetVerdict(
        database_name=database_name,
        host=host,
        problem=_problem_with(
            backend=parsed.get_backend_name(),
            database_name=database_name,
            host=host,
        ),
    )


def assert_safe_integration_db(database_url: str) -> None:
    verdict = assess_integration_db_safety(database_url)
    if verdict.is_safe:
        return
    raise RuntimeError(
        "Refusing to truncate entitlement tables on "
        f"'{verdict.database_name}'@'{verdict.host}': {verdict.problem}. "
        "Point DATABASE_URL at a local database such as 'entitlements_test'."
    )
