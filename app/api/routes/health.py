from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from redis.asyncio import Redis
from sqlalchemy import text

from app.core.config import get_settings
from app.db.session import SessionLocal
from app.workers.celery_app import celery_app

router = APIRouter(tags=["health"])

REQUIRED_TABLES = ("activation_keys", "subscriptions", "enrollments", "quiz_level_progress")

Check = Callable[[], Awaitable[dict[str, Any]]]


def _ok(extra: dict[str, Any] | None = None) -> dict[str, Any]:
    return {"status": "ok", **(extra or {})}


def _failed(error: str) -> dict[str, str]:
    return {"status": "failed", "error": error}


async def _check_database() -> dict[str, Any]:
    try:
        async with SessionLocal() as session:
            missing = []
            for table_name in REQUIRED_TABLES:
                result = await session.execute(
                    text("SELECT to_regclass(:table_name)"),
                    {"table_name": table_name},
                )
                if result.scalar_one_or_none() is None:
                    missing.append(table_name)
        if missing:
            return _failed(f"missing tables: {', '.join(missing)}")
        return _ok()
    except Exception as exc:
        return _failed(str(exc))


async def _check_redis() -> dict[str, Any]:
    redis_client: Redis | None = None
    try:
        redis_client = Redis.from_url(get_settings().redis_url)
        if await redis_client.ping() is not True:
            return _failed("unexpected redis ping response")
        return _ok()
    except Exception as exc:
        return _failed(str(exc))
    finally:
        if redis_client is not None:
            await redis_client.aclose()


def _ping_celery_workers() -> dict[str, Any]:
    try:
        inspector = celery_app.control.inspect(timeout=1.0)
        replies = (inspector.ping() if inspector is not None else None) or {}
        if not replies:
            return _failed("no celery workers responded to ping")
        return _ok({"workers": len(replies)})
    except Exception as exc:
        return _failed(str(exc))


async def _check_celery() -> dict[str, Any]:
    return await asyncio.to_thread(_ping_celery_workers)


LIVENESS_CHECKS: dict[str, Check] = {"database": _check_database}
READINESS_CHECKS: dict[str, Check] = {
    "database": _check_database,
    "redis": _check_redis,
    "celery": _check_celery,
}


async def _run_checks(checks: dict[str, Check]) -> tuple[bool, dict[str, dict[str, Any]]]:
    results = await asyncio.gather(*(check() for check in checks.values()))
    by_name = dict(zip(checks.keys(), results))
    return all(item.get("status") == "ok" for item in results), by_name


@router.get("/health")
async def health() -> JSONResponse:
    healthy, checks = await _run_checks(LIVENESS_CHECKS)
    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "ok" if healthy else "degraded", "checks": checks},
    )


@router.get("/ready")
async def ready() -> JSONResponse:
    is_ready, checks = await _run_checks(READINESS_CHECKS)
    return JSONResponse(
        status_code=status.HTTP_200_OK if is_ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "ready" if is_ready else "not_ready", "checks": checks},
    )
