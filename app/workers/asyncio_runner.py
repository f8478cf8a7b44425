from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog

from app.db.session import dispose_engine

T = TypeVar("T")


async def _with_task_scope(job: Callable[[], Awaitable[T]], *, task_name: str) -> T:
    # Each asyncio.run gets a new loop; pooled asyncpg connections from the last one are unusable.
    await dispose_engine()
    with structlog.contextvars.bound_contextvars(task=task_name):
        try:
            return await job()
        finally:
            await dispose_engine()


def run_async_job(job: Callable[[], Awaitable[T]], *, task_name: str) -> T:
    """Run an async task body from a sync Celery task with a clean DB pool."""
    return asyncio.run(_with_task_scope(job, task_name=task_name))
