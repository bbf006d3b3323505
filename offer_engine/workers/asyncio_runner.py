from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable
from typing import TypeVar

import structlog

from offer_engine.db.session import dispose_engine

T = TypeVar("T")

logger = structlog.get_logger(__name__)


async def _run_job(awaitable: Awaitable[T], *, job_name: str) -> T:
    # Bound inside the coroutine so the tag lives only in this run's context.
    structlog.contextvars.bind_contextvars(worker_job=job_name)
    started = time.monotonic()
    await dispose_engine()
    try:
        result = await awaitable
    except Exception:
        logger.exception(
            "worker_job_failed",
            job=job_name,
            duration_ms=int((time.monotonic() - started) * 1000),
        )
        raise
    finally:
        await dispose_engine()

    logger.debug(
        "worker_job_finished",
        job=job_name,
        duration_ms=int((time.monotonic() - started) * 1000),
    )
    return result


def run_async_job(awaitable: Awaitable[T], *, job_name: str) -> T:
    """Run one Celery task body on a fresh event loop and a fresh DB pool."""
    return asyncio.run(_run_job(awaitable, job_name=job_name))
