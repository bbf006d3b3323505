from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

import structlog

from offer_engine.core.config import get_settings
from offer_engine.db.repo.jobs_repo import JobsRepo
from offer_engine.db.session import SessionLocal
from offer_engine.economy.offers.bulk import OfferBulkRedemptionService
from offer_engine.economy.offers.constants import (
    JOB_STATUS_COMPLETED,
    JOB_STATUS_FAILED,
    JOB_TYPE_OFFER_REDEMPTION,
)
from offer_engine.economy.offers.segments import OfferSegmentService
from offer_engine.workers.asyncio_runner import run_async_job
from offer_engine.workers.celery_app import celery_app

logger = structlog.get_logger(__name__)

UNKNOWN_JOB_TYPE_ERROR = "unknown job type"

JobDriver = Callable[[UUID, Mapping[str, Any]], Awaitable[dict[str, Any]]]

JOB_DRIVERS: dict[str, JobDriver] = {
    JOB_TYPE_OFFER_REDEMPTION: OfferBulkRedemptionService.run_offer_redemption_job,
}


async def _finish_job(*, job_id: UUID, status: str, result: dict[str, Any]) -> None:
    now_utc = datetime.now(timezone.utc)
    async with SessionLocal.begin() as session:
        if status == JOB_STATUS_COMPLETED:
            await JobsRepo.mark_completed(session, job_id=job_id, result=result, now_utc=now_utc)
        else:
            await JobsRepo.mark_failed(session, job_id=job_id, result=result, now_utc=now_utc)


async def process_one_job() -> dict[str, str] | None:
    async with SessionLocal.begin() as session:
        job = await JobsRepo.claim_next_pending(session, now_utc=datetime.now(timezone.utc))
        if job is None:
            return None
        job_id = job.id
        job_type = job.type
        payload = dict(job.payload or {})
        attempts = job.attempts

    logger.info("offer_job_claimed", job_id=str(job_id), job_type=job_type, attempts=attempts)

    driver = JOB_DRIVERS.get(job_type)
    if driver is None:
        await _finish_job(
            job_id=job_id,
            status=JOB_STATUS_FAILED,
            result={"error": UNKNOWN_JOB_TYPE_ERROR},
        )
        logger.warning("offer_job_unknown_type", job_id=str(job_id), job_type=job_type)
        return {"job_id": str(job_id), "status": JOB_STATUS_FAILED}

    try:
        result = await driver(job_id, payload)
    except Exception as exc:
        await _finish_job(job_id=job_id, status=JOB_STATUS_FAILED, result={"error": str(exc)})
        logger.exception("offer_job_failed", job_id=str(job_id), job_type=job_type)
        return {"job_id": str(job_id), "status": JOB_STATUS_FAILED}

    await _finish_job(job_id=job_id, status=JOB_STATUS_COMPLETED, result=result)
    logger.info("offer_job_completed", job_id=str(job_id), job_type=job_type)
    return {"job_id": str(job_id), "status": JOB_STATUS_COMPLETED}


async def run_offer_jobs_async(*, max_jobs: int | None = None) -> dict[str, int]:
    limit = max_jobs if max_jobs is not None else get_settings().offers_jobs_per_run
    completed = 0
    failed = 0
    while completed + failed < limit:
        outcome = await process_one_job()
        if outcome is None:
            break
        if outcome["status"] == JOB_STATUS_COMPLETED:
            completed += 1
        else:
            failed += 1

    result = {"processed": completed + failed, "completed": completed, "failed": failed}
    if result["processed"] > 0:
        logger.info("offer_jobs_run_finished", **result)
    return result


async def compute_offer_segment_async(offer_id: str) -> dict[str, Any]:
    summary = await OfferSegmentService.compute_segment(
        UUID(offer_id),
        chunk_size=get_settings().offers_segment_chunk_size,
    )
    return {
        "offer_id": str(summary.offer_id),
        "examined": summary.examined,
        "eligible": summary.eligible,
        "chunks": summary.chunks,
    }


@celery_app.task(name="offer_engine.workers.tasks.offers_jobs.run_offer_jobs")
def run_offer_jobs() -> dict[str, int]:
    return run_async_job(run_offer_jobs_async(), job_name="run_offer_jobs")


@celery_app.task(name="offer_engine.workers.tasks.offers_jobs.compute_offer_segment")
def compute_offer_segment(offer_id: str) -> dict[str, Any]:
    return run_async_job(compute_offer_segment_async(offer_id), job_name="compute_offer_segment")


celery_app.conf.beat_schedule = celery_app.conf.beat_schedule or {}
celery_app.conf.beat_schedule.update(
    {
        "offer-jobs-every-5-seconds": {
            "task": "offer_engine.workers.tasks.offers_jobs.run_offer_jobs",
            "schedule": 5.0,
            "options": {"queue": "q_normal"},
        },
    }
)
