from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from offer_engine.db.models.jobs import Job


class JobsRepo:
    @staticmethod
    async def create(session: AsyncSession, *, job_type: str, payload: dict[str, Any]) -> Job:
        job = Job(type=job_type, payload=payload, status="pending", attempts=0)
        session.add(job)
        await session.flush()
        await session.refresh(job)
        return job

    @staticmethod
    async def get_by_id(session: AsyncSession, job_id: UUID) -> Job | None:
        return await session.get(Job, job_id)

    @staticmethod
    async def list_jobs(
        session: AsyncSession,
        *,
        job_type: str | None = None,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Job]:
        stmt = select(Job).order_by(Job.created_at.desc(), Job.id.desc()).limit(limit).offset(offset)
        if job_type is not None:
            stmt = stmt.where(Job.type == job_type)
        if status is not None:
            stmt = stmt.where(Job.status == status)
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def claim_next_pending(session: AsyncSession, *, now_utc: datetime) -> Job | None:
        candidate = (
            select(Job.id)
            .where(Job.status == "pending")
            .order_by(Job.created_at.asc(), Job.id.asc())
            .limit(1)
            .with_for_update(skip_locked=True)
            .scalar_subquery()
        )
        stmt = (
            update(Job)
            .where(Job.id == candidate, Job.status == "pending")
            .values(status="running", attempts=Job.attempts + 1, updated_at=now_utc)
            .returning(Job)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def record_progress(
        session: AsyncSession,
        *,
        job_id: UUID,
        result: dict[str, Any],
        now_utc: datetime,
    ) -> int:
        stmt = (
            update(Job)
            .where(Job.id == job_id, Job.status == "running")
            .values(result=result, updated_at=now_utc)
        )
        outcome = await session.execute(stmt)
        return int(getattr(outcome, "rowcount", 0) or 0)

    @staticmethod
    async def mark_completed(
        session: AsyncSession,
        *,
        job_id: UUID,
        result: dict[str, Any],
        now_utc: datetime,
    ) -> int:
        stmt = (
            update(Job)
            .where(Job.id == job_id)
            .values(status="completed", result=result, updated_at=now_utc)
        )
        outcome = await session.execute(stmt)
        return int(getattr(outcome, "rowcount", 0) or 0)

    @staticmethod
    async def mark_failed(
        session: AsyncSession,
        *,
        job_id: UUID,
        result: dict[str, Any],
        now_utc: datetime,
    ) -> int:
        stmt = (
            update(Job)
            .where(Job.id == job_id)
            .values(status="failed", result=result, updated_at=now_utc)
        )
        outcome = await session.execute(stmt)
        return int(getattr(outcome, "rowcount", 0) or 0)
