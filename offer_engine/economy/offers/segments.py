from __future__ import annotations

from collections.abc import AsyncIterator
from datetime import datetime, timezone
from uuid import UUID

import structlog

from offer_engine.db.repo.offer_segments_repo import OfferSegmentsRepo
from offer_engine.db.repo.offers_repo import OffersRepo
from offer_engine.db.repo.users_repo import UsersRepo
from offer_engine.db.session import SessionLocal
from offer_engine.economy.offers.constants import (
    DEFAULT_PREVIEW_LIMIT,
    DEFAULT_SEGMENT_CHUNK_SIZE,
    DEFAULT_SEGMENT_PAGE_LIMIT,
)
from offer_engine.economy.offers.eligibility import evaluate_policy, load_eligibility_policy
from offer_engine.economy.offers.errors import OfferNotFoundError
from offer_engine.economy.offers.rules import validate_rule_params
from offer_engine.economy.offers.types import (
    EligibilityPreviewRow,
    SegmentComputeResult,
    SegmentMemberView,
    SegmentPage,
)

logger = structlog.get_logger(__name__)


class OfferSegmentService:
    """Materialized set of users currently eligible for an offer.

    The set is a browsing cache rebuilt from scratch on every run. Each chunk
    of users is evaluated and written in its own short transaction, so a run
    over the whole user base never holds locks across chunks.
    """

    @staticmethod
    async def compute_segment(
        offer_id: UUID,
        *,
        chunk_size: int = DEFAULT_SEGMENT_CHUNK_SIZE,
        now_utc: datetime | None = None,
    ) -> SegmentComputeResult:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        evaluated_at = now_utc or datetime.now(timezone.utc)

        async with SessionLocal.begin() as session:
            offer = await OffersRepo.get_by_id(session, offer_id)
            if offer is None:
                raise OfferNotFoundError
            policy = await load_eligibility_policy(session, offer_id=offer_id)

        # A broken stored rule must fail before the old segment is cleared.
        for rule in policy.rules:
            validate_rule_params(rule.rule_type, rule.params)

        async with SessionLocal.begin() as session:
            cleared = await OfferSegmentsRepo.clear(session, offer_id)

        examined = 0
        eligible = 0
        chunks = 0
        cursor: UUID | None = None
        while True:
            async with SessionLocal.begin() as session:
                user_ids = await UsersRepo.list_ids_after(
                    session,
                    after_user_id=cursor,
                    limit=chunk_size,
                )
                if not user_ids:
                    break

                passing: list[UUID] = []
                for user_id in user_ids:
                    if await evaluate_policy(session, policy, user_id=user_id, now_utc=evaluated_at):
                        passing.append(user_id)
                await OfferSegmentsRepo.add_members(session, offer_id=offer_id, user_ids=passing)

            chunks += 1
            examined += len(user_ids)
            eligible += len(passing)
            cursor = user_ids[-1]

        logger.info(
            "offer_segment_computed",
            offer_id=str(offer_id),
            cleared=cleared,
            examined=examined,
            eligible=eligible,
            chunks=chunks,
        )
        return SegmentComputeResult(
            offer_id=offer_id,
            examined=examined,
            eligible=eligible,
            chunks=chunks,
        )

    @staticmethod
    async def preview_eligibility(
        offer_id: UUID,
        *,
        limit: int = DEFAULT_PREVIEW_LIMIT,
        now_utc: datetime | None = None,
    ) -> list[EligibilityPreviewRow]:
        evaluated_at = now_utc or datetime.now(timezone.utc)
        async with SessionLocal() as session:
            offer = await OffersRepo.get_by_id(session, offer_id)
            if offer is None:
                raise OfferNotFoundError
            policy = await load_eligibility_policy(session, offer_id=offer_id)
            users = await UsersRepo.list_most_recent(session, limit=limit)

            rows: list[EligibilityPreviewRow] = []
            for user in users:
                rows.append(
                    EligibilityPreviewRow(
                        user_id=user.id,
                        email=user.email,
                        eligible=await evaluate_policy(
                            session,
                            policy,
                            user_id=user.id,
                            now_utc=evaluated_at,
                        ),
                    )
                )
        return rows

    @staticmethod
    async def get_segment_members(
        offer_id: UUID,
        *,
        page: int = 1,
        limit: int = DEFAULT_SEGMENT_PAGE_LIMIT,
    ) -> SegmentPage:
        page = max(1, page)
        limit = max(1, limit)
        async with SessionLocal() as session:
            rows = await OfferSegmentsRepo.list_members_page(
                session,
                offer_id=offer_id,
                limit=limit,
                offset=(page - 1) * limit,
            )
            total = await OfferSegmentsRepo.count_members(session, offer_id)

        return SegmentPage(
            members=[
                SegmentMemberView(user_id=user_id, email=email, full_name=full_name)
                for user_id, email, full_name in rows
            ],
            total=total,
            page=page,
            limit=limit,
        )

    @staticmethod
    async def iter_segment_member_ids(
        offer_id: UUID,
        *,
        chunk_size: int = DEFAULT_SEGMENT_CHUNK_SIZE,
    ) -> AsyncIterator[list[UUID]]:
        cursor: UUID | None = None
        while True:
            async with SessionLocal() as session:
                chunk = await OfferSegmentsRepo.list_member_ids_after(
                    session,
                    offer_id=offer_id,
                    after_user_id=cursor,
                    limit=chunk_size,
                )
            if not chunk:
                return
            yield chunk
            cursor = chunk[-1]

    @staticmethod
    async def get_all_segment_member_ids(
        offer_id: UUID,
        *,
        chunk_size: int = DEFAULT_SEGMENT_CHUNK_SIZE,
    ) -> list[UUID]:
        member_ids: list[UUID] = []
        async for chunk in OfferSegmentService.iter_segment_member_ids(
            offer_id,
            chunk_size=chunk_size,
        ):
            member_ids.extend(chunk)
        return member_ids
