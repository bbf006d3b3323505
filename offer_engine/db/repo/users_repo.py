from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from offer_engine.db.models.users import User


class UsersRepo:
    @staticmethod
    async def get_by_id(session: AsyncSession, user_id: UUID) -> User | None:
        return await session.get(User, user_id)

    @staticmethod
    async def list_ids_after(
        session: AsyncSession,
        *,
        after_user_id: UUID | None,
        limit: int,
    ) -> list[UUID]:
        stmt = select(User.id).order_by(User.id.asc()).limit(limit)
        if after_user_id is not None:
            stmt = stmt.where(User.id > after_user_id)
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def list_most_recent(session: AsyncSession, *, limit: int) -> list[User]:
        stmt = select(User).order_by(User.created_at.desc(), User.id.desc()).limit(limit)
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def create(
        session: AsyncSession,
        *,
        email: str,
        full_name: str | None = None,
        role: str = "user",
    ) -> User:
        user = User(email=email, full_name=full_name, role=role)
        session.add(user)
        await session.flush()
        await session.refresh(user)
        return user
