from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from offer_engine.db.models.catalog import SupplierProductMapping


class CatalogRepo:
    @staticmethod
    async def get_supplier_id_for_mapping(
        session: AsyncSession,
        supplier_product_mapping_id: UUID,
    ) -> UUID | None:
        stmt = select(SupplierProductMapping.supplier_id).where(
            SupplierProductMapping.id == supplier_product_mapping_id
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()
