"""Product references for offer products and redemptions.

A row points at either an operator product or a supplier product mapping,
never both and never neither. In code that is a two-variant union so a
malformed reference cannot be constructed; the tables carry a matching CHECK.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

from offer_engine.economy.offers.errors import ProductRefIntegrityError


@dataclass(frozen=True, slots=True)
class OperatorProductRef:
    operator_product_id: UUID


@dataclass(frozen=True, slots=True)
class SupplierMappingRef:
    supplier_product_mapping_id: UUID


ProductRef = OperatorProductRef | SupplierMappingRef


class _ProductRefColumns(Protocol):
    operator_product_id: UUID | None
    supplier_product_mapping_id: UUID | None


def product_ref_from_columns(
    *,
    operator_product_id: UUID | None,
    supplier_product_mapping_id: UUID | None,
) -> ProductRef:
    if operator_product_id is not None and supplier_product_mapping_id is not None:
        raise ProductRefIntegrityError(
            "cannot provide both operator_product_id and supplier_product_mapping_id"
        )
    if operator_product_id is not None:
        return OperatorProductRef(operator_product_id=operator_product_id)
    if supplier_product_mapping_id is not None:
        return SupplierMappingRef(supplier_product_mapping_id=supplier_product_mapping_id)
    raise ProductRefIntegrityError(
        "either operator_product_id or supplier_product_mapping_id is required"
    )


def product_ref_from_row(row: _ProductRefColumns) -> ProductRef:
    return product_ref_from_columns(
        operator_product_id=row.operator_product_id,
        supplier_product_mapping_id=row.supplier_product_mapping_id,
    )


def product_ref_columns(ref: ProductRef) -> dict[str, UUID | None]:
    if isinstance(ref, OperatorProductRef):
        return {"operator_product_id": ref.operator_product_id, "supplier_product_mapping_id": None}
    if isinstance(ref, SupplierMappingRef):
        return {
            "operator_product_id": None,
            "supplier_product_mapping_id": ref.supplier_product_mapping_id,
        }
    raise ProductRefIntegrityError(f"unsupported product reference: {ref!r}")
