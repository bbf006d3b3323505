from __future__ import annotations

from types import SimpleNamespace
from uuid import uuid4

import pytest

from offer_engine.economy.offers.errors import ProductRefIntegrityError
from offer_engine.economy.offers.product_refs import (
    OperatorProductRef,
    SupplierMappingRef,
    product_ref_columns,
    product_ref_from_columns,
    product_ref_from_row,
)


def test_operator_product_reference_from_columns() -> None:
    operator_product_id = uuid4()

    ref = product_ref_from_columns(operator_product_id=operator_product_id, supplier_product_mapping_id=None)

    assert ref == OperatorProductRef(operator_product_id=operator_product_id)
    assert product_ref_columns(ref) == {
        "operator_product_id": operator_product_id,
        "supplier_product_mapping_id": None,
    }


def test_supplier_mapping_reference_from_row() -> None:
    mapping_id = uuid4()

    ref = product_ref_from_row(
        SimpleNamespace(operator_product_id=None, supplier_product_mapping_id=mapping_id)
    )

    assert ref == SupplierMappingRef(supplier_product_mapping_id=mapping_id)
    assert product_ref_columns(ref)["supplier_product_mapping_id"] == mapping_id


@pytest.mark.parametrize("both", [True, False])
def test_reference_requires_exactly_one_column(both: bool) -> None:
    with pytest.raises(ProductRefIntegrityError):
        product_ref_from_columns(
            operator_product_id=uuid4() if both else None,
            supplier_product_mapping_id=uuid4() if both else None,
        )
