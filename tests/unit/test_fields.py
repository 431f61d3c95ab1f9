from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from pydantic import ValidationError

from catalog_sync.domain.fields import (
    CatalogItemFields,
    CatalogItemPatch,
    ReportFields,
    ReportPatch,
    VariationFields,
)

IMAGE = "https://images.example.com/coa.jpg"


def test_report_blank_optionals_become_null() -> None:
    fields = ReportFields(
        product_name="BPC-157",
        purity_percentage=Decimal("99.2"),
        report_image_url=IMAGE,
        batch_number="  ",
        verification_key="",
        verification_url="",
        test_date="",
        quantity_mg="",
    )

    payload = fields.payload()
    assert payload["batch_number"] is None
    assert payload["verification_key"] is None
    assert payload["verification_url"] is None
    assert payload["test_date"] is None
    assert payload["quantity_mg"] is None


def test_report_zero_quantity_means_untested_by_weight() -> None:
    fields = ReportFields(
        product_name="TB-500", purity_percentage="98", report_image_url=IMAGE, quantity_mg=0
    )
    assert fields.quantity_mg is None


def test_report_payload_has_no_server_owned_fields() -> None:
    payload = ReportFields(
        product_name="GHK-Cu",
        purity_percentage=Decimal("99.5"),
        report_image_url=IMAGE,
        test_date=date(2024, 3, 1),
    ).payload()

    assert {"id", "created_at", "updated_at"}.isdisjoint(payload)
    assert payload["lab_name"] == "Janoshik"
    assert payload["featured"] is False
    assert payload["active"] is True


def test_server_owned_fields_are_rejected() -> None:
    with pytest.raises(ValidationError):
        ReportFields(
            id=uuid4(), product_name="x", purity_percentage=Decimal("1"), report_image_url=IMAGE
        )
    with pytest.raises(ValidationError):
        CatalogItemPatch(created_at="2024-01-01T00:00:00Z")


@pytest.mark.parametrize("purity", [Decimal("0"), Decimal("-1")])
def test_report_purity_must_be_positive(purity: Decimal) -> None:
    with pytest.raises(ValidationError):
        ReportFields(product_name="x", purity_percentage=purity, report_image_url=IMAGE)


def test_report_patch_sends_only_set_fields() -> None:
    assert ReportPatch().payload() == {}
    assert ReportPatch(featured=True, sort_order=3).payload() == {"featured": True, "sort_order": 3}
    # explicitly clearing an optional column is still sent
    assert ReportPatch(batch_number="").payload() == {"batch_number": None}


def test_report_patch_cannot_clear_required_columns() -> None:
    with pytest.raises(ValidationError):
        ReportPatch(product_name="   ")
    with pytest.raises(ValidationError, match="cannot be cleared"):
        ReportPatch(purity_percentage=None)
    with pytest.raises(ValidationError):
        ReportPatch(lab_name="")


def test_catalog_item_fields() -> None:
    fields = CatalogItemFields(name="Semaglutide", image_url=IMAGE, description=" ", category="")
    assert fields.description is None
    assert fields.category is None

    with pytest.raises(ValidationError):
        CatalogItemFields(name="", image_url=IMAGE)
    with pytest.raises(ValidationError):
        CatalogItemFields(name="x", image_url=IMAGE, price=Decimal("-0.01"))

    assert CatalogItemPatch(price=Decimal("12.50")).payload() == {"price": Decimal("12.50")}


def test_variation_fields() -> None:
    item_id = uuid4()
    fields = VariationFields(catalog_item_id=item_id, quantity_mg="5", price="0", sku="")
    assert fields.payload() == {
        "catalog_item_id": item_id,
        "quantity_mg": Decimal("5"),
        "price": Decimal("0"),
        "sku": None,
        "in_stock": True,
    }

    with pytest.raises(ValidationError):
        VariationFields(catalog_item_id=item_id, quantity_mg="0", price="1")
