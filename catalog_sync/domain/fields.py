"""
Writable field projections for each record variant.

Create projections carry the full writable field set, patch projections carry
only what the caller explicitly set. Server-owned fields (`id`, `created_at`,
`updated_at`) do not exist on any projection and extra keys are forbidden, so
they can never reach a write payload.

Business-rule validation happens when a projection is constructed, which is
always before any remote call is issued.
"""
from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _require_text(value: Optional[str]) -> str:
    if value is None or not value.strip():
        raise ValueError("must not be empty")
    return value


class WritableFields(BaseModel):
    """Base class for create projections."""

    model_config = {
        "extra": "forbid",
        "frozen": True,
    }

    def payload(self) -> Dict[str, Any]:
        """Column/value mapping to send with an insert."""
        return self.model_dump()


class WritablePatch(WritableFields):
    """Base class for patch projections: only explicitly set fields are sent."""

    def payload(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class ReportFields(WritableFields):
    product_name: str
    batch_number: Optional[str] = None
    quantity_mg: Optional[Decimal] = Field(None, gt=0)
    purity_percentage: Decimal = Field(..., gt=0)
    verification_key: Optional[str] = None
    verification_url: Optional[str] = None
    report_image_url: str
    lab_name: str = "Janoshik"
    test_date: Optional[date] = None
    featured: bool = False
    sort_order: int = 0
    active: bool = True

    @field_validator("product_name", "report_image_url")
    @classmethod
    def _non_empty(cls, value: Optional[str]) -> str:
        return _require_text(value)

    @field_validator(
        "batch_number", "verification_key", "verification_url", "test_date", mode="before"
    )
    @classmethod
    def _optional_blank(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("quantity_mg", mode="before")
    @classmethod
    def _unset_quantity(cls, value: Any) -> Any:
        # An empty or zero quantity input means "not tested by weight".
        if value in ("", 0):
            return None
        return value


class ReportPatch(WritablePatch):
    product_name: Optional[str] = None
    batch_number: Optional[str] = None
    quantity_mg: Optional[Decimal] = Field(None, gt=0)
    purity_percentage: Optional[Decimal] = Field(None, gt=0)
    verification_key: Optional[str] = None
    verification_url: Optional[str] = None
    report_image_url: Optional[str] = None
    lab_name: Optional[str] = None
    test_date: Optional[date] = None
    featured: Optional[bool] = None
    sort_order: Optional[int] = None
    active: Optional[bool] = None

    @field_validator("product_name", "report_image_url", "lab_name")
    @classmethod
    def _non_empty(cls, value: Optional[str]) -> str:
        return _require_text(value)

    @field_validator("purity_percentage")
    @classmethod
    def _purity_present(cls, value: Optional[Decimal]) -> Decimal:
        if value is None:
            raise ValueError("purity_percentage cannot be cleared")
        return value

    @field_validator(
        "batch_number", "verification_key", "verification_url", "test_date", mode="before"
    )
    @classmethod
    def _optional_blank(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("quantity_mg", mode="before")
    @classmethod
    def _unset_quantity(cls, value: Any) -> Any:
        if value in ("", 0):
            return None
        return value


class CatalogItemFields(WritableFields):
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0)
    image_url: str
    featured: bool = False
    active: bool = True
    in_stock: bool = True

    @field_validator("name", "image_url")
    @classmethod
    def _non_empty(cls, value: Optional[str]) -> str:
        return _require_text(value)

    @field_validator("description", "category", mode="before")
    @classmethod
    def _optional_blank(cls, value: Any) -> Any:
        return _blank_to_none(value)


class CatalogItemPatch(WritablePatch):
    name: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0)
    image_url: Optional[str] = None
    featured: Optional[bool] = None
    active: Optional[bool] = None
    in_stock: Optional[bool] = None

    @field_validator("name", "image_url")
    @classmethod
    def _non_empty(cls, value: Optional[str]) -> str:
        return _require_text(value)

    @field_validator("description", "category", mode="before")
    @classmethod
    def _optional_blank(cls, value: Any) -> Any:
        return _blank_to_none(value)


class VariationFields(WritableFields):
    catalog_item_id: UUID
    quantity_mg: Decimal = Field(..., gt=0)
    price: Decimal = Field(..., ge=0)
    sku: Optional[str] = None
    in_stock: bool = True

    @field_validator("sku", mode="before")
    @classmethod
    def _optional_blank(cls, value: Any) -> Any:
        return _blank_to_none(value)


__all__ = [
    "WritableFields",
    "WritablePatch",
    "ReportFields",
    "ReportPatch",
    "CatalogItemFields",
    "CatalogItemPatch",
    "VariationFields",
]
