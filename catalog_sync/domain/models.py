"""
Domain models for catalog-sync.

Read models for the three tables in `db/init.sql`. Instances are what the
synchronized collections hold in their snapshots; they are validated from the
rows returned by the remote store and are immutable on the client side.
"""
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Tuple
from uuid import UUID

from pydantic import BaseModel, Field


class BaseRecord(BaseModel):
    """
    Fields every table row carries. All of them are assigned by the server.
    """

    id: UUID = Field(..., description="Primary key (uuid, server default).")
    created_at: datetime = Field(..., description="Row creation timestamp.")
    updated_at: datetime = Field(..., description="Row update timestamp (trigger-maintained).")

    model_config = {
        "frozen": True,
        "populate_by_name": True,
        "extra": "ignore",
    }


class Report(BaseRecord):
    """
    A lab certificate of analysis, one row of the `reports` table.
    """

    product_name: str = Field(..., description="Name of the tested product.")
    batch_number: Optional[str] = Field(None, description="Manufacturer batch number.")
    quantity_mg: Optional[Decimal] = Field(None, description="Tested quantity in milligrams.")
    purity_percentage: Decimal = Field(..., description="Measured purity.")
    verification_key: Optional[str] = Field(None, description="Lab verification key.")
    verification_url: Optional[str] = Field(None, description="Lab verification page.")
    report_image_url: str = Field(..., description="Scan of the certificate.")
    lab_name: str = Field("Janoshik", description="Testing laboratory.")
    test_date: Optional[date] = Field(None, description="Date the sample was tested.")
    featured: bool = Field(False, description="Pinned to the top of listings.")
    sort_order: int = Field(0, description="Explicit rank among equally featured reports.")
    active: bool = Field(True, description="Visible on the public page.")


class CatalogItemVariation(BaseRecord):
    """
    A purchasable size of a catalog item, one row of `catalog_item_variations`.
    """

    catalog_item_id: UUID = Field(..., description="Owning catalog item.")
    quantity_mg: Decimal = Field(..., description="Size of this variation; child ordering key.")
    price: Decimal = Field(..., description="Unit price.")
    sku: Optional[str] = Field(None, description="Stock keeping unit.")
    in_stock: bool = Field(True, description="Whether the variation can be ordered.")


class CatalogItem(BaseRecord):
    """
    A product listing, one row of `catalog_items`, with its variations attached.
    """

    name: str = Field(..., description="Display name.")
    description: Optional[str] = Field(None, description="Long description.")
    category: Optional[str] = Field(None, description="Listing category.")
    price: Optional[Decimal] = Field(None, description="Base price, if not priced per variation.")
    image_url: str = Field(..., description="Product image.")
    featured: bool = Field(False, description="Pinned to the top of listings.")
    active: bool = Field(True, description="Visible on the public page.")
    in_stock: bool = Field(True, description="Whether the item can be ordered.")
    variations: Tuple[CatalogItemVariation, ...] = Field(
        (), description="Variations ordered by quantity_mg ascending."
    )


__all__ = ["BaseRecord", "Report", "CatalogItem", "CatalogItemVariation"]
