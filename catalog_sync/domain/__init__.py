"""
Domain package for catalog-sync.

Exports the read models held in collection snapshots and the writable
projections accepted by create/update operations. Keep this package focused
on data definitions and validation concerns.
"""

from catalog_sync.domain.fields import (
    CatalogItemFields,
    CatalogItemPatch,
    ReportFields,
    ReportPatch,
    VariationFields,
    WritableFields,
    WritablePatch,
)
from catalog_sync.domain.models import BaseRecord, CatalogItem, CatalogItemVariation, Report

__all__ = [
    # Read models
    "BaseRecord",
    "Report",
    "CatalogItem",
    "CatalogItemVariation",
    # Writable projections
    "WritableFields",
    "WritablePatch",
    "ReportFields",
    "ReportPatch",
    "CatalogItemFields",
    "CatalogItemPatch",
    "VariationFields",
]
