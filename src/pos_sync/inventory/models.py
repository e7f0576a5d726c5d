"""Inventory record types."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class StockMergePolicy(str, Enum):
    """How stock levels for one variant combine across stores.

    The stock map is keyed by variant id only. LAST keeps whatever the last
    store fetched reported, which is right for single-store deployments.
    """

    LAST = "last"
    FIRST = "first"
    SUM = "sum"


@dataclass(frozen=True)
class InventoryRecord:
    """One row per (item, variant, store price entry).

    Attributes:
        sku: Variant SKU, or the item handle when the variant has none.
        item_name: Item display name.
        variant_name: First option value of the variant, if any.
        category_name: Resolved category name.
        stock: On-hand quantity (0 when not listed in stock levels).
        cost: Unit cost.
        price: Store price, falling back to the variant default price.
        total_cost: stock * cost.
        total_price: stock * price.
        in_stock: Whether the store lists the variant as available for sale.
        barcode: Variant barcode.
        reference: Reference variant id.
        track_stock: Whether the item tracks stock.
        last_updated: Item's last update timestamp (ISO string).
        supplier: Supplier name, the raw id when unknown, or None.
    """

    sku: str
    item_name: str
    variant_name: str | None
    category_name: str
    stock: float
    cost: float
    price: float
    total_cost: float
    total_price: float
    in_stock: bool
    barcode: str | None
    reference: str | None
    track_stock: bool
    last_updated: str
    supplier: str | None
