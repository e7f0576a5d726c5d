"""Join items, variants and stock levels into inventory records.

All functions here are pure: the lookup maps are passed in fully built.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

import pandas as pd

from pos_sync.inventory.models import InventoryRecord, StockMergePolicy
from pos_sync.reference import resolve_category
from pos_sync.sales.transform import EMPTY, format_local_timestamp

logger = logging.getLogger(__name__)

INVENTORY_COLUMNS = [
    "SKU",
    "Item",
    "Variant",
    "Category",
    "Stock",
    "Cost",
    "Price",
    "Total Cost",
    "Total Price",
    "Available",
    "Barcode",
    "Reference",
    "Track Stock",
    "Last Updated",
    "Supplier",
]

INVENTORY_NUMERIC_COLUMNS = ["Stock", "Cost", "Price", "Total Cost", "Total Price"]


def merge_stock_levels(
    stocks: dict[str, float],
    levels: Iterable[Mapping[str, Any]],
    policy: StockMergePolicy = StockMergePolicy.LAST,
) -> dict[str, float]:
    """Fold one page of inventory levels into the variant -> stock map.

    Mutates and returns ``stocks``.
    """
    for level in levels:
        variant_id = level.get("variant_id")
        if not variant_id:
            continue
        qty = float(level.get("in_stock") or 0)
        if policy is StockMergePolicy.SUM:
            stocks[variant_id] = stocks.get(variant_id, 0.0) + qty
        elif policy is StockMergePolicy.FIRST:
            stocks.setdefault(variant_id, qty)
        else:
            stocks[variant_id] = qty
    return stocks


def _supplier_name(supplier_id: str | None, suppliers: Mapping[str, str]) -> str | None:
    if not supplier_id:
        return None
    return suppliers.get(supplier_id) or supplier_id


def build_variant_record(
    item: Mapping[str, Any],
    variant: Mapping[str, Any],
    *,
    categories: Mapping[str, str],
    stocks: Mapping[str, float],
    suppliers: Mapping[str, str],
) -> InventoryRecord | None:
    """Build the record for one variant, or None when it has no store entry."""
    stores = variant.get("stores") or []
    if not stores:
        return None
    store = stores[0]

    stock = stocks.get(variant.get("variant_id") or "", 0.0)
    cost = float(variant.get("cost") or 0)
    price = float(store.get("price") or variant.get("default_price") or 0)

    return InventoryRecord(
        sku=variant.get("sku") or item.get("handle") or "",
        item_name=item.get("item_name") or "",
        variant_name=variant.get("option1_value") or None,
        category_name=resolve_category(item.get("category_id"), categories),
        stock=stock,
        cost=cost,
        price=price,
        total_cost=stock * cost,
        total_price=stock * price,
        in_stock=bool(store.get("available_for_sale")),
        barcode=variant.get("barcode") or None,
        reference=variant.get("reference_variant_id") or None,
        track_stock=bool(item.get("track_stock")),
        last_updated=item.get("updated_at") or "",
        supplier=_supplier_name(item.get("primary_supplier_id"), suppliers),
    )


def build_inventory_records(
    items: Iterable[Mapping[str, Any]],
    *,
    categories: Mapping[str, str],
    stocks: Mapping[str, float],
    suppliers: Mapping[str, str],
) -> list[InventoryRecord]:
    """Produce one record per (item, variant) with a store price entry.

    Items without variants produce nothing and are logged as warnings.
    """
    records: list[InventoryRecord] = []
    for item in items:
        variants = item.get("variants") or []
        if not variants:
            logger.warning("Item without variants skipped: %s", item.get("item_name") or item.get("id"))
            continue
        for variant in variants:
            record = build_variant_record(
                item, variant, categories=categories, stocks=stocks, suppliers=suppliers
            )
            if record is None:
                logger.debug(
                    "Variant %s of %s has no store entry; skipped",
                    variant.get("variant_id"),
                    item.get("item_name"),
                )
                continue
            records.append(record)
    return records


def _yes_no(flag: bool) -> str:
    return "Yes" if flag else "No"


def inventory_to_frame(records: Iterable[InventoryRecord], tz: str = "Asia/Bangkok") -> pd.DataFrame:
    """Shape records into the inventory report table (INVENTORY_COLUMNS)."""
    rows = [
        {
            "SKU": r.sku,
            "Item": r.item_name,
            "Variant": r.variant_name or EMPTY,
            "Category": r.category_name,
            "Stock": r.stock,
            "Cost": r.cost,
            "Price": r.price,
            "Total Cost": r.total_cost,
            "Total Price": r.total_price,
            "Available": _yes_no(r.in_stock),
            "Barcode": r.barcode or EMPTY,
            "Reference": r.reference or EMPTY,
            "Track Stock": _yes_no(r.track_stock),
            "Last Updated": r.last_updated,
            "Supplier": r.supplier or EMPTY,
        }
        for r in records
    ]
    df = pd.DataFrame(rows, columns=INVENTORY_COLUMNS)
    if not df.empty:
        df["Last Updated"] = format_local_timestamp(df["Last Updated"], tz)
    return df
