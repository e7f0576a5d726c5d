"""Reference data lookups (categories, suppliers, items).

The maps built here are rebuilt from the API on every run and fully
materialized before any enrichment reads them.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from pos_sync.client import PosApiClient

logger = logging.getLogger(__name__)

UNCATEGORIZED = "Uncategorized"


def build_name_map(records: Iterable[Mapping[str, Any]]) -> dict[str, str]:
    """Build an id -> name map from API records."""
    return {str(rec["id"]): rec.get("name") or "" for rec in records if rec.get("id")}


def resolve_category(category_id: str | None, categories: Mapping[str, str]) -> str:
    """Resolve a category id to its name, defaulting to UNCATEGORIZED."""
    if not category_id:
        return UNCATEGORIZED
    return categories.get(category_id) or UNCATEGORIZED


def build_item_category_map(
    items: Iterable[Mapping[str, Any]],
    categories: Mapping[str, str],
) -> dict[str, str]:
    """Map item id -> category name through the category map."""
    return {
        str(item["id"]): resolve_category(item.get("category_id"), categories)
        for item in items
        if item.get("id")
    }


def fetch_categories(client: PosApiClient) -> dict[str, str]:
    categories = build_name_map(client.fetch_all("categories"))
    logger.info("Loaded %d categories", len(categories))
    return categories


def fetch_suppliers(client: PosApiClient) -> dict[str, str]:
    suppliers = build_name_map(client.fetch_all("suppliers"))
    logger.info("Loaded %d suppliers", len(suppliers))
    return suppliers


def fetch_item_categories(client: PosApiClient) -> dict[str, str]:
    """Fetch categories and all items, then return item id -> category name.

    The category map stays internal. Both collections are fetched completely
    before the map is built.
    """
    categories = fetch_categories(client)
    items = client.fetch_all("items")
    item_categories = build_item_category_map(items, categories)
    logger.info("Resolved categories for %d items", len(item_categories))
    return item_categories
