"""Inventory extraction: per-store stock joined with items and variants.

Fetch order: suppliers, stores, categories, stock levels for each store,
then items with nested variants. Every lookup map is complete before the
first item is joined.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from pos_sync.exceptions import ExtractionError
from pos_sync.inventory.models import InventoryRecord, StockMergePolicy
from pos_sync.inventory.transform import build_inventory_records, merge_stock_levels
from pos_sync.reference import fetch_categories, fetch_suppliers
from pos_sync.schedule import (
    DEFAULT_TIMEZONE,
    WINDOW_END_HOUR,
    WINDOW_START_HOUR,
    format_datetime,
    get_next_run_time,
    is_within_schedule,
)

if TYPE_CHECKING:
    from pos_sync.client import PosApiClient

logger = logging.getLogger(__name__)


def fetch_stock_levels(
    client: PosApiClient,
    stores: list[dict],
    policy: StockMergePolicy = StockMergePolicy.LAST,
) -> dict[str, float]:
    """Return variant id -> in-stock quantity across ``stores``."""
    stocks: dict[str, float] = {}
    for store in stores:
        count = 0
        for page in client.iter_pages("inventory", "inventory_levels", {"store_id": store["id"]}):
            merge_stock_levels(stocks, page, policy)
            count += len(page)
        logger.info("Loaded %d stock levels for store %s", count, store.get("name") or store["id"])
    return stocks


def extract_inventory(
    client: PosApiClient,
    *,
    now: datetime | None = None,
    tz: str = DEFAULT_TIMEZONE,
    start_hour: int = WINDOW_START_HOUR,
    end_hour: int = WINDOW_END_HOUR,
    merge_policy: StockMergePolicy = StockMergePolicy.LAST,
    force: bool = False,
) -> list[InventoryRecord]:
    """Fetch stock and catalogue data and build inventory records.

    Outside the run window this returns an empty list without calling the
    API, unless ``force`` is set.

    Args:
        client: POS API client.
        now: Current instant (timezone-aware). Defaults to the current time.
        tz: Timezone of the run window.
        start_hour: First hour of the run window.
        end_hour: Hour at which the run window closes.
        merge_policy: How stock levels for one variant combine across stores.
        force: Skip the run-window check.

    Returns:
        One InventoryRecord per (item, variant) with a store price entry.

    Raises:
        ApiAuthorizationError: If the API rejects the token (fatal).
        ExtractionError: On any other fetch failure (retryable).
    """
    window = {"tz": tz, "start_hour": start_hour, "end_hour": end_hour}
    if not force and not is_within_schedule(now, **window):
        logger.info(
            "Outside working hours. Next inventory refresh: %s",
            format_datetime(get_next_run_time(now, **window)),
        )
        return []

    try:
        suppliers = fetch_suppliers(client)
        stores = client.fetch_all("stores")
        logger.info("Loaded %d stores", len(stores))
        categories = fetch_categories(client)
        stocks = fetch_stock_levels(client, stores, merge_policy)
        items = client.fetch_all("items")
        records = build_inventory_records(
            items, categories=categories, stocks=stocks, suppliers=suppliers
        )
    except ExtractionError:
        raise
    except (KeyError, TypeError, ValueError) as e:
        raise ExtractionError(f"Inventory extraction failed: {e}") from e

    logger.info("Built %d inventory rows from %d items", len(records), len(items))
    return records
