"""Sales extraction: receipts in a date window, enriched with categories.

The item -> category map is built completely before any receipt is
enriched.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import replace
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from pos_sync.exceptions import ExtractionError
from pos_sync.reference import UNCATEGORIZED, fetch_item_categories
from pos_sync.sales.models import Receipt

if TYPE_CHECKING:
    from pos_sync.client import PosApiClient

logger = logging.getLogger(__name__)


def to_api_timestamp(value: datetime) -> str:
    """Format an aware datetime as the UTC ISO string the API filters expect."""
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def enrich_receipts(
    receipts: Iterable[Receipt],
    item_categories: Mapping[str, str],
) -> list[Receipt]:
    """Return copies of ``receipts`` with every line item's category resolved.

    Line items whose item id is missing from the map get UNCATEGORIZED.
    """
    enriched = []
    for receipt in receipts:
        line_items = tuple(
            replace(
                li,
                category=item_categories.get(li.item_id or "") or UNCATEGORIZED,
            )
            for li in receipt.line_items
        )
        enriched.append(replace(receipt, line_items=line_items))
    return enriched


def fetch_receipts(
    client: PosApiClient,
    start: datetime,
    end: datetime,
) -> list[Receipt]:
    """Fetch all receipts created in [start, end]."""
    logger.info("Fetching receipts from %s to %s", start.isoformat(), end.isoformat())
    params = {
        "created_at_min": to_api_timestamp(start),
        "created_at_max": to_api_timestamp(end),
    }
    return [Receipt.from_api(r) for r in client.fetch_all("receipts", params=params)]


def extract_sales(
    client: PosApiClient,
    start: datetime,
    end: datetime,
) -> list[Receipt]:
    """Fetch receipts in the window and attach category names to line items.

    Args:
        client: POS API client.
        start: Window start (timezone-aware).
        end: Window end (timezone-aware).

    Returns:
        Enriched receipts in API order.

    Raises:
        ApiAuthorizationError: If the API rejects the token (fatal).
        ExtractionError: On any other fetch failure (retryable).
    """
    try:
        item_categories = fetch_item_categories(client)
        receipts = fetch_receipts(client, start, end)
    except ExtractionError:
        raise
    except (KeyError, TypeError, ValueError) as e:
        raise ExtractionError(f"Sales extraction failed: {e}") from e

    enriched = enrich_receipts(receipts, item_categories)
    logger.info(
        "Extracted %d receipts with %d line items",
        len(enriched),
        sum(len(r.line_items) for r in enriched),
    )
    return enriched
