"""Sales domain module.

- **extract**: receipts in a date window, line items enriched with category names.
- **transform**: the sales report table, one row per line item.

Example:
    >>> from pos_sync.sales import extract_sales, receipts_to_frame
    >>> receipts = extract_sales(client, start, end)
    >>> df = receipts_to_frame(receipts)
"""

from pos_sync.sales.extract import extract_sales
from pos_sync.sales.models import LineItem, Payment, Receipt
from pos_sync.sales.transform import SALES_COLUMNS, receipts_to_frame

__all__ = [
    "LineItem",
    "Payment",
    "Receipt",
    "SALES_COLUMNS",
    "extract_sales",
    "receipts_to_frame",
]
