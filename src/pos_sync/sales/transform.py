"""Shape enriched receipts into the sales report table.

One row per line item. The DataFrame's columns are the sheet header.
"""

from __future__ import annotations

from collections.abc import Iterable

import pandas as pd

from pos_sync.sales.models import Receipt

SALES_COLUMNS = [
    "Date",
    "Receipt",
    "Cancelled At",
    "Item",
    "Variant",
    "SKU",
    "Category",
    "Quantity",
    "Unit Price",
    "Discount",
    "Net Amount",
    "Payment Method",
    "Employee",
    "Customer",
]

SALES_NUMERIC_COLUMNS = ["Unit Price", "Discount", "Net Amount"]

NO_EMPLOYEE = "Not specified"
EMPTY = "-"


def format_local_timestamp(values: pd.Series, tz: str) -> pd.Series:
    """Render ISO timestamps in ``tz`` as ``YYYY-MM-DD HH:MM:SS``.

    Unparseable values are kept as-is; missing values become EMPTY.
    """
    parsed = pd.to_datetime(values, utc=True, errors="coerce", format="ISO8601")
    rendered = parsed.dt.tz_convert(tz).dt.strftime("%Y-%m-%d %H:%M:%S")
    return rendered.where(parsed.notna(), values.where(values.notna() & (values != ""), EMPTY))


def receipts_to_frame(receipts: Iterable[Receipt], tz: str = "Asia/Bangkok") -> pd.DataFrame:
    """Flatten receipts into one row per line item.

    Args:
        receipts: Enriched receipts.
        tz: Timezone used to render receipt and cancellation dates.

    Returns:
        DataFrame with SALES_COLUMNS, in receipt then line order.
    """
    rows = []
    for receipt in receipts:
        payment_method = receipt.payment_method
        for li in receipt.line_items:
            rows.append(
                {
                    "Date": receipt.receipt_date,
                    "Receipt": receipt.receipt_number,
                    "Cancelled At": receipt.cancelled_at,
                    "Item": li.item_name,
                    "Variant": li.variant_name or EMPTY,
                    "SKU": li.sku or EMPTY,
                    "Category": li.category,
                    "Quantity": li.quantity,
                    "Unit Price": li.price,
                    "Discount": li.total_discount,
                    "Net Amount": li.net_amount,
                    "Payment Method": payment_method,
                    "Employee": receipt.employee_name or NO_EMPLOYEE,
                    "Customer": receipt.customer_phone_number or EMPTY,
                }
            )

    df = pd.DataFrame(rows, columns=SALES_COLUMNS)
    if df.empty:
        return df

    df["Date"] = format_local_timestamp(df["Date"], tz)
    df["Cancelled At"] = format_local_timestamp(df["Cancelled At"], tz)
    return df
