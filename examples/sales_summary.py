"""Example: Summarise recent sales by category.

Runs only the sales half of the sync (receipts joined with categories)
and prints a category breakdown with pandas. Nothing is written to the
spreadsheet.

Prerequisites:
- Set LOYVERSE_API_KEY (or put it in utils/secrets.env)
"""

import os
from datetime import datetime
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

from pos_sync.client import PosApiClient
from pos_sync.config import DEFAULT_TIMEZONE, DateWindowPolicy
from pos_sync.sales import extract_sales, receipts_to_frame
from pos_sync.schedule import format_datetime

load_dotenv("utils/secrets.env")

client = PosApiClient(os.environ["LOYVERSE_API_KEY"])

# Any SALES_WINDOW expression works here: "months:3", "ytd", "since:2025-01-01"
window = DateWindowPolicy.parse("months:1")
start, end = window.resolve(datetime.now(ZoneInfo(DEFAULT_TIMEZONE)))

print(f"Fetching receipts from {format_datetime(start)} to {format_datetime(end)}...")
receipts = extract_sales(client, start, end)
df = receipts_to_frame(receipts, DEFAULT_TIMEZONE)

# Cancelled receipts carry a timestamp in "Cancelled At"
active = df[df["Cancelled At"] == "-"]

print(f"{len(receipts)} receipts, {len(df)} line items ({len(df) - len(active)} cancelled)")
print()
print("Net amount by category")
print("-" * 60)
by_category = (
    active.groupby("Category")["Net Amount"].agg(["sum", "count"]).sort_values("sum", ascending=False)
)
print(by_category.to_string(float_format="{:,.2f}".format))
print()
print("Payment methods")
print("-" * 60)
print(active.drop_duplicates("Receipt")["Payment Method"].value_counts().to_string())
