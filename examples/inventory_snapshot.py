"""Example: Export a stock snapshot to CSV without touching the spreadsheet.

This pulls stores, suppliers, categories, stock levels and items from the
POS API, builds the inventory report and saves it locally. Useful for
checking the numbers before enabling the scheduled sync.

Prerequisites:
- Set LOYVERSE_API_KEY (or put it in utils/secrets.env)
"""

import os
from pathlib import Path

from dotenv import load_dotenv

from pos_sync.client import PosApiClient, make_session
from pos_sync.config import DEFAULT_TIMEZONE
from pos_sync.inventory.extract import extract_inventory
from pos_sync.inventory.models import StockMergePolicy
from pos_sync.inventory.transform import inventory_to_frame

load_dotenv("utils/secrets.env")

client = PosApiClient(os.environ["LOYVERSE_API_KEY"], session=make_session(timeout=60))

# force=True skips the working-hours check
print("Fetching inventory...")
records = extract_inventory(
    client,
    force=True,
    merge_policy=StockMergePolicy.SUM,  # total across all stores
)
df = inventory_to_frame(records, DEFAULT_TIMEZONE)

out = Path("data/inventory_snapshot.csv")
out.parent.mkdir(parents=True, exist_ok=True)
df.to_csv(out, index=False)

print(f"Saved {len(df)} rows to {out}")
print(f"Total stock value at cost: {df['Total Cost'].sum():,.2f}")
print(f"Items out of stock: {(df['Stock'] <= 0).sum()}")
