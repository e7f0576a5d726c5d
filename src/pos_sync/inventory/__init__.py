"""Inventory domain module.

- **extract**: suppliers, stores, categories, stock levels and items from the API.
- **transform**: one InventoryRecord per (item, variant) and the report table.
"""

from pos_sync.inventory.models import InventoryRecord, StockMergePolicy

__all__ = ["InventoryRecord", "StockMergePolicy"]
