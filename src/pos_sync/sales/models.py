"""Receipt records as fetched from the POS API.

Records are immutable. Enrichment produces new copies via
``dataclasses.replace`` so a receipt list shared elsewhere is never
modified behind its owner's back.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from pos_sync.reference import UNCATEGORIZED


def _number(value: Any) -> float:
    if value is None or value == "":
        return 0.0
    return float(value)


@dataclass(frozen=True)
class Payment:
    """One payment on a receipt."""

    type: str
    name: str

    @classmethod
    def from_api(cls, data: Mapping[str, Any]) -> Payment:
        type_code = str(data.get("type") or "")
        return cls(type=type_code, name=str(data.get("name") or type_code))


@dataclass(frozen=True)
class LineItem:
    """One product line within a receipt.

    Attributes:
        item_id: POS item identifier.
        item_name: Display name.
        variant_name: Variant display name, if any.
        category: Category name; filled by enrichment.
        quantity: Units sold (fractional for items sold by weight).
        price: Unit price.
        total_discount: Discount applied to the whole line.
        sku: Stock keeping unit.
    """

    item_id: str | None
    item_name: str
    variant_name: str | None = None
    category: str = UNCATEGORIZED
    quantity: float = 0.0
    price: float = 0.0
    total_discount: float = 0.0
    sku: str | None = None

    @property
    def net_amount(self) -> float:
        return self.quantity * self.price - self.total_discount

    @classmethod
    def from_api(cls, data: Mapping[str, Any]) -> LineItem:
        return cls(
            item_id=data.get("item_id"),
            item_name=str(data.get("item_name") or ""),
            variant_name=data.get("variant_name") or None,
            category=data.get("category") or UNCATEGORIZED,
            quantity=_number(data.get("quantity")),
            price=_number(data.get("price")),
            total_discount=_number(data.get("total_discount")),
            sku=data.get("sku") or None,
        )


@dataclass(frozen=True)
class Receipt:
    """One completed or cancelled sale."""

    receipt_number: str
    receipt_date: str
    cancelled_at: str | None = None
    line_items: tuple[LineItem, ...] = field(default_factory=tuple)
    payments: tuple[Payment, ...] = field(default_factory=tuple)
    employee_name: str | None = None
    customer_phone_number: str | None = None

    @property
    def payment_method(self) -> str:
        """Comma-joined payment display names."""
        return ", ".join(p.name for p in self.payments)

    @classmethod
    def from_api(cls, data: Mapping[str, Any]) -> Receipt:
        return cls(
            receipt_number=str(data.get("receipt_number") or ""),
            receipt_date=str(data.get("receipt_date") or data.get("created_at") or ""),
            cancelled_at=data.get("cancelled_at") or None,
            line_items=tuple(LineItem.from_api(li) for li in data.get("line_items") or []),
            payments=tuple(Payment.from_api(p) for p in data.get("payments") or []),
            employee_name=data.get("employee_name") or None,
            customer_phone_number=data.get("customer_phone_number") or None,
        )
