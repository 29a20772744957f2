"""
Domain: Checkout cart lines.

A CheckoutItem is one validated cart line as submitted by a buyer. Amounts use
Decimal throughout; binary floats never enter the total, so the stored total
compares exactly against the amount the payment provider confirms.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from .purchase import PurchaseItem

# purchases.total_amount and purchase_items.price are NUMERIC(10,2).
MONEY_EXPONENT: int = -2


@dataclass(frozen=True, slots=True)
class CheckoutItem:
    """
    Cart line: item identifier, display title, quantity and unit price.

    Invariants:
    - item_id and title are non-empty.
    - quantity is a positive integer.
    - unit_price is a positive Decimal with at most two decimal places.
    """

    item_id: str
    title: str
    quantity: int
    unit_price: Decimal

    def __post_init__(self) -> None:
        if not self.item_id or not self.item_id.strip():
            raise ValueError("item id must not be empty")
        if not self.title or not self.title.strip():
            raise ValueError(f"item {self.item_id!r}: title must not be empty")
        # bool is an int subclass
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int):
            raise ValueError(f"item {self.item_id!r}: quantity must be an integer")
        if self.quantity <= 0:
            raise ValueError(f"item {self.item_id!r}: quantity must be greater than zero")
        if not isinstance(self.unit_price, Decimal):
            raise ValueError(f"item {self.item_id!r}: unit_price must be a Decimal")
        if not self.unit_price.is_finite() or self.unit_price <= 0:
            raise ValueError(f"item {self.item_id!r}: unit_price must be greater than zero")
        if self.unit_price.as_tuple().exponent < MONEY_EXPONENT:
            raise ValueError(f"item {self.item_id!r}: unit_price has more than two decimal places")

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity

    def to_purchase_item(self) -> PurchaseItem:
        return PurchaseItem(
            item_id=self.item_id,
            title=self.title,
            quantity=self.quantity,
            unit_price=self.unit_price,
        )


def calculate_total(items: Iterable[CheckoutItem]) -> Decimal:
    """Exact sum of quantity * unit_price over all items, at two decimal places."""

    total = Decimal("0.00")
    for item in items:
        total += item.line_total
    return total.quantize(Decimal("0.01"))


__all__ = [
    "CheckoutItem",
    "calculate_total",
    "MONEY_EXPONENT",
]
