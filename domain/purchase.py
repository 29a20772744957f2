"""
Domain: Purchases and their reconciled payment status.

Rules implemented here:
- A Purchase is created in PENDING and may move to APPROVED or REJECTED exactly once.
- Once terminal, status, upstream_payment_id and buyer_email never change.
- purchase_id is immutable and is the only correlation key sent upstream
  (as `external_reference`).
- total_amount is fixed at creation and is only ever compared, never recomputed.

This module contains only pure domain entities/value objects: no I/O, no database,
no frameworks. All timestamps must be passed explicitly.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID

from .time import require_utc_timestamp

# Stored when the buyer email is unknown at checkout time. The purchases table
# requires a non-null email; the payer email from the first terminal
# notification replaces it.
PLACEHOLDER_BUYER_EMAIL: str = "pending@checkout.invalid"


class PurchaseStatus(str, Enum):
    """Local status of a Purchase (mirrors the CHECK constraint on purchases.status)."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self is not PurchaseStatus.PENDING


# Upstream payment statuses that close a Purchase as rejected.
_REJECTING_PAYMENT_STATUSES = frozenset({"rejected", "cancelled", "refunded", "charged_back"})


def map_payment_status(upstream_status: Optional[str]) -> PurchaseStatus:
    """
    Map an upstream payment status onto a local PurchaseStatus.

    approved -> APPROVED
    rejected / cancelled / refunded / charged_back -> REJECTED
    anything else (pending, in_process, authorized, in_mediation, None) -> PENDING
    """

    normalized = (upstream_status or "").strip().lower()
    if normalized == "approved":
        return PurchaseStatus.APPROVED
    if normalized in _REJECTING_PAYMENT_STATUSES:
        return PurchaseStatus.REJECTED
    return PurchaseStatus.PENDING


@dataclass(frozen=True, slots=True)
class PurchaseItem:
    """A single persisted line of a Purchase."""

    item_id: str
    title: str
    quantity: int
    unit_price: Decimal

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(frozen=True, slots=True)
class Purchase:
    """
    Immutable snapshot of one checkout attempt.

    Mutations happen in the store; callers always receive a fresh snapshot.
    """

    purchase_id: UUID
    buyer_email: str
    status: PurchaseStatus
    total_amount: Optional[Decimal]
    currency: str
    created_at: datetime
    updated_at: datetime
    upstream_payment_id: Optional[str] = None
    upstream_preference_id: Optional[str] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)
        require_utc_timestamp("updated_at", self.updated_at)
        if self.total_amount is not None and self.total_amount < 0:
            raise ValueError("total_amount must not be negative")

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def has_placeholder_email(self) -> bool:
        return self.buyer_email == PLACEHOLDER_BUYER_EMAIL

    def amount_matches(self, confirmed_amount: Decimal) -> bool:
        """
        True when confirmed_amount equals the stored total (numerically).

        A Purchase without a recorded total accepts any amount.
        """

        if self.total_amount is None:
            return True
        return self.total_amount == confirmed_amount


__all__ = [
    "PLACEHOLDER_BUYER_EMAIL",
    "PurchaseStatus",
    "PurchaseItem",
    "Purchase",
    "map_payment_status",
]
