"""
Purchase status queries.

The stored status is the only source clients should trust; redirect query
parameters from the checkout return URLs are never used to infer it.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from domain.purchase import PurchaseStatus
from repositories.purchase_repository import PurchaseStore
from services.errors import PurchaseNotFound


@dataclass(frozen=True, slots=True)
class PurchaseStatusView:
    """Read-only projection returned to clients."""
    purchase_id: UUID
    status: PurchaseStatus


def get_purchase_status(purchase_id: UUID, store: PurchaseStore) -> PurchaseStatusView:
    """
    Look up the current status of a Purchase.

    Raises:
        PurchaseNotFound: If no Purchase has this id
    """
    purchase = store.get(purchase_id)
    if purchase is None:
        raise PurchaseNotFound(purchase_id)
    return PurchaseStatusView(purchase_id=purchase.purchase_id, status=purchase.status)


__all__ = ["PurchaseStatusView", "get_purchase_status"]
