"""
Purchase repository (persistence).

This module provides *only* persistence operations for the Purchase domain
entity. It contains no reconciliation rules; it only enforces simple persistence
constraints:

- `update` is unconditional (last-write-wins) and may never touch `status`.
- `compare_and_swap_status` is the only way to move a Purchase out of its
  current status. It applies the new fields iff the stored status still equals
  the expected status, as a single conditional write.

Two implementations share the `PurchaseStore` protocol:
- SupabasePurchaseRepository: PostgREST-backed, conditional UPDATE ... WHERE status = ?
- InMemoryPurchaseRepository: lock-guarded dict for local development and tests
"""

from __future__ import annotations

import threading
from dataclasses import replace
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol
from uuid import UUID, uuid4

from domain.purchase import Purchase, PurchaseItem, PurchaseStatus
from domain.time import parse_utc_datetime, utc_now

# Table names; keep these aligned with sql/001_purchases.sql.
_PURCHASES_TABLE: str = "purchases"
_PURCHASE_ITEMS_TABLE: str = "purchase_items"

# Domain field name -> purchases column.
_COLUMNS: Dict[str, str] = {
    "buyer_email": "user_email",
    "status": "status",
    "total_amount": "total_amount",
    "currency": "currency",
    "upstream_payment_id": "mercadopago_payment_id",
    "upstream_preference_id": "mercadopago_preference_id",
}

# Fields that may be written through `update`.
_UPDATABLE_FIELDS = frozenset({"buyer_email", "upstream_payment_id", "upstream_preference_id"})

# Fields that may be written through `compare_and_swap_status`.
_CAS_FIELDS = frozenset({"status", "buyer_email", "upstream_payment_id"})


class PurchaseStore(Protocol):
    """Persistence contract consumed by the checkout and notification services."""

    def create(
        self,
        buyer_email: str,
        total_amount: Decimal,
        currency: str,
        status: PurchaseStatus = PurchaseStatus.PENDING,
    ) -> UUID: ...

    def add_items(self, purchase_id: UUID, items: Iterable[PurchaseItem]) -> None: ...

    def update(self, purchase_id: UUID, fields: Mapping[str, Any]) -> None: ...

    def compare_and_swap_status(
        self,
        purchase_id: UUID,
        expected_status: PurchaseStatus,
        fields: Mapping[str, Any],
    ) -> bool: ...

    def get(self, purchase_id: UUID) -> Optional[Purchase]: ...

    def list_items(self, purchase_id: UUID) -> List[PurchaseItem]: ...


def _check_fields(fields: Mapping[str, Any], allowed: frozenset, operation: str) -> None:
    unknown = set(fields) - allowed
    if unknown:
        raise ValueError(f"{operation} cannot write field(s): {', '.join(sorted(unknown))}")


def _check_cas_fields(fields: Mapping[str, Any]) -> None:
    _check_fields(fields, _CAS_FIELDS, "compare_and_swap_status")
    if "status" not in fields:
        raise ValueError("compare_and_swap_status requires a new 'status'")
    PurchaseStatus(fields["status"])


def _to_column_value(field_name: str, value: Any) -> Any:
    if value is None:
        return None
    if field_name == "status":
        return PurchaseStatus(value).value
    return str(value)


def _row_to_purchase(row: Mapping[str, Any]) -> Purchase:
    """Convert a PostgREST row into a Purchase."""

    total = row.get("total_amount")
    return Purchase(
        purchase_id=UUID(str(row["id"])),
        buyer_email=str(row["user_email"]),
        status=PurchaseStatus(str(row["status"])),
        total_amount=Decimal(str(total)) if total is not None else None,
        currency=str(row.get("currency") or "ARS"),
        created_at=parse_utc_datetime(row["created_at"]),
        updated_at=parse_utc_datetime(row["updated_at"]),
        upstream_payment_id=row.get("mercadopago_payment_id"),
        upstream_preference_id=row.get("mercadopago_preference_id"),
    )


def _row_to_item(row: Mapping[str, Any]) -> PurchaseItem:
    return PurchaseItem(
        item_id=str(row["item_id"]),
        title=str(row.get("title") or ""),
        quantity=int(row.get("quantity") or 1),
        unit_price=Decimal(str(row["price"])),
    )


class SupabasePurchaseRepository:
    """PurchaseStore backed by the Supabase `purchases` / `purchase_items` tables."""

    def __init__(self, client: Any):
        self._client = client

    def create(
        self,
        buyer_email: str,
        total_amount: Decimal,
        currency: str,
        status: PurchaseStatus = PurchaseStatus.PENDING,
    ) -> UUID:
        purchase_id = uuid4()
        now = utc_now().isoformat()

        payload: dict[str, Any] = {
            "id": str(purchase_id),
            "user_email": buyer_email,
            "status": PurchaseStatus(status).value,
            "total_amount": str(total_amount),
            "currency": currency,
            "created_at": now,
            "updated_at": now,
        }

        response = self._client.table(_PURCHASES_TABLE).insert(payload).execute()
        error = getattr(response, "error", None)
        if error:
            raise RuntimeError(f"Failed to create purchase: {error}")

        return purchase_id

    def add_items(self, purchase_id: UUID, items: Iterable[PurchaseItem]) -> None:
        rows = [
            {
                "id": str(uuid4()),
                "purchase_id": str(purchase_id),
                "item_id": item.item_id,
                "title": item.title,
                "quantity": item.quantity,
                "price": str(item.unit_price),
            }
            for item in items
        ]
        if not rows:
            return

        response = self._client.table(_PURCHASE_ITEMS_TABLE).insert(rows).execute()
        error = getattr(response, "error", None)
        if error:
            raise RuntimeError(f"Failed to record purchase items: {error}")

    def update(self, purchase_id: UUID, fields: Mapping[str, Any]) -> None:
        _check_fields(fields, _UPDATABLE_FIELDS, "update")

        payload: dict[str, Any] = {
            _COLUMNS[name]: _to_column_value(name, value) for name, value in fields.items()
        }
        payload["updated_at"] = utc_now().isoformat()

        response = (
            self._client.table(_PURCHASES_TABLE)
            .update(payload)
            .eq("id", str(purchase_id))
            .execute()
        )
        error = getattr(response, "error", None)
        if error:
            raise RuntimeError(f"Failed to update purchase: {error}")

    def compare_and_swap_status(
        self,
        purchase_id: UUID,
        expected_status: PurchaseStatus,
        fields: Mapping[str, Any],
    ) -> bool:
        _check_cas_fields(fields)

        payload: dict[str, Any] = {
            _COLUMNS[name]: _to_column_value(name, value) for name, value in fields.items()
        }
        payload["updated_at"] = utc_now().isoformat()

        # The status filter makes this a single conditional UPDATE; PostgREST
        # returns only the rows it actually changed.
        response = (
            self._client.table(_PURCHASES_TABLE)
            .update(payload)
            .eq("id", str(purchase_id))
            .eq("status", PurchaseStatus(expected_status).value)
            .execute()
        )
        error = getattr(response, "error", None)
        if error:
            raise RuntimeError(f"Failed to update purchase status: {error}")

        updated_rows = getattr(response, "data", None) or []
        return len(updated_rows) > 0

    def get(self, purchase_id: UUID) -> Optional[Purchase]:
        response = (
            self._client.table(_PURCHASES_TABLE)
            .select("*")
            .eq("id", str(purchase_id))
            .limit(1)
            .execute()
        )
        error = getattr(response, "error", None)
        if error:
            raise RuntimeError(f"Failed to get purchase: {error}")

        rows = getattr(response, "data", None) or []
        if not rows:
            return None

        return _row_to_purchase(rows[0])

    def list_items(self, purchase_id: UUID) -> List[PurchaseItem]:
        response = (
            self._client.table(_PURCHASE_ITEMS_TABLE)
            .select("*")
            .eq("purchase_id", str(purchase_id))
            .execute()
        )
        error = getattr(response, "error", None)
        if error:
            raise RuntimeError(f"Failed to list purchase items: {error}")

        rows = getattr(response, "data", None) or []
        return [_row_to_item(row) for row in rows]


class InMemoryPurchaseRepository:
    """
    PurchaseStore kept in process memory.

    All reads and writes go through one lock, so compare_and_swap_status is
    atomic across threads. Data is lost on restart.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._purchases: Dict[UUID, Purchase] = {}
        self._items: Dict[UUID, List[PurchaseItem]] = {}

    def create(
        self,
        buyer_email: str,
        total_amount: Decimal,
        currency: str,
        status: PurchaseStatus = PurchaseStatus.PENDING,
    ) -> UUID:
        purchase_id = uuid4()
        now = utc_now()
        purchase = Purchase(
            purchase_id=purchase_id,
            buyer_email=buyer_email,
            status=PurchaseStatus(status),
            total_amount=total_amount,
            currency=currency,
            created_at=now,
            updated_at=now,
        )
        with self._lock:
            self._purchases[purchase_id] = purchase
            self._items[purchase_id] = []
        return purchase_id

    def add_items(self, purchase_id: UUID, items: Iterable[PurchaseItem]) -> None:
        with self._lock:
            if purchase_id not in self._purchases:
                raise RuntimeError(f"Failed to record purchase items: unknown purchase {purchase_id}")
            self._items[purchase_id].extend(items)

    def update(self, purchase_id: UUID, fields: Mapping[str, Any]) -> None:
        _check_fields(fields, _UPDATABLE_FIELDS, "update")

        with self._lock:
            current = self._purchases.get(purchase_id)
            if current is None:
                return
            self._purchases[purchase_id] = replace(current, updated_at=utc_now(), **dict(fields))

    def compare_and_swap_status(
        self,
        purchase_id: UUID,
        expected_status: PurchaseStatus,
        fields: Mapping[str, Any],
    ) -> bool:
        _check_cas_fields(fields)

        changes = dict(fields)
        changes["status"] = PurchaseStatus(changes["status"])

        with self._lock:
            current = self._purchases.get(purchase_id)
            if current is None or current.status != PurchaseStatus(expected_status):
                return False
            self._purchases[purchase_id] = replace(current, updated_at=utc_now(), **changes)
            return True

    def get(self, purchase_id: UUID) -> Optional[Purchase]:
        with self._lock:
            return self._purchases.get(purchase_id)

    def list_items(self, purchase_id: UUID) -> List[PurchaseItem]:
        with self._lock:
            return list(self._items.get(purchase_id, []))


__all__ = [
    "PurchaseStore",
    "SupabasePurchaseRepository",
    "InMemoryPurchaseRepository",
]
