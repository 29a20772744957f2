"""
FastAPI dependencies.

Route handlers receive settings, the purchase store and the payment gateway
through `Depends`, so tests can swap them with `app.dependency_overrides`.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Iterator

from fastapi import Depends

from clients.mercadopago_client import MercadoPagoClient, PaymentGateway
from repositories.purchase_repository import (
    InMemoryPurchaseRepository,
    PurchaseStore,
    SupabasePurchaseRepository,
)
from services.settings import Settings, get_settings


@lru_cache(maxsize=2)
def _build_store(kind: str) -> PurchaseStore:
    if kind == "memory":
        return InMemoryPurchaseRepository()

    from repositories.client import get_supabase

    return SupabasePurchaseRepository(get_supabase())


def get_purchase_store(settings: Settings = Depends(get_settings)) -> PurchaseStore:  # noqa: B008
    """Process-wide PurchaseStore selected by PURCHASE_STORE."""
    return _build_store(settings.purchase_store)


def get_payment_gateway(settings: Settings = Depends(get_settings)) -> Iterator[PaymentGateway]:  # noqa: B008
    """MercadoPago client for the duration of one request."""
    client = MercadoPagoClient(
        access_token=settings.mercadopago_access_token,
        timeout=settings.mercadopago_timeout,
    )
    try:
        yield client
    finally:
        client.close()


__all__ = ["get_settings", "get_purchase_store", "get_payment_gateway"]
