"""
Pytest configuration and shared fixtures.

This file adds the project root to the Python path so that tests can import
the domain, repositories, services, clients and api packages without an
install, and provides fakes for the upstream payment API.
"""

import sys
import threading
from decimal import Decimal
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Mapping, Optional

import pytest

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from clients.mercadopago_client import (  # noqa: E402
    CheckoutSession,
    MercadoPagoConnectionError,
    MercadoPagoError,
    PaymentDetails,
)
from domain.checkout import CheckoutItem  # noqa: E402
from repositories.purchase_repository import InMemoryPurchaseRepository  # noqa: E402
from services.settings import Settings  # noqa: E402
from services.signature import compute_signature  # noqa: E402

WEBHOOK_SECRET = "test-webhook-secret"


class FakeGateway:
    """
    In-memory stand-in for the MercadoPago API.

    Preferences are deduplicated by idempotency key, like the real API.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.sessions_by_key: Dict[str, CheckoutSession] = {}
        self.sessions_by_id: Dict[str, CheckoutSession] = {}
        self.payments: Dict[str, PaymentDetails] = {}
        self.create_calls: List[dict] = []
        self.get_session_calls: List[str] = []
        self.payment_calls: List[str] = []
        self.payment_timeouts: List[Optional[float]] = []
        self.create_error: Optional[MercadoPagoError] = None
        self.payment_error: Optional[Exception] = None

    @property
    def sessions_created(self) -> int:
        return len(self.sessions_by_key)

    def create_checkout_session(
        self,
        items: Iterable[CheckoutItem],
        external_reference: str,
        back_urls: Mapping[str, str],
        notification_url: Optional[str],
        idempotency_key: str,
        currency: str,
        auto_return: Optional[str] = None,
        payer_email: Optional[str] = None,
    ) -> CheckoutSession:
        with self._lock:
            self.create_calls.append(
                {
                    "items": list(items),
                    "external_reference": external_reference,
                    "back_urls": dict(back_urls),
                    "notification_url": notification_url,
                    "idempotency_key": idempotency_key,
                    "currency": currency,
                    "auto_return": auto_return,
                    "payer_email": payer_email,
                }
            )
            if self.create_error is not None:
                raise self.create_error

            existing = self.sessions_by_key.get(idempotency_key)
            if existing is not None:
                return existing

            preference_id = f"pref-{len(self.sessions_by_key) + 1}"
            session = CheckoutSession(
                preference_id=preference_id,
                init_point=f"https://www.mercadopago.com.ar/checkout/v1/redirect?pref_id={preference_id}",
                sandbox_init_point=f"https://sandbox.mercadopago.com.ar/checkout/v1/redirect?pref_id={preference_id}",
            )
            self.sessions_by_key[idempotency_key] = session
            self.sessions_by_id[preference_id] = session
            return session

    def get_checkout_session(self, preference_id: str) -> CheckoutSession:
        self.get_session_calls.append(preference_id)
        session = self.sessions_by_id.get(preference_id)
        if session is None:
            raise MercadoPagoError("NOT_FOUND", f"/checkout/preferences/{preference_id} not found")
        return session

    def add_payment(
        self,
        payment_id: str,
        status: str,
        amount: Optional[str],
        external_reference: Optional[str],
        payer_email: Optional[str] = "payer@example.com",
    ) -> PaymentDetails:
        payment = PaymentDetails(
            payment_id=payment_id,
            status=status,
            status_detail=None,
            transaction_amount=Decimal(amount) if amount is not None else None,
            external_reference=external_reference,
            payer_email=payer_email,
        )
        self.payments[payment_id] = payment
        return payment

    def get_payment(self, payment_id: str, timeout: Optional[float] = None) -> PaymentDetails:
        self.payment_calls.append(payment_id)
        self.payment_timeouts.append(timeout)
        if self.payment_error is not None:
            raise self.payment_error
        payment = self.payments.get(payment_id)
        if payment is None:
            raise MercadoPagoError("NOT_FOUND", f"/v1/payments/{payment_id} not found")
        return payment


@pytest.fixture
def settings() -> Settings:
    """Development settings with a webhook secret configured."""
    return Settings(
        app_env="development",
        app_base_url="https://shop.example.com",
        mercadopago_access_token="TEST-token",
        mercadopago_webhook_secret=WEBHOOK_SECRET,
        purchase_store="memory",
    )


@pytest.fixture
def store() -> InMemoryPurchaseRepository:
    return InMemoryPurchaseRepository()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def timeout_error() -> MercadoPagoConnectionError:
    return MercadoPagoConnectionError("MercadoPago request timed out: read timeout")


@pytest.fixture
def signed_headers() -> Callable[..., dict]:
    """Factory for x-signature / x-request-id headers signed like MercadoPago does."""

    def _sign(
        data_id: str,
        secret: str = WEBHOOK_SECRET,
        request_id: str = "bb56a2f1-6aae-46ac-982e-9dcd3581d08e",
        ts: str = "1704908010",
    ) -> dict:
        v1 = compute_signature(secret, data_id, request_id, ts)
        return {"x-signature": f"ts={ts},v1={v1}", "x-request-id": request_id}

    return _sign


def make_item(item_id: str = "x", quantity: int = 1, unit_price: str = "100") -> CheckoutItem:
    return CheckoutItem(item_id=item_id, title=f"Item {item_id}", quantity=quantity, unit_price=Decimal(unit_price))


@pytest.fixture
def item_factory() -> Callable[..., CheckoutItem]:
    return make_item
