"""
MercadoPago API Client

Synchronous client for Checkout Pro using Bearer Token auth over httpx.

Connection Details:
    - Base URL: https://api.mercadopago.com
    - Auth: Bearer Token (Access Token)

Endpoints:
    - POST /checkout/preferences - Create payment preference (checkout session)
    - GET /checkout/preferences/{id} - Read an existing preference
    - GET /v1/payments/{id} - Get payment details

Every request is bounded by the configured timeout; timeouts and connection
failures surface as MercadoPagoConnectionError.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable, Mapping, Optional, Protocol

import httpx

from domain.checkout import CheckoutItem

logger = logging.getLogger(__name__)

BASE_URL = "https://api.mercadopago.com"


class MercadoPagoError(Exception):
    """
    Base exception for MercadoPago errors.

    Attributes:
        error_code: Machine-readable error code
        error_message: Human-readable error description
    """

    def __init__(self, error_code: str, error_message: str):
        self.error_code = error_code
        self.error_message = error_message
        super().__init__(f"{error_code}: {error_message}")


class MercadoPagoAuthError(MercadoPagoError):
    """Authentication error (invalid access token)."""

    def __init__(self, message: str = "Invalid access token"):
        super().__init__("AUTH_ERROR", message)


class MercadoPagoConnectionError(MercadoPagoError):
    """Network connectivity issues and timeouts."""

    def __init__(self, message: str):
        super().__init__("CONNECTION_ERROR", message)


class MercadoPagoValidationError(MercadoPagoError):
    """Request validation error."""

    def __init__(self, message: str):
        super().__init__("VALIDATION_ERROR", message)


@dataclass(frozen=True, slots=True)
class CheckoutSession:
    """A Checkout Pro preference."""

    preference_id: str
    init_point: Optional[str]
    sandbox_init_point: Optional[str] = None


@dataclass(frozen=True, slots=True)
class PaymentDetails:
    """Authoritative payment state as reported by GET /v1/payments/{id}."""

    payment_id: str
    status: Optional[str]
    status_detail: Optional[str]
    transaction_amount: Optional[Decimal]
    external_reference: Optional[str]
    payer_email: Optional[str]


class PaymentGateway(Protocol):
    """Upstream payment API as consumed by the services."""

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
    ) -> CheckoutSession: ...

    def get_checkout_session(self, preference_id: str) -> CheckoutSession: ...

    def get_payment(self, payment_id: str, timeout: Optional[float] = None) -> PaymentDetails: ...


def _parse_payment(data: Mapping[str, Any]) -> PaymentDetails:
    amount = data.get("transaction_amount")
    payer = data.get("payer") or {}
    external_reference = data.get("external_reference")
    return PaymentDetails(
        payment_id=str(data.get("id")),
        status=data.get("status"),
        status_detail=data.get("status_detail"),
        # str() first: the JSON number arrives as a float
        transaction_amount=Decimal(str(amount)) if amount is not None else None,
        external_reference=str(external_reference) if external_reference else None,
        payer_email=payer.get("email") or None,
    )


def _parse_session(data: Mapping[str, Any]) -> CheckoutSession:
    return CheckoutSession(
        preference_id=str(data.get("id")),
        init_point=data.get("init_point"),
        sandbox_init_point=data.get("sandbox_init_point"),
    )


class MercadoPagoClient:
    """
    HTTP client for the MercadoPago API.

    Example:
        with MercadoPagoClient(access_token="APP_USR-...", timeout=5.0) as client:
            payment = client.get_payment("1234567890")
    """

    def __init__(
        self,
        access_token: Optional[str],
        timeout: float = 5.0,
        base_url: str = BASE_URL,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        if not access_token:
            logger.error("MERCADOPAGO_ACCESS_TOKEN not configured")

        self._client = httpx.Client(
            base_url=base_url,
            headers={
                "Authorization": f"Bearer {access_token or ''}",
                "Content-Type": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    def __enter__(self) -> MercadoPagoClient:
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            logger.error(f"MP timeout error: {e}")
            raise MercadoPagoConnectionError(f"MercadoPago request timed out: {e}") from e
        except httpx.TransportError as e:
            logger.error(f"MP connection error: {e}")
            raise MercadoPagoConnectionError(f"Could not connect to MercadoPago: {e}") from e

        if response.status_code == 401:
            raise MercadoPagoAuthError("Invalid or expired access token")

        if response.status_code == 404:
            raise MercadoPagoError("NOT_FOUND", f"{path} not found")

        if response.status_code == 400:
            try:
                error_msg = response.json().get("message", "Validation error")
            except ValueError:
                error_msg = response.text or "Validation error"
            raise MercadoPagoValidationError(error_msg)

        if response.status_code >= 400:
            raise MercadoPagoError("HTTP_ERROR", f"{method} {path} returned HTTP {response.status_code}")

        try:
            return response.json()
        except ValueError as e:
            raise MercadoPagoError("INVALID_RESPONSE", f"{method} {path} returned invalid JSON") from e

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
        """
        Create a Checkout Pro preference.

        The X-Idempotency-Key header makes retries with the same key return the
        original preference instead of creating a new one.

        Raises:
            MercadoPagoAuthError: Invalid access token
            MercadoPagoValidationError: Invalid request parameters
            MercadoPagoConnectionError: Network error or timeout
        """
        payload: dict[str, Any] = {
            "items": [
                {
                    "id": item.item_id,
                    "title": item.title,
                    "quantity": item.quantity,
                    "unit_price": float(item.unit_price),
                    "currency_id": currency,
                }
                for item in items
            ],
            "external_reference": external_reference,
            "back_urls": dict(back_urls),
        }

        if notification_url:
            payload["notification_url"] = notification_url

        # Only sent with https back_urls; the API rejects auto_return otherwise.
        if auto_return:
            payload["auto_return"] = auto_return

        if payer_email:
            payload["payer"] = {"email": payer_email}

        logger.info(f"Creating MP preference: ref={external_reference}")

        data = self._request(
            "POST",
            "/checkout/preferences",
            json=payload,
            headers={"X-Idempotency-Key": idempotency_key},
        )
        session = _parse_session(data)

        logger.info(f"MP preference created: {session.preference_id}")
        return session

    def get_checkout_session(self, preference_id: str) -> CheckoutSession:
        """Read an existing preference (used when retrying a checkout)."""
        return _parse_session(self._request("GET", f"/checkout/preferences/{preference_id}"))

    def get_payment(self, payment_id: str, timeout: Optional[float] = None) -> PaymentDetails:
        """
        Get payment details by ID.

        Used to read the authoritative payment state after a webhook notification.
        timeout overrides the client timeout for this request only.

        Raises:
            MercadoPagoAuthError: Invalid access token
            MercadoPagoError: Payment not found or other error
        """
        logger.info(f"Fetching MP payment: {payment_id}")

        kwargs: dict[str, Any] = {"timeout": timeout} if timeout is not None else {}
        payment = _parse_payment(self._request("GET", f"/v1/payments/{payment_id}", **kwargs))

        logger.info(f"MP payment {payment_id} status: {payment.status}")
        return payment


__all__ = [
    "MercadoPagoClient",
    "MercadoPagoError",
    "MercadoPagoAuthError",
    "MercadoPagoConnectionError",
    "MercadoPagoValidationError",
    "CheckoutSession",
    "PaymentDetails",
    "PaymentGateway",
]
