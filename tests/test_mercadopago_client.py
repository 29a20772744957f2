"""
Tests for `clients/mercadopago_client.py` using httpx.MockTransport.
"""

from __future__ import annotations

import json
from decimal import Decimal

import httpx
import pytest

from clients.mercadopago_client import (
    MercadoPagoAuthError,
    MercadoPagoClient,
    MercadoPagoConnectionError,
    MercadoPagoError,
    MercadoPagoValidationError,
)


def _client(handler) -> MercadoPagoClient:
    return MercadoPagoClient(access_token="TEST-token", timeout=1.0, transport=httpx.MockTransport(handler))


def test_create_checkout_session_sends_idempotency_key(item_factory) -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["path"] = request.url.path
        seen["headers"] = request.headers
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            201,
            json={"id": "pref-1", "init_point": "https://mp/init", "sandbox_init_point": "https://mp/sandbox"},
        )

    with _client(handler) as client:
        session = client.create_checkout_session(
            items=[item_factory("x", 2, "19.99")],
            external_reference="purchase-1",
            back_urls={"success": "https://shop/checkout/success"},
            notification_url="https://shop/api/v1/webhooks/mercadopago",
            idempotency_key="purchase-1",
            currency="ARS",
            auto_return="approved",
            payer_email="buyer@example.com",
        )

    assert session.preference_id == "pref-1"
    assert session.init_point == "https://mp/init"
    assert seen["method"] == "POST"
    assert seen["path"] == "/checkout/preferences"
    assert seen["headers"]["X-Idempotency-Key"] == "purchase-1"
    assert seen["headers"]["Authorization"] == "Bearer TEST-token"

    body = seen["body"]
    assert body["external_reference"] == "purchase-1"
    assert body["auto_return"] == "approved"
    assert body["notification_url"] == "https://shop/api/v1/webhooks/mercadopago"
    assert body["payer"] == {"email": "buyer@example.com"}
    assert body["items"] == [
        {"id": "x", "title": "Item x", "quantity": 2, "unit_price": 19.99, "currency_id": "ARS"}
    ]


def test_create_checkout_session_omits_auto_return_when_not_requested(item_factory) -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json={"id": "pref-2", "init_point": "http://mp/init"})

    with _client(handler) as client:
        client.create_checkout_session(
            items=[item_factory()],
            external_reference="purchase-2",
            back_urls={"success": "http://localhost/checkout/success"},
            notification_url=None,
            idempotency_key="purchase-2",
            currency="ARS",
        )

    assert "auto_return" not in seen["body"]
    assert "notification_url" not in seen["body"]
    assert "payer" not in seen["body"]


def test_get_payment_parses_details() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/v1/payments/123"
        return httpx.Response(
            200,
            json={
                "id": 123,
                "status": "approved",
                "status_detail": "accredited",
                "transaction_amount": 100.1,
                "external_reference": "abc",
                "payer": {"email": "payer@example.com"},
            },
        )

    with _client(handler) as client:
        payment = client.get_payment("123")

    assert payment.payment_id == "123"
    assert payment.status == "approved"
    assert payment.transaction_amount == Decimal("100.1")
    assert payment.external_reference == "abc"
    assert payment.payer_email == "payer@example.com"


def test_get_checkout_session_reads_preference() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "GET"
        assert request.url.path == "/checkout/preferences/pref-9"
        return httpx.Response(200, json={"id": "pref-9", "init_point": "https://mp/init9"})

    with _client(handler) as client:
        session = client.get_checkout_session("pref-9")

    assert session.preference_id == "pref-9"
    assert session.init_point == "https://mp/init9"


@pytest.mark.parametrize(
    "status_code, payload, error_type",
    [
        (401, {"message": "invalid token"}, MercadoPagoAuthError),
        (400, {"message": "auto_return invalid"}, MercadoPagoValidationError),
        (404, {"message": "not found"}, MercadoPagoError),
        (500, {"message": "boom"}, MercadoPagoError),
    ],
)
def test_error_statuses_raise(status_code, payload, error_type) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, json=payload)

    with _client(handler) as client:
        with pytest.raises(error_type):
            client.get_payment("1")


def test_timeout_raises_connection_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    with _client(handler) as client:
        with pytest.raises(MercadoPagoConnectionError):
            client.get_payment("1")


def test_connect_error_raises_connection_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with _client(handler) as client:
        with pytest.raises(MercadoPagoConnectionError):
            client.get_payment("1")


def test_get_payment_timeout_override() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["timeout"] = request.extensions["timeout"]
        return httpx.Response(200, json={"id": 1, "status": "approved", "transaction_amount": 10})

    with _client(handler) as client:
        client.get_payment("1", timeout=0.25)

    assert seen["timeout"]["read"] == 0.25
    assert seen["timeout"]["connect"] == 0.25
