"""
Notification service for MercadoPago payment webhooks.

Each notification is handled as one short unit of work:

1. Authenticate the x-signature header (fail closed in production when no
   secret is configured, fail open with a warning otherwise)
2. Ignore anything that is not a payment event
3. Fetch the authoritative payment from the upstream API
4. Locate the Purchase by external_reference
5. Reject if the confirmed amount differs from the stored total
6. Map the upstream status onto a local status
7. Apply it with a compare-and-swap on status == pending

Only authentication failures and amount mismatches are reported to the
sender as errors. Every other failure is logged and acknowledged so the
sender does not keep retrying a request that cannot succeed.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional
from uuid import UUID

from clients.mercadopago_client import PaymentGateway
from domain.purchase import PurchaseStatus, map_payment_status
from repositories.purchase_repository import PurchaseStore
from services.errors import AmountMismatch, AuthenticationFailure
from services.settings import Settings
from services.signature import verify_signature

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "x-signature"
REQUEST_ID_HEADER = "x-request-id"

_PAYMENT_ACTIONS = frozenset({"payment.created", "payment.updated"})

# Outcomes reported in the acknowledgement.
OUTCOME_APPLIED = "applied"
OUTCOME_UNCHANGED = "unchanged"
OUTCOME_IGNORED = "ignored"
OUTCOME_NOT_FOUND = "not_found"
OUTCOME_ERROR = "error"


@dataclass(frozen=True, slots=True)
class NotificationOutcome:
    """
    Acknowledgement of a processed notification.

    received is always True; outcome says what happened locally.
    """
    outcome: str
    purchase_id: Optional[UUID] = None
    status: Optional[PurchaseStatus] = None
    detail: Optional[str] = None
    received: bool = True


def _parse_body(raw_body: bytes) -> dict[str, Any]:
    try:
        body = json.loads(raw_body or b"{}")
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    for key, value in headers.items():
        if key.lower() == name:
            return value
    return None


def extract_resource_id(body: Mapping[str, Any], query_params: Optional[Mapping[str, str]] = None) -> Optional[str]:
    """
    Resource id the notification refers to.

    Order: body data.id, query `data.id`, legacy `resource` path or query `id`.
    """
    data = body.get("data")
    if isinstance(data, Mapping) and data.get("id") not in (None, ""):
        return str(data["id"])

    query_params = query_params or {}
    if query_params.get("data.id"):
        return str(query_params["data.id"])

    resource = body.get("resource")
    if isinstance(resource, str) and resource:
        return resource.rstrip("/").split("/")[-1]

    if query_params.get("id"):
        return str(query_params["id"])
    return None


def is_payment_event(body: Mapping[str, Any], query_params: Optional[Mapping[str, str]] = None) -> bool:
    """True for payment creation/update notifications in either payload format."""
    query_params = query_params or {}
    event_type = body.get("type") or body.get("topic") or query_params.get("type") or query_params.get("topic")
    if event_type == "payment":
        return True
    return body.get("action") in _PAYMENT_ACTIONS


def authenticate(
    resource_id: Optional[str],
    headers: Mapping[str, str],
    settings: Settings,
) -> None:
    """
    Verify the notification signature.

    Raises:
        AuthenticationFailure: Signature missing, malformed or wrong; or no
            secret configured in production
    """
    secret = settings.mercadopago_webhook_secret
    if not secret:
        if settings.is_production:
            logger.error("Webhook rejected: MERCADOPAGO_WEBHOOK_SECRET is not configured in production")
            raise AuthenticationFailure("Webhook secret not configured")
        logger.warning("Webhook signature verification skipped - no secret configured (non-production)")
        return

    if not verify_signature(
        secret,
        resource_id,
        _header(headers, REQUEST_ID_HEADER),
        _header(headers, SIGNATURE_HEADER),
    ):
        logger.warning(
            "Webhook signature verification failed",
            extra={"resource_id": resource_id, "request_id": _header(headers, REQUEST_ID_HEADER)},
        )
        raise AuthenticationFailure("Invalid webhook signature")


def _reconcile(
    payment_id: str,
    store: PurchaseStore,
    gateway: PaymentGateway,
    settings: Settings,
) -> NotificationOutcome:
    # 3. Authoritative payment state, bounded to fit the acknowledgement window
    payment = gateway.get_payment(payment_id, timeout=settings.mercadopago_notification_timeout)

    if not payment.external_reference:
        logger.info("Payment has no external_reference; nothing to reconcile", extra={"payment_id": payment_id})
        return NotificationOutcome(outcome=OUTCOME_IGNORED, detail="missing external_reference")

    # 4. Local record
    try:
        purchase_id = UUID(payment.external_reference)
    except ValueError:
        logger.info(
            "external_reference is not a purchase id",
            extra={"payment_id": payment_id, "external_reference": payment.external_reference},
        )
        return NotificationOutcome(outcome=OUTCOME_NOT_FOUND, detail="unknown external_reference")

    purchase = store.get(purchase_id)
    if purchase is None:
        logger.info("No purchase for notification", extra={"payment_id": payment_id, "purchase_id": str(purchase_id)})
        return NotificationOutcome(outcome=OUTCOME_NOT_FOUND, purchase_id=purchase_id)

    # 5. Amount check
    if purchase.total_amount is not None:
        confirmed = payment.transaction_amount
        if confirmed is None or not purchase.amount_matches(confirmed):
            logger.warning(
                "Payment amount does not match purchase total",
                extra={
                    "payment_id": payment_id,
                    "purchase_id": str(purchase_id),
                    "expected": str(purchase.total_amount),
                    "confirmed": str(confirmed),
                },
            )
            raise AmountMismatch(purchase_id, purchase.total_amount, confirmed)

    # 6. Status mapping
    new_status = map_payment_status(payment.status)
    if new_status is PurchaseStatus.PENDING:
        return NotificationOutcome(
            outcome=OUTCOME_UNCHANGED,
            purchase_id=purchase_id,
            status=purchase.status,
            detail=f"payment status {payment.status}",
        )

    # 7. Conditional apply
    fields: dict[str, Any] = {"status": new_status, "upstream_payment_id": payment.payment_id}
    if payment.payer_email:
        fields["buyer_email"] = payment.payer_email

    applied = store.compare_and_swap_status(purchase_id, PurchaseStatus.PENDING, fields)
    if not applied:
        logger.info(
            "Purchase already settled; notification is a no-op",
            extra={"payment_id": payment_id, "purchase_id": str(purchase_id)},
        )
        current = store.get(purchase_id)
        return NotificationOutcome(
            outcome=OUTCOME_UNCHANGED,
            purchase_id=purchase_id,
            status=current.status if current else None,
        )

    logger.info(
        "Purchase status updated",
        extra={"payment_id": payment_id, "purchase_id": str(purchase_id), "status": new_status.value},
    )
    return NotificationOutcome(outcome=OUTCOME_APPLIED, purchase_id=purchase_id, status=new_status)


def handle_notification(
    raw_body: bytes,
    headers: Mapping[str, str],
    store: PurchaseStore,
    gateway: PaymentGateway,
    settings: Settings,
    query_params: Optional[Mapping[str, str]] = None,
) -> NotificationOutcome:
    """
    Process one webhook notification.

    Args:
        raw_body: Request body as received
        headers: Request headers (case-insensitive lookup)
        store: Purchase persistence
        gateway: Upstream payment API
        settings: Runtime configuration
        query_params: Request query string, for ids sent outside the body

    Returns:
        NotificationOutcome (always an acknowledgement)

    Raises:
        AuthenticationFailure: The notification could not be authenticated
        AmountMismatch: The confirmed amount differs from the purchase total
    """
    body = _parse_body(raw_body)
    resource_id = extract_resource_id(body, query_params)

    # 1. Authenticate
    authenticate(resource_id, headers, settings)

    # 2. Filter
    if not is_payment_event(body, query_params):
        logger.info(
            "Ignoring non-payment notification",
            extra={"type": body.get("type") or body.get("topic"), "action": body.get("action")},
        )
        return NotificationOutcome(outcome=OUTCOME_IGNORED, detail="not a payment event")

    if not resource_id:
        logger.warning("Payment notification without a payment id")
        return NotificationOutcome(outcome=OUTCOME_IGNORED, detail="missing payment id")

    # 3-7, with every unexpected failure acknowledged
    try:
        return _reconcile(resource_id, store, gateway, settings)
    except AmountMismatch:
        raise
    except Exception as e:
        logger.exception(
            "Notification processing failed; acknowledging without changes",
            extra={"payment_id": resource_id},
        )
        return NotificationOutcome(outcome=OUTCOME_ERROR, detail=type(e).__name__)


__all__ = [
    "NotificationOutcome",
    "handle_notification",
    "authenticate",
    "extract_resource_id",
    "is_payment_event",
    "OUTCOME_APPLIED",
    "OUTCOME_UNCHANGED",
    "OUTCOME_IGNORED",
    "OUTCOME_NOT_FOUND",
    "OUTCOME_ERROR",
]
