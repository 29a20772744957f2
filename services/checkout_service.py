"""
Checkout service for issuing MercadoPago Checkout Pro sessions.

Handles:
- Cart validation and exact Decimal totals
- Per-currency checkout ceiling
- Pending Purchase creation before any upstream call
- Idempotent preference creation (the Purchase id is the idempotency key)
- Callback URL construction from a validated base URL
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional, Sequence
from urllib.parse import urlsplit
from uuid import UUID

from email_validator import EmailNotValidError, validate_email

from clients.mercadopago_client import CheckoutSession, MercadoPagoError, PaymentGateway
from domain.checkout import CheckoutItem, calculate_total
from domain.purchase import PLACEHOLDER_BUYER_EMAIL, PurchaseStatus
from repositories.purchase_repository import PurchaseStore
from services.errors import (
    AmountExceedsLimit,
    CheckoutValidationError,
    PurchaseNotFound,
    PurchaseStoreUnavailable,
    UnsafeRedirectScheme,
    UpstreamUnavailable,
)
from services.settings import MAX_ITEM_QUANTITY, MAX_ITEMS_PER_CHECKOUT, Settings

logger = logging.getLogger(__name__)

WEBHOOK_PATH = "/api/v1/webhooks/mercadopago"


@dataclass(frozen=True, slots=True)
class CheckoutRequest:
    """
    Request to start a checkout.

    purchase_id is only set when retrying the issuance of an existing pending
    Purchase (for example after UpstreamUnavailable).
    """
    items: List[CheckoutItem]
    buyer_email: Optional[str] = None
    purchase_id: Optional[UUID] = None


@dataclass(frozen=True, slots=True)
class CheckoutResult:
    """
    Result of a successful issuance.

    redirect_url: Where to send the buyer to pay
    purchase_id: Local Purchase id (poll its status, never trust the redirect)
    preference_id: Upstream checkout session id
    """
    redirect_url: str
    purchase_id: UUID
    preference_id: str
    total_amount: Decimal
    currency: str


@dataclass(frozen=True, slots=True)
class CallbackUrls:
    """URLs embedded in the upstream preference."""
    back_urls: dict = field(default_factory=dict)
    notification_url: str = ""
    auto_return: Optional[str] = None


def validate_base_url(base_url: str) -> str:
    """
    Ensure the callback base URL is a plain http(s) URL.

    Returns the URL without a trailing slash.

    Raises:
        UnsafeRedirectScheme: For any other scheme (javascript:, data:, ftp:, ...)
            or a URL without a host
    """
    parts = urlsplit((base_url or "").strip())
    if parts.scheme not in ("http", "https"):
        raise UnsafeRedirectScheme(f"Callback base URL must use http or https, got {parts.scheme or 'none'!r}")
    if not parts.netloc:
        raise UnsafeRedirectScheme("Callback base URL must include a host")
    return base_url.strip().rstrip("/")


def build_callback_urls(base_url: str) -> CallbackUrls:
    """
    Build back_urls and the notification URL for a preference.

    auto_return is only requested for https base URLs; the upstream rejects it
    in combination with plain http back_urls.
    """
    base = validate_base_url(base_url)
    return CallbackUrls(
        back_urls={
            "success": f"{base}/checkout/success",
            "failure": f"{base}/checkout/failure",
            "pending": f"{base}/checkout/pending",
        },
        notification_url=f"{base}{WEBHOOK_PATH}",
        auto_return="approved" if urlsplit(base).scheme == "https" else None,
    )


def _validate_items(items: Sequence[CheckoutItem]) -> None:
    if not items:
        raise CheckoutValidationError("At least one item is required")
    if len(items) > MAX_ITEMS_PER_CHECKOUT:
        raise CheckoutValidationError(f"At most {MAX_ITEMS_PER_CHECKOUT} items are allowed per checkout")
    for item in items:
        if not isinstance(item, CheckoutItem):
            raise CheckoutValidationError(f"Unsupported item type: {type(item)!r}")
        if item.quantity > MAX_ITEM_QUANTITY:
            raise CheckoutValidationError(
                f"item {item.item_id!r}: quantity must not exceed {MAX_ITEM_QUANTITY}"
            )


def normalize_buyer_email(buyer_email: Optional[str]) -> Optional[str]:
    """
    Validate the email syntax (no DNS lookups) and return its normalized form.

    Raises:
        CheckoutValidationError: If the address is malformed
    """
    if buyer_email is None or buyer_email.strip() == "":
        return None
    try:
        return validate_email(buyer_email.strip(), check_deliverability=False).normalized
    except EmailNotValidError as e:
        raise CheckoutValidationError(f"Invalid buyer email: {e}") from None


def _record_items(store: PurchaseStore, purchase_id: UUID, items: Sequence[CheckoutItem]) -> None:
    try:
        store.add_items(purchase_id, [item.to_purchase_item() for item in items])
    except Exception as e:
        logger.exception(
            "Purchase items could not be recorded; purchase left pending",
            extra={"purchase_id": str(purchase_id)},
        )
        raise PurchaseStoreUnavailable(
            "Purchase items could not be recorded", purchase_id=purchase_id
        ) from e


def _redirect_url(session: CheckoutSession, sandbox: bool) -> Optional[str]:
    if sandbox and session.sandbox_init_point:
        return session.sandbox_init_point
    return session.init_point


def create_checkout(
    request: CheckoutRequest,
    store: PurchaseStore,
    gateway: PaymentGateway,
    settings: Settings,
) -> CheckoutResult:
    """
    Create (or retry) a checkout for the given cart.

    Process:
    1. Validate items and buyer email (no side effects on failure)
    2. Compute the Decimal total and enforce the currency ceiling
    3. Validate the callback base URL and build callback URLs
    4. New checkout: create a pending Purchase and its items
       Retry: load the pending Purchase, check the total still matches and
       record the items if an earlier attempt could not
    5. Obtain the upstream preference, keyed by the Purchase id
    6. Attach the preference id to the Purchase

    Args:
        request: CheckoutRequest with items, optional buyer_email, optional purchase_id
        store: Purchase persistence
        gateway: Upstream payment API
        settings: Runtime configuration

    Returns:
        CheckoutResult with the redirect URL and the local purchase id

    Raises:
        CheckoutValidationError, AmountExceedsLimit, UnsafeRedirectScheme,
        PurchaseNotFound (retry with an unknown id), UpstreamUnavailable,
        PurchaseStoreUnavailable (items not recorded; retry with purchase_id)
    """
    # 1. Validate input
    _validate_items(request.items)
    buyer_email = normalize_buyer_email(request.buyer_email)

    # 2. Total and ceiling
    total_amount = calculate_total(request.items)
    limit = settings.max_checkout_amount()
    if total_amount > limit:
        raise AmountExceedsLimit(total_amount, limit, settings.currency)

    # 3. Callback URLs
    callbacks = build_callback_urls(settings.app_base_url)

    # 4. Local Purchase
    existing_preference_id: Optional[str] = None

    if request.purchase_id is not None:
        purchase = store.get(request.purchase_id)
        if purchase is None:
            raise PurchaseNotFound(request.purchase_id)
        if purchase.status is not PurchaseStatus.PENDING:
            raise CheckoutValidationError(
                f"Purchase {purchase.purchase_id} is already {purchase.status.value}"
            )
        if purchase.total_amount is not None and purchase.total_amount != total_amount:
            raise CheckoutValidationError(
                f"Items total {total_amount} does not match purchase total {purchase.total_amount}"
            )
        purchase_id = purchase.purchase_id
        existing_preference_id = purchase.upstream_preference_id
        if not store.list_items(purchase_id):
            _record_items(store, purchase_id, request.items)
        logger.info(
            "Retrying checkout issuance",
            extra={"purchase_id": str(purchase_id), "preference_id": existing_preference_id},
        )
    else:
        purchase_id = store.create(
            buyer_email=buyer_email or PLACEHOLDER_BUYER_EMAIL,
            total_amount=total_amount,
            currency=settings.currency,
        )
        _record_items(store, purchase_id, request.items)
        logger.info(
            "Pending purchase created",
            extra={"purchase_id": str(purchase_id), "total_amount": str(total_amount)},
        )

    # 5. Upstream preference
    try:
        if existing_preference_id:
            session = gateway.get_checkout_session(existing_preference_id)
        else:
            session = gateway.create_checkout_session(
                items=request.items,
                external_reference=str(purchase_id),
                back_urls=callbacks.back_urls,
                notification_url=callbacks.notification_url,
                idempotency_key=str(purchase_id),
                currency=settings.currency,
                auto_return=callbacks.auto_return,
                payer_email=buyer_email,
            )
    except MercadoPagoError as e:
        logger.warning(
            "Checkout session could not be created; purchase left pending",
            extra={"purchase_id": str(purchase_id), "error_code": e.error_code},
        )
        raise UpstreamUnavailable(
            f"Payment provider unavailable: {e.error_message}", purchase_id=purchase_id
        ) from e

    redirect_url = _redirect_url(session, settings.mercadopago_sandbox)
    if not redirect_url:
        raise UpstreamUnavailable("Payment provider returned no checkout URL", purchase_id=purchase_id)

    # 6. Attach the preference id (non-critical, last-write-wins)
    if session.preference_id != existing_preference_id:
        try:
            store.update(purchase_id, {"upstream_preference_id": session.preference_id})
        except Exception:
            # A retry re-issues under the same idempotency key and gets this session back.
            logger.exception(
                "Preference id could not be attached to purchase",
                extra={"purchase_id": str(purchase_id), "preference_id": session.preference_id},
            )

    return CheckoutResult(
        redirect_url=redirect_url,
        purchase_id=purchase_id,
        preference_id=session.preference_id,
        total_amount=total_amount,
        currency=settings.currency,
    )


__all__ = [
    "CheckoutRequest",
    "CheckoutResult",
    "create_checkout",
    "build_callback_urls",
    "validate_base_url",
    "normalize_buyer_email",
]
