"""
Service-layer exceptions.

Checkout (issuance) errors surface synchronously to the caller. Notification
errors are either a hard rejection (AuthenticationFailure, AmountMismatch) or
are logged and acknowledged by the notification service.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional
from uuid import UUID


class CheckoutError(Exception):
    """Base class for all checkout and reconciliation errors."""
    pass


class CheckoutValidationError(CheckoutError):
    """Raised when cart items or buyer email are malformed (before any side effect)."""
    pass


class AmountExceedsLimit(CheckoutError):
    """Raised when a checkout total exceeds the configured ceiling for its currency."""

    def __init__(self, total_amount: Decimal, limit: Decimal, currency: str):
        self.total_amount = total_amount
        self.limit = limit
        self.currency = currency
        super().__init__(f"Checkout total {total_amount} {currency} exceeds the limit of {limit} {currency}")


class UnsafeRedirectScheme(CheckoutError):
    """Raised when the configured callback base URL is not a plain http(s) URL."""
    pass


class UpstreamUnavailable(CheckoutError):
    """
    Raised when the payment provider cannot be reached or refuses a request.

    purchase_id is set when a pending Purchase already exists; retrying the
    checkout with that id reuses the same idempotency key.
    """

    def __init__(self, message: str, purchase_id: Optional[UUID] = None):
        self.purchase_id = purchase_id
        super().__init__(message)


class PurchaseStoreUnavailable(CheckoutError):
    """
    Raised when a write to the purchase store fails after the pending Purchase
    was created.

    Retrying the checkout with purchase_id completes the issuance.
    """

    def __init__(self, message: str, purchase_id: UUID):
        self.purchase_id = purchase_id
        super().__init__(message)


class AuthenticationFailure(CheckoutError):
    """Raised when a webhook notification cannot be authenticated."""
    pass


class AmountMismatch(CheckoutError):
    """Raised when a notification confirms an amount different from the stored total."""

    def __init__(self, purchase_id: UUID, expected: Decimal, confirmed: Decimal):
        self.purchase_id = purchase_id
        self.expected = expected
        self.confirmed = confirmed
        super().__init__(
            f"Confirmed amount {confirmed} does not match purchase total {expected} for {purchase_id}"
        )


class PurchaseNotFound(CheckoutError):
    """Raised when a Purchase id does not resolve to a stored Purchase."""

    def __init__(self, purchase_id: UUID | str):
        self.purchase_id = purchase_id
        super().__init__(f"Purchase not found: {purchase_id}")


__all__ = [
    "CheckoutError",
    "CheckoutValidationError",
    "AmountExceedsLimit",
    "UnsafeRedirectScheme",
    "UpstreamUnavailable",
    "PurchaseStoreUnavailable",
    "AuthenticationFailure",
    "AmountMismatch",
    "PurchaseNotFound",
]
