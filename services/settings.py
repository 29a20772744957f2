"""
Service configuration.

Everything is controlled by environment variables (optionally loaded from a
`.env` file next to the project root) so the service runs locally, in CI and
in production without code changes.

Environment variables:
- APP_ENV: "production" enables fail-closed webhook authentication (default: development)
- APP_BASE_URL: Public base URL used to build checkout callback URLs
- MERCADOPAGO_ACCESS_TOKEN: Server-side access token for the MercadoPago API
- MERCADOPAGO_WEBHOOK_SECRET: Secret used to sign webhook notifications
- MERCADOPAGO_SANDBOX: "true" to redirect buyers to the sandbox checkout
- MERCADOPAGO_TIMEOUT: Upstream request timeout in seconds (default: 5)
- MERCADOPAGO_NOTIFICATION_TIMEOUT: Timeout for the payment fetch while handling a
  webhook, in seconds (default: 0.8); the sender expects a sub-second acknowledgement
- MERCADOPAGO_CURRENCY: ISO currency of all prices (default: ARS)
- MAX_CHECKOUT_AMOUNT: Per-checkout ceiling for the configured currency
- PURCHASE_STORE: "supabase" (default) or "memory"
- LOG_LEVEL: Root log level for the API process (default: INFO)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from functools import lru_cache
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

env_path = Path(__file__).parent.parent / ".env"

# Currencies accepted by Checkout Pro, one per supported country.
SUPPORTED_CURRENCIES = frozenset({"ARS", "BRL", "CLP", "COP", "MXN", "PEN", "UYU"})

# Largest value purchases.total_amount (NUMERIC(10,2)) can hold.
DEFAULT_MAX_CHECKOUT_AMOUNT = Decimal("99999999.99")

# Seconds; keeps webhook handling inside the sender's acknowledgement window.
DEFAULT_NOTIFICATION_TIMEOUT: float = 0.8

MAX_ITEMS_PER_CHECKOUT: int = 100
MAX_ITEM_QUANTITY: int = 100

_TRUTHY = {"1", "true", "yes", "on"}


def _parse_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in _TRUTHY


def _parse_decimal(name: str, value: str) -> Decimal:
    try:
        parsed = Decimal(value)
    except InvalidOperation:
        raise RuntimeError(f"{name} must be a decimal number, got {value!r}") from None
    if not parsed.is_finite() or parsed <= 0:
        raise RuntimeError(f"{name} must be a positive number, got {value!r}")
    return parsed



def _parse_seconds(name: str, value: str) -> float:
    try:
        return float(value)
    except ValueError:
        raise RuntimeError(f"{name} must be a number, got {value!r}") from None

@dataclass(frozen=True)
class Settings:
    """Immutable runtime configuration."""

    app_env: str = "development"
    app_base_url: str = "http://localhost:8000"
    mercadopago_access_token: Optional[str] = None
    mercadopago_webhook_secret: Optional[str] = None
    mercadopago_sandbox: bool = False
    mercadopago_timeout: float = 5.0
    mercadopago_notification_timeout: float = DEFAULT_NOTIFICATION_TIMEOUT
    currency: str = "ARS"
    amount_limits: Mapping[str, Decimal] = field(default_factory=dict)
    purchase_store: str = "supabase"
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.currency not in SUPPORTED_CURRENCIES:
            raise RuntimeError(
                f"Unsupported currency {self.currency!r}. "
                f"Expected one of: {', '.join(sorted(SUPPORTED_CURRENCIES))}"
            )
        if self.mercadopago_timeout <= 0:
            raise RuntimeError("MERCADOPAGO_TIMEOUT must be greater than zero")
        if self.mercadopago_notification_timeout <= 0:
            raise RuntimeError("MERCADOPAGO_NOTIFICATION_TIMEOUT must be greater than zero")
        if self.purchase_store not in {"supabase", "memory"}:
            raise RuntimeError("PURCHASE_STORE must be 'supabase' or 'memory'")

    @property
    def is_production(self) -> bool:
        return self.app_env.strip().lower() in {"production", "prod"}

    def max_checkout_amount(self, currency: Optional[str] = None) -> Decimal:
        """Ceiling for a single checkout total in the given (or configured) currency."""

        return self.amount_limits.get(currency or self.currency, DEFAULT_MAX_CHECKOUT_AMOUNT)

    @classmethod
    def from_env(cls) -> "Settings":
        """Build Settings from the process environment (after loading `.env`)."""

        load_dotenv(dotenv_path=env_path)

        currency = os.getenv("MERCADOPAGO_CURRENCY", "ARS").strip().upper()
        limits: dict[str, Decimal] = {}
        max_amount = os.getenv("MAX_CHECKOUT_AMOUNT")
        if max_amount:
            limits[currency] = _parse_decimal("MAX_CHECKOUT_AMOUNT", max_amount)

        timeout = _parse_seconds("MERCADOPAGO_TIMEOUT", os.getenv("MERCADOPAGO_TIMEOUT", "5"))
        notification_timeout = _parse_seconds(
            "MERCADOPAGO_NOTIFICATION_TIMEOUT",
            os.getenv("MERCADOPAGO_NOTIFICATION_TIMEOUT", str(DEFAULT_NOTIFICATION_TIMEOUT)),
        )

        return cls(
            app_env=os.getenv("APP_ENV", "development"),
            app_base_url=os.getenv("APP_BASE_URL", "http://localhost:8000"),
            mercadopago_access_token=os.getenv("MERCADOPAGO_ACCESS_TOKEN") or None,
            mercadopago_webhook_secret=os.getenv("MERCADOPAGO_WEBHOOK_SECRET") or None,
            mercadopago_sandbox=_parse_bool(os.getenv("MERCADOPAGO_SANDBOX")),
            mercadopago_timeout=timeout,
            mercadopago_notification_timeout=notification_timeout,
            currency=currency,
            amount_limits=limits,
            purchase_store=os.getenv("PURCHASE_STORE", "supabase").strip().lower(),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Process-wide Settings, read once."""

    return Settings.from_env()


__all__ = [
    "Settings",
    "get_settings",
    "SUPPORTED_CURRENCIES",
    "DEFAULT_MAX_CHECKOUT_AMOUNT",
    "DEFAULT_NOTIFICATION_TIMEOUT",
    "MAX_ITEMS_PER_CHECKOUT",
    "MAX_ITEM_QUANTITY",
]
