"""
Tests for `services/settings.py`.
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from services import settings as settings_module
from services.settings import DEFAULT_MAX_CHECKOUT_AMOUNT, DEFAULT_NOTIFICATION_TIMEOUT, Settings

_ENV_VARS = [
    "APP_ENV",
    "APP_BASE_URL",
    "MERCADOPAGO_ACCESS_TOKEN",
    "MERCADOPAGO_WEBHOOK_SECRET",
    "MERCADOPAGO_SANDBOX",
    "MERCADOPAGO_TIMEOUT",
    "MERCADOPAGO_NOTIFICATION_TIMEOUT",
    "MERCADOPAGO_CURRENCY",
    "MAX_CHECKOUT_AMOUNT",
    "PURCHASE_STORE",
    "LOG_LEVEL",
]


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    # Point .env loading at an empty directory so only monkeypatched values apply.
    monkeypatch.setattr(settings_module, "env_path", tmp_path / ".env")
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_from_env_defaults(clean_env) -> None:
    settings = Settings.from_env()

    assert settings.app_env == "development"
    assert settings.app_base_url == "http://localhost:8000"
    assert settings.mercadopago_webhook_secret is None
    assert settings.mercadopago_sandbox is False
    assert settings.mercadopago_timeout == 5.0
    assert settings.mercadopago_notification_timeout == DEFAULT_NOTIFICATION_TIMEOUT
    assert settings.currency == "ARS"
    assert settings.purchase_store == "supabase"
    assert settings.max_checkout_amount() == DEFAULT_MAX_CHECKOUT_AMOUNT


def test_from_env_reads_overrides(clean_env) -> None:
    clean_env.setenv("APP_ENV", "production")
    clean_env.setenv("APP_BASE_URL", "https://shop.example.com")
    clean_env.setenv("MERCADOPAGO_WEBHOOK_SECRET", "s3cret")
    clean_env.setenv("MERCADOPAGO_SANDBOX", "yes")
    clean_env.setenv("MERCADOPAGO_TIMEOUT", "2.5")
    clean_env.setenv("MERCADOPAGO_NOTIFICATION_TIMEOUT", "0.3")
    clean_env.setenv("MERCADOPAGO_CURRENCY", "brl")
    clean_env.setenv("MAX_CHECKOUT_AMOUNT", "1000.50")
    clean_env.setenv("PURCHASE_STORE", "Memory")
    clean_env.setenv("LOG_LEVEL", "debug")

    settings = Settings.from_env()

    assert settings.is_production
    assert settings.app_base_url == "https://shop.example.com"
    assert settings.mercadopago_webhook_secret == "s3cret"
    assert settings.mercadopago_sandbox is True
    assert settings.mercadopago_timeout == 2.5
    assert settings.mercadopago_notification_timeout == 0.3
    assert settings.currency == "BRL"
    assert settings.max_checkout_amount() == Decimal("1000.50")
    assert settings.max_checkout_amount("ARS") == DEFAULT_MAX_CHECKOUT_AMOUNT
    assert settings.purchase_store == "memory"
    assert settings.log_level == "DEBUG"


def test_empty_secret_is_treated_as_missing(clean_env) -> None:
    clean_env.setenv("MERCADOPAGO_WEBHOOK_SECRET", "")

    assert Settings.from_env().mercadopago_webhook_secret is None


@pytest.mark.parametrize(
    "name, value",
    [
        ("MAX_CHECKOUT_AMOUNT", "lots"),
        ("MAX_CHECKOUT_AMOUNT", "-1"),
        ("MERCADOPAGO_TIMEOUT", "soon"),
        ("MERCADOPAGO_TIMEOUT", "0"),
        ("MERCADOPAGO_NOTIFICATION_TIMEOUT", "0"),
        ("MERCADOPAGO_NOTIFICATION_TIMEOUT", "fast"),
        ("MERCADOPAGO_CURRENCY", "USD"),
        ("PURCHASE_STORE", "redis"),
    ],
)
def test_invalid_values_raise(clean_env, name, value) -> None:
    clean_env.setenv(name, value)

    with pytest.raises(RuntimeError):
        Settings.from_env()


@pytest.mark.parametrize("app_env, expected", [("production", True), ("PROD", True), ("staging", False)])
def test_is_production(app_env, expected) -> None:
    assert Settings(app_env=app_env).is_production is expected
