"""Runtime settings loaded from environment variables.

Settings are read at call time so tests can patch os.environ freely.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation


@dataclass(frozen=True)
class Settings:
    """Service-wide configuration.

    Attributes:
        booking_tax_rate: Tax/fee rate applied to the discounted amount.
        provider_share_rate: Provider's share of a service payment.
        platform_account_id: Account credited with commission (None = oldest Admin).
        wallet_lock_timeout_ms: Max wait for wallet/booking row locks.
        jwt_secret: HS256 secret for bearer tokens.
        stripe_currency: Currency used for wallet recharges.
        stripe_timeout_seconds: HTTP timeout for processor calls.
        push_gateway_url: Push gateway endpoint (None disables push).
        push_api_key: Push gateway API key.
    """

    booking_tax_rate: Decimal = Decimal("0")
    provider_share_rate: Decimal = Decimal("0.8")
    platform_account_id: str | None = None
    wallet_lock_timeout_ms: int = 5000
    jwt_secret: str | None = None
    stripe_currency: str = "usd"
    stripe_timeout_seconds: int = 30
    push_gateway_url: str | None = None
    push_api_key: str | None = None


# Rates are stored as NUMERIC(6, 4)
RATE_PLACES = 4


def _decimal_env(name: str, default: str) -> Decimal:
    raw = os.environ.get(name, default)
    try:
        value = Decimal(raw)
    except InvalidOperation:
        raise RuntimeError(f"{name} must be a decimal number, got {raw!r}")
    if not value.is_finite():
        raise RuntimeError(f"{name} must be a decimal number, got {raw!r}")
    if -value.normalize().as_tuple().exponent > RATE_PLACES:
        raise RuntimeError(f"{name} allows at most {RATE_PLACES} decimal places, got {raw!r}")
    if value < 0 or value > 1:
        raise RuntimeError(f"{name} must be between 0 and 1, got {raw!r}")
    return value


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}")


def get_settings() -> Settings:
    """Build Settings from the current environment.

    Raises:
        RuntimeError: If a numeric variable cannot be parsed or is out of range.
    """
    return Settings(
        booking_tax_rate=_decimal_env("BOOKING_TAX_RATE", "0"),
        provider_share_rate=_decimal_env("PROVIDER_SHARE_RATE", "0.8"),
        platform_account_id=os.environ.get("PLATFORM_ACCOUNT_ID") or None,
        wallet_lock_timeout_ms=_int_env("WALLET_LOCK_TIMEOUT_MS", 5000),
        jwt_secret=os.environ.get("JWT_SECRET") or None,
        stripe_currency=os.environ.get("STRIPE_CURRENCY", "usd").lower(),
        stripe_timeout_seconds=_int_env("STRIPE_TIMEOUT_SECONDS", 30),
        push_gateway_url=os.environ.get("PUSH_GATEWAY_URL") or None,
        push_api_key=os.environ.get("PUSH_API_KEY") or None,
    )
