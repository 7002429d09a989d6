"""Shared pytest fixtures for Hubcare tests."""
import sys
sys.dont_write_bytecode = True

import pytest  # noqa: E402

from helpers import JWT_SECRET  # noqa: E402


@pytest.fixture(autouse=True)
def _hubcare_env(monkeypatch):
    """Pin settings-relevant env vars so the host environment never leaks in."""
    monkeypatch.setenv("JWT_SECRET", JWT_SECRET)
    for name in (
        "BOOKING_TAX_RATE",
        "PROVIDER_SHARE_RATE",
        "PLATFORM_ACCOUNT_ID",
        "WALLET_LOCK_TIMEOUT_MS",
        "PUSH_GATEWAY_URL",
        "PUSH_API_KEY",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def _reset_stripe_client():
    """Reset the lazily-built module stripe client between tests."""
    import hubcare.domain.wallet as wallet_module

    wallet_module._stripe_client = None
    yield
    wallet_module._stripe_client = None
