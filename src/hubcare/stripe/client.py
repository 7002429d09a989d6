"""Thin wrapper around Stripe SDK for wallet recharges.

Purpose:
- Encapsulate Stripe API calls so domain code doesn't import stripe.* directly.
- One synchronous attempt per call: no SDK network retries, bounded timeout.
- Never log full Stripe payloads or payment tokens (only IDs + correlation).
"""

from __future__ import annotations

import os
from decimal import Decimal
from typing import Any

import stripe

from hubcare.domain.errors import ExternalServiceError, PaymentTimeoutError
from hubcare.domain.pricing import round2, to_decimal
from hubcare.observability.logging import get_logger
from hubcare.observability.redaction import safe_log_context
from hubcare.settings import get_settings

logger = get_logger(__name__)


def to_minor_units(amount: Decimal) -> int:
    """Decimal currency amount -> integer cents."""
    return int(round2(to_decimal(amount)) * 100)


class StripeClient:
    """Wrapper for Stripe PaymentIntent charges.

    Usage:
        client = StripeClient()  # reads STRIPE_SECRET_KEY from env
        result = client.charge(
            amount=Decimal("50.00"),
            payment_token="pm_card_visa",
            idempotency_key="recharge:user-1:abc",
        )
        if result["status"]:
            print(result["id"])
    """

    def __init__(
        self,
        api_key: str | None = None,
        *,
        currency: str | None = None,
        timeout_seconds: int | None = None,
    ) -> None:
        """Initialize the Stripe client.

        Args:
            api_key: Stripe secret key. Defaults to STRIPE_SECRET_KEY env var.
            currency: Charge currency. Defaults to STRIPE_CURRENCY.
            timeout_seconds: HTTP timeout. Defaults to STRIPE_TIMEOUT_SECONDS.

        Raises:
            RuntimeError: If no API key is provided or found in environment.
        """
        self._api_key = api_key or os.environ.get("STRIPE_SECRET_KEY")
        if not self._api_key:
            raise RuntimeError(
                "Stripe API key not provided. "
                "Set STRIPE_SECRET_KEY or pass api_key parameter."
            )
        settings = get_settings()
        self._currency = (currency or settings.stripe_currency).lower()
        self._timeout = timeout_seconds or settings.stripe_timeout_seconds

    def _client(self) -> stripe.StripeClient:
        return stripe.StripeClient(
            self._api_key,
            max_network_retries=0,
            http_client=stripe.RequestsClient(timeout=self._timeout),
        )

    def charge(
        self,
        *,
        amount: Decimal,
        payment_token: str,
        idempotency_key: str | None = None,
        description: str | None = None,
        metadata: dict[str, str] | None = None,
        correlation_id: str | None = None,
    ) -> dict[str, Any]:
        """Charge a card token or payment method immediately.

        Args:
            amount: Amount in major units (e.g. 50.00).
            payment_token: Stripe token (tok_...) or payment method (pm_...).
            idempotency_key: Optional idempotency key for safe client retries.
            description: Optional charge description.
            metadata: Optional metadata (must be PII-free).
            correlation_id: Optional correlation ID for logging.

        Returns:
            {"status": True, "id": payment_intent_id} on success,
            {"status": False, "error": message} when declined.

        Raises:
            PaymentTimeoutError: Network failure or timeout talking to Stripe.
            ExternalServiceError: Any other Stripe API failure.
        """
        params: dict[str, Any] = {
            "amount": to_minor_units(amount),
            "currency": self._currency,
            "confirm": True,
            "automatic_payment_methods": {"enabled": True, "allow_redirects": "never"},
        }
        if payment_token.startswith("tok_"):
            params["payment_method_data"] = {"type": "card", "card": {"token": payment_token}}
        else:
            params["payment_method"] = payment_token
        if description:
            params["description"] = description
        if metadata:
            params["metadata"] = metadata

        options: dict[str, Any] = {}
        if idempotency_key:
            options["idempotency_key"] = idempotency_key

        log_ctx = safe_log_context(
            correlationId=correlation_id or "",
            amount_cents=params["amount"],
            currency=self._currency,
        )

        try:
            intent = self._client().v1.payment_intents.create(params=params, options=options)
        except stripe.CardError as e:
            logger.info(
                "stripe charge declined",
                extra={"extra_fields": safe_log_context(**log_ctx, decline_code=e.code or "")},
            )
            return {"status": False, "error": e.user_message or "Card was declined"}
        except stripe.APIConnectionError as e:
            logger.warning(
                "stripe charge connection failed",
                extra={"extra_fields": safe_log_context(**log_ctx, error_type=type(e).__name__)},
            )
            raise PaymentTimeoutError("Payment processor did not respond, please retry") from e
        except stripe.StripeError as e:
            logger.error(
                "stripe charge failed",
                extra={"extra_fields": safe_log_context(**log_ctx, error_type=type(e).__name__)},
            )
            raise ExternalServiceError("Payment processor error", recoverable=False) from e

        if intent.status != "succeeded":
            logger.info(
                "stripe charge not completed",
                extra={"extra_fields": safe_log_context(**log_ctx, intent_status=intent.status)},
            )
            return {"status": False, "error": "Stripe charge failed"}

        # Log only IDs, never full payload
        logger.info(
            "stripe charge succeeded",
            extra={"extra_fields": safe_log_context(**log_ctx, payment_intent_id=intent.id)},
        )
        return {"status": True, "id": intent.id}
