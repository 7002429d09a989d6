"""Wallet recharge and ledger reads.

The processor charge runs before (and outside) the ledger transaction, so no
row lock is held across the remote call.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING

from hubcare.domain import ledger
from hubcare.domain.errors import (
    NotFoundError,
    PaymentDeclinedError,
    RechargeNotCreditedError,
    ValidationError,
)
from hubcare.domain.pricing import round2, to_decimal
from hubcare.infra.db import txn
from hubcare.infra.repositories.wallet_repository import (
    count_transactions,
    get_wallet,
    list_transactions,
    transaction_totals,
)
from hubcare.observability.correlation import get_correlation_id
from hubcare.observability.logging import get_logger
from hubcare.observability.redaction import safe_log_context
from hubcare.settings import get_settings

if TYPE_CHECKING:
    from hubcare.stripe.client import StripeClient

logger = get_logger(__name__)

DEFAULT_RECHARGE_DESCRIPTION = "Wallet recharge via Stripe"

# Module-level stripe client (lazy init, can be overridden for tests)
_stripe_client: StripeClient | None = None


def _get_stripe_client() -> StripeClient:
    """Get stripe client (allows override in tests)."""
    global _stripe_client
    if _stripe_client is None:
        from hubcare.stripe.client import StripeClient
        _stripe_client = StripeClient()
    return _stripe_client


def recharge_wallet(
    *,
    user_id: str,
    amount: Decimal,
    payment_token: str,
    description: str | None = None,
    idempotency_key: str | None = None,
) -> dict:
    """Charge the processor, then credit the wallet.

    Args:
        user_id: Wallet owner.
        amount: Positive recharge amount.
        payment_token: Processor token or payment method id.
        description: Ledger description (default "Wallet recharge via Stripe").
        idempotency_key: Forwarded to the processor.

    Returns:
        {"balance": Decimal, "payment_intent_id": str, "transaction": TransactionRecord}

    Raises:
        ValidationError: Non-positive amount or missing token.
        PaymentDeclinedError: Processor declined the charge (402).
        PaymentTimeoutError: Processor timed out.
        RechargeNotCreditedError: Charge succeeded but the ledger credit failed.
        ExternalServiceError: Other processor failure.
    """
    value = round2(to_decimal(amount))
    if value <= 0:
        raise ValidationError("Amount must be greater than zero")
    if not payment_token:
        raise ValidationError("Payment token is required")

    result = _get_stripe_client().charge(
        amount=value,
        payment_token=payment_token,
        idempotency_key=idempotency_key,
        description=description or DEFAULT_RECHARGE_DESCRIPTION,
        metadata={"user_id": user_id},
        correlation_id=get_correlation_id(),
    )
    if not result.get("status"):
        raise PaymentDeclinedError("Stripe charge failed")

    try:
        with txn(lock_timeout_ms=get_settings().wallet_lock_timeout_ms) as cur:
            record = ledger.transfer(
                cur,
                ledger.TransferKind.CREDIT,
                user_id,
                value,
                description or DEFAULT_RECHARGE_DESCRIPTION,
                payment_reference=result["id"],
            )
    except Exception as e:
        # The charge is captured; the intent id is the only link back to it
        logger.error(
            "wallet credit failed after charge",
            extra={
                "extra_fields": safe_log_context(
                    user_id=user_id,
                    amount=value,
                    payment_intent_id=result["id"],
                    error_type=type(e).__name__,
                )
            },
        )
        raise RechargeNotCreditedError(result["id"]) from e

    logger.info(
        "wallet recharged",
        extra={
            "extra_fields": safe_log_context(
                user_id=user_id, amount=value, payment_intent_id=result["id"]
            )
        },
    )
    return {
        "balance": record.balance_after,
        "payment_intent_id": result["id"],
        "transaction": record,
    }


def get_user_wallet(user_id: str) -> dict:
    """Wallet of user_id.

    Raises:
        NotFoundError: User has no wallet yet.
    """
    with txn() as cur:
        wallet = get_wallet(cur, user_id)
    if wallet is None:
        raise NotFoundError("Wallet not found")
    return wallet


def get_transactions(user_id: str, *, page: int = 1, limit: int = 20) -> dict:
    """Paginated transactions, newest first."""
    offset = (page - 1) * limit
    with txn() as cur:
        total = count_transactions(cur, user_id)
        items = list_transactions(cur, user_id, limit=limit, offset=offset)
    return {"items": items, "total": total, "page": page, "limit": limit}


def get_transaction_summary(user_id: str, *, limit: int = 20) -> dict:
    """Balance, CREDIT/DEBIT totals and latest transactions for an account."""
    with txn() as cur:
        wallet = get_wallet(cur, user_id)
        totals = transaction_totals(cur, user_id)
        latest = list_transactions(cur, user_id, limit=limit)
    return {
        "balance": wallet["balance"] if wallet else Decimal("0.00"),
        "total_credit": totals["total_credit"],
        "total_debit": totals["total_debit"],
        "count": totals["count"],
        "transactions": latest,
    }
