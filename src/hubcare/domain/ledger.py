"""Wallet ledger.

Every balance change and its wallet_transactions row are written through the
same cursor, so they commit or roll back together. Wallet rows are locked
FOR UPDATE (ascending account id) before any read-modify-write.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum

from psycopg2.extensions import cursor as PgCursor

from hubcare.domain.errors import (
    AccountNotFoundError,
    InsufficientFundsError,
    PaymentTimeoutError,
    ValidationError,
)
from hubcare.domain.pricing import round2, split_commission, to_decimal
from hubcare.infra.db import is_lock_timeout
from hubcare.infra.repositories.wallet_repository import (
    ensure_wallet,
    get_oldest_admin_id,
    insert_transaction,
    lock_wallets,
    set_balance,
)
from hubcare.observability.logging import get_logger
from hubcare.observability.redaction import safe_log_context
from hubcare.settings import get_settings

logger = get_logger(__name__)

REFUND_DESCRIPTION = "Refund for cancelled booking"


class TransferKind(str, Enum):
    CREDIT = "CREDIT"
    DEBIT = "DEBIT"


@dataclass(frozen=True)
class TransactionRecord:
    id: str
    account_id: str
    amount: Decimal
    kind: TransferKind
    description: str
    balance_after: Decimal
    booking_id: str | None
    payment_reference: str | None
    created_at: datetime | None


def _lock(cur: PgCursor, account_ids: list[str]) -> dict[str, Decimal]:
    try:
        return lock_wallets(cur, account_ids)
    except Exception as exc:
        if is_lock_timeout(exc):
            raise PaymentTimeoutError("Wallet is busy, please retry") from exc
        raise


def _positive_amount(amount: Decimal | int | str) -> Decimal:
    value = round2(to_decimal(amount))
    if value <= 0:
        raise ValidationError("Amount must be greater than zero")
    return value


def transfer(
    cur: PgCursor,
    kind: TransferKind | str,
    account_id: str,
    amount: Decimal,
    description: str,
    *,
    booking_id: str | None = None,
    payment_reference: str | None = None,
) -> TransactionRecord:
    """Apply a single CREDIT or DEBIT to an account.

    Credits create the wallet on first use. Debits fail with
    AccountNotFoundError when the wallet is absent and InsufficientFundsError
    when the balance would go negative.

    Args:
        cur: Cursor of the enclosing transaction.
        kind: CREDIT or DEBIT.
        account_id: Wallet owner (user id).
        amount: Positive amount, rounded to cents.
        description: Human-readable ledger description.
        booking_id: Booking this movement belongs to, if any.
        payment_reference: External processor id, if any.

    Returns:
        TransactionRecord for the appended row.
    """
    kind = TransferKind(kind)
    value = _positive_amount(amount)

    if kind is TransferKind.CREDIT:
        ensure_wallet(cur, account_id)

    balances = _lock(cur, [account_id])
    if account_id not in balances:
        raise AccountNotFoundError(account_id)

    balance = balances[account_id]
    if kind is TransferKind.DEBIT:
        if balance < value:
            raise InsufficientFundsError("Insufficient wallet balance")
        new_balance = balance - value
    else:
        new_balance = balance + value

    set_balance(cur, account_id, new_balance)
    row = insert_transaction(
        cur,
        user_id=account_id,
        amount=value,
        type=kind.value,
        description=description,
        balance_after=new_balance,
        booking_id=booking_id,
        payment_reference=payment_reference,
    )

    logger.info(
        "wallet credited" if kind is TransferKind.CREDIT else "wallet debited",
        extra={
            "extra_fields": safe_log_context(
                account_id=account_id,
                amount=value,
                balance_after=new_balance,
                booking_id=booking_id,
            )
        },
    )

    return TransactionRecord(
        id=row["id"],
        account_id=account_id,
        amount=value,
        kind=kind,
        description=description,
        balance_after=new_balance,
        booking_id=booking_id,
        payment_reference=payment_reference,
        created_at=row.get("created_at"),
    )


def resolve_platform_account(cur: PgCursor) -> str:
    """Account that receives platform commission.

    Raises:
        RuntimeError: If neither PLATFORM_ACCOUNT_ID nor an Admin user exists.
    """
    configured = get_settings().platform_account_id
    if configured:
        return configured
    admin_id = get_oldest_admin_id(cur)
    if admin_id is None:
        raise RuntimeError("No platform account configured and no Admin user found")
    return admin_id


def _lock_parties(cur: PgCursor, credit_ids: list[str], all_ids: list[str]) -> None:
    for account_id in sorted(set(credit_ids)):
        ensure_wallet(cur, account_id)
    _lock(cur, all_ids)


def pay_for_service(
    cur: PgCursor,
    *,
    payer_id: str,
    provider_id: str,
    amount: Decimal,
    booking_id: str | None = None,
) -> list[TransactionRecord]:
    """Wallet payment for a booking.

    Debits the payer the full amount, credits the provider its share and
    credits the platform the commission remainder.

    Raises:
        AccountNotFoundError: Payer has no wallet.
        InsufficientFundsError: Payer balance below amount.
        PaymentTimeoutError: Wallet locks not acquired in time.
    """
    total = _positive_amount(amount)
    platform_id = resolve_platform_account(cur)
    provider_share, commission = split_commission(
        total, get_settings().provider_share_rate
    )

    _lock_parties(cur, [provider_id, platform_id], [payer_id, provider_id, platform_id])

    records = [
        transfer(
            cur,
            TransferKind.DEBIT,
            payer_id,
            total,
            "Service booking payment via wallet",
            booking_id=booking_id,
        )
    ]
    if provider_share > 0:
        records.append(
            transfer(
                cur,
                TransferKind.CREDIT,
                provider_id,
                provider_share,
                "Service payment received",
                booking_id=booking_id,
            )
        )
    if commission > 0:
        records.append(
            transfer(
                cur,
                TransferKind.CREDIT,
                platform_id,
                commission,
                "Platform commission for booking",
                booking_id=booking_id,
            )
        )
    return records


def settle_cash_payment(
    cur: PgCursor,
    *,
    provider_id: str,
    amount: Decimal,
    booking_id: str,
) -> list[TransactionRecord]:
    """Ledger a cash payment collected by the provider.

    The provider is credited the full amount, then debited the platform
    commission, which is credited to the platform account.
    """
    total = _positive_amount(amount)
    platform_id = resolve_platform_account(cur)
    _, commission = split_commission(total, get_settings().provider_share_rate)

    _lock_parties(cur, [provider_id, platform_id], [provider_id, platform_id])

    records = [
        transfer(
            cur,
            TransferKind.CREDIT,
            provider_id,
            total,
            "Cash payment received",
            booking_id=booking_id,
        )
    ]
    if commission > 0:
        records.append(
            transfer(
                cur,
                TransferKind.DEBIT,
                provider_id,
                commission,
                "Platform commission deducted",
                booking_id=booking_id,
            )
        )
        records.append(
            transfer(
                cur,
                TransferKind.CREDIT,
                platform_id,
                commission,
                "Platform commission for booking",
                booking_id=booking_id,
            )
        )
    return records


def refund(
    cur: PgCursor,
    *,
    user_id: str,
    amount: Decimal,
    booking_id: str,
) -> TransactionRecord:
    """Credit a cancelled booking's final amount back to the user."""
    record = transfer(
        cur,
        TransferKind.CREDIT,
        user_id,
        amount,
        REFUND_DESCRIPTION,
        booking_id=booking_id,
    )
    logger.info(
        "refund issued",
        extra={"extra_fields": safe_log_context(booking_id=booking_id, amount=record.amount)},
    )
    return record
