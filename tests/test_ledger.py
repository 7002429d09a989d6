"""Tests for the wallet ledger (domain.ledger) over an in-memory wallet store."""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import MagicMock, patch
from uuid import uuid4

import pytest
from psycopg2 import errors as pg_errors

from hubcare.domain import ledger
from hubcare.domain.errors import (
    AccountNotFoundError,
    InsufficientFundsError,
    PaymentTimeoutError,
    ValidationError,
)
from helpers import InMemoryWallets

PAYER = str(uuid4())
PROVIDER = str(uuid4())
ADMIN = str(uuid4())


@pytest.fixture
def wallets():
    store = InMemoryWallets({PAYER: Decimal("500.00")}, admin_id=ADMIN)
    with store.patch_ledger():
        yield store


class TestTransfer:
    def test_credit_creates_wallet(self, wallets):
        record = ledger.transfer(MagicMock(), "CREDIT", PROVIDER, Decimal("25"), "Top up")
        assert record.balance_after == Decimal("25.00")
        assert record.kind is ledger.TransferKind.CREDIT
        assert wallets.balances[PROVIDER] == Decimal("25.00")

    def test_debit_reduces_balance_and_appends_row(self, wallets):
        record = ledger.transfer(MagicMock(), "DEBIT", PAYER, Decimal("100.00"), "Spend")
        assert record.balance_after == Decimal("400.00")
        assert wallets.transactions[-1]["type"] == "DEBIT"
        assert wallets.transactions[-1]["balance_after"] == Decimal("400.00")

    def test_debit_insufficient(self, wallets):
        with pytest.raises(InsufficientFundsError, match="Insufficient wallet balance"):
            ledger.transfer(MagicMock(), "DEBIT", PAYER, Decimal("500.01"), "Spend")
        assert wallets.balances[PAYER] == Decimal("500.00")
        assert wallets.transactions == []

    def test_debit_without_wallet(self, wallets):
        with pytest.raises(AccountNotFoundError):
            ledger.transfer(MagicMock(), "DEBIT", str(uuid4()), Decimal("1"), "Spend")

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5"), Decimal("0.004")])
    def test_non_positive_amount(self, wallets, amount):
        with pytest.raises(ValidationError):
            ledger.transfer(MagicMock(), "CREDIT", PAYER, amount, "Nothing")

    def test_debit_to_exactly_zero(self, wallets):
        record = ledger.transfer(MagicMock(), "DEBIT", PAYER, Decimal("500.00"), "All of it")
        assert record.balance_after == Decimal("0.00")

    def test_lock_timeout_maps_to_payment_timeout(self):
        with patch(
            "hubcare.domain.ledger.lock_wallets",
            side_effect=pg_errors.LockNotAvailable(),
        ), patch("hubcare.domain.ledger.ensure_wallet"):
            with pytest.raises(PaymentTimeoutError) as exc_info:
                ledger.transfer(MagicMock(), "CREDIT", PAYER, Decimal("1"), "x")
        assert exc_info.value.recoverable is True


class TestPayForService:
    def test_splits_payment_between_provider_and_platform(self, wallets):
        records = ledger.pay_for_service(
            MagicMock(), payer_id=PAYER, provider_id=PROVIDER, amount=Decimal("315.00")
        )
        assert [r.kind.value for r in records] == ["DEBIT", "CREDIT", "CREDIT"]
        assert wallets.balances[PAYER] == Decimal("185.00")
        assert wallets.balances[PROVIDER] == Decimal("252.00")
        assert wallets.balances[ADMIN] == Decimal("63.00")

    def test_money_is_conserved(self, wallets):
        before = sum(wallets.balances.values())
        ledger.pay_for_service(
            MagicMock(), payer_id=PAYER, provider_id=PROVIDER, amount=Decimal("99.99")
        )
        assert sum(wallets.balances.values()) == before

    def test_locks_all_parties_in_sorted_order(self, wallets):
        ledger.pay_for_service(
            MagicMock(), payer_id=PAYER, provider_id=PROVIDER, amount=Decimal("10")
        )
        assert wallets.lock_calls[0] == sorted({PAYER, PROVIDER, ADMIN})

    def test_insufficient_balance_leaves_no_rows(self, wallets):
        with pytest.raises(InsufficientFundsError):
            ledger.pay_for_service(
                MagicMock(), payer_id=PAYER, provider_id=PROVIDER, amount=Decimal("600")
            )
        assert wallets.transactions == []

    def test_platform_account_from_settings(self, wallets, monkeypatch):
        platform = str(uuid4())
        monkeypatch.setenv("PLATFORM_ACCOUNT_ID", platform)
        ledger.pay_for_service(
            MagicMock(), payer_id=PAYER, provider_id=PROVIDER, amount=Decimal("100")
        )
        assert wallets.balances[platform] == Decimal("20.00")
        assert ADMIN not in wallets.balances

    def test_no_platform_account(self):
        store = InMemoryWallets({PAYER: Decimal("100")}, admin_id=None)
        with store.patch_ledger():
            with pytest.raises(RuntimeError):
                ledger.pay_for_service(
                    MagicMock(), payer_id=PAYER, provider_id=PROVIDER, amount=Decimal("10")
                )


class TestCashAndRefund:
    def test_cash_settlement(self, wallets):
        records = ledger.settle_cash_payment(
            MagicMock(), provider_id=PROVIDER, amount=Decimal("200.00"), booking_id="b-1"
        )
        assert [r.description for r in records] == [
            "Cash payment received",
            "Platform commission deducted",
            "Platform commission for booking",
        ]
        assert wallets.balances[PROVIDER] == Decimal("160.00")
        assert wallets.balances[ADMIN] == Decimal("40.00")

    def test_refund_credits_user(self, wallets):
        record = ledger.refund(
            MagicMock(), user_id=PAYER, amount=Decimal("315.00"), booking_id="b-1"
        )
        assert record.description == ledger.REFUND_DESCRIPTION
        assert wallets.balances[PAYER] == Decimal("815.00")

    def test_ledger_sums_match_balances(self, wallets):
        cur = MagicMock()
        ledger.pay_for_service(cur, payer_id=PAYER, provider_id=PROVIDER, amount=Decimal("120"))
        ledger.refund(cur, user_id=PAYER, amount=Decimal("120"), booking_id="b-1")
        ledger.settle_cash_payment(cur, provider_id=PROVIDER, amount=Decimal("50"), booking_id="b-2")
        for account in (PROVIDER, ADMIN):
            assert wallets.ledger_sum(account) == wallets.balances[account]
        # PAYER started with an opening balance outside the ledger
        assert wallets.ledger_sum(PAYER) == wallets.balances[PAYER] - Decimal("500.00")
