"""Tests for wallet recharge (domain.wallet) and the /wallet, /admin endpoints."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import MagicMock, patch
from uuid import uuid4

import psycopg2
import pytest
from fastapi.testclient import TestClient

from hubcare.api.auth import CurrentUser, get_current_user
from hubcare.api.factory import create_app
from hubcare.domain import wallet
from hubcare.domain.errors import (
    ExternalServiceError,
    NotFoundError,
    PaymentDeclinedError,
    PaymentTimeoutError,
    RechargeNotCreditedError,
    ValidationError,
)
from helpers import InMemoryWallets, fake_txn

USER = str(uuid4())


@pytest.fixture
def stripe_client():
    client = MagicMock()
    client.charge.return_value = {"status": True, "id": "pi_123"}
    wallet._stripe_client = client
    return client


@pytest.fixture
def wallets():
    store = InMemoryWallets({USER: Decimal("10.00")})
    with store.patch_ledger(), patch("hubcare.domain.wallet.txn", fake_txn):
        yield store


# ---------------------------------------------------------------------------
# Domain
# ---------------------------------------------------------------------------


class TestRechargeWallet:
    def test_credits_after_successful_charge(self, stripe_client, wallets):
        result = wallet.recharge_wallet(
            user_id=USER, amount=Decimal("50"), payment_token="tok_visa", idempotency_key="k-1"
        )
        assert result["balance"] == Decimal("60.00")
        assert result["payment_intent_id"] == "pi_123"
        row = wallets.transactions[-1]
        assert row["payment_reference"] == "pi_123"
        assert row["description"] == "Wallet recharge via Stripe"
        kwargs = stripe_client.charge.call_args.kwargs
        assert kwargs["amount"] == Decimal("50.00")
        assert kwargs["idempotency_key"] == "k-1"

    def test_declined_charge_credits_nothing(self, stripe_client, wallets):
        stripe_client.charge.return_value = {"status": False, "error": "Card was declined"}
        with pytest.raises(PaymentDeclinedError) as exc_info:
            wallet.recharge_wallet(user_id=USER, amount=Decimal("50"), payment_token="tok_x")
        assert exc_info.value.status_code == 402
        assert wallets.transactions == []
        assert wallets.balances[USER] == Decimal("10.00")

    def test_processor_timeout_propagates(self, stripe_client, wallets):
        stripe_client.charge.side_effect = PaymentTimeoutError()
        with pytest.raises(PaymentTimeoutError):
            wallet.recharge_wallet(user_id=USER, amount=Decimal("5"), payment_token="pm_x")
        assert wallets.transactions == []

    def test_ledger_failure_after_charge_keeps_intent_id(self, stripe_client, wallets):
        with patch(
            "hubcare.domain.ledger.insert_transaction",
            side_effect=psycopg2.OperationalError("connection lost"),
        ), patch("hubcare.domain.wallet.logger") as mock_logger:
            with pytest.raises(RechargeNotCreditedError) as exc_info:
                wallet.recharge_wallet(user_id=USER, amount=Decimal("50"), payment_token="tok_visa")
        err = exc_info.value
        assert err.payment_intent_id == "pi_123"
        assert err.status_code == 502
        assert err.recoverable is False
        assert "pi_123" in err.message
        assert isinstance(err.__cause__, psycopg2.OperationalError)
        stripe_client.charge.assert_called_once()
        fields = mock_logger.error.call_args.kwargs["extra"]["extra_fields"]
        assert fields["payment_intent_id"] == "pi_123"
        assert fields["error_type"] == "OperationalError"

    def test_custom_description(self, stripe_client, wallets):
        wallet.recharge_wallet(
            user_id=USER, amount=Decimal("5"), payment_token="pm_x", description="Gift"
        )
        assert wallets.transactions[-1]["description"] == "Gift"

    @pytest.mark.parametrize("amount,token", [(Decimal("0"), "tok_x"), (Decimal("5"), "")])
    def test_invalid_input_never_charges(self, stripe_client, amount, token):
        with pytest.raises(ValidationError):
            wallet.recharge_wallet(user_id=USER, amount=amount, payment_token=token)
        stripe_client.charge.assert_not_called()


class TestWalletReads:
    def test_missing_wallet(self):
        with patch("hubcare.domain.wallet.txn", fake_txn), \
             patch("hubcare.domain.wallet.get_wallet", return_value=None):
            with pytest.raises(NotFoundError):
                wallet.get_user_wallet(USER)

    def test_transactions_paginated(self):
        with patch("hubcare.domain.wallet.txn", fake_txn), \
             patch("hubcare.domain.wallet.count_transactions", return_value=45), \
             patch("hubcare.domain.wallet.list_transactions", return_value=[]) as mock_list:
            result = wallet.get_transactions(USER, page=3, limit=20)
        assert result["total"] == 45
        assert mock_list.call_args.kwargs == {"limit": 20, "offset": 40}

    def test_summary_without_wallet(self):
        totals = {"total_credit": Decimal("0"), "total_debit": Decimal("0"), "count": 0}
        with patch("hubcare.domain.wallet.txn", fake_txn), \
             patch("hubcare.domain.wallet.get_wallet", return_value=None), \
             patch("hubcare.domain.wallet.transaction_totals", return_value=totals), \
             patch("hubcare.domain.wallet.list_transactions", return_value=[]):
            summary = wallet.get_transaction_summary(USER)
        assert summary["balance"] == Decimal("0.00")
        assert summary["count"] == 0


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


def _client(role: str = "User", user_id: str = USER) -> TestClient:
    app = create_app()
    app.dependency_overrides[get_current_user] = lambda: CurrentUser(
        id=user_id, role=role, name="Test", email=None
    )
    return TestClient(app, raise_server_exceptions=False)


def _tx(amount: str, kind: str) -> dict:
    return {
        "id": str(uuid4()),
        "amount": Decimal(amount),
        "type": kind,
        "description": "x",
        "balance_after": Decimal("1.00"),
        "booking_id": None,
        "payment_reference": None,
        "created_at": datetime(2025, 1, 1, tzinfo=timezone.utc),
    }


class TestWalletEndpoints:
    def test_add_money(self):
        record = MagicMock(id="tx-1")
        result = {"balance": Decimal("60.00"), "payment_intent_id": "pi_123", "transaction": record}
        with patch("hubcare.domain.wallet.recharge_wallet", return_value=result) as mock_recharge:
            resp = _client().post(
                "/wallet/add",
                json={"amount": 50, "token": "tok_visa"},
                headers={"Idempotency-Key": "idem-1"},
            )
        assert resp.status_code == 200
        assert resp.json()["data"] == {
            "balance": 60.0,
            "paymentIntentId": "pi_123",
            "transactionId": "tx-1",
        }
        assert mock_recharge.call_args.kwargs["idempotency_key"] == "idem-1"

    def test_add_money_accepts_payment_method(self):
        result = {"balance": Decimal("5"), "payment_intent_id": "pi_1", "transaction": MagicMock(id="t")}
        with patch("hubcare.domain.wallet.recharge_wallet", return_value=result) as mock_recharge:
            resp = _client().post("/wallet/add", json={"amount": 5, "paymentMethod": "pm_card"})
        assert resp.status_code == 200
        assert mock_recharge.call_args.kwargs["payment_token"] == "pm_card"

    def test_declined_is_402(self):
        with patch(
            "hubcare.domain.wallet.recharge_wallet",
            side_effect=PaymentDeclinedError("Stripe charge failed"),
        ):
            resp = _client().post("/wallet/add", json={"amount": 50, "token": "tok_x"})
        assert resp.status_code == 402
        assert resp.json() == {
            "status": False,
            "message": "Stripe charge failed",
            "error": "PAYMENT_DECLINED",
        }

    def test_uncredited_charge_is_502_with_reference(self):
        with patch(
            "hubcare.domain.wallet.recharge_wallet",
            side_effect=RechargeNotCreditedError("pi_999"),
        ):
            resp = _client().post("/wallet/add", json={"amount": 50, "token": "tok_x"})
        assert resp.status_code == 502
        body = resp.json()
        assert body["error"] == "RECHARGE_NOT_CREDITED"
        assert "pi_999" in body["message"]

    def test_processor_failure_is_502(self):
        with patch(
            "hubcare.domain.wallet.recharge_wallet",
            side_effect=ExternalServiceError("Payment processor error"),
        ):
            resp = _client().post("/wallet/add", json={"amount": 50, "token": "tok_x"})
        assert resp.status_code == 502

    @pytest.mark.parametrize(
        "body",
        [
            {"amount": 50},
            {"amount": 0, "token": "tok_x"},
            {"amount": "10.123", "token": "tok_x"},
        ],
    )
    def test_invalid_body_is_400(self, body):
        resp = _client().post("/wallet/add", json=body)
        assert resp.status_code == 400

    def test_transactions(self):
        result = {"items": [_tx("5.00", "CREDIT")], "total": 1, "page": 1, "limit": 20}
        with patch("hubcare.domain.wallet.get_transactions", return_value=result):
            resp = _client().get("/wallet/transactions")
        data = resp.json()["data"]
        assert data["totalCount"] == 1
        assert data["transactions"][0]["type"] == "CREDIT"

    def test_requires_auth(self):
        resp = TestClient(create_app()).get("/wallet")
        assert resp.status_code == 401
        assert resp.json()["message"] == "User is not authenticated."


class TestAdminEndpoints:
    def test_user_cannot_read_admin_summary(self):
        resp = _client(role="User").get(f"/admin/wallet/{uuid4()}/transactions")
        assert resp.status_code == 403

    def test_transaction_summary(self):
        summary = {
            "balance": Decimal("185.00"),
            "total_credit": Decimal("500.00"),
            "total_debit": Decimal("315.00"),
            "count": 2,
            "transactions": [_tx("315.00", "DEBIT"), _tx("500.00", "CREDIT")],
        }
        with patch("hubcare.domain.wallet.get_transaction_summary", return_value=summary):
            resp = _client(role="Admin").get(f"/admin/wallet/{USER}/transactions")
        data = resp.json()["data"]
        assert data["balance"] == 185.0
        assert data["totalCredit"] - data["totalDebit"] == data["balance"]
        assert len(data["transactions"]) == 2

    def test_booking_history_date_range(self):
        with patch(
            "hubcare.api.routes.admin._list_user_bookings", return_value=([], 0)
        ) as mock_list:
            resp = _client(role="Admin").get(
                f"/admin/users/{USER}/bookings?bookingStatus=COMPLETED"
                "&startDate=2025-01-01&endDate=2025-01-31"
            )
        assert resp.status_code == 200
        kwargs = mock_list.call_args.kwargs
        assert kwargs["booking_status"] == "COMPLETED"
        assert kwargs["start_date"].isoformat() == "2025-01-01"

    def test_booking_history_inverted_range(self):
        resp = _client(role="Admin").get(
            f"/admin/users/{USER}/bookings?startDate=2025-02-01&endDate=2025-01-01"
        )
        assert resp.status_code == 400
