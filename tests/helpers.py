"""Shared test helper functions for Hubcare tests.

This module contains helper functions that can be imported by both conftest.py
and individual test files. These are NOT fixtures - they are regular functions.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from datetime import date, datetime, time as dtime, timezone
from decimal import Decimal
from unittest.mock import MagicMock, patch
from uuid import uuid4

import jwt

JWT_SECRET = "test-secret"


def create_token(
    user_id: str,
    role: str = "User",
    secret: str = JWT_SECRET,
    exp: int | None = None,
) -> str:
    """Create HS256 JWT for testing."""
    now = int(time.time())
    payload = {
        "id": user_id,
        "role": role,
        "exp": exp if exp is not None else now + 3600,
        "iat": now,
    }
    return jwt.encode(payload, secret, algorithm="HS256")


def make_booking(**overrides) -> dict:
    """Booking row dict as returned by bookings_repository."""
    now = datetime(2025, 1, 10, 9, 0, tzinfo=timezone.utc)
    booking = {
        "id": str(uuid4()),
        "user_id": str(uuid4()),
        "provider_id": str(uuid4()),
        "service_id": str(uuid4()),
        "location_id": str(uuid4()),
        "service_date": date(2025, 1, 15),
        "start_time": dtime(10, 0),
        "number_of_worker": 2,
        "work_hours": Decimal("3"),
        "amount": Decimal("50.00"),
        "discount_amount": Decimal("0.00"),
        "tax_rate": Decimal("0.05"),
        "taxes_and_fees": Decimal("15.00"),
        "final_amount": Decimal("315.00"),
        "payment_method": "WALLET",
        "payment_status": "COMPLETED",
        "booking_status": "ACTIVE",
        "working_status": "NOT_STARTED",
        "worker_assign_status": "UNASSIGNED",
        "approved": False,
        "offer_id": None,
        "start_timestamp": None,
        "completed_at": None,
        "cancelled_at": None,
        "created_at": now,
        "updated_at": now,
        "service_name": "Deep Cleaning",
    }
    booking.update(overrides)
    return booking


@contextmanager
def fake_txn(*args, **kwargs):
    """Stand-in for hubcare.infra.db.txn yielding a MagicMock cursor."""
    yield MagicMock()


class InMemoryWallets:
    """In-memory wallets/wallet_transactions behind the wallet repository API.

    Use patch_ledger() to route hubcare.domain.ledger through it.
    """

    def __init__(self, balances: dict[str, Decimal] | None = None, admin_id: str | None = None):
        self.balances: dict[str, Decimal] = dict(balances or {})
        self.transactions: list[dict] = []
        self.admin_id = admin_id
        self.lock_calls: list[list[str]] = []

    def ensure_wallet(self, cur, user_id):
        self.balances.setdefault(user_id, Decimal("0.00"))

    def lock_wallets(self, cur, user_ids):
        ordered = sorted(set(user_ids))
        self.lock_calls.append(ordered)
        return {uid: self.balances[uid] for uid in ordered if uid in self.balances}

    def set_balance(self, cur, user_id, balance):
        self.balances[user_id] = balance

    def insert_transaction(self, cur, **row):
        row = dict(row, id=str(uuid4()), created_at=datetime.now(timezone.utc))
        self.transactions.append(row)
        return row

    def get_oldest_admin_id(self, cur):
        return self.admin_id

    def rows_for(self, user_id: str) -> list[dict]:
        return [t for t in self.transactions if t["user_id"] == user_id]

    def ledger_sum(self, user_id: str) -> Decimal:
        total = Decimal("0.00")
        for t in self.rows_for(user_id):
            total += t["amount"] if t["type"] == "CREDIT" else -t["amount"]
        return total

    @contextmanager
    def patch_ledger(self):
        with patch("hubcare.domain.ledger.ensure_wallet", side_effect=self.ensure_wallet), \
             patch("hubcare.domain.ledger.lock_wallets", side_effect=self.lock_wallets), \
             patch("hubcare.domain.ledger.set_balance", side_effect=self.set_balance), \
             patch("hubcare.domain.ledger.insert_transaction", side_effect=self.insert_transaction), \
             patch("hubcare.domain.ledger.get_oldest_admin_id", side_effect=self.get_oldest_admin_id):
            yield self
