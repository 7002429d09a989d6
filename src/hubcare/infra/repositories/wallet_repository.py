"""Wallet repository - persistence for wallets and wallet_transactions.

Uses raw SQL with psycopg2 (no ORM).
wallet_transactions is append-only; the schema rejects UPDATE and DELETE.
"""

from __future__ import annotations

from decimal import Decimal

from psycopg2.extensions import cursor as PgCursor


def ensure_wallet(cur: PgCursor, user_id: str) -> None:
    """Create a zero-balance wallet for user_id if none exists."""
    cur.execute(
        """
        INSERT INTO wallets (user_id, balance)
        VALUES (%s, 0)
        ON CONFLICT (user_id) DO NOTHING
        """,
        (user_id,),
    )


def lock_wallets(cur: PgCursor, user_ids: list[str]) -> dict[str, Decimal]:
    """Lock wallet rows FOR UPDATE in ascending user_id order.

    A single ordered lock statement keeps concurrent multi-wallet transfers
    from deadlocking.

    Args:
        cur: Database cursor (within transaction).
        user_ids: Account ids to lock. Missing wallets are simply absent
            from the result.

    Returns:
        Mapping of user_id -> current balance for existing wallets.
    """
    ordered = sorted(set(user_ids))
    cur.execute(
        """
        SELECT user_id, balance
        FROM wallets
        WHERE user_id = ANY(%s::uuid[])
        ORDER BY user_id
        FOR UPDATE
        """,
        (ordered,),
    )
    return {str(row[0]): Decimal(row[1]) for row in cur.fetchall()}


def set_balance(cur: PgCursor, user_id: str, balance: Decimal) -> None:
    cur.execute(
        """
        UPDATE wallets
        SET balance = %s, updated_at = now()
        WHERE user_id = %s
        """,
        (balance, user_id),
    )


def insert_transaction(
    cur: PgCursor,
    *,
    user_id: str,
    amount: Decimal,
    type: str,
    description: str,
    balance_after: Decimal,
    booking_id: str | None = None,
    payment_reference: str | None = None,
) -> dict:
    """Append one ledger row.

    Returns:
        Dict with the inserted row (id, created_at included).
    """
    cur.execute(
        """
        INSERT INTO wallet_transactions (
            user_id, amount, type, description,
            balance_after, booking_id, payment_reference
        )
        VALUES (%s, %s, %s, %s, %s, %s, %s)
        RETURNING id, created_at
        """,
        (user_id, amount, type, description, balance_after, booking_id, payment_reference),
    )
    row = cur.fetchone()
    return {
        "id": str(row[0]),
        "user_id": user_id,
        "amount": amount,
        "type": type,
        "description": description,
        "balance_after": balance_after,
        "booking_id": booking_id,
        "payment_reference": payment_reference,
        "created_at": row[1],
    }


def get_wallet(cur: PgCursor, user_id: str) -> dict | None:
    cur.execute(
        """
        SELECT id, user_id, balance, created_at, updated_at
        FROM wallets
        WHERE user_id = %s
        """,
        (user_id,),
    )
    row = cur.fetchone()
    if row is None:
        return None
    return {
        "id": str(row[0]),
        "user_id": str(row[1]),
        "balance": Decimal(row[2]),
        "created_at": row[3],
        "updated_at": row[4],
    }


def list_transactions(
    cur: PgCursor,
    user_id: str,
    *,
    limit: int,
    offset: int = 0,
) -> list[dict]:
    """List transactions newest first."""
    cur.execute(
        """
        SELECT id, amount, type, description, balance_after,
               booking_id, payment_reference, created_at
        FROM wallet_transactions
        WHERE user_id = %s
        ORDER BY created_at DESC, id DESC
        LIMIT %s OFFSET %s
        """,
        (user_id, limit, offset),
    )
    return [
        {
            "id": str(row[0]),
            "amount": Decimal(row[1]),
            "type": row[2],
            "description": row[3],
            "balance_after": Decimal(row[4]),
            "booking_id": str(row[5]) if row[5] else None,
            "payment_reference": row[6],
            "created_at": row[7],
        }
        for row in cur.fetchall()
    ]


def count_transactions(cur: PgCursor, user_id: str) -> int:
    cur.execute(
        "SELECT COUNT(*) FROM wallet_transactions WHERE user_id = %s",
        (user_id,),
    )
    return cur.fetchone()[0]


def transaction_totals(cur: PgCursor, user_id: str) -> dict:
    """Aggregate CREDIT/DEBIT totals for an account."""
    cur.execute(
        """
        SELECT
            COALESCE(SUM(amount) FILTER (WHERE type = 'CREDIT'), 0),
            COALESCE(SUM(amount) FILTER (WHERE type = 'DEBIT'), 0),
            COUNT(*)
        FROM wallet_transactions
        WHERE user_id = %s
        """,
        (user_id,),
    )
    row = cur.fetchone()
    return {
        "total_credit": Decimal(row[0]),
        "total_debit": Decimal(row[1]),
        "count": row[2],
    }


def get_oldest_admin_id(cur: PgCursor) -> str | None:
    cur.execute(
        """
        SELECT id FROM users
        WHERE role = 'Admin'
        ORDER BY created_at ASC, id ASC
        LIMIT 1
        """
    )
    row = cur.fetchone()
    return str(row[0]) if row else None
