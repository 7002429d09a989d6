"""Promotions repository - promo_offers and promo_redemptions.

Uses raw SQL with psycopg2 (no ORM).
"""

from __future__ import annotations

from decimal import Decimal

from psycopg2.extensions import cursor as PgCursor


def get_offer(cur: PgCursor, offer_id: str) -> dict | None:
    cur.execute(
        """
        SELECT id, code, discount_type, discount_value, expires_at
        FROM promo_offers
        WHERE id = %s
        """,
        (offer_id,),
    )
    row = cur.fetchone()
    if row is None:
        return None
    return {
        "id": str(row[0]),
        "code": row[1],
        "discount_type": row[2],
        "discount_value": Decimal(row[3]),
        "expires_at": row[4],
    }


def get_offer_by_code(cur: PgCursor, code: str) -> dict | None:
    cur.execute(
        """
        SELECT id, code, discount_type, discount_value, expires_at
        FROM promo_offers
        WHERE code = %s
        """,
        (code,),
    )
    row = cur.fetchone()
    if row is None:
        return None
    return {
        "id": str(row[0]),
        "code": row[1],
        "discount_type": row[2],
        "discount_value": Decimal(row[3]),
        "expires_at": row[4],
    }


def redemption_exists(cur: PgCursor, user_id: str, offer_id: str) -> bool:
    cur.execute(
        """
        SELECT 1 FROM promo_redemptions
        WHERE user_id = %s AND promo_offer_id = %s
        """,
        (user_id, offer_id),
    )
    return cur.fetchone() is not None


def insert_redemption(
    cur: PgCursor,
    *,
    user_id: str,
    offer_id: str,
    booking_id: str,
    discount_amount: Decimal,
) -> str:
    """Insert a redemption row.

    The (user_id, promo_offer_id) unique constraint raises UniqueViolation
    when a concurrent request redeemed the same offer first.

    Returns:
        Redemption UUID.
    """
    cur.execute(
        """
        INSERT INTO promo_redemptions (user_id, promo_offer_id, booking_id, discount_amount)
        VALUES (%s, %s, %s, %s)
        RETURNING id
        """,
        (user_id, offer_id, booking_id, discount_amount),
    )
    return str(cur.fetchone()[0])
