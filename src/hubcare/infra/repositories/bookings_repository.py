"""Bookings repository - persistence for bookings and their catalog lookups.

Uses raw SQL with psycopg2 (no ORM).
"""

from __future__ import annotations

from datetime import date, time
from decimal import Decimal

from psycopg2.extensions import cursor as PgCursor

from hubcare.domain.booking_state import BookingState

_BOOKING_COLUMNS = """
    b.id, b.user_id, b.provider_id, b.service_id, b.location_id,
    b.service_date, b.start_time, b.number_of_worker, b.work_hours,
    b.amount, b.discount_amount, b.tax_rate, b.taxes_and_fees, b.final_amount,
    b.payment_method, b.payment_status, b.booking_status, b.working_status,
    b.worker_assign_status, b.approved, b.offer_id,
    b.start_timestamp, b.completed_at, b.cancelled_at,
    b.created_at, b.updated_at, s.service_name
"""


def _row_to_booking(row: tuple) -> dict:
    return {
        "id": str(row[0]),
        "user_id": str(row[1]),
        "provider_id": str(row[2]),
        "service_id": str(row[3]),
        "location_id": str(row[4]),
        "service_date": row[5],
        "start_time": row[6],
        "number_of_worker": row[7],
        "work_hours": Decimal(row[8]),
        "amount": Decimal(row[9]),
        "discount_amount": Decimal(row[10]),
        "tax_rate": Decimal(row[11]),
        "taxes_and_fees": Decimal(row[12]),
        "final_amount": Decimal(row[13]),
        "payment_method": row[14],
        "payment_status": row[15],
        "booking_status": row[16],
        "working_status": row[17],
        "worker_assign_status": row[18],
        "approved": row[19],
        "offer_id": str(row[20]) if row[20] else None,
        "start_timestamp": row[21],
        "completed_at": row[22],
        "cancelled_at": row[23],
        "created_at": row[24],
        "updated_at": row[25],
        "service_name": row[26],
    }


# ── Catalog lookups ──────────────────────────────────────


def get_service(cur: PgCursor, service_id: str) -> dict | None:
    cur.execute(
        """
        SELECT id, provider_id, service_name, amount
        FROM services
        WHERE id = %s
        """,
        (service_id,),
    )
    row = cur.fetchone()
    if row is None:
        return None
    return {
        "id": str(row[0]),
        "provider_id": str(row[1]),
        "service_name": row[2],
        "amount": Decimal(row[3]),
    }


def location_belongs_to_user(cur: PgCursor, location_id: str, user_id: str) -> bool:
    cur.execute(
        "SELECT 1 FROM user_locations WHERE id = %s AND user_id = %s",
        (location_id, user_id),
    )
    return cur.fetchone() is not None


# ── Bookings ─────────────────────────────────────────────


def find_active_booking(
    cur: PgCursor,
    *,
    user_id: str,
    service_id: str,
    service_date: date,
) -> str | None:
    """Id of the user's ACTIVE booking for service on service_date, if any."""
    cur.execute(
        """
        SELECT id FROM bookings
        WHERE user_id = %s
          AND service_id = %s
          AND service_date = %s
          AND booking_status = 'ACTIVE'
        LIMIT 1
        """,
        (user_id, service_id, service_date),
    )
    row = cur.fetchone()
    return str(row[0]) if row else None


def insert_booking(
    cur: PgCursor,
    *,
    booking_id: str,
    user_id: str,
    provider_id: str,
    service_id: str,
    location_id: str,
    service_date: date,
    start_time: time,
    number_of_worker: int,
    work_hours: Decimal,
    amount: Decimal,
    discount_amount: Decimal,
    tax_rate: Decimal,
    taxes_and_fees: Decimal,
    final_amount: Decimal,
    offer_id: str | None,
    state: BookingState,
) -> None:
    """Insert a booking row.

    The partial unique index on (user_id, service_id, service_date) for
    ACTIVE bookings raises UniqueViolation on a concurrent duplicate.
    """
    cur.execute(
        """
        INSERT INTO bookings (
            id, user_id, provider_id, service_id, location_id,
            service_date, start_time, number_of_worker, work_hours,
            amount, discount_amount, tax_rate, taxes_and_fees, final_amount,
            payment_method, payment_status, booking_status, working_status,
            worker_assign_status, approved, offer_id
        )
        VALUES (
            %s, %s, %s, %s, %s,
            %s, %s, %s, %s,
            %s, %s, %s, %s, %s,
            %s, %s, %s, %s,
            %s, %s, %s
        )
        """,
        (
            booking_id,
            user_id,
            provider_id,
            service_id,
            location_id,
            service_date,
            start_time,
            number_of_worker,
            work_hours,
            amount,
            discount_amount,
            tax_rate,
            taxes_and_fees,
            final_amount,
            state.payment_method.value,
            state.payment_status.value,
            state.booking_status.value,
            state.working_status.value,
            state.worker_assign_status.value,
            state.approved,
            offer_id,
        ),
    )


def get_booking(cur: PgCursor, booking_id: str, *, for_update: bool = False) -> dict | None:
    """Fetch a booking with its service name.

    Args:
        for_update: Lock the booking row (not the service) until commit.
    """
    lock = "FOR UPDATE OF b" if for_update else ""
    cur.execute(
        f"""
        SELECT {_BOOKING_COLUMNS}
        FROM bookings b
        JOIN services s ON s.id = b.service_id
        WHERE b.id = %s
        {lock}
        """,
        (booking_id,),
    )
    row = cur.fetchone()
    return _row_to_booking(row) if row else None


def get_booking_parties(cur: PgCursor, booking_id: str) -> tuple[str, str] | None:
    """(user_id, provider_id) of a booking, or None."""
    cur.execute(
        "SELECT user_id, provider_id FROM bookings WHERE id = %s",
        (booking_id,),
    )
    row = cur.fetchone()
    if row is None:
        return None
    return (str(row[0]), str(row[1]))


def save_state(
    cur: PgCursor,
    booking_id: str,
    state: BookingState,
    *,
    started: bool = False,
    completed: bool = False,
    cancelled: bool = False,
) -> None:
    """Persist status fields and stamp lifecycle timestamps."""
    cur.execute(
        """
        UPDATE bookings
        SET booking_status = %s,
            working_status = %s,
            worker_assign_status = %s,
            approved = %s,
            payment_status = %s,
            start_timestamp = CASE WHEN %s THEN now() ELSE start_timestamp END,
            completed_at = CASE WHEN %s THEN now() ELSE completed_at END,
            cancelled_at = CASE WHEN %s THEN now() ELSE cancelled_at END,
            updated_at = now()
        WHERE id = %s
        """,
        (
            state.booking_status.value,
            state.working_status.value,
            state.worker_assign_status.value,
            state.approved,
            state.payment_status.value,
            started,
            completed,
            cancelled,
            booking_id,
        ),
    )


def list_bookings(
    cur: PgCursor,
    *,
    user_id: str | None = None,
    provider_id: str | None = None,
    booking_status: str | None = None,
    approved: bool | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[dict], int]:
    """List bookings newest first with filters.

    Returns:
        (bookings, total_count) where total_count ignores limit/offset.
    """
    conditions: list[str] = []
    params: list = []

    if user_id:
        conditions.append("b.user_id = %s")
        params.append(user_id)
    if provider_id:
        conditions.append("b.provider_id = %s")
        params.append(provider_id)
    if booking_status:
        conditions.append("b.booking_status = %s")
        params.append(booking_status)
    if approved is not None:
        conditions.append("b.approved = %s")
        params.append(approved)
    if start_date:
        conditions.append("b.service_date >= %s")
        params.append(start_date)
    if end_date:
        conditions.append("b.service_date <= %s")
        params.append(end_date)

    where_clause = " AND ".join(conditions) if conditions else "TRUE"

    cur.execute(f"SELECT COUNT(*) FROM bookings b WHERE {where_clause}", params)
    total = cur.fetchone()[0]

    cur.execute(
        f"""
        SELECT {_BOOKING_COLUMNS}
        FROM bookings b
        JOIN services s ON s.id = b.service_id
        WHERE {where_clause}
        ORDER BY b.created_at DESC, b.id DESC
        LIMIT %s OFFSET %s
        """,
        [*params, limit, offset],
    )
    return [_row_to_booking(row) for row in cur.fetchall()], total
