"""Notifications repository - user_notifications inbox rows."""

from __future__ import annotations

from psycopg2.extensions import cursor as PgCursor


def insert_notification(
    cur: PgCursor,
    *,
    user_id: str,
    title: str,
    message: str,
    type: str,
    booking_id: str | None = None,
) -> str:
    cur.execute(
        """
        INSERT INTO user_notifications (user_id, title, message, type, booking_id)
        VALUES (%s, %s, %s, %s, %s)
        RETURNING id
        """,
        (user_id, title, message, type, booking_id),
    )
    return str(cur.fetchone()[0])


def mark_converted(cur: PgCursor, notification_id: str, user_id: str) -> bool:
    """Flag the caller's notification as converted into a booking.

    Returns:
        True if a row owned by user_id was updated.
    """
    cur.execute(
        """
        UPDATE user_notifications
        SET converted = true
        WHERE id = %s AND user_id = %s
        """,
        (notification_id, user_id),
    )
    return cur.rowcount > 0
