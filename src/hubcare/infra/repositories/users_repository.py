"""Users repository - account lookups used by auth and notifications."""

from __future__ import annotations

from psycopg2.extensions import cursor as PgCursor


def _row_to_user(row: tuple) -> dict:
    return {
        "id": str(row[0]),
        "name": row[1],
        "email": row[2],
        "role": row[3],
        "device_token": row[4],
    }


def get_user(cur: PgCursor, user_id: str) -> dict | None:
    cur.execute(
        "SELECT id, name, email, role, device_token FROM users WHERE id = %s",
        (user_id,),
    )
    row = cur.fetchone()
    return _row_to_user(row) if row else None


def get_users(cur: PgCursor, user_ids: list[str]) -> dict[str, dict]:
    """Users keyed by id; unknown ids are absent."""
    cur.execute(
        """
        SELECT id, name, email, role, device_token
        FROM users
        WHERE id = ANY(%s::uuid[])
        """,
        (list(user_ids),),
    )
    return {str(row[0]): _row_to_user(row) for row in cur.fetchall()}


def get_first_admin(cur: PgCursor) -> dict | None:
    cur.execute(
        """
        SELECT id, name, email, role, device_token
        FROM users
        WHERE role = 'Admin'
        ORDER BY created_at ASC, id ASC
        LIMIT 1
        """
    )
    row = cur.fetchone()
    return _row_to_user(row) if row else None
