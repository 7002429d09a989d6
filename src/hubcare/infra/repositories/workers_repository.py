"""Workers repository - provider workers and booking_workers assignments.

Deleted workers keep their row (deleted_at set) so assignment history survives.
"""

from __future__ import annotations

from psycopg2.extensions import cursor as PgCursor

_WORKER_COLUMNS = "id, provider_id, name, email, phone, company_address, created_at, updated_at"


def _row_to_worker(row: tuple) -> dict:
    return {
        "id": str(row[0]),
        "provider_id": str(row[1]),
        "name": row[2],
        "email": row[3],
        "phone": row[4],
        "company_address": row[5],
        "created_at": row[6],
        "updated_at": row[7],
    }


def insert_worker(
    cur: PgCursor,
    *,
    provider_id: str,
    name: str,
    email: str,
    phone: str | None = None,
    company_address: str | None = None,
) -> dict:
    cur.execute(
        f"""
        INSERT INTO workers (provider_id, name, email, phone, company_address)
        VALUES (%s, %s, %s, %s, %s)
        RETURNING {_WORKER_COLUMNS}
        """,
        (provider_id, name, email, phone, company_address),
    )
    return _row_to_worker(cur.fetchone())


def list_provider_workers(
    cur: PgCursor, provider_id: str, *, limit: int = 20, offset: int = 0
) -> tuple[list[dict], int]:
    """Live workers of provider_id, newest first.

    Returns:
        (workers, total_count) where total_count ignores limit/offset.
    """
    cur.execute(
        "SELECT COUNT(*) FROM workers WHERE provider_id = %s AND deleted_at IS NULL",
        (provider_id,),
    )
    total = cur.fetchone()[0]

    cur.execute(
        f"""
        SELECT {_WORKER_COLUMNS}
        FROM workers
        WHERE provider_id = %s AND deleted_at IS NULL
        ORDER BY created_at DESC, id
        LIMIT %s OFFSET %s
        """,
        (provider_id, limit, offset),
    )
    return [_row_to_worker(row) for row in cur.fetchall()], total


def get_provider_worker(cur: PgCursor, provider_id: str, worker_id: str) -> dict | None:
    cur.execute(
        f"""
        SELECT {_WORKER_COLUMNS}
        FROM workers
        WHERE id = %s AND provider_id = %s AND deleted_at IS NULL
        """,
        (worker_id, provider_id),
    )
    row = cur.fetchone()
    return _row_to_worker(row) if row else None


def update_worker(cur: PgCursor, provider_id: str, worker_id: str, fields: dict) -> dict | None:
    """Apply fields (column -> value) to a live worker of provider_id.

    Returns:
        The updated worker, or None when absent, deleted or not owned.
    """
    assignments = ", ".join(f"{column} = %s" for column in fields)
    if assignments:
        assignments += ", "
    cur.execute(
        f"""
        UPDATE workers
        SET {assignments}updated_at = now()
        WHERE id = %s AND provider_id = %s AND deleted_at IS NULL
        RETURNING {_WORKER_COLUMNS}
        """,
        (*fields.values(), worker_id, provider_id),
    )
    row = cur.fetchone()
    return _row_to_worker(row) if row else None


def soft_delete_worker(cur: PgCursor, provider_id: str, worker_id: str) -> bool:
    cur.execute(
        """
        UPDATE workers
        SET deleted_at = now(), updated_at = now()
        WHERE id = %s AND provider_id = %s AND deleted_at IS NULL
        """,
        (worker_id, provider_id),
    )
    return cur.rowcount == 1


def count_assigned(cur: PgCursor, booking_id: str) -> int:
    cur.execute(
        "SELECT COUNT(*) FROM booking_workers WHERE booking_id = %s",
        (booking_id,),
    )
    return cur.fetchone()[0]


def filter_provider_workers(
    cur: PgCursor, provider_id: str, worker_ids: list[str]
) -> set[str]:
    """Subset of worker_ids owned by provider_id and not deleted."""
    cur.execute(
        """
        SELECT id FROM workers
        WHERE provider_id = %s AND id = ANY(%s::uuid[]) AND deleted_at IS NULL
        """,
        (provider_id, list(worker_ids)),
    )
    return {str(row[0]) for row in cur.fetchall()}


def filter_assigned(cur: PgCursor, booking_id: str, worker_ids: list[str]) -> set[str]:
    """Subset of worker_ids already assigned to booking_id."""
    cur.execute(
        """
        SELECT worker_id FROM booking_workers
        WHERE booking_id = %s AND worker_id = ANY(%s::uuid[])
        """,
        (booking_id, list(worker_ids)),
    )
    return {str(row[0]) for row in cur.fetchall()}


def insert_booking_worker(cur: PgCursor, booking_id: str, worker_id: str) -> None:
    """Insert an assignment; unique (booking_id, worker_id) guards duplicates."""
    cur.execute(
        """
        INSERT INTO booking_workers (booking_id, worker_id)
        VALUES (%s, %s)
        """,
        (booking_id, worker_id),
    )


def list_assigned_workers(cur: PgCursor, booking_id: str) -> list[dict]:
    """Workers assigned to a booking, newest assignment first."""
    cur.execute(
        """
        SELECT w.id, w.name, w.phone, bw.assigned_at
        FROM booking_workers bw
        JOIN workers w ON w.id = bw.worker_id
        WHERE bw.booking_id = %s
        ORDER BY bw.assigned_at DESC, w.id
        """,
        (booking_id,),
    )
    return [
        {
            "id": str(row[0]),
            "name": row[1],
            "phone": row[2],
            "assigned_at": row[3],
        }
        for row in cur.fetchall()
    ]
