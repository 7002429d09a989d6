"""Database access layer using psycopg2.

Provides:
- get_conn(): Connection from DATABASE_URL (DB_PASSWORD fallback)
- txn(): Unit of work; commits on success, rolls back on any exception
- set_lock_timeout(): Bound row-lock waits inside the current transaction
- set_read_only(): Refuse writes for the rest of the transaction
- fetchone/fetchall: Query helpers
"""

from __future__ import annotations

import os
from contextlib import contextmanager
from typing import Any, Iterator, Sequence
from urllib.parse import urlparse

import psycopg2
from psycopg2 import errors as pg_errors
from psycopg2.extensions import connection as PgConnection, cursor as PgCursor


def _dsn_has_password(dsn: str) -> bool:
    if "://" in dsn:
        return bool(urlparse(dsn).password)
    return any(part.startswith("password=") for part in dsn.split())


def get_conn() -> PgConnection:
    """Get a new database connection from DATABASE_URL.

    If DB_PASSWORD is set and the DSN carries no password, it is passed
    separately so secrets can be mounted apart from the DSN.

    Raises:
        RuntimeError: If DATABASE_URL is not set.
        psycopg2.Error: On connection failure.
    """
    dsn = os.environ.get("DATABASE_URL")
    if not dsn:
        raise RuntimeError("DATABASE_URL environment variable not set")

    password = os.environ.get("DB_PASSWORD")
    if password and not _dsn_has_password(dsn):
        return psycopg2.connect(dsn, password=password)
    return psycopg2.connect(dsn)


@contextmanager
def txn(
    conn: PgConnection | None = None,
    *,
    lock_timeout_ms: int | None = None,
) -> Iterator[PgCursor]:
    """Open an atomic unit of work.

    If conn is None, a new connection is created and closed on exit.
    Every write issued through the yielded cursor is committed together,
    or rolled back together when the block raises.

    Args:
        conn: Optional existing connection.
        lock_timeout_ms: If set, row-lock waits longer than this fail
            with psycopg2.errors.LockNotAvailable.

    Yields:
        Cursor bound to the transaction.

    Example:
        with txn(lock_timeout_ms=5000) as cur:
            cur.execute("UPDATE wallets SET balance = %s WHERE id = %s", (b, wid))
    """
    owns_conn = conn is None
    if owns_conn:
        conn = get_conn()

    try:
        with conn.cursor() as cur:
            if lock_timeout_ms is not None:
                set_lock_timeout(cur, lock_timeout_ms)
            yield cur
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        if owns_conn:
            conn.close()


def set_lock_timeout(cur: PgCursor, timeout_ms: int) -> None:
    """Apply SET LOCAL lock_timeout for the rest of the transaction."""
    if timeout_ms < 0:
        raise ValueError("timeout_ms must be >= 0")
    # SET does not accept bind parameters; the value is an int.
    cur.execute(f"SET LOCAL lock_timeout = {int(timeout_ms)}")


def set_read_only(cur: PgCursor) -> None:
    """Mark the current transaction READ ONLY; must precede any query."""
    cur.execute("SET TRANSACTION READ ONLY")


def is_lock_timeout(exc: BaseException) -> bool:
    """True if exc is a lock wait or statement timeout raised by Postgres."""
    return isinstance(exc, (pg_errors.LockNotAvailable, pg_errors.QueryCanceled))


def fetchone(
    cur: PgCursor,
    query: str,
    params: Sequence[Any] | None = None,
) -> tuple[Any, ...] | None:
    """Execute query and fetch one row (None if no results)."""
    cur.execute(query, params)
    return cur.fetchone()


def fetchall(
    cur: PgCursor,
    query: str,
    params: Sequence[Any] | None = None,
) -> list[tuple[Any, ...]]:
    """Execute query and fetch all rows."""
    cur.execute(query, params)
    return cur.fetchall()
