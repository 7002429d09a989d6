"""Tests for database layer."""

import os
from unittest.mock import MagicMock, patch

import pytest
from psycopg2 import errors as pg_errors


class TestGetConnPasswordFallback:
    """Tests for DB_PASSWORD fallback in get_conn() - no real DB needed."""

    def test_db_password_fallback_dsn_without_password(self):
        from hubcare.infra.db import get_conn

        env = {"DATABASE_URL": "dbname=db user=u host=h port=5432", "DB_PASSWORD": "from-env"}
        with patch.dict(os.environ, env, clear=True), \
             patch("hubcare.infra.db.psycopg2.connect", return_value=MagicMock()) as mock_connect:
            get_conn()
            mock_connect.assert_called_once_with(
                "dbname=db user=u host=h port=5432",
                password="from-env",
            )

    def test_db_password_not_used_when_url_has_password(self):
        from hubcare.infra.db import get_conn

        env = {"DATABASE_URL": "postgres://u:p@h/db", "DB_PASSWORD": "from-env"}
        with patch.dict(os.environ, env, clear=True), \
             patch("hubcare.infra.db.psycopg2.connect", return_value=MagicMock()) as mock_connect:
            get_conn()
            mock_connect.assert_called_once_with("postgres://u:p@h/db")

    def test_raises_without_database_url(self):
        from hubcare.infra.db import get_conn

        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(RuntimeError, match="DATABASE_URL"):
                get_conn()


class TestTxnUnit:
    """txn() commit/rollback behavior against a mocked connection."""

    def test_commits_on_success(self):
        from hubcare.infra.db import txn

        conn = MagicMock()
        with txn(conn) as cur:
            cur.execute("SELECT 1")
        conn.commit.assert_called_once()
        conn.rollback.assert_not_called()
        conn.close.assert_not_called()

    def test_rolls_back_on_exception(self):
        from hubcare.infra.db import txn

        conn = MagicMock()
        with pytest.raises(ValueError):
            with txn(conn):
                raise ValueError("boom")
        conn.rollback.assert_called_once()
        conn.commit.assert_not_called()

    def test_closes_owned_connection(self):
        from hubcare.infra.db import txn

        conn = MagicMock()
        with patch("hubcare.infra.db.get_conn", return_value=conn):
            with txn():
                pass
        conn.close.assert_called_once()

    def test_lock_timeout_set_local(self):
        from hubcare.infra.db import txn

        conn = MagicMock()
        cur = conn.cursor.return_value.__enter__.return_value
        with txn(conn, lock_timeout_ms=250):
            pass
        cur.execute.assert_called_once_with("SET LOCAL lock_timeout = 250")

    def test_negative_lock_timeout(self):
        from hubcare.infra.db import set_lock_timeout

        with pytest.raises(ValueError):
            set_lock_timeout(MagicMock(), -1)

    @pytest.mark.parametrize(
        "exc,expected",
        [
            (pg_errors.LockNotAvailable(), True),
            (pg_errors.QueryCanceled(), True),
            (pg_errors.UniqueViolation(), False),
            (RuntimeError(), False),
        ],
    )
    def test_is_lock_timeout(self, exc, expected):
        from hubcare.infra.db import is_lock_timeout

        assert is_lock_timeout(exc) is expected


# Skip integration tests if DATABASE_URL is not set
_skip_no_db = pytest.mark.skipif(
    not os.environ.get("DATABASE_URL"),
    reason="DATABASE_URL not set - skipping DB integration tests",
)


@_skip_no_db
class TestTxn:
    """Tests for txn() context manager."""

    def test_rollback_on_exception(self):
        from hubcare.infra.db import get_conn, txn

        conn = get_conn()
        try:
            with conn.cursor() as cur:
                cur.execute("CREATE TEMP TABLE test_rollback (id serial, val text)")
            conn.commit()

            with pytest.raises(ValueError):
                with txn(conn) as cur:
                    cur.execute("INSERT INTO test_rollback (val) VALUES (%s)", ("bad",))
                    raise ValueError("rollback test")

            with conn.cursor() as cur:
                cur.execute("SELECT count(*) FROM test_rollback")
                assert cur.fetchone()[0] == 0
        finally:
            conn.close()

    def test_fetch_helpers(self):
        from hubcare.infra.db import fetchall, fetchone, txn

        with txn() as cur:
            assert fetchone(cur, "SELECT %s::text", ("hello",))[0] == "hello"
            assert fetchall(cur, "SELECT generate_series(1, 3)") == [(1,), (2,), (3,)]
