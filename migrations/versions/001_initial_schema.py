"""Initial schema (SQL-only).

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from pathlib import Path

from alembic import op

# revision identifiers, used by Alembic.
revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None

_SQL_FILE = Path(__file__).resolve().parents[1] / "sql" / "001_initial.sql"

_TABLES = (
    "user_notifications",
    "wallet_transactions",
    "promo_redemptions",
    "booking_workers",
    "bookings",
    "wallets",
    "promo_offers",
    "workers",
    "user_locations",
    "services",
    "users",
)


def upgrade() -> None:
    # Raw execution so the plpgsql $$ body passes through untouched.
    conn = op.get_bind()
    conn.exec_driver_sql(_SQL_FILE.read_text(encoding="utf-8"))


def downgrade() -> None:
    conn = op.get_bind()
    for table in _TABLES:
        conn.exec_driver_sql(f"DROP TABLE IF EXISTS {table} CASCADE")
    conn.exec_driver_sql("DROP FUNCTION IF EXISTS wallet_transactions_immutable()")
