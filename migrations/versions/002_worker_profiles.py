"""Worker profile fields and soft delete.

Revision ID: 002_worker_profiles
Revises: 001_initial_schema
Create Date: 2026-10-19
"""

from __future__ import annotations

from pathlib import Path

from alembic import op

revision = "002_worker_profiles"
down_revision = "001_initial_schema"
branch_labels = None
depends_on = None


def upgrade() -> None:
    sql_path = Path(__file__).resolve().parents[1] / "sql" / "002_worker_profiles.sql"
    conn = op.get_bind()
    conn.exec_driver_sql(sql_path.read_text(encoding="utf-8"))


def downgrade() -> None:
    conn = op.get_bind()
    conn.exec_driver_sql("DROP INDEX IF EXISTS idx_workers_provider_active")
    for column in ("deleted_at", "updated_at", "company_address", "email"):
        conn.exec_driver_sql(f"ALTER TABLE workers DROP COLUMN IF EXISTS {column}")
