"""create relay_settings table

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18 12:00:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "20261018_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "relay_settings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("namespace", sa.String(length=100), nullable=False),
        sa.Column("key", sa.String(length=100), nullable=False),
        sa.Column("value", sa.Text(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("namespace", "key", name="uq_relay_settings_namespace_key"),
    )

    op.create_index("ix_relay_settings_namespace", "relay_settings", ["namespace"])


def downgrade() -> None:
    op.drop_index("ix_relay_settings_namespace", table_name="relay_settings")
    op.drop_table("relay_settings")
