"""Create documents and trade_log tables.

Revision ID: 001
Revises: None
Create Date: 2026-10-17
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Schema is created by env.py before migrations run.
    op.create_table(
        "documents",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column("collection", sa.Text, nullable=False),
        sa.Column("doc_id", sa.Text, nullable=False),
        sa.Column("data", postgresql.JSONB, nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("collection", "doc_id"),
        schema="lighter_service",
    )

    op.create_table(
        "trade_log",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.Text, nullable=False),
        sa.Column("strategy", sa.Text, nullable=True),
        sa.Column("symbol", sa.Text, nullable=True),
        sa.Column("action", sa.Text, nullable=True),
        sa.Column("decision_ts", sa.BigInteger, nullable=True),
        sa.Column("reason", sa.Text, nullable=True),
        sa.Column("decision", postgresql.JSONB, nullable=False),
        sa.Column("result", postgresql.JSONB, nullable=True),
        sa.Column("trading_state", postgresql.JSONB, nullable=True),
        schema="lighter_service",
    )
    op.create_index(
        "ix_trade_log_expires_at", "trade_log", ["expires_at"], schema="lighter_service",
    )
    op.create_index(
        "ix_trade_log_created_at", "trade_log", ["created_at"], schema="lighter_service",
    )


def downgrade() -> None:
    op.drop_index("ix_trade_log_created_at", table_name="trade_log", schema="lighter_service")
    op.drop_index("ix_trade_log_expires_at", table_name="trade_log", schema="lighter_service")
    op.drop_table("trade_log", schema="lighter_service")
    op.drop_table("documents", schema="lighter_service")
