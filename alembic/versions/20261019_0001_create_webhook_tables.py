"""create transactions and raw webhook record tables

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "20261019_0001"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


transaction_status = postgresql.ENUM(
    "success",
    "pending",
    "failed",
    "cancelled",
    "refunded",
    name="transaction_status",
    create_type=False,
)

raw_record_stage = postgresql.ENUM(
    "accepted",
    "validation_failed",
    name="raw_record_stage",
    create_type=False,
)


def upgrade() -> None:
    transaction_status.create(op.get_bind(), checkfirst=True)
    raw_record_stage.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "transactions",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("reference", sa.String(length=160), nullable=False),
        sa.Column("type", sa.String(length=32), nullable=False),
        sa.Column("status", transaction_status, nullable=False),
        sa.Column("event", sa.String(length=128), nullable=True),
        sa.Column("order_id", sa.String(length=128), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("customer_name", sa.String(length=256), nullable=True),
        sa.Column("phone", sa.String(length=32), nullable=True),
        sa.Column("amount", sa.Numeric(precision=18, scale=2), nullable=True),
        sa.Column("currency", sa.String(length=8), nullable=False),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("payload_hash", sa.String(length=64), nullable=False),
        sa.Column("received_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_transactions_reference", "transactions", ["reference"], unique=True)
    op.create_index("ix_transactions_type", "transactions", ["type"], unique=False)
    op.create_index("ix_transactions_status", "transactions", ["status"], unique=False)

    op.create_table(
        "raw_webhook_records",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("provider", sa.String(length=32), nullable=False),
        sa.Column("stage", raw_record_stage, nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("payload_hash", sa.String(length=64), nullable=False),
        sa.Column("received_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_raw_webhook_records_provider", "raw_webhook_records", ["provider"], unique=False)
    op.create_index("ix_raw_webhook_records_payload_hash", "raw_webhook_records", ["payload_hash"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_raw_webhook_records_payload_hash", table_name="raw_webhook_records")
    op.drop_index("ix_raw_webhook_records_provider", table_name="raw_webhook_records")
    op.drop_table("raw_webhook_records")
    op.drop_index("ix_transactions_status", table_name="transactions")
    op.drop_index("ix_transactions_type", table_name="transactions")
    op.drop_index("ix_transactions_reference", table_name="transactions")
    op.drop_table("transactions")
    raw_record_stage.drop(op.get_bind(), checkfirst=True)
    transaction_status.drop(op.get_bind(), checkfirst=True)
