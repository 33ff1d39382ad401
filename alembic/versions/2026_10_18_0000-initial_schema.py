"""initial schema

Revision ID: 2026_10_18_0000
Revises:
Create Date: 2026-10-18 00:00:00.000000

Creates receipt_validation_logs: one row per Apple receipt verification request.
"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "2026_10_18_0000"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "receipt_validation_logs",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("bundle_id", sa.String(length=255), nullable=True),
        sa.Column("product_id", sa.String(length=255), nullable=True),
        sa.Column("transaction_id", sa.String(length=255), nullable=True),
        sa.Column("token", sa.Text(), nullable=True),
        sa.Column("developer_payload", sa.Text(), nullable=True),
        sa.Column("environment", sa.String(length=50), nullable=True),
        sa.Column("vendor_calls", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("is_valid", sa.Boolean(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("validated_transaction_id", sa.String(length=255), nullable=True),
        sa.Column("original_transaction_id", sa.String(length=255), nullable=True),
        sa.Column("purchase_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expires_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_index(
        "idx_receipt_validation_logs_bundle_tx",
        "receipt_validation_logs",
        ["bundle_id", "transaction_id"],
    )
    op.create_index(
        "idx_receipt_validation_logs_product_id",
        "receipt_validation_logs",
        ["product_id"],
    )
    op.create_index(
        "idx_receipt_validation_logs_created_at",
        "receipt_validation_logs",
        ["created_at"],
    )


def downgrade() -> None:
    op.drop_index("idx_receipt_validation_logs_created_at", table_name="receipt_validation_logs")
    op.drop_index("idx_receipt_validation_logs_product_id", table_name="receipt_validation_logs")
    op.drop_index("idx_receipt_validation_logs_bundle_tx", table_name="receipt_validation_logs")
    op.drop_table("receipt_validation_logs")
