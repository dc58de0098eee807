"""create_sales_event_and_backfill_job

Revision ID: 3f1a9c2e7b40
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "3f1a9c2e7b40"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    """Apply migration - create sales_event and backfill_job tables."""
    # Create sales_event table
    op.create_table(
        "sales_event",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("order_id", sa.String(length=64), nullable=False),
        sa.Column("artisan_id", sa.String(length=64), nullable=False),
        sa.Column("product_id", sa.String(length=64), nullable=False),
        sa.Column("buyer_id", sa.String(length=64), nullable=True),
        sa.Column("product_category", sa.String(length=100), nullable=True),
        # Amounts
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("unit_cost", sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column("discount", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("tax", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("shipping_cost", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("total_amount", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("net_amount", sa.Numeric(precision=12, scale=2), nullable=False),
        # Status and context
        sa.Column("payment_status", sa.String(length=20), nullable=False),
        sa.Column("order_status", sa.String(length=30), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("channel", sa.String(length=20), nullable=False),
        sa.Column("region", sa.String(length=50), nullable=True),
        sa.Column("currency", sa.String(length=3), nullable=False),
        *_timestamps(),
        # Constraints
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("quantity > 0", name="ck_sales_event_quantity_positive"),
        sa.CheckConstraint("unit_price >= 0", name="ck_sales_event_price_non_negative"),
        sa.CheckConstraint("net_amount <= total_amount", name="ck_sales_event_net_le_total"),
        sa.CheckConstraint(
            "payment_status IN ('pending', 'completed', 'failed', 'refunded')",
            name="ck_sales_event_valid_payment_status",
        ),
    )

    # Create indexes for sales_event
    op.create_index(op.f("ix_sales_event_order_id"), "sales_event", ["order_id"], unique=True)
    op.create_index(op.f("ix_sales_event_artisan_id"), "sales_event", ["artisan_id"], unique=False)
    op.create_index(op.f("ix_sales_event_product_id"), "sales_event", ["product_id"], unique=False)
    op.create_index(
        op.f("ix_sales_event_payment_status"), "sales_event", ["payment_status"], unique=False
    )
    op.create_index(op.f("ix_sales_event_timestamp"), "sales_event", ["timestamp"], unique=False)
    op.create_index(
        "ix_sales_event_artisan_timestamp",
        "sales_event",
        ["artisan_id", "timestamp"],
        unique=False,
    )
    op.create_index(
        "ix_sales_event_product_timestamp",
        "sales_event",
        ["product_id", "timestamp"],
        unique=False,
    )

    # Create backfill_job table
    op.create_table(
        "backfill_job",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("job_id", sa.String(length=32), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("chunk_size", sa.Integer(), nullable=False),
        sa.Column("cursor", sa.String(length=64), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        # Progress counters
        sa.Column("processed_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("error_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("skipped_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("chunk_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("dry_run", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("pause_requested", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("last_event_at", sa.DateTime(timezone=True), nullable=True),
        # Request and outcome
        sa.Column("params", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("stats", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("error_message", sa.String(length=2000), nullable=True),
        sa.Column("error_type", sa.String(length=100), nullable=True),
        # Timing
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        # Constraints
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "status IN ('pending', 'running', 'paused', 'completed', 'failed')",
            name="ck_backfill_job_valid_status",
        ),
        sa.CheckConstraint("chunk_size > 0", name="ck_backfill_job_chunk_size_positive"),
    )

    # Create indexes for backfill_job
    op.create_index(op.f("ix_backfill_job_job_id"), "backfill_job", ["job_id"], unique=True)
    op.create_index(op.f("ix_backfill_job_status"), "backfill_job", ["status"], unique=False)
    op.create_index(
        "ix_backfill_job_status_created",
        "backfill_job",
        ["status", "created_at"],
        unique=False,
    )


def downgrade() -> None:
    """Revert migration - drop backfill_job and sales_event tables."""
    op.drop_index("ix_backfill_job_status_created", table_name="backfill_job")
    op.drop_index(op.f("ix_backfill_job_status"), table_name="backfill_job")
    op.drop_index(op.f("ix_backfill_job_job_id"), table_name="backfill_job")
    op.drop_table("backfill_job")

    op.drop_index("ix_sales_event_product_timestamp", table_name="sales_event")
    op.drop_index("ix_sales_event_artisan_timestamp", table_name="sales_event")
    op.drop_index(op.f("ix_sales_event_timestamp"), table_name="sales_event")
    op.drop_index(op.f("ix_sales_event_payment_status"), table_name="sales_event")
    op.drop_index(op.f("ix_sales_event_product_id"), table_name="sales_event")
    op.drop_index(op.f("ix_sales_event_artisan_id"), table_name="sales_event")
    op.drop_index(op.f("ix_sales_event_order_id"), table_name="sales_event")
    op.drop_table("sales_event")
