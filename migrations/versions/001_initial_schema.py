"""
Alembic migration: workers, orders and order history.

Creates the worker table holding login, role and order number code, the
orders table with its globally unique order number, and the append-only
order_history table that cascades away with its order.

Revision ID: 001
Revises:
Create Date: 2025-01-15 09:00:00.000000
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _enum(name: str) -> postgresql.ENUM:
    return postgresql.ENUM(name=name, create_type=False)


def upgrade() -> None:
    op.execute("CREATE TYPE worker_role AS ENUM ('worker', 'executive')")
    op.execute(
        """
        CREATE TYPE order_status AS ENUM (
            'received_package',
            'payment_paid',
            'delivered',
            'cancelled'
        )
        """
    )
    op.execute(
        "CREATE TYPE history_action AS ENUM ('created', 'status_changed', 'updated')"
    )

    op.create_table(
        "workers",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("code", sa.String(length=32), nullable=True),
        sa.Column("role", _enum("worker_role"), nullable=False),
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
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )
    op.create_index("ix_workers_email", "workers", ["email"])
    op.create_index("ix_workers_created_at", "workers", ["created_at"])

    op.create_table(
        "orders",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("order_number", sa.String(length=50), nullable=False),
        sa.Column("sender_name", sa.String(length=255), nullable=False),
        sa.Column("sender_phone", sa.String(length=50), nullable=False),
        sa.Column("receiver_name", sa.String(length=255), nullable=False),
        sa.Column("receiver_phone", sa.String(length=50), nullable=False),
        sa.Column("cargo_type", sa.String(length=255), nullable=False),
        sa.Column("weight", sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column("price", sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("photo_url", sa.String(length=1024), nullable=True),
        sa.Column("status", _enum("order_status"), nullable=False),
        sa.Column("worker_id", postgresql.UUID(as_uuid=True), nullable=False),
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
        sa.CheckConstraint(
            "weight IS NULL OR weight >= 0",
            name="ck_orders_weight_non_negative",
        ),
        sa.CheckConstraint(
            "price IS NULL OR price >= 0",
            name="ck_orders_price_non_negative",
        ),
        sa.ForeignKeyConstraint(["worker_id"], ["workers.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("order_number"),
        comment="Cargo shipment orders",
    )
    op.create_index("ix_orders_status", "orders", ["status"])
    op.create_index("ix_orders_worker_id", "orders", ["worker_id"])
    op.create_index("ix_orders_created_at", "orders", ["created_at"])
    op.create_index("ix_orders_worker_created", "orders", ["worker_id", "created_at"])

    op.create_table(
        "order_history",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("order_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("worker_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("worker_name", sa.String(length=255), nullable=False),
        sa.Column("action", _enum("history_action"), nullable=False),
        sa.Column("old_status", _enum("order_status"), nullable=True),
        sa.Column("new_status", _enum("order_status"), nullable=True),
        sa.Column("changes", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["order_id"], ["orders.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["worker_id"], ["workers.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        comment="Append-only audit trail of order changes",
    )
    op.create_index("ix_order_history_created_at", "order_history", ["created_at"])
    op.create_index(
        "ix_order_history_order_created",
        "order_history",
        ["order_id", "created_at"],
    )


def downgrade() -> None:
    op.drop_table("order_history")
    op.drop_table("orders")
    op.drop_table("workers")
    op.execute("DROP TYPE IF EXISTS history_action")
    op.execute("DROP TYPE IF EXISTS order_status")
    op.execute("DROP TYPE IF EXISTS worker_role")
