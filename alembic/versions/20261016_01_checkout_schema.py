"""checkout schema

Revision ID: 20261016_01
Revises:
Create Date: 2026-10-16
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "20261016_01"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _table_exists(inspector: sa.Inspector, table_name: str) -> bool:
    return table_name in inspector.get_table_names()


def _ensure_catalog_tables(inspector: sa.Inspector) -> None:
    # users, events and tickets are owned by other services; create them only
    # when this service runs against its own database.
    if not _table_exists(inspector, "users"):
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("email", sa.String(length=255), nullable=False),
            sa.Column("display_name", sa.String(length=255), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        )
        op.create_index("ix_users_id", "users", ["id"], unique=False)
        op.create_index("ix_users_email", "users", ["email"], unique=True)

    if not _table_exists(inspector, "events"):
        op.create_table(
            "events",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("title", sa.String(length=255), nullable=False),
            sa.Column("slug", sa.String(length=255), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        )
        op.create_index("ix_events_id", "events", ["id"], unique=False)
        op.create_index("ix_events_slug", "events", ["slug"], unique=True)

    if not _table_exists(inspector, "tickets"):
        op.create_table(
            "tickets",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id"), nullable=False),
            sa.Column("title", sa.String(length=255), nullable=False),
            sa.Column("base_price_cents", sa.Integer(), nullable=False),
            sa.Column("pricing_model", sa.String(length=20), nullable=False, server_default="fixed"),
            sa.Column("minimum_price_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
            sa.Column("suggested_price_cents", sa.Integer(), nullable=True),
            sa.Column("tippable", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("quantity", sa.Integer(), nullable=False),
            sa.Column("currency", sa.String(length=3), nullable=False, server_default="usd"),
            sa.Column("starts_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("ends_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        )
        op.create_index("ix_tickets_id", "tickets", ["id"], unique=False)
        op.create_index("ix_tickets_event_id", "tickets", ["event_id"], unique=False)


def _ensure_order_tables(inspector: sa.Inspector) -> None:
    if not _table_exists(inspector, "orders"):
        op.create_table(
            "orders",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("ticket_id", sa.Integer(), sa.ForeignKey("tickets.id"), nullable=False),
            sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id"), nullable=False),
            sa.Column("quantity", sa.Integer(), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
            sa.Column("pricing_snapshot", sa.JSON(), nullable=False),
            sa.Column("subtotal_cents", sa.Integer(), nullable=False),
            sa.Column("tip_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
            sa.Column("total_cents", sa.Integer(), nullable=False),
            sa.Column("currency", sa.String(length=3), nullable=False, server_default="usd"),
            sa.Column("payment_reference", sa.String(length=255), nullable=True),
            sa.Column("stripe_session_id", sa.String(length=255), nullable=True),
            sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("confirmation_event_id", sa.String(length=255), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.CheckConstraint("status IN ('pending', 'confirmed')", name="ck_orders_status"),
            sa.CheckConstraint("quantity > 0", name="ck_orders_quantity_positive"),
            sa.CheckConstraint("total_cents = subtotal_cents + tip_cents", name="ck_orders_total"),
        )
        op.create_index("ix_orders_id", "orders", ["id"], unique=False)
        op.create_index("ix_orders_user_id", "orders", ["user_id"], unique=False)
        op.create_index("ix_orders_ticket_id", "orders", ["ticket_id"], unique=False)
        op.create_index("ix_orders_event_id", "orders", ["event_id"], unique=False)
        op.create_index("ix_orders_payment_reference", "orders", ["payment_reference"], unique=False)
        op.create_index("ix_orders_stripe_session_id", "orders", ["stripe_session_id"], unique=True)

    if not _table_exists(inspector, "stripe_events"):
        op.create_table(
            "stripe_events",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("stripe_event_id", sa.String(length=255), nullable=False),
            sa.Column("event_type", sa.String(length=255), nullable=False),
            sa.Column("outcome", sa.String(length=50), nullable=False),
            sa.Column("processed_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        )
        op.create_index("ix_stripe_events_id", "stripe_events", ["id"], unique=False)
        op.create_index("ix_stripe_events_stripe_event_id", "stripe_events", ["stripe_event_id"], unique=True)


def upgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    _ensure_catalog_tables(inspector)
    inspector = sa.inspect(bind)
    _ensure_order_tables(inspector)


def downgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    if _table_exists(inspector, "stripe_events"):
        op.drop_table("stripe_events")
    if _table_exists(inspector, "orders"):
        op.drop_table("orders")
