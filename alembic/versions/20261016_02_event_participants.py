"""event participants

Revision ID: 20261016_02
Revises: 20261016_01
Create Date: 2026-10-16
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "20261016_02"
down_revision: Union[str, None] = "20261016_01"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    inspector = sa.inspect(op.get_bind())
    # Shared with the RSVP side of the platform, which may have created it.
    if "event_participants" in inspector.get_table_names():
        return

    op.create_table(
        "event_participants",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("role", sa.String(length=30), nullable=False, server_default="ticket_holder"),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="confirmed_with_order"),
        sa.Column("source", sa.String(length=50), nullable=True),
        sa.Column("details", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("event_id", "user_id", name="uq_event_participants_event_user"),
    )
    op.create_index("ix_event_participants_id", "event_participants", ["id"], unique=False)
    op.create_index("ix_event_participants_event_id", "event_participants", ["event_id"], unique=False)
    op.create_index("ix_event_participants_user_id", "event_participants", ["user_id"], unique=False)


def downgrade() -> None:
    inspector = sa.inspect(op.get_bind())
    if "event_participants" in inspector.get_table_names():
        op.drop_table("event_participants")
