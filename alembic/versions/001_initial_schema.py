"""Initial schema: escrow orders, consumed nonces, event log and triggers.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def create_immutability_triggers() -> None:
    """Create immutability triggers for the event log.

    Call this function from any migration that uses batch mode on
    escrow_event, as batch mode drops and recreates tables which
    silently destroys triggers.
    """
    # escrow_event: no updates
    op.execute(
        "CREATE TRIGGER IF NOT EXISTS no_update_escrow_event "
        "BEFORE UPDATE ON escrow_event "
        "BEGIN SELECT RAISE(ABORT, 'escrow_event is immutable'); END;"
    )
    # escrow_event: no deletes
    op.execute(
        "CREATE TRIGGER IF NOT EXISTS no_delete_escrow_event "
        "BEFORE DELETE ON escrow_event "
        "BEGIN SELECT RAISE(ABORT, 'escrow_event is immutable'); END;"
    )


def upgrade() -> None:
    # --- escrow_order ---
    op.create_table(
        "escrow_order",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("order_id", sa.String(), nullable=False),
        sa.Column("amount", sa.String(), nullable=False),
        sa.Column("fee_amount", sa.String(), nullable=False),
        sa.Column("seller", sa.String(), nullable=False),
        sa.Column("buyer", sa.String(), nullable=False),
        sa.Column("state", sa.String(), nullable=False, server_default="active"),
        sa.Column("created_at", sa.String(), nullable=False),
        sa.Column("updated_at", sa.String(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("order_id"),
        sa.CheckConstraint(
            "state IN ('active', 'released', 'refunded')",
            name="ck_escrow_order_state",
        ),
    )
    op.create_index("ix_escrow_order_state", "escrow_order", ["state"])
    op.create_index("ix_escrow_order_buyer", "escrow_order", ["buyer"])
    op.create_index("ix_escrow_order_seller", "escrow_order", ["seller"])

    # --- consumed_nonce ---
    op.create_table(
        "consumed_nonce",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("nonce", sa.String(), nullable=False),
        sa.Column("consumed_at", sa.String(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("nonce"),
    )

    # --- escrow_event ---
    op.create_table(
        "escrow_event",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("event_type", sa.String(), nullable=False),
        sa.Column("order_id", sa.String(), nullable=True),
        sa.Column("payload", sa.Text(), nullable=False),
        sa.Column("recorded_at", sa.String(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_escrow_event_order_id", "escrow_event", ["order_id"])
    op.create_index("ix_escrow_event_recorded", "escrow_event", ["recorded_at"])

    create_immutability_triggers()


def downgrade() -> None:
    raise NotImplementedError(
        "Downgrade not supported. Use backup-and-restore for rollback."
    )
