"""Escrow database models.

Tables: escrow_order, consumed_nonce, escrow_event
"""

from __future__ import annotations

from sqlalchemy import CheckConstraint, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from escrow_ledger.models.base import Base, UIntText


class EscrowOrderModel(Base):
    """One escrowed order. Only ``state`` and ``updated_at`` ever change."""

    __tablename__ = "escrow_order"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(UIntText, nullable=False, unique=True)
    amount: Mapped[int] = mapped_column(UIntText, nullable=False)
    fee_amount: Mapped[int] = mapped_column(UIntText, nullable=False)
    seller: Mapped[str] = mapped_column(String, nullable=False)
    buyer: Mapped[str] = mapped_column(String, nullable=False)
    state: Mapped[str] = mapped_column(
        String,
        CheckConstraint(
            "state IN ('active', 'released', 'refunded')",
            name="ck_escrow_order_state",
        ),
        nullable=False,
        server_default="active",
    )
    created_at: Mapped[str] = mapped_column(String, nullable=False)
    updated_at: Mapped[str] = mapped_column(String, nullable=False)

    __table_args__ = (
        Index("ix_escrow_order_state", "state"),
        Index("ix_escrow_order_buyer", "buyer"),
        Index("ix_escrow_order_seller", "seller"),
    )


class ConsumedNonceModel(Base):
    """Authorization nonces already spent by a placement."""

    __tablename__ = "consumed_nonce"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    nonce: Mapped[int] = mapped_column(UIntText, nullable=False, unique=True)
    consumed_at: Mapped[str] = mapped_column(String, nullable=False)


class EscrowEventModel(Base):
    """Immutable append-only notification log."""

    __tablename__ = "escrow_event"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_type: Mapped[str] = mapped_column(String, nullable=False)
    order_id: Mapped[int | None] = mapped_column(UIntText, nullable=True)
    payload: Mapped[str] = mapped_column(Text, nullable=False)
    recorded_at: Mapped[str] = mapped_column(String, nullable=False)

    __table_args__ = (
        Index("ix_escrow_event_order_id", "order_id"),
        Index("ix_escrow_event_recorded", "recorded_at"),
    )
