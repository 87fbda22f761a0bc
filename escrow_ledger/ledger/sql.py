"""SQLAlchemy-backed ledger, nonce registry and event log.

Every method runs in its own transaction. Uniqueness and compare-and-set
are enforced by the database itself (unique indexes and conditional
UPDATEs), so several service processes sharing one database still can't
create an order twice, consume a nonce twice, or settle an order twice.
"""

from __future__ import annotations

import json

import structlog
from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from escrow_ledger.errors import (
    NonceAlreadyUsed,
    OrderAlreadyExists,
    OrderAlreadyProcessed,
    OrderDoesNotExist,
)
from escrow_ledger.events import EscrowEvent, event_from_payload
from escrow_ledger.ledger.state_machine import InvalidTransitionError, OrderStateMachine
from escrow_ledger.ledger.types import Order, OrderState
from escrow_ledger.models.escrow import (
    ConsumedNonceModel,
    EscrowEventModel,
    EscrowOrderModel,
)
from escrow_ledger.utils.time import format_timestamp, utc_now

log = structlog.get_logger()


def _to_order(row: EscrowOrderModel) -> Order:
    return Order(
        order_id=row.order_id,
        amount=row.amount,
        fee_amount=row.fee_amount,
        seller=row.seller,
        buyer=row.buyer,
        state=OrderState(row.state),
    )


class SqlOrderLedger:
    """OrderLedger stored in the escrow_order table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, order_id: int) -> Order | None:
        async with self._session_factory() as session:
            row = await self._find(session, order_id)
            return _to_order(row) if row is not None else None

    async def create(self, order: Order) -> None:
        if order.state != OrderState.ACTIVE:
            raise ValueError(f"Orders are created ACTIVE, got {order.state.value}")
        now = format_timestamp(utc_now())
        try:
            async with self._session_factory() as session, session.begin():
                session.add(
                    EscrowOrderModel(
                        order_id=order.order_id,
                        amount=order.amount,
                        fee_amount=order.fee_amount,
                        seller=order.seller,
                        buyer=order.buyer,
                        state=order.state.value,
                        created_at=now,
                        updated_at=now,
                    )
                )
        except IntegrityError as exc:
            raise OrderAlreadyExists(order.order_id) from exc

    async def transition(self, order_id: int, new_state: OrderState) -> Order:
        async with self._session_factory() as session, session.begin():
            row = await self._find(session, order_id)
            if row is None:
                raise OrderDoesNotExist(order_id)
            current = OrderState(row.state)
            machine = OrderStateMachine(current)
            try:
                machine.transition(new_state)
            except InvalidTransitionError as exc:
                raise OrderAlreadyProcessed(order_id, current.value) from exc

            result = await session.execute(
                update(EscrowOrderModel)
                .where(
                    EscrowOrderModel.order_id == order_id,
                    EscrowOrderModel.state == current.value,
                )
                .values(
                    state=machine.state.value,
                    updated_at=format_timestamp(utc_now()),
                )
            )
            if result.rowcount != 1:
                # Another writer settled the order between our read and update.
                raise OrderAlreadyProcessed(order_id, current.value)
            return _to_order(row).with_state(machine.state)

    async def rollback_transition(self, order_id: int, from_state: OrderState) -> Order:
        async with self._session_factory() as session, session.begin():
            row = await self._find(session, order_id)
            if row is None:
                raise OrderDoesNotExist(order_id)
            machine = OrderStateMachine(OrderState(row.state))
            machine.force_state(OrderState.ACTIVE, _rollback=True)
            result = await session.execute(
                update(EscrowOrderModel)
                .where(
                    EscrowOrderModel.order_id == order_id,
                    EscrowOrderModel.state == from_state.value,
                )
                .values(
                    state=machine.state.value,
                    updated_at=format_timestamp(utc_now()),
                )
            )
            if result.rowcount != 1:
                raise OrderAlreadyProcessed(order_id, row.state)
            restored = _to_order(row).with_state(machine.state)
        log.warning(
            "order_transition_rolled_back",
            order_id=str(order_id),
            from_state=from_state.value,
        )
        return restored

    async def discard(self, order_id: int) -> None:
        async with self._session_factory() as session, session.begin():
            await session.execute(
                delete(EscrowOrderModel).where(
                    EscrowOrderModel.order_id == order_id,
                    EscrowOrderModel.state == OrderState.ACTIVE.value,
                )
            )

    async def list_orders(self, state: OrderState | None = None) -> list[Order]:
        """All orders, oldest first, optionally filtered by state."""
        async with self._session_factory() as session:
            stmt = select(EscrowOrderModel).order_by(EscrowOrderModel.id)
            if state is not None:
                stmt = stmt.where(EscrowOrderModel.state == state.value)
            result = await session.execute(stmt)
            return [_to_order(row) for row in result.scalars().all()]

    async def _find(self, session: AsyncSession, order_id: int) -> EscrowOrderModel | None:
        result = await session.execute(
            select(EscrowOrderModel).where(EscrowOrderModel.order_id == order_id)
        )
        return result.scalar_one_or_none()


class SqlNonceRegistry:
    """NonceRegistry stored in the consumed_nonce table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def is_used(self, nonce: int) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(
                select(ConsumedNonceModel.id).where(ConsumedNonceModel.nonce == nonce)
            )
            return result.scalar_one_or_none() is not None

    async def mark_used(self, nonce: int) -> None:
        try:
            async with self._session_factory() as session, session.begin():
                session.add(
                    ConsumedNonceModel(
                        nonce=nonce,
                        consumed_at=format_timestamp(utc_now()),
                    )
                )
        except IntegrityError as exc:
            raise NonceAlreadyUsed(nonce) from exc

    async def unmark(self, nonce: int) -> None:
        async with self._session_factory() as session, session.begin():
            await session.execute(
                delete(ConsumedNonceModel).where(ConsumedNonceModel.nonce == nonce)
            )


class SqlEventLog:
    """EventLog stored in the escrow_event table (append-only)."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def append(self, event: EscrowEvent) -> None:
        payload = event.to_payload()
        async with self._session_factory() as session, session.begin():
            session.add(
                EscrowEventModel(
                    event_type=event.event_type,
                    order_id=payload.get("order_id"),
                    payload=json.dumps(payload, sort_keys=True),
                    recorded_at=format_timestamp(utc_now()),
                )
            )

    async def events(self) -> list[EscrowEvent]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(EscrowEventModel).order_by(EscrowEventModel.id)
            )
            return [
                event_from_payload(row.event_type, json.loads(row.payload))
                for row in result.scalars().all()
            ]
