"""OrderLedger protocol and in-memory implementation.

The ledger is the only place order state is written. ``transition`` is a
compare-and-set from ACTIVE, so two operations racing on one order can
never both move it to a terminal state.
"""

from __future__ import annotations

import threading
from typing import Protocol, runtime_checkable

import structlog

from escrow_ledger.errors import (
    OrderAlreadyExists,
    OrderAlreadyProcessed,
    OrderDoesNotExist,
)
from escrow_ledger.ledger.state_machine import InvalidTransitionError, OrderStateMachine
from escrow_ledger.ledger.types import Order, OrderState

log = structlog.get_logger()


@runtime_checkable
class OrderLedger(Protocol):
    """Keyed, write-once store of escrow orders."""

    async def get(self, order_id: int) -> Order | None:
        """The order recorded under order_id, or None."""
        ...

    async def create(self, order: Order) -> None:
        """Record a new ACTIVE order.

        Raises:
            OrderAlreadyExists: If order.order_id is already taken.
        """
        ...

    async def transition(self, order_id: int, new_state: OrderState) -> Order:
        """Atomically move an ACTIVE order to new_state.

        Raises:
            OrderDoesNotExist: If no order is recorded under order_id.
            OrderAlreadyProcessed: If the order is not ACTIVE.
        """
        ...

    async def rollback_transition(self, order_id: int, from_state: OrderState) -> Order:
        """Undo a transition whose payout failed (from_state -> ACTIVE)."""
        ...

    async def discard(self, order_id: int) -> None:
        """Remove an ACTIVE order whose placement failed after create()."""
        ...


class InMemoryOrderLedger:
    """OrderLedger backed by a dict. Safe to share across threads."""

    def __init__(self) -> None:
        self._orders: dict[int, Order] = {}
        self._lock = threading.Lock()

    async def get(self, order_id: int) -> Order | None:
        with self._lock:
            return self._orders.get(order_id)

    async def create(self, order: Order) -> None:
        if order.state != OrderState.ACTIVE:
            raise ValueError(f"Orders are created ACTIVE, got {order.state.value}")
        with self._lock:
            if order.order_id in self._orders:
                raise OrderAlreadyExists(order.order_id)
            self._orders[order.order_id] = order

    async def transition(self, order_id: int, new_state: OrderState) -> Order:
        with self._lock:
            order = self._orders.get(order_id)
            if order is None:
                raise OrderDoesNotExist(order_id)
            machine = OrderStateMachine(order.state)
            try:
                machine.transition(new_state)
            except InvalidTransitionError as exc:
                raise OrderAlreadyProcessed(order_id, order.state.value) from exc
            updated = order.with_state(machine.state)
            self._orders[order_id] = updated
            return updated

    async def rollback_transition(self, order_id: int, from_state: OrderState) -> Order:
        with self._lock:
            order = self._orders.get(order_id)
            if order is None:
                raise OrderDoesNotExist(order_id)
            if order.state != from_state:
                raise OrderAlreadyProcessed(order_id, order.state.value)
            machine = OrderStateMachine(order.state)
            machine.force_state(OrderState.ACTIVE, _rollback=True)
            restored = order.with_state(machine.state)
            self._orders[order_id] = restored
        log.warning(
            "order_transition_rolled_back",
            order_id=str(order_id),
            from_state=from_state.value,
        )
        return restored

    async def discard(self, order_id: int) -> None:
        with self._lock:
            order = self._orders.get(order_id)
            if order is not None and order.state == OrderState.ACTIVE:
                del self._orders[order_id]
