"""Order state machine -- pure transition logic with validation.

No I/O, no storage. Validates state transitions and raises on invalid
ones. Ledgers consult it before every state write.
"""

from __future__ import annotations

from typing import ClassVar

from escrow_ledger.ledger.types import TERMINAL_STATES, OrderState


class InvalidTransitionError(Exception):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, from_state: OrderState, to_state: OrderState) -> None:
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(f"Invalid transition: {from_state.value} -> {to_state.value}")


class OrderStateMachine:
    """Pure state transition logic for the escrow order lifecycle.

    ACTIVE is the only non-terminal state and may move to RELEASED or
    REFUNDED exactly once. Raises InvalidTransitionError otherwise.
    """

    TRANSITIONS: ClassVar[dict[OrderState, frozenset[OrderState]]] = {
        OrderState.ACTIVE: frozenset(
            {
                OrderState.RELEASED,
                OrderState.REFUNDED,
            }
        ),
    }

    def __init__(self, state: OrderState) -> None:
        self._state = state

    @property
    def state(self) -> OrderState:
        """Current state."""
        return self._state

    @property
    def is_terminal(self) -> bool:
        """Whether the current state is terminal (no further transitions)."""
        return self._state in TERMINAL_STATES

    def transition(self, to: OrderState) -> None:
        """Validate and apply a state transition.

        Raises:
            InvalidTransitionError: If the transition is not allowed.
        """
        if self.is_terminal:
            raise InvalidTransitionError(self._state, to)

        valid_targets = self.TRANSITIONS.get(self._state, frozenset())
        if to not in valid_targets:
            raise InvalidTransitionError(self._state, to)

        self._state = to

    def force_state(
        self,
        new_state: OrderState,
        *,
        _rollback: bool = False,
    ) -> None:
        """Force-set state without transition validation.

        Used ONLY to undo a transition whose payout failed, so the order
        returns to the state it had before the operation started.

        Args:
            new_state: The target state to force.
            _rollback: Must be True. Guards against accidental misuse.

        Raises:
            RuntimeError: If _rollback is not True.
        """
        if not _rollback:
            raise RuntimeError("force_state() can only be called during rollback")
        self._state = new_state
