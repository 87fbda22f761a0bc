"""Ledger domain types shared across the escrow system.

Frozen dataclasses for value objects. All amounts are integers in the
asset's smallest unit (e.g. 1 USDC == 1_000000).
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum

UINT256_MAX = 2**256 - 1


class OrderState(str, Enum):
    """Escrow order lifecycle states."""

    ACTIVE = "active"
    RELEASED = "released"
    REFUNDED = "refunded"


TERMINAL_STATES = frozenset(
    {
        OrderState.RELEASED,
        OrderState.REFUNDED,
    }
)


def is_uint256(value: object) -> bool:
    """Whether value is an int in [0, 2**256 - 1]. bool is rejected."""
    return (
        isinstance(value, int)
        and not isinstance(value, bool)
        and 0 <= value <= UINT256_MAX
    )


def is_null_address(address: str | None) -> bool:
    """Whether an identity is null.

    None, the empty string, and any all-zero hex string ("0x0000...")
    are null.
    """
    if address is None:
        return True
    if not isinstance(address, str):
        return True
    text = address.strip().lower()
    if text.startswith("0x"):
        text = text[2:]
    if not text:
        return True
    return set(text) == {"0"}


@dataclass(frozen=True)
class Order:
    """One escrowed order. fee_amount is fixed at placement."""

    order_id: int
    amount: int
    fee_amount: int
    seller: str
    buyer: str
    state: OrderState = OrderState.ACTIVE

    @property
    def seller_payout(self) -> int:
        """What the seller receives on release."""
        return self.amount - self.fee_amount

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def with_state(self, state: OrderState) -> Order:
        """Copy of this order in another state."""
        return replace(self, state=state)
