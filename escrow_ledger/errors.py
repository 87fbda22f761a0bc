"""Escrow error hierarchy.

All ledger-related exceptions inherit from EscrowError, so callers can
handle every rejected operation at one boundary. Each error is fatal to
the operation that raised it: nothing that operation did is kept.
"""

from __future__ import annotations

from typing import Any


class EscrowError(Exception):
    """Base exception for all escrow-related errors."""


class InvalidAddress(EscrowError):
    """Null or zero identity supplied where a real identity is required."""

    def __init__(self, field: str, value: Any = None) -> None:
        self.field = field
        self.value = value
        super().__init__(f"Invalid address for {field}: {value!r}")


class InvalidAmount(EscrowError):
    """Amount is zero or outside the unsigned 256-bit range."""

    def __init__(self, amount: int) -> None:
        self.amount = amount
        super().__init__(f"Invalid amount: {amount}")


class OrderAlreadyExists(EscrowError):
    """An order is already recorded under this id."""

    def __init__(self, order_id: int) -> None:
        self.order_id = order_id
        super().__init__(f"Order {order_id} already exists")


class InvalidSignature(EscrowError):
    """Signature does not verify under the trusted issuer's key."""

    def __init__(self, order_id: int) -> None:
        self.order_id = order_id
        super().__init__(f"Invalid issuer signature for order {order_id}")


class NonceAlreadyUsed(EscrowError):
    """Authorization nonce was consumed by an earlier placement."""

    def __init__(self, nonce: int) -> None:
        self.nonce = nonce
        super().__init__(f"Nonce {nonce} already used")


class TransferFailed(EscrowError):
    """The asset-transfer collaborator reported a failure.

    Stores the direction ("pull" or "push"), the counterparty and the
    amount of the transfer that failed.
    """

    def __init__(
        self,
        direction: str,
        counterparty: str,
        amount: int,
        reason: str = "",
    ) -> None:
        self.direction = direction
        self.counterparty = counterparty
        self.amount = amount
        self.reason = reason
        message = f"Transfer failed: {direction} {amount} ({counterparty})"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class OrderDoesNotExist(EscrowError):
    """Operation references an unknown order id."""

    def __init__(self, order_id: int) -> None:
        self.order_id = order_id
        super().__init__(f"Order {order_id} does not exist")


class OrderAlreadyProcessed(EscrowError):
    """Operation targets an order that is no longer ACTIVE."""

    def __init__(self, order_id: int, state: str) -> None:
        self.order_id = order_id
        self.state = state
        super().__init__(f"Order {order_id} already processed (state={state})")


class NotAuthorized(EscrowError):
    """Caller lacks the role required for the operation."""

    def __init__(self, caller: str, action: str) -> None:
        self.caller = caller
        self.action = action
        super().__init__(f"{caller!r} is not authorized to {action}")


class FeePercentageTooHigh(EscrowError):
    """Requested fee exceeds the basis-point ceiling."""

    def __init__(self, percentage_bps: int, ceiling_bps: int) -> None:
        self.percentage_bps = percentage_bps
        self.ceiling_bps = ceiling_bps
        super().__init__(
            f"Fee percentage {percentage_bps} bps exceeds ceiling {ceiling_bps} bps"
        )
