"""Escrow ledger: issuer-authorized, exactly-once escrow of a single asset.

Re-exports the public surface:
    from escrow_ledger import EscrowService, Order, OrderState, EscrowError
"""

from escrow_ledger.errors import (
    EscrowError,
    FeePercentageTooHigh,
    InvalidAddress,
    InvalidAmount,
    InvalidSignature,
    NonceAlreadyUsed,
    NotAuthorized,
    OrderAlreadyExists,
    OrderAlreadyProcessed,
    OrderDoesNotExist,
    TransferFailed,
)
from escrow_ledger.events import (
    EscrowEvent,
    FeeCollectorUpdated,
    FeeUpdated,
    OrderPlaced,
    OrderRefunded,
    OrderReleased,
)
from escrow_ledger.fees import FeePolicy, FeeSchedule, compute_fee
from escrow_ledger.ledger.types import Order, OrderState
from escrow_ledger.service import EscrowService
from escrow_ledger.signing import (
    Ed25519SignatureVerifier,
    OrderSigner,
    SignatureVerifier,
)

__all__ = [
    "Ed25519SignatureVerifier",
    "EscrowError",
    "EscrowEvent",
    "EscrowService",
    "FeeCollectorUpdated",
    "FeePercentageTooHigh",
    "FeePolicy",
    "FeeSchedule",
    "FeeUpdated",
    "InvalidAddress",
    "InvalidAmount",
    "InvalidSignature",
    "NonceAlreadyUsed",
    "NotAuthorized",
    "Order",
    "OrderAlreadyExists",
    "OrderAlreadyProcessed",
    "OrderDoesNotExist",
    "OrderPlaced",
    "OrderRefunded",
    "OrderReleased",
    "OrderSigner",
    "OrderState",
    "SignatureVerifier",
    "TransferFailed",
    "compute_fee",
]
