"""Order ledger and nonce registry: storage protocols and backends."""

from escrow_ledger.ledger.nonce_registry import InMemoryNonceRegistry, NonceRegistry
from escrow_ledger.ledger.order_ledger import InMemoryOrderLedger, OrderLedger
from escrow_ledger.ledger.sql import SqlEventLog, SqlNonceRegistry, SqlOrderLedger
from escrow_ledger.ledger.state_machine import InvalidTransitionError, OrderStateMachine
from escrow_ledger.ledger.types import (
    TERMINAL_STATES,
    UINT256_MAX,
    Order,
    OrderState,
    is_null_address,
    is_uint256,
)

__all__ = [
    "TERMINAL_STATES",
    "UINT256_MAX",
    "InMemoryNonceRegistry",
    "InMemoryOrderLedger",
    "InvalidTransitionError",
    "NonceRegistry",
    "Order",
    "OrderLedger",
    "OrderState",
    "OrderStateMachine",
    "SqlEventLog",
    "SqlNonceRegistry",
    "SqlOrderLedger",
    "is_null_address",
    "is_uint256",
]
