"""Database models package."""

from escrow_ledger.models.base import Base, UIntText, create_schema
from escrow_ledger.models.escrow import (
    ConsumedNonceModel,
    EscrowEventModel,
    EscrowOrderModel,
)

__all__ = [
    "Base",
    "ConsumedNonceModel",
    "EscrowEventModel",
    "EscrowOrderModel",
    "UIntText",
    "create_schema",
]
