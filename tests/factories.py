"""Shared test factories for escrow objects.

Provides make_signer(), make_transfer(), make_service() and
place_signed_order() with sensible defaults so tests can focus on the
values they care about.
"""

from __future__ import annotations

from nacl.signing import SigningKey

from escrow_ledger.events import EventLog, InMemoryEventLog
from escrow_ledger.fees import FeePolicy
from escrow_ledger.ledger.nonce_registry import InMemoryNonceRegistry, NonceRegistry
from escrow_ledger.ledger.order_ledger import InMemoryOrderLedger, OrderLedger
from escrow_ledger.ledger.types import Order, OrderState
from escrow_ledger.service import EscrowService
from escrow_ledger.signing import Ed25519SignatureVerifier, OrderSigner
from escrow_ledger.transfer.fake import FakeAssetTransfer

BUYER = "buyer-0001"
SELLER = "seller-0001"
COLLECTOR = "fee-collector"
OUTSIDER = "outsider-0001"
CUSTODY = "escrow"

# 100 USDC in 6-decimal base units
DEFAULT_AMOUNT = 100_000000
DEFAULT_BUYER_BALANCE = 1_000_000000

_ISSUER_SEED = bytes(range(1, 33))
_OTHER_SEED = bytes(range(101, 133))


def make_signer(seed: bytes = _ISSUER_SEED) -> OrderSigner:
    """Deterministic issuer signer."""
    return OrderSigner(SigningKey(seed))


def make_other_signer() -> OrderSigner:
    """A signer that is NOT the trusted issuer."""
    return make_signer(_OTHER_SEED)


def make_transfer(
    *,
    buyer_balance: int = DEFAULT_BUYER_BALANCE,
    balances: dict[str, int] | None = None,
) -> FakeAssetTransfer:
    """FakeAssetTransfer with the default buyer funded."""
    transfer = FakeAssetTransfer(custody_account=CUSTODY, balances=balances)
    if buyer_balance:
        transfer.mint(BUYER, buyer_balance)
    return transfer


def make_order(
    *,
    order_id: int = 1,
    amount: int = DEFAULT_AMOUNT,
    fee_amount: int = 5_000000,
    seller: str = SELLER,
    buyer: str = BUYER,
    state: OrderState = OrderState.ACTIVE,
) -> Order:
    """Create an Order with sensible defaults."""
    return Order(
        order_id=order_id,
        amount=amount,
        fee_amount=fee_amount,
        seller=seller,
        buyer=buyer,
        state=state,
    )


def make_service(
    *,
    signer: OrderSigner | None = None,
    transfer: FakeAssetTransfer | None = None,
    percentage_bps: int = 500,
    collector: str = COLLECTOR,
    ledger: OrderLedger | None = None,
    nonces: NonceRegistry | None = None,
    events: EventLog | None = None,
) -> EscrowService:
    """EscrowService on in-memory collaborators unless overridden."""
    signer = signer or make_signer()
    return EscrowService(
        ledger=ledger if ledger is not None else InMemoryOrderLedger(),
        nonces=nonces if nonces is not None else InMemoryNonceRegistry(),
        verifier=Ed25519SignatureVerifier(signer.public_key),
        fee_policy=FeePolicy(
            administrator=signer.public_key,
            percentage_bps=percentage_bps,
            collector=collector,
        ),
        transfer=transfer if transfer is not None else make_transfer(),
        events=events if events is not None else InMemoryEventLog(),
    )


async def place_signed_order(
    service: EscrowService,
    signer: OrderSigner,
    *,
    order_id: int = 1,
    amount: int = DEFAULT_AMOUNT,
    seller: str = SELLER,
    nonce: int = 1,
    caller: str = BUYER,
) -> Order:
    """Sign the order parameters with signer and place the order."""
    signature = signer.sign_order(order_id, amount, seller, nonce)
    return await service.place_order(
        order_id=order_id,
        amount=amount,
        seller=seller,
        nonce=nonce,
        signature=signature,
        caller=caller,
    )
