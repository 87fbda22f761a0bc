"""Escrow service -- order lifecycle orchestrator.

Owns the escrow operations: place, release, refund, and the
administrator's fee updates. All lifecycle events logged via structlog.

Ordering rules:
- Operations on one order id are serialized by a per-order lock;
  placements sharing a nonce are serialized by a per-nonce lock.
- A release or refund commits the terminal state in the ledger before
  any transfer starts.
- If any transfer (or the final event append) fails, the completed steps
  are undone in reverse and the error is raised. Nothing is retried.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import structlog

from escrow_ledger.errors import (
    EscrowError,
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
    EventLog,
    FeeCollectorUpdated,
    FeeUpdated,
    OrderPlaced,
    OrderRefunded,
    OrderReleased,
)
from escrow_ledger.fees import FeePolicy, compute_fee
from escrow_ledger.ledger.nonce_registry import NonceRegistry
from escrow_ledger.ledger.order_ledger import OrderLedger
from escrow_ledger.ledger.types import Order, OrderState, is_null_address, is_uint256
from escrow_ledger.locks import KeyedLock
from escrow_ledger.signing import SignatureVerifier
from escrow_ledger.transfer.asset_transfer import AssetTransfer
from escrow_ledger.utils.logging import new_correlation_id

log = structlog.get_logger()


class _Rollback:
    """Undo steps for one operation, run newest first.

    Stops at the first undo step that fails: the steps registered before
    it (such as restoring ACTIVE) must not run while value it was meant
    to recover is still outside custody.
    """

    def __init__(self, operation: str) -> None:
        self._operation = operation
        self._steps: list[tuple[str, Callable[[], Awaitable[object]]]] = []

    def add(self, name: str, undo: Callable[[], Awaitable[object]]) -> None:
        self._steps.append((name, undo))

    async def run(self) -> None:
        for index in range(len(self._steps) - 1, -1, -1):
            name, undo = self._steps[index]
            try:
                await undo()
            except Exception:
                log.exception(
                    "rollback_step_failed",
                    operation=self._operation,
                    step=name,
                    skipped=[n for n, _ in self._steps[:index]],
                )
                return


class EscrowService:
    """Async escrow ledger for one asset.

    Composes an OrderLedger, NonceRegistry, SignatureVerifier, FeePolicy,
    AssetTransfer and EventLog. One instance per event loop; instances in
    different processes may share a SQL-backed ledger.
    """

    def __init__(
        self,
        *,
        ledger: OrderLedger,
        nonces: NonceRegistry,
        verifier: SignatureVerifier,
        fee_policy: FeePolicy,
        transfer: AssetTransfer,
        events: EventLog,
        asset: str = "USDC",
    ) -> None:
        self._ledger = ledger
        self._nonces = nonces
        self._verifier = verifier
        self._fee_policy = fee_policy
        self._transfer = transfer
        self._events = events
        self._asset = asset
        self._order_locks = KeyedLock()
        self._nonce_locks = KeyedLock()
        self._admin_lock = asyncio.Lock()

    # --- Read-only accessors ---

    @property
    def asset(self) -> str:
        return self._asset

    @property
    def administrator(self) -> str:
        return self._fee_policy.administrator

    @property
    def fee_percentage_bps(self) -> int:
        return self._fee_policy.percentage_bps

    @property
    def fee_collector(self) -> str:
        return self._fee_policy.collector

    @property
    def custody_account(self) -> str:
        return self._transfer.custody_account

    async def get_order(self, order_id: int) -> Order | None:
        """The order recorded under order_id, or None."""
        return await self._ledger.get(order_id)

    async def is_nonce_used(self, nonce: int) -> bool:
        return await self._nonces.is_used(nonce)

    async def events(self) -> list[EscrowEvent]:
        """The notification log, oldest first."""
        return await self._events.events()

    # --- Order lifecycle ---

    async def place_order(
        self,
        order_id: int,
        amount: int,
        seller: str,
        nonce: int,
        signature: bytes,
        caller: str,
    ) -> Order:
        """Escrow ``amount`` from caller for an issuer-signed order.

        Checks, first failure wins: amount, seller, order id free, nonce
        unused, signature. Then consumes the nonce, pulls the funds,
        records the ACTIVE order with its fee frozen at the current rate,
        and emits OrderPlaced.
        """
        new_correlation_id()
        try:
            return await self._place_order_inner(
                order_id, amount, seller, nonce, signature, caller
            )
        except EscrowError as exc:
            log.warning(
                "place_order_rejected",
                order_id=str(order_id),
                nonce=str(nonce),
                caller=caller,
                error=type(exc).__name__,
                detail=str(exc),
            )
            raise

    async def _place_order_inner(
        self,
        order_id: int,
        amount: int,
        seller: str,
        nonce: int,
        signature: bytes,
        caller: str,
    ) -> Order:
        if not is_uint256(amount) or amount == 0:
            raise InvalidAmount(amount)
        if is_null_address(seller):
            raise InvalidAddress("seller", seller)
        if is_null_address(caller):
            raise InvalidAddress("buyer", caller)

        # Lock order: order id first, then nonce. No path takes them reversed.
        async with self._order_locks.hold(order_id), self._nonce_locks.hold(nonce):
            if await self._ledger.get(order_id) is not None:
                raise OrderAlreadyExists(order_id)
            if await self._nonces.is_used(nonce):
                raise NonceAlreadyUsed(nonce)
            if not self._verifier.verify(order_id, amount, seller, nonce, signature):
                raise InvalidSignature(order_id)

            await self._nonces.mark_used(nonce)
            rollback = _Rollback("place_order")
            rollback.add("unmark_nonce", lambda: self._nonces.unmark(nonce))
            try:
                await self._pull(caller, amount)
                rollback.add("return_deposit", lambda: self._push(caller, amount))

                schedule = self._fee_policy.snapshot()
                order = Order(
                    order_id=order_id,
                    amount=amount,
                    fee_amount=compute_fee(amount, schedule.percentage_bps),
                    seller=seller,
                    buyer=caller,
                    state=OrderState.ACTIVE,
                )
                await self._ledger.create(order)
                rollback.add("discard_order", lambda: self._ledger.discard(order_id))
                await self._events.append(
                    OrderPlaced(order_id=order_id, amount=amount, seller=seller)
                )
            except BaseException:
                await rollback.run()
                raise

        log.info(
            "order_placed",
            order_id=str(order_id),
            amount=str(amount),
            fee_amount=str(order.fee_amount),
            seller=seller,
            buyer=caller,
            asset=self._asset,
        )
        return order

    async def release_funds(self, order_id: int, caller: str) -> Order:
        """Pay out an ACTIVE order: fee to the collector, rest to the seller.

        Only the buyer or the administrator may release. The fee is the
        amount frozen at placement, not the current rate.
        """
        new_correlation_id()
        try:
            return await self._release_inner(order_id, caller)
        except EscrowError as exc:
            log.warning(
                "release_rejected",
                order_id=str(order_id),
                caller=caller,
                error=type(exc).__name__,
                detail=str(exc),
            )
            raise

    async def _release_inner(self, order_id: int, caller: str) -> Order:
        async with self._order_locks.hold(order_id):
            order = await self._require_active(order_id)
            if caller != order.buyer and not self._fee_policy.is_administrator(caller):
                raise NotAuthorized(caller, f"release order {order_id}")

            released = await self._ledger.transition(order_id, OrderState.RELEASED)
            rollback = _Rollback("release_funds")
            rollback.add(
                "restore_active",
                lambda: self._ledger.rollback_transition(order_id, OrderState.RELEASED),
            )
            collector = self._fee_policy.snapshot().collector
            try:
                if order.fee_amount > 0:
                    await self._push(collector, order.fee_amount)
                    rollback.add(
                        "reclaim_fee",
                        lambda: self._reclaim(collector, order.fee_amount),
                    )
                await self._push(order.seller, order.seller_payout)
                rollback.add(
                    "reclaim_payout",
                    lambda: self._reclaim(order.seller, order.seller_payout),
                )
                await self._events.append(
                    OrderReleased(order_id=order_id, released_by=caller)
                )
            except BaseException:
                await rollback.run()
                raise

        log.info(
            "funds_released",
            order_id=str(order_id),
            released_by=caller,
            seller=order.seller,
            seller_payout=str(order.seller_payout),
            fee_collector=collector,
            fee_amount=str(order.fee_amount),
        )
        return released

    async def refund(self, order_id: int, caller: str) -> Order:
        """Return the full amount of an ACTIVE order to its buyer.

        Only the seller or the administrator may refund.
        """
        new_correlation_id()
        try:
            return await self._refund_inner(order_id, caller)
        except EscrowError as exc:
            log.warning(
                "refund_rejected",
                order_id=str(order_id),
                caller=caller,
                error=type(exc).__name__,
                detail=str(exc),
            )
            raise

    async def _refund_inner(self, order_id: int, caller: str) -> Order:
        async with self._order_locks.hold(order_id):
            order = await self._require_active(order_id)
            if caller != order.seller and not self._fee_policy.is_administrator(caller):
                raise NotAuthorized(caller, f"refund order {order_id}")

            refunded = await self._ledger.transition(order_id, OrderState.REFUNDED)
            rollback = _Rollback("refund")
            rollback.add(
                "restore_active",
                lambda: self._ledger.rollback_transition(order_id, OrderState.REFUNDED),
            )
            try:
                await self._push(order.buyer, order.amount)
                rollback.add(
                    "reclaim_refund",
                    lambda: self._reclaim(order.buyer, order.amount),
                )
                await self._events.append(
                    OrderRefunded(order_id=order_id, refunded_by=caller)
                )
            except BaseException:
                await rollback.run()
                raise

        log.info(
            "order_refunded",
            order_id=str(order_id),
            refunded_by=caller,
            buyer=order.buyer,
            amount=str(order.amount),
        )
        return refunded

    # --- Administration ---

    async def update_fee(self, new_percentage_bps: int, caller: str) -> None:
        """Set the fee rate for future placements. Administrator only."""
        new_correlation_id()
        async with self._admin_lock:
            previous = self._fee_policy.snapshot()
            try:
                self._fee_policy.update_fee(new_percentage_bps, caller)
            except EscrowError as exc:
                log.warning(
                    "update_fee_rejected",
                    caller=caller,
                    new_percentage_bps=new_percentage_bps,
                    error=type(exc).__name__,
                )
                raise
            try:
                await self._events.append(FeeUpdated(new_percentage_bps=new_percentage_bps))
            except BaseException:
                self._fee_policy.update_fee(previous.percentage_bps, caller)
                raise

        log.info(
            "fee_updated",
            old_percentage_bps=previous.percentage_bps,
            new_percentage_bps=new_percentage_bps,
        )

    async def update_fee_collector(self, new_collector: str, caller: str) -> None:
        """Set the identity that receives release fees. Administrator only."""
        new_correlation_id()
        async with self._admin_lock:
            previous = self._fee_policy.snapshot()
            try:
                self._fee_policy.update_collector(new_collector, caller)
            except EscrowError as exc:
                log.warning(
                    "update_fee_collector_rejected",
                    caller=caller,
                    new_collector=new_collector,
                    error=type(exc).__name__,
                )
                raise
            try:
                await self._events.append(FeeCollectorUpdated(new_collector=new_collector))
            except BaseException:
                self._fee_policy.update_collector(previous.collector, caller)
                raise

        log.info(
            "fee_collector_updated",
            old_collector=previous.collector,
            new_collector=new_collector,
        )

    # --- Internal helpers ---

    async def _require_active(self, order_id: int) -> Order:
        order = await self._ledger.get(order_id)
        if order is None:
            raise OrderDoesNotExist(order_id)
        if order.state != OrderState.ACTIVE:
            raise OrderAlreadyProcessed(order_id, order.state.value)
        return order

    async def _pull(self, source: str, amount: int) -> None:
        """Move amount from source into custody or raise TransferFailed."""
        try:
            ok = await self._transfer.pull(source, self._transfer.custody_account, amount)
        except Exception as exc:
            raise TransferFailed("pull", source, amount, str(exc)) from exc
        if not ok:
            raise TransferFailed("pull", source, amount)

    async def _push(self, destination: str, amount: int) -> None:
        """Move amount out of custody to destination or raise TransferFailed."""
        try:
            ok = await self._transfer.push(destination, amount)
        except Exception as exc:
            raise TransferFailed("push", destination, amount, str(exc)) from exc
        if not ok:
            raise TransferFailed("push", destination, amount)

    async def _reclaim(self, account: str, amount: int) -> None:
        """Undo a push by pulling the same amount back into custody."""
        await self._pull(account, amount)
