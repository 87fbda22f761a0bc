"""FakeAssetTransfer -- in-memory token balances for testing.

Lightweight implementation of AssetTransfer for unit testing the escrow
service and for local runs of the CLI.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

TransferHook = Callable[["TransferRecord"], Awaitable[None]]


@dataclass(frozen=True)
class TransferRecord:
    """One completed balance movement."""

    source: str
    destination: str
    amount: int


class FakeAssetTransfer:
    """In-memory AssetTransfer.

    Mint balances at construction or with mint(), inject failures with
    fail_next() / reject_destination(), and inspect ``transfers`` after
    test execution. An optional async ``hook`` runs after a transfer is
    validated and before balances move, which lets tests call back into
    the service mid-transfer.
    """

    def __init__(
        self,
        custody_account: str = "escrow",
        balances: dict[str, int] | None = None,
        hook: TransferHook | None = None,
    ) -> None:
        self._custody_account = custody_account
        self._balances: dict[str, int] = dict(balances or {})
        self._rejected: set[str] = set()
        self._fail_next = 0
        self.hook = hook
        self.transfers: list[TransferRecord] = []

    @property
    def custody_account(self) -> str:
        return self._custody_account

    def mint(self, account: str, amount: int) -> None:
        self._balances[account] = self._balances.get(account, 0) + amount

    def balance_of(self, account: str) -> int:
        return self._balances.get(account, 0)

    def fail_next(self, count: int = 1) -> None:
        """Make the next ``count`` transfers report failure."""
        self._fail_next = count

    def reject_destination(self, account: str) -> None:
        """Refuse every transfer into account."""
        self._rejected.add(account)

    def accept_destination(self, account: str) -> None:
        self._rejected.discard(account)

    async def pull(self, source: str, destination: str, amount: int) -> bool:
        return await self._move(source, destination, amount)

    async def push(self, destination: str, amount: int) -> bool:
        return await self._move(self._custody_account, destination, amount)

    async def _move(self, source: str, destination: str, amount: int) -> bool:
        if self._fail_next > 0:
            self._fail_next -= 1
            return False
        if amount < 0 or destination in self._rejected:
            return False
        if self.balance_of(source) < amount:
            return False

        record = TransferRecord(source=source, destination=destination, amount=amount)
        if self.hook is not None:
            await self.hook(record)

        # Re-check: the hook may have spent the balance.
        if self.balance_of(source) < amount:
            return False
        self._balances[source] = self.balance_of(source) - amount
        self._balances[destination] = self.balance_of(destination) + amount
        self.transfers.append(record)
        return True
