"""NonceRegistry protocol and in-memory implementation.

Nonces are global: one nonce authorizes at most one placement, whatever
its order id. ``mark_used`` checks and sets under one lock.
"""

from __future__ import annotations

import threading
from typing import Protocol, runtime_checkable

from escrow_ledger.errors import NonceAlreadyUsed


@runtime_checkable
class NonceRegistry(Protocol):
    """Set of consumed authorization nonces."""

    async def is_used(self, nonce: int) -> bool:
        """Whether nonce has been consumed."""
        ...

    async def mark_used(self, nonce: int) -> None:
        """Consume nonce.

        Raises:
            NonceAlreadyUsed: If nonce was already consumed.
        """
        ...

    async def unmark(self, nonce: int) -> None:
        """Release a nonce consumed by a placement that then failed."""
        ...


class InMemoryNonceRegistry:
    """NonceRegistry backed by a set. Safe to share across threads."""

    def __init__(self) -> None:
        self._used: set[int] = set()
        self._lock = threading.Lock()

    async def is_used(self, nonce: int) -> bool:
        with self._lock:
            return nonce in self._used

    async def mark_used(self, nonce: int) -> None:
        with self._lock:
            if nonce in self._used:
                raise NonceAlreadyUsed(nonce)
            self._used.add(nonce)

    async def unmark(self, nonce: int) -> None:
        with self._lock:
            self._used.discard(nonce)
