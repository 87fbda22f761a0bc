"""AssetTransfer protocol -- abstract interface to the token system.

The escrow core never moves value itself. It asks an AssetTransfer to
pull funds into custody or push them out, and gets an immediate
success/failure answer. There are no partial transfers.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class AssetTransfer(Protocol):
    """Move the escrowed asset between identities.

    Returning False and raising are both treated as failure by the
    escrow service.
    """

    @property
    def custody_account(self) -> str:
        """Identity that holds escrowed funds."""
        ...

    async def pull(self, source: str, destination: str, amount: int) -> bool:
        """Move amount from source to destination (e.g. buyer -> custody)."""
        ...

    async def push(self, destination: str, amount: int) -> bool:
        """Move amount out of custody to destination."""
        ...
