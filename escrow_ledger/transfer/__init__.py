"""Asset-transfer abstraction layer.

Re-exports the protocol and the in-memory fake:
    from escrow_ledger.transfer import AssetTransfer, FakeAssetTransfer
"""

from escrow_ledger.transfer.asset_transfer import AssetTransfer
from escrow_ledger.transfer.fake import FakeAssetTransfer, TransferRecord

__all__ = [
    "AssetTransfer",
    "FakeAssetTransfer",
    "TransferRecord",
]
