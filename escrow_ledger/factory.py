"""Wire an EscrowService from EscrowConfig."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from escrow_ledger.config import EscrowConfig
from escrow_ledger.errors import InvalidAddress
from escrow_ledger.events import InMemoryEventLog
from escrow_ledger.fees import FeePolicy
from escrow_ledger.ledger.nonce_registry import InMemoryNonceRegistry
from escrow_ledger.ledger.order_ledger import InMemoryOrderLedger
from escrow_ledger.ledger.sql import SqlEventLog, SqlNonceRegistry, SqlOrderLedger
from escrow_ledger.models.base import DEFAULT_BUSY_TIMEOUT_MS, register_engine_events
from escrow_ledger.service import EscrowService
from escrow_ledger.signing import Ed25519SignatureVerifier
from escrow_ledger.transfer.asset_transfer import AssetTransfer


def create_engine(
    database_url: str,
    busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS,
) -> AsyncEngine:
    """Async engine with SQLite pragmas set on each new connection."""
    engine = create_async_engine(database_url, echo=False)
    register_engine_events(engine.sync_engine, busy_timeout_ms)
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


def build_service(
    config: EscrowConfig,
    transfer: AssetTransfer,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> EscrowService:
    """Build a service for config.storage ("memory" or "sqlite").

    For "sqlite" the schema must already exist (``escrow-ledger init-db``
    or ``alembic upgrade head``).

    Raises:
        InvalidAddress: If the issuer key or fee collector is unset, or
            the transfer does not hold the configured custody account.
    """
    issuer = config.issuer.public_key
    if not issuer:
        raise InvalidAddress("issuer.public_key", issuer)
    if transfer.custody_account != config.custody_account:
        raise InvalidAddress("custody_account", transfer.custody_account)

    fee_policy = FeePolicy(
        administrator=issuer,
        percentage_bps=config.fee.percentage_bps,
        collector=config.fee.collector,
    )
    verifier = Ed25519SignatureVerifier(issuer)

    if config.storage == "sqlite":
        factory = session_factory or create_session_factory(
            create_engine(config.database_url, config.db_busy_timeout_ms)
        )
        return EscrowService(
            ledger=SqlOrderLedger(factory),
            nonces=SqlNonceRegistry(factory),
            verifier=verifier,
            fee_policy=fee_policy,
            transfer=transfer,
            events=SqlEventLog(factory),
            asset=config.asset,
        )

    return EscrowService(
        ledger=InMemoryOrderLedger(),
        nonces=InMemoryNonceRegistry(),
        verifier=verifier,
        fee_policy=fee_policy,
        transfer=transfer,
        events=InMemoryEventLog(),
        asset=config.asset,
    )
