"""Shared test fixtures for escrow-ledger."""

from __future__ import annotations

from collections.abc import AsyncIterator

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from escrow_ledger.factory import create_engine, create_session_factory
from escrow_ledger.models.base import create_schema
from escrow_ledger.service import EscrowService
from escrow_ledger.signing import OrderSigner
from escrow_ledger.transfer.fake import FakeAssetTransfer
from tests.factories import make_service, make_signer, make_transfer


@pytest.fixture
def signer() -> OrderSigner:
    return make_signer()


@pytest.fixture
def transfer() -> FakeAssetTransfer:
    return make_transfer()


@pytest.fixture
def service(signer: OrderSigner, transfer: FakeAssetTransfer) -> EscrowService:
    return make_service(signer=signer, transfer=transfer)


@pytest.fixture
def admin(signer: OrderSigner) -> str:
    """The administrator identity (the issuer's public key)."""
    return signer.public_key


@pytest.fixture
async def db_session_factory() -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    """In-memory async SQLite with the full schema and triggers."""
    engine = create_engine("sqlite+aiosqlite://")
    await create_schema(engine)
    try:
        yield create_session_factory(engine)
    finally:
        await engine.dispose()
