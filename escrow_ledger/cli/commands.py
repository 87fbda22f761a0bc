"""Click CLI commands for escrow-ledger."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import click

from escrow_ledger.config import EscrowConfig
from escrow_ledger.events import EscrowEvent
from escrow_ledger.ledger.types import UINT256_MAX, Order, OrderState
from escrow_ledger.signing import OrderSigner
from escrow_ledger.utils.logging import setup_logging

_UINT256 = click.IntRange(min=0, max=UINT256_MAX)


@click.group()
def cli() -> None:
    """Escrow-ledger: issuer-authorized escrow with exactly-once settlement."""
    cfg = EscrowConfig()
    setup_logging(cfg.log_level, cfg.log_format)


@cli.command()
def config() -> None:
    """Show current configuration."""
    cfg = EscrowConfig()

    click.echo("=== Escrow Ledger Configuration ===\n")

    click.echo(f"Log Level:        {cfg.log_level}")
    click.echo(f"Log Format:       {cfg.log_format}")
    click.echo(f"Storage:          {cfg.storage}")
    click.echo(f"DB Path:          {cfg.db_path}")
    click.echo("")

    click.echo("[Escrow]")
    click.echo(f"  Asset:          {cfg.asset}")
    click.echo(f"  Custody:        {cfg.custody_account}")
    click.echo(f"  Issuer:         {cfg.issuer.public_key or '(unset)'}")
    click.echo("")

    click.echo("[Fee]")
    click.echo(f"  Percentage:     {cfg.fee.percentage_bps} bps")
    click.echo(f"  Collector:      {cfg.fee.collector or '(unset)'}")


@cli.command()
def keygen() -> None:
    """Generate an issuer Ed25519 key pair."""
    signer = OrderSigner.generate()
    click.echo(f"Signing key (keep secret): {signer.seed_hex}")
    click.echo(f"Public key / issuer:       {signer.public_key}")
    click.echo("")
    click.echo(f"Set ESCROW_ISSUER__PUBLIC_KEY={signer.public_key}")


@cli.command("sign-order")
@click.option(
    "--signing-key",
    required=True,
    envvar="ESCROW_ISSUER_SIGNING_KEY",
    help="Hex issuer seed (or ESCROW_ISSUER_SIGNING_KEY).",
)
@click.option("--order-id", required=True, type=_UINT256, help="Order id.")
@click.option("--amount", required=True, type=_UINT256, help="Amount in smallest units.")
@click.option("--seller", required=True, help="Seller identity.")
@click.option("--nonce", required=True, type=_UINT256, help="One-time nonce.")
def sign_order(
    signing_key: str,
    order_id: int,
    amount: int,
    seller: str,
    nonce: int,
) -> None:
    """Issue a signature authorizing an order."""
    try:
        signer = OrderSigner.from_hex(signing_key)
    except (ValueError, TypeError) as e:
        raise click.ClickException(f"Invalid signing key: {e}") from e

    signature = signer.sign_order(order_id, amount, seller, nonce)
    click.echo(signature.hex())


@cli.command("init-db")
def init_db() -> None:
    """Create the SQLite schema at the configured db_path."""
    cfg = EscrowConfig()
    Path(cfg.db_path).parent.mkdir(parents=True, exist_ok=True)
    asyncio.run(_init_db(cfg))
    click.echo(f"Initialized {cfg.db_path}")


async def _init_db(cfg: EscrowConfig) -> None:
    from escrow_ledger.factory import create_engine
    from escrow_ledger.models.base import create_schema

    engine = create_engine(cfg.database_url, cfg.db_busy_timeout_ms)
    try:
        await create_schema(engine)
    finally:
        await engine.dispose()


@cli.command("show-order")
@click.argument("order_id", type=_UINT256)
def show_order(order_id: int) -> None:
    """Print a stored order."""
    cfg = EscrowConfig()
    order = asyncio.run(_load_order(cfg, order_id))
    if order is None:
        raise click.ClickException(f"Order {order_id} does not exist")
    _print_order(order)


async def _load_order(cfg: EscrowConfig, order_id: int) -> Order | None:
    from escrow_ledger.factory import create_engine, create_session_factory
    from escrow_ledger.ledger.sql import SqlOrderLedger

    engine = create_engine(cfg.database_url, cfg.db_busy_timeout_ms)
    try:
        return await SqlOrderLedger(create_session_factory(engine)).get(order_id)
    finally:
        await engine.dispose()


@cli.command()
@click.option(
    "--state",
    type=click.Choice([s.value for s in OrderState]),
    default=None,
    help="Only list orders in this state.",
)
def orders(state: str | None) -> None:
    """List stored orders, oldest first."""
    cfg = EscrowConfig()
    rows = asyncio.run(
        _list_orders(cfg, OrderState(state) if state is not None else None)
    )
    if not rows:
        click.echo("No orders.")
        return
    for order in rows:
        click.echo(
            f"{order.order_id}  {order.state.value:<8}  {order.amount}  "
            f"{order.buyer} -> {order.seller}"
        )


async def _list_orders(cfg: EscrowConfig, state: OrderState | None) -> list[Order]:
    from escrow_ledger.factory import create_engine, create_session_factory
    from escrow_ledger.ledger.sql import SqlOrderLedger

    engine = create_engine(cfg.database_url, cfg.db_busy_timeout_ms)
    try:
        return await SqlOrderLedger(create_session_factory(engine)).list_orders(state)
    finally:
        await engine.dispose()


def _print_order(order: Order) -> None:
    click.echo(f"Order {order.order_id}")
    click.echo(f"  State:          {order.state.value}")
    click.echo(f"  Amount:         {order.amount}")
    click.echo(f"  Fee:            {order.fee_amount}")
    click.echo(f"  Seller payout:  {order.seller_payout}")
    click.echo(f"  Seller:         {order.seller}")
    click.echo(f"  Buyer:          {order.buyer}")


@cli.command()
def events() -> None:
    """Print the stored event log as JSON lines."""
    cfg = EscrowConfig()
    for event in asyncio.run(_load_events(cfg)):
        click.echo(json.dumps({"event": event.event_type, **event.to_payload()}))


async def _load_events(cfg: EscrowConfig) -> list[EscrowEvent]:
    from escrow_ledger.factory import create_engine, create_session_factory
    from escrow_ledger.ledger.sql import SqlEventLog

    engine = create_engine(cfg.database_url, cfg.db_busy_timeout_ms)
    try:
        return await SqlEventLog(create_session_factory(engine)).events()
    finally:
        await engine.dispose()
