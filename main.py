#!/usr/bin/env python3
"""
Partner Sync — CLI entry point.

Usage examples:
  python main.py check                              # Verify the SFTP endpoint and local databases
  python main.py simulate PO-1001                   # Preview fulfillment of a purchase order
  python main.py simulate PO-1001 --keep            # ...and leave the simulated order in scratch
  python main.py cleanup --expired                  # Sweep stale simulated orders
  python main.py send-order PO-1001                 # Upload a purchase order to /in/purchase_orders

  python main.py sync stores                        # Upsert all stores into /out/stores/stores.csv
  python main.py sync users --key ana@example.com   # Upsert a single user
  python main.py export                             # Timestamped snapshots of every collection
  python main.py export products taxes
  python main.py archive /in/stores/batch1.csv stores
"""
import logging
import sys
from datetime import timedelta
from typing import Optional

import click

from config import Config
from models.records import CONSOLIDATED_ENTITY_TYPES, SNAPSHOT_ENTITY_TYPES
from pipeline import (
    BulkSnapshotExporter,
    CatalogDatabase,
    ConsolidatedFileMerger,
    ImportArchiver,
    OrderSimulationEngine,
    PurchaseOrderSender,
    SimulatedOrderStore,
    SyncError,
    build_channel,
)
from pipeline.layout import PURCHASE_ORDERS_INBOX


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s  %(levelname)-8s  %(name)s — %(message)s",
        datefmt="%H:%M:%S",
    )
    # Quieten noisy third-party loggers
    logging.getLogger("paramiko").setLevel(logging.WARNING)


def _fail(exc: SyncError) -> None:
    click.echo(f"\n✗ {exc}  [{exc.code.value}/{exc.status}]", err=True)
    if exc.detail:
        click.echo(f"  {exc.detail}", err=True)
    sys.exit(1)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Partner Sync — order simulation and SFTP file exchange."""
    ctx.ensure_object(dict)
    _setup_logging(verbose)
    config = Config()
    config.ensure_local_dirs()
    ctx.obj["config"] = config


def _engine(config: Config) -> OrderSimulationEngine:
    return OrderSimulationEngine(
        CatalogDatabase(config.db_path),
        SimulatedOrderStore(config.scratch_db_path),
        ttl=timedelta(minutes=config.simulation_ttl_minutes),
    )


# --------------------------------------------------------------------
# check command
# --------------------------------------------------------------------

@cli.command()
@click.pass_context
def check(ctx: click.Context) -> None:
    """Verify that the SFTP endpoint and the local databases are reachable."""
    config: Config = ctx.obj["config"]
    channel = build_channel(config)

    click.echo("\n=== Partner Sync Setup Check ===\n")
    click.echo(f"  Endpoint:  {channel.label}")
    ok = channel.check_connection(PURCHASE_ORDERS_INBOX)
    click.echo(f"  SFTP:      {'✓ reachable' if ok else '✗ NOT reachable'}")
    if not ok:
        click.echo("  → Check SFTP_HOST, SFTP_USERNAME, SFTP_PASSWORD in your .env")

    catalog = CatalogDatabase(config.db_path)
    click.echo(f"  Catalog:   ✓ {config.db_path}  ({len(catalog.list_active_products())} active products)")
    scratch = SimulatedOrderStore(config.scratch_db_path)
    click.echo(f"  Scratch:   ✓ {config.scratch_db_path}  ({scratch.count()} simulated orders)")
    click.echo()
    if not ok:
        sys.exit(1)


# --------------------------------------------------------------------
# simulation commands
# --------------------------------------------------------------------

@cli.command()
@click.argument("purchase_order_id")
@click.option("--keep", is_flag=True, help="Leave the simulated order in the scratch store")
@click.pass_context
def simulate(ctx: click.Context, purchase_order_id: str, keep: bool) -> None:
    """Simulate fulfillment of PURCHASE_ORDER_ID and print the outcome."""
    engine = _engine(ctx.obj["config"])
    try:
        result = engine.simulate(purchase_order_id)
    except SyncError as exc:
        _fail(exc)
        return

    order = result.order
    try:
        click.echo()
        click.echo(f"  Simulated order:  {order.order_id}")
        click.echo(f"  Source order:     {order.source_purchase_order_id}")
        click.echo(f"  Lines:            {result.item_count} ({result.substitution_count} substituted)")
        for item in result.items:
            marker = f"  (replaces {item.substituted_ean})" if item.substituted_ean else ""
            click.echo(
                f"    {item.item_ean:<16} x{item.quantity:<5} "
                f"@ {item.base_price_at_order:.2f}  tax {item.tax_rate_at_order:.2%}{marker}"
            )
        click.echo(f"  Subtotal:         {order.subtotal:.2f}")
        click.echo(f"  Tax:              {order.tax_total:.2f}")
        click.echo(f"  Total:            {order.final_total:.2f}")
        click.echo()
    finally:
        if not keep:
            engine.cleanup(order.order_id)


@cli.command()
@click.argument("order_id", required=False)
@click.option("--all", "all_", is_flag=True, help="Delete every simulated order")
@click.option("--expired", is_flag=True, help="Delete simulated orders past their expiry")
@click.pass_context
def cleanup(ctx: click.Context, order_id: Optional[str], all_: bool, expired: bool) -> None:
    """Delete simulated orders from the scratch store."""
    if sum(bool(x) for x in (order_id, all_, expired)) != 1:
        raise click.UsageError("Give exactly one of ORDER_ID, --all or --expired")
    engine = _engine(ctx.obj["config"])
    if order_id:
        found = engine.cleanup(order_id)
        click.echo(f"  {'✓ Deleted' if found else '— Not present'}: {order_id}")
    elif all_:
        click.echo(f"  ✓ Deleted {engine.cleanup_all()} simulated orders")
    else:
        click.echo(f"  ✓ Purged {engine.purge_expired()} expired simulated orders")


# --------------------------------------------------------------------
# partner file commands
# --------------------------------------------------------------------

@cli.command("send-order")
@click.argument("purchase_order_id")
@click.pass_context
def send_order(ctx: click.Context, purchase_order_id: str) -> None:
    """Upload PURCHASE_ORDER_ID to the partner inbox."""
    config: Config = ctx.obj["config"]
    sender = PurchaseOrderSender(
        build_channel(config), CatalogDatabase(config.db_path), temp_dir=config.temp_dir,
    )
    try:
        path = sender.send(purchase_order_id)
    except SyncError as exc:
        _fail(exc)
        return
    click.echo(f"\n✓ Sent {purchase_order_id} to {path}")


@cli.command()
@click.argument("entity_type", type=click.Choice(CONSOLIDATED_ENTITY_TYPES))
@click.option("--key", default=None, help="Only upsert the row with this key")
@click.pass_context
def sync(ctx: click.Context, entity_type: str, key: Optional[str]) -> None:
    """Upsert catalog rows into the consolidated file for ENTITY_TYPE."""
    config: Config = ctx.obj["config"]
    merger = ConsolidatedFileMerger(build_channel(config), temp_dir=config.temp_dir)
    try:
        result = merger.sync_entity(entity_type, CatalogDatabase(config.db_path), key=key)
    except SyncError as exc:
        _fail(exc)
        return
    if result is None:
        click.echo(f"  — No {entity_type} to sync")
        return
    click.echo(
        f"\n✓ {result.path}: {len(result.inserted)} inserted, "
        f"{len(result.replaced)} replaced, {result.row_count} rows"
    )


@cli.command()
@click.argument("entity_types", nargs=-1, type=click.Choice(SNAPSHOT_ENTITY_TYPES))
@click.pass_context
def export(ctx: click.Context, entity_types: tuple[str, ...]) -> None:
    """
    Write timestamped snapshots of ENTITY_TYPES (default: all collections).

    \b
    Collections are exported one after another over separate connections.
    """
    config: Config = ctx.obj["config"]
    exporter = BulkSnapshotExporter(
        build_channel(config),
        CatalogDatabase(config.db_path),
        temp_dir=config.temp_dir,
        retention_count=config.snapshot_retention_count,
    )
    try:
        results = exporter.export_all(entity_types or None)
    except SyncError as exc:
        _fail(exc)
        return
    click.echo()
    for entity_type, path in results.items():
        click.echo(f"  {entity_type:<18} {('✓ ' + path) if path else '— empty, skipped'}")
    click.echo()


@cli.command()
@click.argument("remote_path")
@click.argument("entity_type")
@click.pass_context
def archive(ctx: click.Context, remote_path: str, entity_type: str) -> None:
    """Move an imported REMOTE_PATH into /processed/ENTITY_TYPE/."""
    archiver = ImportArchiver(build_channel(ctx.obj["config"]))
    try:
        target = archiver.archive(remote_path, entity_type)
    except SyncError as exc:
        _fail(exc)
        return
    if target:
        click.echo(f"\n✓ Archived to {target}")
    else:
        click.echo(f"\n— {remote_path} no longer exists; nothing archived")


if __name__ == "__main__":
    cli()
