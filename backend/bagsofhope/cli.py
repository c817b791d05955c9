# Overview: Flask CLI command groups for setup, inventory checks, and batch handling.

# backend/bagsofhope/cli.py
# Commands Legend (run from the repository root):
# Prereqs:
# - Activate your virtualenv and `pip install -e .`
# - Use: flask --app bagsofhope <group> <command> [options]
#
# System:
# - flask --app bagsofhope system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Inventory:
# - flask --app bagsofhope inventory rebuild-levels [--category-id 3]
#   Recompute cached levels from the ledger (all categories by default).
# - flask --app bagsofhope inventory verify
#   Report categories whose cached level disagrees with the ledger. Exit 1 on drift.
# - flask --app bagsofhope inventory reorder-alerts
#   Active categories below their reorder point.
#
# Fulfillment:
# - flask --app bagsofhope fulfillment counts
#   Open bags per stage (pick/pack/ship) and batches per status.
# - flask --app bagsofhope fulfillment available-bags
#   ready_to_ship bags not yet in a batch, oldest first.
#
# Batches:
# - flask --app bagsofhope batches list [--status open]
# - flask --app bagsofhope batches advance B-2026-0001 in_transit --courier "Metro" --tracking 1Z999
#   Move a batch (and its bags) to a new status.

import logging

import click
from flask import current_app
from flask.cli import with_appcontext

from .errors import FulfillmentError
from .extensions import db
from .services.batch_service import BATCH_STATUSES, BatchLifecycleManager
from .services.fulfillment_service import FulfillmentQueries
from .services.inventory_service import InventoryLedger

logger = logging.getLogger(__name__)


def _ledger() -> InventoryLedger:
    return InventoryLedger(
        db.session,
        allow_negative_on_hand=current_app.config.get("ALLOW_NEGATIVE_ON_HAND", False),
    )


def _batch_manager() -> BatchLifecycleManager:
    return BatchLifecycleManager(
        db.session,
        batch_number_prefix=current_app.config.get("BATCH_NUMBER_PREFIX", "B"),
    )


def _cents(value: int) -> str:
    return f"${value / 100:,.2f}"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete.")


@click.group('inventory')
def inventory_group():
    """Inventory ledger maintenance."""


@inventory_group.command('rebuild-levels')
@click.option('--category-id', type=int, help='Only rebuild this category')
@with_appcontext
def rebuild_levels_cli(category_id):
    """
    Recompute cached inventory levels from a full ledger scan.

    Example:
        flask --app bagsofhope inventory rebuild-levels
        flask --app bagsofhope inventory rebuild-levels --category-id 3
    """
    ledger = _ledger()
    if category_id is not None:
        category_ids = [category_id]
    else:
        category_ids = sorted(
            set(ledger.inventory.category_ids_with_transactions())
            | {level.category_id for level in ledger.inventory.list_levels()}
        )

    for cid in category_ids:
        try:
            level = ledger.rebuild_level(cid)
        except FulfillmentError as e:
            logger.exception("Rebuild failed for category %s", cid)
            raise click.ClickException(str(e))
        click.echo(
            f"PASS category {cid}: on_hand={level.quantity_on_hand} "
            f"(new={level.quantity_new}, used={level.quantity_used}) value={_cents(level.total_value_cents)}"
        )

    click.echo(f"Rebuilt {len(category_ids)} level(s).")


@inventory_group.command('verify')
@with_appcontext
def verify_levels_cli():
    """Compare cached levels with the ledger. Exits 1 if any drift is found."""
    mismatches = _ledger().verify_levels()
    if not mismatches:
        click.echo("PASS Inventory levels match the ledger.")
        return

    for m in mismatches:
        click.echo(f"FAIL category {m['category_id']}: cached={m['cached']} ledger={m['ledger']}")
    click.echo("Run `inventory rebuild-levels` to repair.")
    raise SystemExit(1)


@inventory_group.command('reorder-alerts')
@with_appcontext
def reorder_alerts_cli():
    """List active categories below their reorder point."""
    alerts = _ledger().get_reorder_alerts()
    if not alerts:
        click.echo("No categories below reorder point.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Category':<35} {'On hand':<9} {'Reorder':<9} {'Severity'}")
    click.echo("="*80)
    for a in alerts:
        click.echo(
            f"{a['category_id']:<5} {a['category_name']:<35} {a['quantity_on_hand']:<9} "
            f"{a['reorder_point']:<9} {a['severity']}"
        )


@click.group('fulfillment')
def fulfillment_group():
    """Fulfillment queue inspection."""


@fulfillment_group.command('counts')
@with_appcontext
def fulfillment_counts_cli():
    """Open bags per stage and batches per status."""
    queries = FulfillmentQueries(db.session)

    click.echo("Bags by stage:")
    for stage, n in queries.get_fulfillment_counts().items():
        click.echo(f"  {stage:<18} {n}")

    click.echo("Batches by status:")
    for status, n in queries.get_batch_counts().items():
        click.echo(f"  {status:<18} {n}")


@fulfillment_group.command('available-bags')
@with_appcontext
def available_bags_cli():
    """ready_to_ship bags not yet assigned to a batch, oldest first."""
    bags = FulfillmentQueries(db.session).get_available_bags_for_batch()
    if not bags:
        click.echo("No bags waiting for a batch.")
        return

    for bag in bags:
        name = " ".join(p for p in (bag.child_first_name, bag.child_last_name) if p) or "-"
        click.echo(f"{bag.id:<6} {name:<30} {bag.pickup_location or '-':<20} {bag.created_at:%Y-%m-%d}")


@click.group('batches')
def batches_group():
    """Shipping batch commands."""


@batches_group.command('list')
@click.option('--status', type=click.Choice(BATCH_STATUSES), help='Filter by status')
@with_appcontext
def list_batches_cli(status):
    """
    List shipping batches, newest first.

    Example:
        flask --app bagsofhope batches list
        flask --app bagsofhope batches list --status open
    """
    manager = _batch_manager()
    batches = manager.list_batches(status)
    if not batches:
        click.echo("No batches found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'Number':<16} {'Status':<18} {'Bags':<6} {'Courier':<20} {'Tracking'}")
    click.echo("="*80)
    for batch in batches:
        bag_count = len(manager.bags.members_of_batch(batch.id))
        click.echo(
            f"{batch.batch_number:<16} {batch.status:<18} {bag_count:<6} "
            f"{batch.courier_name or '-':<20} {batch.tracking_number or '-'}"
        )


@batches_group.command('advance')
@click.argument('batch_number')
@click.argument('status', type=click.Choice(BATCH_STATUSES))
@click.option('--courier', help='Courier name (recorded on pickup)')
@click.option('--tracking', help='Tracking number')
@with_appcontext
def advance_batch_cli(batch_number, status, courier, tracking):
    """
    Move a batch to STATUS and cascade to its bags.

    Example:
        flask --app bagsofhope batches advance B-2026-0001 ready_to_ship
        flask --app bagsofhope batches advance B-2026-0001 in_transit --courier "Metro"
    """
    manager = _batch_manager()
    try:
        batch = manager.get_batch_by_number(batch_number)
        batch = manager.update_batch_status(
            batch.id, status, courier_name=courier, tracking_number=tracking
        )
    except FulfillmentError as e:
        logger.exception("Could not advance batch %s to %s", batch_number, status)
        raise click.ClickException(str(e))

    click.echo(f"PASS {batch.batch_number} is now {batch.status}.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(inventory_group)
    app.cli.add_command(fulfillment_group)
    app.cli.add_command(batches_group)
