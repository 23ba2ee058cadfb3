# Overview: Flask CLI command groups for shop provisioning and ledger maintenance.

# backend/shopcore/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to shopcore (PowerShell: $env:FLASK_APP="shopcore").
# - Use: python -m flask <group> <command> [options]
#
# System:
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Shop (tenant) provisioning:
# - python -m flask shops list
#   List all shops.
# - python -m flask shops create --name "Lakshmi Jewellers" --state-code 29
#   Create a shop and seed its invoice/purchase/payment sequences.
# - python -m flask shops seed-sequences --shop-id <uuid>
#   Seed any missing sequences for an existing shop (idempotent).
#
# Ledger maintenance:
# - python -m flask ledger verify --shop-id <uuid>
#   Compare every cached party balance with a fresh recomputation.
# - python -m flask ledger recompute --shop-id <uuid>
#   Rewrite every party balance of a shop from its invoices and payments.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Sequence
from .services import balance_service, shop_service
from .services.concurrency import run_in_transaction
from .services.sequence_service import initialize_shop_sequences
from .validation import NotFoundError, ValidationError


@click.group('system')
def system_group():
    """System maintenance commands."""


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

    click.echo("PASS Database reset complete. Run 'python -m flask shops create' to add a shop.")


# =============================================================================
# SHOPS
# =============================================================================

@click.group('shops')
def shops_group():
    """Shop (tenant) provisioning commands."""


@shops_group.command('list')
@with_appcontext
def list_shops():
    """List all shops."""
    shops = shop_service.list_shops()

    if not shops:
        click.echo("No shops found.")
        return

    click.echo("\n" + "="*96)
    click.echo(f"{'ID':<38} {'Name':<30} {'State':<8} {'Sequences'}")
    click.echo("="*96)

    for shop in shops:
        seq_count = db.session.query(Sequence).filter_by(shop_id=shop.id).count()
        click.echo(f"{shop.id:<38} {shop.name:<30} {shop.state_code or '-':<8} {seq_count}")

    click.echo("="*96 + "\n")


@shops_group.command('create')
@click.option('--name', required=True, help='Shop name')
@click.option('--phone', default=None, help='Contact phone')
@click.option('--gstin', default=None, help='GST registration number')
@click.option('--state-code', default=None, help='Registered state code')
@with_appcontext
def create_shop_cli(name, phone, gstin, state_code):
    """Create a new shop (tenant) with its document sequences."""
    try:
        shop = shop_service.create_shop(name, phone=phone, gstin=gstin, state_code=state_code)
    except ValidationError as e:
        click.echo(f"FAIL {e}")
        return

    click.echo(f"PASS Created shop: {shop.name} (ID: {shop.id})")


@shops_group.command('seed-sequences')
@click.option('--shop-id', required=True, help='Shop ID')
@with_appcontext
def seed_sequences(shop_id):
    """Seed missing document sequences for a shop."""
    def _op():
        shop_service.require_shop(shop_id)
        return initialize_shop_sequences(shop_id)

    try:
        created = run_in_transaction(_op)
    except NotFoundError as e:
        click.echo(f"FAIL {e}")
        return

    click.echo(f"PASS Seeded {created} sequence(s) for shop {shop_id}")


# =============================================================================
# LEDGER
# =============================================================================

@click.group('ledger')
def ledger_group():
    """Party balance verification and repair."""


@ledger_group.command('verify')
@click.option('--shop-id', required=True, help='Shop ID')
@with_appcontext
def verify_ledger(shop_id):
    """Report parties whose cached balance differs from the ledger."""
    mismatches = balance_service.verify_party_balances(shop_id)

    if not mismatches:
        click.echo(f"PASS All party balances match the ledger for shop {shop_id}")
        return

    click.echo(f"FAIL {len(mismatches)} balance mismatch(es):")
    for m in mismatches:
        click.echo(
            f"  {m['partyType']:<9} {m['partyId']:<38} {m['name']:<30} "
            f"cached={m['cachedPaisa']} computed={m['computedPaisa']}"
        )


@ledger_group.command('recompute')
@click.option('--shop-id', required=True, help='Shop ID')
@with_appcontext
def recompute_ledger(shop_id):
    """Recompute every party balance of a shop from the ledger."""
    count = run_in_transaction(lambda: balance_service.recompute_shop_balances(shop_id))
    click.echo(f"PASS Recomputed {count} party balance(s) for shop {shop_id}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(shops_group)
    app.cli.add_command(ledger_group)
