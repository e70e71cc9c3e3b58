# Overview: Flask CLI command groups for bootstrap and stock/settlement maintenance.

# backend/haulbook/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Shipments:
# - python -m flask shipments list [--status pending]
#   List shipments with line count and remaining stock.
# - python -m flask shipments recalc-stock [--shipment-id 4]
#   Rebuild stock from current invoices (all shipments when no id is given).
#
# Invoices:
# - python -m flask invoices recalc-status [--invoice-id 9]
#   Re-derive unpaid/partial/paid from approved payments.

import click
from flask.cli import with_appcontext

from .errors import NotFoundError
from .extensions import db
from .models import Invoice, Shipment
from .services import payment_service, shipment_service


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created")


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

    click.echo("PASS Database reset complete")


@click.group('shipments')
def shipments_group():
    """Shipment inspection and stock maintenance."""


@shipments_group.command('list')
@click.option('--status', default=None, help='Only shipments in this status')
@with_appcontext
def list_shipments(status):
    rows = shipment_service.list_shipments(status=status)
    if not rows:
        click.echo("No shipments found")
        return
    for shipment in rows:
        driver = shipment.driver.name if shipment.driver else "-"
        click.echo(
            f"{shipment.id:>5}  {shipment.shipment_number:<12} {shipment.status:<11} "
            f"driver={driver} products={shipment.quantity_products} stock={shipment.total_stock}"
        )


@shipments_group.command('recalc-stock')
@click.option('--shipment-id', type=int, default=None, help='Only this shipment')
@with_appcontext
def recalc_stock(shipment_id):
    """Rebuild line stock from the invoices drawing on each shipment."""
    if shipment_id is not None:
        ids = [shipment_id]
    else:
        ids = [row.id for row in db.session.query(Shipment.id).order_by(Shipment.id).all()]

    for current_id in ids:
        try:
            shipment = shipment_service.recalculate_stock(current_id)
        except NotFoundError as e:
            raise click.ClickException(f"Shipment {current_id}: {e.message}")
        click.echo(f"PASS {shipment.shipment_number}: total stock {shipment.total_stock}")

    click.echo(f"DONE Recalculated {len(ids)} shipment(s)")


@click.group('invoices')
def invoices_group():
    """Invoice settlement maintenance."""


@invoices_group.command('recalc-status')
@click.option('--invoice-id', type=int, default=None, help='Only this invoice')
@with_appcontext
def recalc_status(invoice_id):
    """Re-derive each invoice's status from its approved payments."""
    if invoice_id is not None:
        ids = [invoice_id]
    else:
        ids = [row.id for row in db.session.query(Invoice.id).order_by(Invoice.id).all()]

    for current_id in ids:
        try:
            invoice = payment_service.recompute_invoice_status(current_id)
        except NotFoundError as e:
            raise click.ClickException(f"Invoice {current_id}: {e.message}")
        click.echo(f"PASS {invoice.invoice_number}: {invoice.status}")

    click.echo(f"DONE Recomputed {len(ids)} invoice(s)")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(shipments_group)
    app.cli.add_command(invoices_group)
