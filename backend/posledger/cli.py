# Overview: Flask CLI command groups for bootstrap and stock ledger inspection.

# backend/posledger/cli.py
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
# Users:
# - python -m flask users list
#   List all users with role and active status.
# - python -m flask users create --username admin --password "Password123" --role admin
#   Create a user (prompts if options are omitted).
#
# Stock ledger:
# - python -m flask stock show 12
#   Print the on-hand quantity and ledger rows of one product.
# - python -m flask stock verify
#   Recompute every product's balance and report negative ones.

import click
from flask.cli import with_appcontext

from .extensions import db
from .errors import PosError
from .models import USER_ROLES, Product, Stock, Transaction, User
from .services import auth_service, ledger_service


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create tables that do not exist yet. Existing data is untouched."""
    db.create_all()
    click.echo("PASS Database schema ready.")


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

    click.echo("PASS Database reset complete. Run 'python -m flask users create' to add a login.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--name', default=None, help='Display name')
@click.option('--role', type=click.Choice(list(USER_ROLES)), default='cashier', show_default=True, help='Role')
@with_appcontext
def create_user_cli(username, password, name, role):
    """
    Create a new user.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    """
    try:
        user = auth_service.create_user(username, password, name=name, role=role)
    except PosError as exc:
        db.session.rollback()
        click.echo(f"FAIL {exc.message}")
        raise SystemExit(1)
    click.echo(f"PASS Created user '{user.username}' (ID: {user.id}, role: {user.role})")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their role."""
    users = db.session.query(User).order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*70)
    click.echo(f"{'ID':<5} {'Username':<20} {'Name':<25} {'Active':<8} {'Role'}")
    click.echo("="*70)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.username:<20} {user.name or '-':<25} {active_str:<8} {user.role}")

    click.echo("="*70 + "\n")


@click.group('stock')
def stock_group():
    """Stock ledger inspection commands."""


@stock_group.command('show')
@click.argument('product_id', type=int)
@click.option('--limit', default=20, show_default=True, help='Most recent ledger rows to print')
@with_appcontext
def show_stock(product_id, limit):
    """Print the on-hand quantity and recent ledger rows for a product."""
    product = db.session.get(Product, product_id)
    if not product:
        click.echo(f"FAIL Product {product_id} not found")
        raise SystemExit(1)

    qty = ledger_service.current_stock(product_id)
    status = "active" if product.is_active else "inactive"
    click.echo(f"{product.name} (ID: {product.id}, {status}): {qty} {product.unit or ''}".rstrip())

    rows = (
        db.session.query(Stock, Transaction.no)
        .outerjoin(Transaction, Transaction.id == Stock.transaction_id)
        .filter(Stock.product_id == product_id)
        .order_by(Stock.id.desc())
        .limit(limit)
        .all()
    )
    if not rows:
        click.echo("No ledger rows.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<7} {'Transaction':<20} {'Type':<12} {'Qty':>7}  {'Description'}")
    click.echo("="*80)
    for stock, txn_no in rows:
        click.echo(f"{stock.id:<7} {txn_no or '-':<20} {stock.type:<12} {stock.qty:>7}  {stock.description or ''}")
    click.echo("="*80 + "\n")


@stock_group.command('verify')
@with_appcontext
def verify_stock():
    """Recompute every product's balance from the ledger; exit 1 on negatives."""
    negatives = ledger_service.verify_all()
    if not negatives:
        click.echo("PASS No negative stock balances.")
        return

    for row in negatives:
        click.echo(f"FAIL {row['product_name']} (ID: {row['product_id']}): {row['stock_qty']}")
    raise SystemExit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(stock_group)
