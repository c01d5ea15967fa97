# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/rxpos/cli.py
# Commands Legend (run from the repository root):
# Prereqs:
# - Activate your virtualenv and `pip install -e .`
# - Set FLASK_APP=rxpos (PowerShell: $env:FLASK_APP="rxpos").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--owner-username owner]
#   Idempotent bootstrap: creates tables if missing and a default OWNER user.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list
#   List all users with role and active status.
# - python -m flask users create --username staff1 --name "Front Counter" --role STAFF
#   Create a user (prompts if options are omitted).
#
# Stock inspection:
# - python -m flask stock check
#   Verify lot bounds and the per-product conservation law; exits non-zero on violation.
# - python -m flask stock lots --product-id 1
#   Show a product's lots in FEFO order.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Product, User
from .services import inventory_service

ROLES = ("OWNER", "STAFF")


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--owner-username', default='owner', help='Username of the default owner')
@click.option('--owner-name', default='Pharmacy Owner', help='Display name of the default owner')
@with_appcontext
def init_system(owner_username, owner_name):
    """
    Initialize RxPOS: schema (if missing) and a default OWNER user.

    Safe to run repeatedly; existing users are left untouched.
    """
    click.echo("START Initializing RxPOS...")

    db.create_all()
    click.echo("PASS Schema ready")

    existing = db.session.query(User).filter_by(username=owner_username).first()
    if existing:
        click.echo(f"WARN  User '{owner_username}' already exists (ID: {existing.id}), skipping...")
    else:
        owner = User(username=owner_username, name=owner_name, role="OWNER", is_active=True)
        db.session.add(owner)
        db.session.commit()
        click.echo(f"PASS Created owner: {owner.username} (ID: {owner.id})")

    click.echo("DONE RxPOS initialized")


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
    click.echo("BUILD Creating all tables...")
    db.create_all()
    click.echo("PASS Database reset complete")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their role."""
    users = db.session.query(User).order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*70)
    click.echo(f"{'ID':<5} {'Username':<20} {'Name':<25} {'Role':<8} {'Active'}")
    click.echo("="*70)
    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.username:<20} {user.name:<25} {user.role:<8} {active_str}")
    click.echo("="*70 + "\n")


@users_group.command('create')
@click.option('--username', prompt=True, help='Unique login name')
@click.option('--name', prompt=True, help='Display name')
@click.option('--role', type=click.Choice(ROLES), default='STAFF', show_default=True)
@with_appcontext
def create_user(username, name, role):
    """Create a user."""
    if db.session.query(User).filter_by(username=username).first():
        raise click.ClickException(f"User '{username}' already exists")

    user = User(username=username, name=name, role=role, is_active=True)
    db.session.add(user)
    db.session.commit()
    click.echo(f"PASS Created user: {user.username} (ID: {user.id}, role {user.role})")


@click.group('stock')
def stock_group():
    """Lot store inspection commands."""


@stock_group.command('check')
@with_appcontext
def check_stock():
    """Verify 0 <= qty_remaining <= qty_received and per-product conservation."""
    violations = inventory_service.check_stock_invariants()
    if not violations:
        click.echo("PASS Lot store consistent")
        return

    for v in violations:
        click.echo(f"FAIL {v['kind']}: " + ", ".join(f"{k}={val}" for k, val in v.items() if k != "kind"))
    raise click.ClickException(f"{len(violations)} stock invariant violation(s)")


@stock_group.command('lots')
@click.option('--product-id', type=int, required=True, help='Product to inspect')
@with_appcontext
def list_lots(product_id):
    """Show a product's lots with stock, in FEFO order."""
    product = db.session.get(Product, product_id)
    if product is None:
        raise click.ClickException(f"Product {product_id} not found")

    lots = inventory_service.eligible_lots(product_id)
    click.echo(f"\n{product.name} (ID: {product.id}) - {sum(l.qty_remaining for l in lots)} sellable")
    click.echo(f"{'Lot':<6} {'Ref':<20} {'Expiry':<12} {'Remaining':>9}")
    for lot in lots:
        click.echo(f"{lot.id:<6} {lot.lot_ref_no:<20} {lot.expiry_date.isoformat():<12} {lot.qty_remaining:>9}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(stock_group)
