# Overview: Flask CLI command groups for bootstrap, tenant setup and day-end operations.

# backend/shopledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--business "Shop Name"] [--timezone Africa/Nairobi]
#   Idempotent bootstrap: creates a default business and an owner user.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Business management:
# - python -m flask businesses list
# - python -m flask businesses create --name "Corner Shop" --code "CORNER" --timezone Africa/Nairobi
#
# Users:
# - python -m flask users create --business-id 1 --username owner --email owner@shop.local --password "Password123"
#
# Day-end operations:
# - python -m flask days close --business-id 1 [--entry-id 7]
#   Close the given entry (default: today's entry).
# - python -m flask days reopen --business-id 1 --entry-id 7
# - python -m flask days reconcile --business-id 1 --entry-id 7 [--apply]
#   Compare stored totals with a sweep over the entry's sales.

import click
from flask.cli import with_appcontext

from .errors import LedgerError
from .extensions import db
from .models import Business, User
from .services import daily_entry_service
from .services.auth_service import create_user


def _money(cents: int) -> str:
    return f"{cents / 100:,.2f}"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--business', 'business_name', default='Default Shop', help='Business name')
@click.option('--code', default='DEFAULT', help='Business code')
@click.option('--timezone', 'tz_name', default=None, help='IANA timezone for the business day')
@with_appcontext
def init_system(business_name, code, tz_name):
    """
    Create a default business and an owner user if they do not exist.

    Default login: owner / Password123
    SECURITY: Change the password immediately in production!
    """
    click.echo("START Initializing shop ledger...")
    db.create_all()

    business = db.session.query(Business).filter_by(code=code).first()
    if not business:
        business = Business(name=business_name, code=code, timezone=tz_name, is_active=True)
        db.session.add(business)
        db.session.commit()
        click.echo(f"PASS Created business: {business.name} (ID: {business.id}, Code: {business.code})")
    else:
        click.echo(f"PASS Using existing business: {business.name} (ID: {business.id})")

    if db.session.query(User).filter_by(username="owner").first():
        click.echo("SKIP  User 'owner' already exists")
    else:
        user = create_user("owner", "owner@shop.local", "Password123", business_id=business.id)
        click.echo(f"PASS Created user: {user.username} (ID: {user.id})")

    click.echo("\nDONE")


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

    click.echo("PASS Database reset. Run 'flask system init' to bootstrap.")


@click.group('businesses')
def businesses_group():
    """Business (tenant) management."""


@businesses_group.command('list')
@with_appcontext
def list_businesses_cli():
    businesses = db.session.query(Business).order_by(Business.id).all()
    if not businesses:
        click.echo("No businesses found")
        return
    for b in businesses:
        status = "active" if b.is_active else "inactive"
        click.echo(f"{b.id:>4}  {b.code or '-':<12} {b.name:<30} {b.timezone or 'UTC':<20} {status}")


@businesses_group.command('create')
@click.option('--name', required=True, help='Business name')
@click.option('--code', required=True, help='Short code (unique)')
@click.option('--timezone', 'tz_name', default=None, help='IANA timezone for the business day')
@with_appcontext
def create_business_cli(name, code, tz_name):
    """Create a new business (tenant)."""
    if db.session.query(Business).filter_by(code=code).first():
        click.echo(f"FAIL Business with code '{code}' already exists")
        return

    business = Business(name=name, code=code, timezone=tz_name, is_active=True)
    db.session.add(business)
    db.session.commit()
    click.echo(f"PASS Created business: {business.name} (ID: {business.id}, Code: {business.code})")


@click.group('users')
def users_group():
    """User management."""


@users_group.command('create')
@click.option('--business-id', type=int, required=True, help='Business ID')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@with_appcontext
def create_user_cli(business_id, username, email, password):
    try:
        user = create_user(username, email, password, business_id=business_id)
    except LedgerError as e:
        click.echo(f"FAIL {e}")
        return
    click.echo(f"PASS Created user: {user.username} (ID: {user.id}, Business: {business_id})")


@click.group('days')
def days_group():
    """Daily entry operations."""


def _echo_totals(totals: dict) -> None:
    for field, value in totals.items():
        click.echo(f"  {field:<20} {_money(value):>14}")


@days_group.command('close')
@click.option('--business-id', type=int, required=True)
@click.option('--entry-id', type=int, default=None, help="Defaults to today's entry")
@with_appcontext
def close_day_cli(business_id, entry_id):
    try:
        if entry_id is None:
            entry = daily_entry_service.get_today_entry(business_id)
            if entry is None:
                click.echo("FAIL No entry for today")
                return
            entry_id = entry.id
        entry = daily_entry_service.close_entry(business_id, entry_id)
    except LedgerError as e:
        click.echo(f"FAIL {e}")
        return
    click.echo(f"PASS Closed entry {entry.id} ({entry.business_date.isoformat()})")
    _echo_totals(entry.totals())


@days_group.command('reopen')
@click.option('--business-id', type=int, required=True)
@click.option('--entry-id', type=int, required=True)
@with_appcontext
def reopen_day_cli(business_id, entry_id):
    try:
        entry = daily_entry_service.reopen_entry(business_id, entry_id)
    except LedgerError as e:
        click.echo(f"FAIL {e}")
        return
    click.echo(f"PASS Reopened entry {entry.id} ({entry.business_date.isoformat()})")


@days_group.command('reconcile')
@click.option('--business-id', type=int, required=True)
@click.option('--entry-id', type=int, required=True)
@click.option('--apply', is_flag=True, help='Overwrite stored totals with the sweep')
@with_appcontext
def reconcile_day_cli(business_id, entry_id, apply):
    try:
        report = daily_entry_service.reconcile_entry(business_id, entry_id, apply=apply)
    except LedgerError as e:
        click.echo(f"FAIL {e}")
        return

    if not report["drift"]:
        click.echo(f"PASS Entry {entry_id} totals match its sales")
        return

    click.echo(f"WARN Entry {entry_id} drifted:")
    for field, delta in report["drift"].items():
        click.echo(
            f"  {field:<20} stored {_money(report['stored'][field]):>12}"
            f"  computed {_money(report['computed'][field]):>12}  ({delta:+d})"
        )
    if apply:
        click.echo("PASS Stored totals overwritten")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(businesses_group)
    app.cli.add_command(users_group)
    app.cli.add_command(days_group)
