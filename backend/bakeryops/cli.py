# Overview: Flask CLI command groups for bootstrap, users, billing and day status.

# backend/bakeryops/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--company "Brutaria SRL"] [--cif RO12345678]
#   Idempotent bootstrap: creates tables, company/billing singletons and an admin user.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users and API tokens:
# - python -m flask users create --username ana --display-name "Ana" --role operator
# - python -m flask users issue-token ana
#   Print a new bearer token (replaces the previous one).
# - python -m flask users list
#
# Billing:
# - python -m flask billing show
# - python -m flask billing set --series FAC --next-number 28 --padding 6
#
# Production days:
# - python -m flask days status 2026-02-09
# - python -m flask days reopen 2026-02-09 --by admin

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .models.auth import ROLE_ADMIN, VALID_ROLES
from .services import (
    day_status_service,
    export_counter_service,
    invoice_number_service,
    permission_service,
    session_service,
    settings_service,
)
from .validation import DomainError, coerce_date


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--company', 'company_name', default=None, help='Supplier name printed on documents')
@click.option('--cif', default=None, help='Supplier fiscal code (e.g. RO12345678)')
@click.option('--admin-username', default='admin', show_default=True)
@with_appcontext
def init_system(company_name, cif, admin_username):
    """
    Initialize the database: tables, singletons and a default admin.

    Safe to run repeatedly; existing rows are left alone. Prints the
    admin token only when the admin user is created.
    """
    click.echo("START Initializing bakeryops...")
    db.create_all()

    patch = {}
    if company_name:
        patch["name"] = company_name
    if cif:
        patch["cif"] = cif
    if patch:
        settings_service.update_company_config(patch)
    else:
        settings_service.get_company_config()
        db.session.commit()
    click.echo("PASS Company configuration ready")

    billing = settings_service.get_billing_settings()
    db.session.commit()
    click.echo(f"PASS Billing settings ready (next invoice {billing.format_code(billing.invoice_next_number)})")

    admin = db.session.query(User).filter_by(username=admin_username).first()
    if admin:
        click.echo(f"PASS Using existing admin user: {admin.username}")
        return

    admin = User(username=admin_username, display_name="Administrator", role=ROLE_ADMIN, is_active=True)
    db.session.add(admin)
    db.session.commit()
    token = session_service.issue_token(admin)
    click.echo(f"PASS Created admin user: {admin.username}")
    click.echo(f"TOKEN {token}")
    click.echo("SECURITY Store this token now; only its hash is kept.")


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


@click.group('users')
def users_group():
    """User inspection and token commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--display-name', prompt=True, help='Name stamped on exports and unlocks')
@click.option('--role', type=click.Choice(sorted(VALID_ROLES)), prompt=True, help='Role')
@click.option('--agent-id', type=int, default=None, help='Sales agent id (agents only)')
@with_appcontext
def create_user_cli(username, display_name, role, agent_id):
    """Create a user; issue a token separately with `users issue-token`."""
    if db.session.query(User).filter_by(username=username).first():
        click.echo(f"FAIL User '{username}' already exists")
        return

    user = User(username=username, display_name=display_name, role=role, agent_id=agent_id, is_active=True)
    db.session.add(user)
    db.session.commit()
    click.echo(f"PASS Created user: {username} with role '{role}' (ID: {user.id})")


@users_group.command('issue-token')
@click.argument('username')
@with_appcontext
def issue_token_cli(username):
    """Issue a new bearer token for USERNAME (the old one stops working)."""
    user = db.session.query(User).filter_by(username=username).first()
    if not user:
        click.echo(f"FAIL User '{username}' not found")
        return
    if not user.is_active:
        click.echo(f"FAIL User '{username}' is deactivated")
        return

    token = session_service.issue_token(user)
    click.echo(f"TOKEN {token}")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their roles."""
    users = db.session.query(User).order_by(User.id).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Username':<20} {'Display name':<25} {'Role':<10} {'Active':<8} {'Token'}")
    click.echo("="*80)
    for user in users:
        active_str = "Yes" if user.is_active else "No"
        token_str = "yes" if user.token_hash else "no"
        click.echo(f"{user.id:<5} {user.username:<20} {user.display_name:<25} {user.role:<10} {active_str:<8} {token_str}")
    click.echo("="*80 + "\n")


@click.group('billing')
def billing_group():
    """Invoice numbering commands."""


@billing_group.command('show')
@with_appcontext
def show_billing():
    billing = settings_service.get_billing_settings()
    db.session.commit()
    click.echo(f"Series:      {billing.invoice_series}")
    click.echo(f"Next number: {billing.invoice_next_number}")
    click.echo(f"Padding:     {billing.invoice_number_padding}")
    click.echo(f"Next code:   {billing.format_code(billing.invoice_next_number)}")


@billing_group.command('set')
@click.option('--series', default=None)
@click.option('--next-number', type=int, default=None)
@click.option('--padding', type=int, default=None)
@with_appcontext
def set_billing(series, next_number, padding):
    """Administrative override; issued invoices keep their numbers."""
    try:
        billing = invoice_number_service.update_settings(
            {
                "invoice_series": series,
                "invoice_next_number": next_number,
                "invoice_number_padding": padding,
            },
            updated_by="cli",
        )
    except DomainError as e:
        click.echo(f"FAIL {e.message}")
        return
    click.echo(f"PASS Next invoice code: {billing.format_code(billing.invoice_next_number)}")


@click.group('days')
def days_group():
    """Production day commands."""


@days_group.command('status')
@click.argument('day')
@with_appcontext
def day_status_cli(day):
    try:
        status_date = coerce_date(day, "day")
    except DomainError as e:
        click.echo(f"FAIL {e.message}")
        return

    status = day_status_service.get_status(status_date)
    counters = export_counter_service.peek(status_date)
    click.echo(f"Date:       {status_date.isoformat()}")
    click.echo(f"Closed:     {'yes' if status.production_exported else 'no'}")
    click.echo(f"Exported:   {status.exported_at or '-'} by {status.exported_by or '-'} (LOT {status.lot_number or '-'})")
    click.echo(f"Unlocked:   {status.unlocked_at or '-'} by {status.unlocked_by or '-'}")
    click.echo(f"Counters:   invoice={counters['invoice']} receipt={counters['receipt']} production={counters['production']}")


@days_group.command('reopen')
@click.argument('day')
@click.option('--by', 'username', required=True, help='Username of the administrator reopening the day')
@with_appcontext
def reopen_day_cli(day, username):
    """Reopen a closed production day (administrators only)."""
    try:
        status_date = coerce_date(day, "day")
    except DomainError as e:
        click.echo(f"FAIL {e.message}")
        return

    user = db.session.query(User).filter_by(username=username).first()
    if not user:
        click.echo(f"FAIL User {username} not found")
        return
    if not permission_service.can_reopen_day(user):
        click.echo(f"FAIL User {username} may not reopen days")
        return

    if not day_status_service.is_closed(status_date):
        click.echo(f"SKIP Day {status_date.isoformat()} is not closed")
        return
    unlocked_by = user.display_name or user.username
    day_status_service.reopen_day(status_date, unlocked_by=unlocked_by)
    click.echo(f"PASS Day {status_date.isoformat()} reopened by {unlocked_by}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(billing_group)
    app.cli.add_command(days_group)
