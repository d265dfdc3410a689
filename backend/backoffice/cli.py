# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/backoffice/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--org "Org Name"] [--admin-password "..."]
#   Idempotent bootstrap: organization, roles, permissions and the admin user.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users create --org-id 1 --username jane --email jane@example.com --password "Password123!" --role cashier
#
# Adjustments:
# - python -m flask adjustments pending [--org-id 1]
#   List adjustments waiting for review.
#
# Cash book:
# - python -m flask cashbook show --org-id 1 --start 2024-01-01 --end 2024-01-31
#
# Maintenance:
# - python -m flask maintenance cleanup --retention-days 90
#   Delete old security events and expired sessions.

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import User, Role, Organization
from .services.auth_service import create_user, create_default_roles, assign_role, PasswordValidationError
from .services import permission_service
from .services import maintenance_service
from .services import adjustment_service
from .services import cash_book_service
from .services.cash_book_service import CashBookError
from .time_utils import parse_iso_date


def _money(cents: int) -> str:
    sign = "-" if cents < 0 else ""
    whole, frac = divmod(abs(cents), 100)
    return f"{sign}{whole:,}.{frac:02d}"


def _date_option(value, name):
    if value is None:
        return None
    try:
        return parse_iso_date(value)
    except ValueError:
        raise click.BadParameter("must be YYYY-MM-DD", param_hint=name)


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--org', 'org_name', default='Default Organization', help='Organization name')
@click.option('--org-code', default='DEFAULT', help='Organization code')
@click.option('--admin-password', default='Password123!', help='Password for the admin user')
@with_appcontext
def init_system(org_name, org_code, admin_password):
    """
    Initialize the back office: organization, roles, permissions, admin user.

    SECURITY: Change the default password immediately in production!
    """
    click.echo("START Initializing back office...")

    db.create_all()

    org = db.session.query(Organization).filter_by(code=org_code).first()
    if not org:
        org = Organization(name=org_name, code=org_code, is_active=True)
        db.session.add(org)
        db.session.commit()
        click.echo(f"PASS Created organization: {org.name} (ID: {org.id}, Code: {org.code})")
    else:
        click.echo(f"PASS Using existing organization: {org.name} (ID: {org.id})")

    create_default_roles(org.id)
    roles = db.session.query(Role).filter_by(org_id=org.id).all()
    click.echo(f"PASS Roles: {', '.join(r.name for r in roles)}")

    perm_count = permission_service.initialize_permissions()
    assignment_count = permission_service.assign_default_role_permissions()
    click.echo(f"PASS Created {perm_count} permissions, {assignment_count} role assignments")

    existing = db.session.query(User).filter_by(org_id=org.id, username="admin").first()
    if existing:
        click.echo("WARN  User 'admin' already exists in org, skipping...")
    else:
        try:
            user = create_user(
                username="admin",
                email="admin@backoffice.local",
                password=admin_password,
                org_id=org.id,
            )
            assign_role(user.id, "admin")
            click.echo("PASS Created user: admin (admin@backoffice.local) with role 'admin'")
        except PasswordValidationError as e:
            click.echo(f"FAIL Password validation failed for 'admin': {str(e)}")

    click.echo("DONE Back office initialized")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm destructive reset')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate all tables."""
    if not yes:
        click.echo("FAIL Refusing to reset without --yes")
        return
    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset")


# =============================================================================
# USER COMMANDS
# =============================================================================

@click.group('users')
def users_group():
    """User management commands."""


@users_group.command('create')
@click.option('--org-id', type=int, required=True)
@click.option('--username', prompt=True)
@click.option('--email', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--role', type=click.Choice(['admin', 'manager', 'cashier']), default='cashier', show_default=True)
@with_appcontext
def create_user_cli(org_id, username, email, password, role):
    """Create a user in an organization and assign a role."""
    try:
        create_default_roles(org_id)
        permission_service.initialize_permissions()
        permission_service.assign_default_role_permissions()
        user = create_user(username=username, email=email, password=password, org_id=org_id)
        assign_role(user.id, role)
    except (ValueError, PasswordValidationError) as e:
        click.echo(f"FAIL {e}")
        return
    click.echo(f"PASS Created user: {user.username} (ID: {user.id}) with role '{role}'")


# =============================================================================
# ADJUSTMENT COMMANDS
# =============================================================================

@click.group('adjustments')
def adjustments_group():
    """Inventory adjustment inspection."""


@adjustments_group.command('pending')
@click.option('--org-id', type=int, default=None, help='Organization (default: first)')
@with_appcontext
def pending_adjustments_cli(org_id):
    """List adjustments waiting for review."""
    if org_id is None:
        org = db.session.query(Organization).order_by(Organization.id).first()
        if not org:
            click.echo("FAIL No organization exists. Run: python -m flask system init")
            return
        org_id = org.id

    pending = adjustment_service.get_pending_adjustments(org_id)
    if not pending:
        click.echo("No pending adjustments.")
        return

    click.echo("\n" + "=" * 90)
    click.echo(f"{'ID':<6} {'Type':<11} {'Item':<28} {'Qty':>5} {'Cost impact':>14}  Reason")
    click.echo("=" * 90)
    for adj in pending:
        item = adj.inventory_item
        label = f"{item.name} ({item.sku})" if item else f"#{adj.inventory_item_id}"
        click.echo(
            f"{adj.id:<6} {adj.adjustment_type:<11} {label[:28]:<28} {adj.quantity:>5} "
            f"{_money(adj.cost_impact_cents):>14}  {adj.reason}"
        )
    click.echo("=" * 90 + "\n")


# =============================================================================
# CASH BOOK COMMANDS
# =============================================================================

@click.group('cashbook')
def cashbook_group():
    """Cash book inspection."""


@cashbook_group.command('show')
@click.option('--org-id', type=int, required=True)
@click.option('--start', default=None, help='YYYY-MM-DD (default: first of this month)')
@click.option('--end', default=None, help='YYYY-MM-DD (default: end of this month)')
@click.option('--csv', 'as_csv', is_flag=True, help='Print CSV instead of a table')
@with_appcontext
def show_cash_book_cli(org_id, start, end, as_csv):
    """Print the cash book for a date window."""
    try:
        book = cash_book_service.get_cash_book(
            org_id,
            _date_option(start, '--start'),
            _date_option(end, '--end'),
            cash_method=current_app.config.get("CASH_PAYMENT_METHOD", "cash"),
        )
    except CashBookError as e:
        click.echo(f"FAIL {e}")
        return

    if as_csv:
        click.echo(cash_book_service.cash_book_to_csv(book), nl=False)
        return

    click.echo(f"\nCash book {book.start_date.isoformat()} .. {book.end_date.isoformat()}")
    click.echo("=" * 100)
    click.echo(f"{'Date':<11} {'Particulars':<40} {'Voucher':<12} {'Receipt':>11} {'Payment':>11} {'Balance':>11}")
    click.echo("=" * 100)
    for entry in book.entries:
        click.echo(
            f"{entry.occurred_at.date().isoformat():<11} {entry.particulars[:40]:<40} {entry.voucher_no[:12]:<12} "
            f"{_money(entry.receipt_cents) if entry.receipt_cents else '':>11} "
            f"{_money(entry.payment_cents) if entry.payment_cents else '':>11} "
            f"{_money(entry.balance_cents):>11}"
        )
    click.echo("=" * 100)
    click.echo(
        f"{'Totals':<65} {_money(book.total_receipts_cents):>11} "
        f"{_money(book.total_payments_cents):>11} {_money(book.closing_balance_cents):>11}\n"
    )


# =============================================================================
# MAINTENANCE
# =============================================================================

@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup')
@click.option('--retention-days', type=int, default=90, show_default=True)
@with_appcontext
def cleanup_cli(retention_days):
    """
    Delete security events older than the retention window and old sessions.

    Audit events are never deleted.
    """
    result = maintenance_service.run_retention(retention_days=retention_days)
    click.echo(
        f"Deleted {result['security_events_deleted']} security events and "
        f"{result['sessions_deleted']} sessions."
    )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(adjustments_group)
    app.cli.add_command(cashbook_group)
    app.cli.add_command(maintenance_group)
